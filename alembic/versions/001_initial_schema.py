"""001 – Initial schema: all SIRTIS tables, indexes and default settings.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-03-02 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email                VARCHAR(255) NOT NULL UNIQUE,
            password_hash        VARCHAR(255) NOT NULL,
            first_name           VARCHAR(100) NOT NULL,
            last_name            VARCHAR(100) NOT NULL,
            role                 VARCHAR(30)  NOT NULL DEFAULT 'basic_user_1',
            department           VARCHAR(150),
            position             VARCHAR(150),
            phone                VARCHAR(30),
            is_active            BOOLEAN DEFAULT TRUE,
            must_change_password BOOLEAN DEFAULT FALSE,
            last_login_at        TIMESTAMPTZ,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id            UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash         VARCHAR(128) NOT NULL UNIQUE,
            refresh_token_hash VARCHAR(128) UNIQUE,
            ip_address         INET,
            user_agent         TEXT,
            expires_at         TIMESTAMPTZ NOT NULL,
            is_revoked         BOOLEAN DEFAULT FALSE,
            revoked_reason     VARCHAR(30),
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_user    ON user_sessions(user_id)")
    op.execute("CREATE INDEX idx_user_sessions_expires ON user_sessions(expires_at)")

    # ── 3. audit_logs ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_logs (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            action      VARCHAR(50) NOT NULL,
            resource    VARCHAR(50) NOT NULL,
            resource_id VARCHAR(64),
            details     JSONB,
            old_values  JSONB,
            new_values  JSONB,
            ip_address  INET,
            user_agent  TEXT,
            severity    VARCHAR(20) NOT NULL DEFAULT 'info',
            outcome     VARCHAR(20) NOT NULL DEFAULT 'success',
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_logs_user_id    ON audit_logs(user_id)")
    op.execute("CREATE INDEX ix_audit_logs_resource   ON audit_logs(resource, resource_id)")
    op.execute("CREATE INDEX ix_audit_logs_created_at ON audit_logs(created_at)")
    op.execute("CREATE INDEX ix_audit_logs_action     ON audit_logs(action)")

    # ── 4. app_settings ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE app_settings (
            key         VARCHAR(100) PRIMARY KEY,
            value       JSONB NOT NULL,
            description TEXT,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_by  UUID REFERENCES users(id) ON DELETE SET NULL
        )
    """)

    # ── 5. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name         VARCHAR(150) NOT NULL UNIQUE,
            code         VARCHAR(50)  NOT NULL UNIQUE,
            description  TEXT,
            manager_name VARCHAR(200),
            budget       NUMERIC(14, 2),
            location     VARCHAR(150),
            is_active    BOOLEAN DEFAULT TRUE,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_number   VARCHAR(20)  NOT NULL UNIQUE,
            user_id           UUID UNIQUE REFERENCES users(id) ON DELETE SET NULL,
            first_name        VARCHAR(100) NOT NULL,
            last_name         VARCHAR(100) NOT NULL,
            email             VARCHAR(255) NOT NULL UNIQUE,
            personal_email    VARCHAR(255),
            phone             VARCHAR(30),
            gender            VARCHAR(20),
            date_of_birth     DATE,
            address           TEXT,
            emergency_contact JSONB,
            position          VARCHAR(150) NOT NULL,
            employment_type   VARCHAR(30),
            department_id     UUID REFERENCES departments(id),
            supervisor_id     UUID REFERENCES employees(id) ON DELETE SET NULL,
            start_date        DATE,
            base_salary       NUMERIC(14, 2),
            currency          VARCHAR(3) DEFAULT 'USD',
            status            VARCHAR(20) NOT NULL DEFAULT 'active',
            archived_at       TIMESTAMPTZ,
            archive_reason    TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")
    op.execute("CREATE INDEX idx_employees_status     ON employees(status)")

    op.execute("""
        CREATE TABLE job_descriptions (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id          UUID NOT NULL UNIQUE REFERENCES employees(id) ON DELETE CASCADE,
            job_title            VARCHAR(150) NOT NULL,
            location             VARCHAR(150) NOT NULL,
            job_summary          TEXT,
            key_responsibilities JSONB DEFAULT '[]',
            essential_experience TEXT,
            essential_skills     TEXT,
            acknowledgment       BOOLEAN NOT NULL DEFAULT FALSE,
            version              INTEGER NOT NULL DEFAULT 1,
            is_active            BOOLEAN NOT NULL DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE employee_qualifications (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type                VARCHAR(20)  NOT NULL,
            title               VARCHAR(200) NOT NULL,
            institution         VARCHAR(200),
            issuer              VARCHAR(200),
            date_obtained       DATE NOT NULL,
            expiry_date         DATE,
            level               VARCHAR(100),
            grade               VARCHAR(50),
            description         TEXT,
            verification_status VARCHAR(20) NOT NULL DEFAULT 'pending',
            verified_by         UUID REFERENCES users(id) ON DELETE SET NULL,
            verified_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employee_qualifications_employee ON employee_qualifications(employee_id)")

    # ── 7. call_records ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE call_records (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            case_number           VARCHAR(30) NOT NULL UNIQUE,
            call_number           VARCHAR(20) NOT NULL UNIQUE,
            caller_name           VARCHAR(200),
            caller_phone          VARCHAR(30),
            caller_email          VARCHAR(255),
            caller_age            VARCHAR(30),
            caller_gender         VARCHAR(20),
            caller_key_population VARCHAR(100),
            caller_province       VARCHAR(100),
            caller_address        TEXT,
            client_name           VARCHAR(200),
            client_age            VARCHAR(30),
            client_sex            VARCHAR(20),
            client_address        TEXT,
            client_province       VARCHAR(100),
            call_type             VARCHAR(20) NOT NULL DEFAULT 'inbound',
            communication_mode    VARCHAR(20) NOT NULL DEFAULT 'phone',
            purpose               VARCHAR(200),
            validity              VARCHAR(20),
            new_or_repeat_call    VARCHAR(20),
            language              VARCHAR(50),
            how_did_you_hear      VARCHAR(200),
            description           TEXT,
            notes                 TEXT,
            call_start_time       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            call_end_time         TIMESTAMPTZ,
            is_case               BOOLEAN DEFAULT FALSE,
            category              VARCHAR(100),
            perpetrator           VARCHAR(200),
            services_recommended  TEXT,
            referral              TEXT,
            voucher_issued        BOOLEAN DEFAULT FALSE,
            voucher_value         NUMERIC(12, 2),
            priority              VARCHAR(20) NOT NULL DEFAULT 'medium',
            status                VARCHAR(20) NOT NULL DEFAULT 'open',
            assigned_officer_id   UUID REFERENCES users(id) ON DELETE SET NULL,
            resolution            TEXT,
            follow_up_required    BOOLEAN DEFAULT FALSE,
            follow_up_date        DATE,
            created_by            UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_call_records_status     ON call_records(status)")
    op.execute("CREATE INDEX ix_call_records_created_at ON call_records(created_at)")
    op.execute("CREATE INDEX ix_call_records_officer    ON call_records(assigned_officer_id)")

    # ── 8. performance_plans ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE performance_plans (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id            UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            supervisor_id          UUID NOT NULL REFERENCES users(id),
            reviewer_id            UUID REFERENCES users(id),
            plan_year              INTEGER NOT NULL,
            plan_period            VARCHAR(30) NOT NULL DEFAULT 'Annual',
            status                 VARCHAR(30) NOT NULL DEFAULT 'draft',
            supervisor_comments    TEXT,
            reviewer_comments      TEXT,
            submitted_at           TIMESTAMPTZ,
            supervisor_approved_at TIMESTAMPTZ,
            reviewer_approved_at   TIMESTAMPTZ,
            completed_at           TIMESTAMPTZ,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_plan_employee_period UNIQUE (employee_id, plan_year, plan_period)
        )
    """)

    op.execute("""
        CREATE TABLE plan_responsibilities (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            plan_id     UUID NOT NULL REFERENCES performance_plans(id) ON DELETE CASCADE,
            position    INTEGER NOT NULL DEFAULT 0,
            title       VARCHAR(200) NOT NULL,
            description TEXT NOT NULL,
            weight      INTEGER NOT NULL
        )
    """)

    op.execute("""
        CREATE TABLE plan_comments (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            plan_id      UUID NOT NULL REFERENCES performance_plans(id) ON DELETE CASCADE,
            user_id      UUID NOT NULL REFERENCES users(id),
            comment      TEXT NOT NULL,
            comment_type VARCHAR(30) NOT NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE plan_activities (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            responsibility_id UUID NOT NULL REFERENCES plan_responsibilities(id) ON DELETE CASCADE,
            title             VARCHAR(200) NOT NULL,
            description       TEXT,
            status            VARCHAR(20) NOT NULL DEFAULT 'pending',
            progress          INTEGER,
            due_date          DATE,
            completed_at      TIMESTAMPTZ,
            created_by        UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_plan_activities_responsibility ON plan_activities(responsibility_id)")

    op.execute("""
        CREATE TABLE performance_appraisals (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id            UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            plan_id                UUID REFERENCES performance_plans(id) ON DELETE SET NULL,
            supervisor_id          UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewer_id            UUID REFERENCES users(id) ON DELETE SET NULL,
            review_period          VARCHAR(50) NOT NULL,
            due_date               DATE,
            status                 VARCHAR(30) NOT NULL DEFAULT 'draft',
            overall_rating         NUMERIC(3, 2),
            performance_areas      JSONB DEFAULT '[]',
            achievements           JSONB DEFAULT '[]',
            goals                  JSONB DEFAULT '[]',
            development_plan       JSONB DEFAULT '[]',
            self_assessment        TEXT,
            strengths              TEXT,
            areas_for_improvement  TEXT,
            comments               JSONB DEFAULT '[]',
            submitted_at           TIMESTAMPTZ,
            supervisor_approved_at TIMESTAMPTZ,
            reviewer_approved_at   TIMESTAMPTZ,
            approved_at            TIMESTAMPTZ,
            created_by             UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_appraisal_employee_period UNIQUE (employee_id, review_period)
        )
    """)
    op.execute("CREATE INDEX ix_performance_appraisals_status ON performance_appraisals(status)")

    # ── 9. documents ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE documents (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            filename      VARCHAR(255) NOT NULL,
            original_name VARCHAR(255) NOT NULL,
            mime_type     VARCHAR(150) NOT NULL,
            size          BIGINT NOT NULL,
            path          VARCHAR(500) NOT NULL,
            url           VARCHAR(500),
            category      VARCHAR(100),
            description   TEXT,
            tags          JSONB,
            is_public     BOOLEAN DEFAULT FALSE,
            access_level  VARCHAR(20) NOT NULL DEFAULT 'internal',
            uploaded_by   UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_documents_category    ON documents(category)")
    op.execute("CREATE INDEX ix_documents_uploaded_by ON documents(uploaded_by)")

    # ── 10. projects / activities ─────────────────────────────────────────
    op.execute("""
        CREATE TABLE projects (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name         VARCHAR(200) NOT NULL,
            code         VARCHAR(50)  NOT NULL UNIQUE,
            description  TEXT,
            status       VARCHAR(20) NOT NULL DEFAULT 'planning',
            start_date   DATE,
            end_date     DATE,
            budget       NUMERIC(14, 2),
            actual_spent NUMERIC(14, 2) NOT NULL DEFAULT 0,
            created_by   UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE activities (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            project_id  UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            title       VARCHAR(200) NOT NULL,
            description TEXT,
            status      VARCHAR(20) NOT NULL DEFAULT 'planned',
            due_date    DATE,
            created_by  UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_activities_project_id ON activities(project_id)")

    # ── 11. MEAL ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE meal_forms (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name         VARCHAR(200) NOT NULL,
            description  TEXT,
            project_id   UUID REFERENCES projects(id) ON DELETE SET NULL,
            version      VARCHAR(20) NOT NULL DEFAULT '1.0',
            language     VARCHAR(20) NOT NULL DEFAULT 'en',
            status       VARCHAR(20) NOT NULL DEFAULT 'draft',
            schema       JSONB NOT NULL DEFAULT '{}'::jsonb,
            published_at TIMESTAMPTZ,
            created_by   UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE meal_form_projects (
            form_id    UUID NOT NULL REFERENCES meal_forms(id) ON DELETE CASCADE,
            project_id UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            PRIMARY KEY (form_id, project_id)
        )
    """)

    op.execute("""
        CREATE TABLE meal_submissions (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            form_id      UUID NOT NULL REFERENCES meal_forms(id) ON DELETE CASCADE,
            project_id   UUID REFERENCES projects(id) ON DELETE SET NULL,
            user_id      UUID REFERENCES users(id) ON DELETE SET NULL,
            user_email   VARCHAR(255),
            submitted_by VARCHAR(200) NOT NULL DEFAULT 'Anonymous',
            latitude     DOUBLE PRECISION,
            longitude    DOUBLE PRECISION,
            attachments  JSONB,
            data         JSONB NOT NULL DEFAULT '{}'::jsonb,
            metadata     JSONB NOT NULL DEFAULT '{}'::jsonb,
            device_info  JSONB NOT NULL DEFAULT '{}'::jsonb,
            submitted_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_meal_submissions_form_id ON meal_submissions(form_id)")

    op.execute("""
        CREATE TABLE meal_indicators (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            project_id        UUID REFERENCES projects(id) ON DELETE SET NULL,
            code              VARCHAR(50)  NOT NULL UNIQUE,
            name              VARCHAR(200) NOT NULL,
            unit              VARCHAR(50),
            baseline          NUMERIC(14, 2),
            target            NUMERIC(14, 2),
            current           NUMERIC(14, 2),
            observation_count INTEGER NOT NULL DEFAULT 0,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE meal_feedback (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            type             VARCHAR(20)  NOT NULL,
            priority         VARCHAR(10)  NOT NULL DEFAULT 'medium',
            status           VARCHAR(20)  NOT NULL DEFAULT 'open',
            title            VARCHAR(255) NOT NULL,
            description      TEXT NOT NULL,
            submitted_by     VARCHAR(200) NOT NULL,
            submitted_by_id  UUID REFERENCES users(id) ON DELETE SET NULL,
            is_anonymous     BOOLEAN NOT NULL DEFAULT FALSE,
            contact_method   VARCHAR(100),
            project          VARCHAR(200),
            location         VARCHAR(200),
            tags             JSONB DEFAULT '[]',
            assigned_to      VARCHAR(200),
            resolution       TEXT,
            resolved_at      TIMESTAMPTZ,
            escalation_level INTEGER NOT NULL DEFAULT 0,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_meal_feedback_created_at ON meal_feedback(created_at)")

    op.execute("""
        CREATE TABLE meal_feedback_responses (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            feedback_id     UUID NOT NULL REFERENCES meal_feedback(id) ON DELETE CASCADE,
            responded_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            responded_by    VARCHAR(200) NOT NULL,
            message         TEXT NOT NULL,
            is_internal     BOOLEAN NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 12. risks ─────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE risks (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            risk_id         VARCHAR(30)  NOT NULL UNIQUE,
            title           VARCHAR(255) NOT NULL,
            description     TEXT NOT NULL,
            category        VARCHAR(30) NOT NULL,
            department      VARCHAR(150),
            probability     VARCHAR(10) NOT NULL,
            impact          VARCHAR(10) NOT NULL,
            risk_score      INTEGER NOT NULL,
            status          VARCHAR(20) NOT NULL DEFAULT 'open',
            owner_id        UUID REFERENCES users(id) ON DELETE SET NULL,
            created_by_id   UUID REFERENCES users(id) ON DELETE SET NULL,
            date_identified DATE NOT NULL DEFAULT CURRENT_DATE,
            tags            JSONB,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_risks_score      ON risks(risk_score)")
    op.execute("CREATE INDEX ix_risks_department ON risks(department)")

    op.execute("""
        CREATE TABLE risk_mitigations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            risk_id     UUID NOT NULL REFERENCES risks(id) ON DELETE CASCADE,
            title       VARCHAR(255) NOT NULL,
            description TEXT,
            status      VARCHAR(20) NOT NULL DEFAULT 'planning',
            priority    VARCHAR(20) NOT NULL DEFAULT 'medium',
            owner_id    UUID REFERENCES users(id) ON DELETE SET NULL,
            due_date    DATE,
            progress    INTEGER NOT NULL DEFAULT 0,
            budget      NUMERIC(14, 2),
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_risk_mitigations_progress CHECK (progress BETWEEN 0 AND 100)
        )
    """)
    op.execute("CREATE INDEX ix_risk_mitigations_risk_id ON risk_mitigations(risk_id)")

    op.execute("""
        CREATE TABLE risk_audit_logs (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            risk_id     UUID NOT NULL REFERENCES risks(id) ON DELETE CASCADE,
            action      VARCHAR(50) NOT NULL,
            user_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            description TEXT,
            changes     JSONB,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_risk_audit_logs_risk_id ON risk_audit_logs(risk_id)")

    # ── 13. payroll ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE payroll_periods (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name       VARCHAR(100) NOT NULL,
            start_date DATE NOT NULL,
            end_date   DATE NOT NULL,
            pay_date   DATE,
            status     VARCHAR(20) NOT NULL DEFAULT 'open',
            created_by UUID REFERENCES users(id) ON DELETE SET NULL,
            closed_at  TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_payroll_periods_dates CHECK (end_date >= start_date)
        )
    """)

    op.execute("""
        CREATE TABLE payroll_records (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            period_id        UUID NOT NULL REFERENCES payroll_periods(id) ON DELETE CASCADE,
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            basic_salary     NUMERIC(14, 2) NOT NULL DEFAULT 0,
            allowances       JSONB NOT NULL DEFAULT '[]'::jsonb,
            deductions       JSONB NOT NULL DEFAULT '[]'::jsonb,
            gross_pay        NUMERIC(14, 2) NOT NULL DEFAULT 0,
            total_deductions NUMERIC(14, 2) NOT NULL DEFAULT 0,
            net_pay          NUMERIC(14, 2) NOT NULL DEFAULT 0,
            currency         VARCHAR(3) NOT NULL DEFAULT 'USD',
            status           VARCHAR(20) NOT NULL DEFAULT 'draft',
            approved_by      UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at      TIMESTAMPTZ,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_payroll_records_period_employee UNIQUE (period_id, employee_id)
        )
    """)
    op.execute("CREATE INDEX ix_payroll_records_period_id ON payroll_records(period_id)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    op.execute("""
        INSERT INTO app_settings (key, value, description) VALUES
        ('system',   '{"app_name": "SIRTIS", "timezone": "Africa/Harare"}', 'General system settings'),
        ('security', '{"session_timeout_hours": 24, "password_min_length": 8}', 'Authentication and audit policy')
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "payroll_records",
        "payroll_periods",
        "risk_audit_logs",
        "risk_mitigations",
        "risks",
        "meal_feedback_responses",
        "meal_feedback",
        "meal_indicators",
        "meal_submissions",
        "meal_form_projects",
        "meal_forms",
        "activities",
        "projects",
        "documents",
        "performance_appraisals",
        "plan_activities",
        "plan_comments",
        "plan_responsibilities",
        "performance_plans",
        "call_records",
        "employee_qualifications",
        "job_descriptions",
        "employees",
        "departments",
        "app_settings",
        "audit_logs",
        "user_sessions",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
