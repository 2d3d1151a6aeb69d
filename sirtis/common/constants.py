"""Enums and constants for SIRTIS — roles, modules, access matrix, statuses."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    basic_user_1 = "basic_user_1"
    basic_user_2 = "basic_user_2"
    advance_user_1 = "advance_user_1"
    advance_user_2 = "advance_user_2"
    hr = "hr"
    system_administrator = "system_administrator"


class UserStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"


class Module(str, enum.Enum):
    call_centre = "call_centre"
    dashboard = "dashboard"
    personal_profile = "personal_profile"
    programs = "programs"
    documents = "documents"
    hr = "hr"
    risks = "risks"
    meal = "meal"
    payroll = "payroll"


class AccessLevel(str, enum.Enum):
    none = "none"
    view = "view"
    edit = "edit"
    full = "full"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]


_ACCESS_RANK = {
    AccessLevel.none: 0,
    AccessLevel.view: 1,
    AccessLevel.edit: 2,
    AccessLevel.full: 3,
}


class DocumentLevel(str, enum.Enum):
    """Document sensitivity, ordered from least to most restricted."""

    public = "public"
    internal = "internal"
    confidential = "confidential"
    secret = "secret"
    top_secret = "top_secret"

    @property
    def rank(self) -> int:
        return list(DocumentLevel).index(self)


# ── Role → module access matrix ─────────────────────────────────────

_N, _V, _E, _F = AccessLevel.none, AccessLevel.view, AccessLevel.edit, AccessLevel.full

ROLE_MODULE_ACCESS: dict[UserRole, dict[Module, AccessLevel]] = {
    UserRole.basic_user_1: {
        Module.call_centre: _V,
        Module.dashboard: _V,
        Module.personal_profile: _F,
        Module.programs: _N,
        Module.documents: _V,
        Module.hr: _N,
        Module.risks: _V,
        Module.meal: _N,
        Module.payroll: _N,
    },
    UserRole.basic_user_2: {
        Module.call_centre: _N,
        Module.dashboard: _V,
        Module.personal_profile: _F,
        Module.programs: _V,
        Module.documents: _V,
        Module.hr: _N,
        Module.risks: _V,
        Module.meal: _V,
        Module.payroll: _N,
    },
    UserRole.advance_user_1: {
        Module.call_centre: _F,
        Module.dashboard: _V,
        Module.personal_profile: _F,
        Module.programs: _E,
        Module.documents: _E,
        Module.hr: _N,
        Module.risks: _E,
        Module.meal: _E,
        Module.payroll: _N,
    },
    UserRole.advance_user_2: {
        Module.call_centre: _V,
        Module.dashboard: _V,
        Module.personal_profile: _F,
        Module.programs: _F,
        Module.documents: _E,
        Module.hr: _N,
        Module.risks: _V,
        Module.meal: _F,
        Module.payroll: _N,
    },
    UserRole.hr: {
        Module.call_centre: _V,
        Module.dashboard: _V,
        Module.personal_profile: _F,
        Module.programs: _V,
        Module.documents: _E,
        Module.hr: _F,
        Module.risks: _V,
        Module.meal: _E,
        Module.payroll: _F,
    },
    UserRole.system_administrator: {module: _F for module in Module},
}

ROLE_DOCUMENT_LEVEL: dict[UserRole, DocumentLevel] = {
    UserRole.basic_user_1: DocumentLevel.confidential,
    UserRole.basic_user_2: DocumentLevel.confidential,
    UserRole.advance_user_1: DocumentLevel.secret,
    UserRole.advance_user_2: DocumentLevel.secret,
    UserRole.hr: DocumentLevel.top_secret,
    UserRole.system_administrator: DocumentLevel.top_secret,
}

ROLE_FLAGS: dict[UserRole, dict[str, bool]] = {
    role: {
        "can_view_others_profiles": role in (UserRole.hr, UserRole.system_administrator),
        "can_manage_users": role == UserRole.system_administrator,
        "full_access": role == UserRole.system_administrator,
    }
    for role in UserRole
}

# New accounts get a role from their department code unless one is given.
DEPARTMENT_DEFAULT_ROLES: dict[str, UserRole] = {
    "HUMAN_RESOURCE_MANAGEMENT": UserRole.hr,
    "PROGRAMS": UserRole.advance_user_1,
    "CALL_CENTER": UserRole.basic_user_1,
    "EXECUTIVE_DIRECTORS_OFFICE": UserRole.system_administrator,
    "FINANCE_AND_ADMINISTRATION": UserRole.advance_user_2,
}
DEFAULT_ROLE = UserRole.basic_user_1


def module_access(role: UserRole, module: Module) -> AccessLevel:
    """Return the access level *role* holds on *module* (``none`` if unmapped)."""
    return ROLE_MODULE_ACCESS.get(role, {}).get(module, AccessLevel.none)


def has_access(role: UserRole, module: Module, required: AccessLevel) -> bool:
    return module_access(role, module).rank >= required.rank


def can_read_level(role: UserRole, level: DocumentLevel) -> bool:
    clearance = ROLE_DOCUMENT_LEVEL.get(role, DocumentLevel.public)
    return level.rank <= clearance.rank


def default_role_for_department(code: str | None) -> UserRole:
    if not code:
        return DEFAULT_ROLE
    return DEPARTMENT_DEFAULT_ROLES.get(code.upper(), DEFAULT_ROLE)


# ── HR ──────────────────────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    undisclosed = "undisclosed"


class EmploymentType(str, enum.Enum):
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"
    volunteer = "volunteer"
    intern = "intern"


DEFAULT_ARCHIVE_REASON = "Terminated"


class QualificationType(str, enum.Enum):
    education = "education"
    certification = "certification"
    skill = "skill"
    training = "training"


class VerificationStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


# ── Call centre ─────────────────────────────────────────────────────

class CallType(str, enum.Enum):
    inbound = "inbound"
    outbound = "outbound"


class CommunicationMode(str, enum.Enum):
    phone = "phone"
    whatsapp = "whatsapp"
    walk_in = "walk_in"
    text = "text"


class CallStatus(str, enum.Enum):
    open = "open"
    in_progress = "in_progress"
    escalated = "escalated"
    resolved = "resolved"
    closed = "closed"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ── Performance plans ───────────────────────────────────────────────

class PlanStatus(str, enum.Enum):
    draft = "draft"
    supervisor_review = "supervisor_review"
    supervisor_approved = "supervisor_approved"
    reviewer_review = "reviewer_review"
    reviewer_approved = "reviewer_approved"
    completed = "completed"


class PlanActivityStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class AppraisalStatus(str, enum.Enum):
    draft = "draft"
    submitted = "submitted"
    revision_requested = "revision_requested"
    reviewer_assessment = "reviewer_assessment"
    approved = "approved"


RATING_LABELS = {
    1: "Needs Improvement",
    2: "Below Expectations",
    3: "Meets Expectations",
    4: "Exceeds Expectations",
    5: "Outstanding",
}


# ── MEAL ────────────────────────────────────────────────────────────

class FormStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class CalculationType(str, enum.Enum):
    sum = "sum"
    count = "count"
    average = "average"
    max = "max"
    min = "min"


class FeedbackType(str, enum.Enum):
    complaint = "complaint"
    suggestion = "suggestion"
    compliment = "compliment"
    inquiry = "inquiry"


class FeedbackStatus(str, enum.Enum):
    open = "open"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"


# ── Risks ───────────────────────────────────────────────────────────

class RiskCategory(str, enum.Enum):
    operational = "operational"
    strategic = "strategic"
    financial = "financial"
    compliance = "compliance"
    reputational = "reputational"
    environmental = "environmental"
    cybersecurity = "cybersecurity"
    hr_personnel = "hr_personnel"


class RiskRating(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"

    @property
    def score(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class RiskStatus(str, enum.Enum):
    open = "open"
    mitigated = "mitigated"
    escalated = "escalated"
    closed = "closed"


class MitigationStatus(str, enum.Enum):
    planning = "planning"
    in_progress = "in_progress"
    completed = "completed"


# ── Programs ────────────────────────────────────────────────────────

class ProjectStatus(str, enum.Enum):
    planning = "planning"
    active = "active"
    on_hold = "on_hold"
    completed = "completed"
    cancelled = "cancelled"


class ActivityStatus(str, enum.Enum):
    planned = "planned"
    in_progress = "in_progress"
    done = "done"


# ── Payroll ─────────────────────────────────────────────────────────

class PayrollPeriodStatus(str, enum.Enum):
    open = "open"
    processing = "processing"
    closed = "closed"


class PayrollRecordStatus(str, enum.Enum):
    draft = "draft"
    approved = "approved"
    paid = "paid"


# ── Audit ───────────────────────────────────────────────────────────

class AuditSeverity(str, enum.Enum):
    info = "info"
    warning = "warning"
    critical = "critical"


class AuditOutcome(str, enum.Enum):
    success = "success"
    failure = "failure"


class SessionRevokeReason(str, enum.Enum):
    """Why a session stopped being usable. Only ``rotated`` sessions mark
    refresh-token reuse."""

    rotated = "rotated"
    logout = "logout"
    suspended = "suspended"
    role_change = "role_change"
    password_reset = "password_reset"
    token_reuse = "token_reuse"


# ── Pagination / formats ────────────────────────────────────────────

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DATE_FORMAT = "%Y-%m-%d"
