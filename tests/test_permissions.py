"""Role → module access matrix, document clearance and department default roles."""

from __future__ import annotations

import pytest

from sirtis.common.constants import (
    DEFAULT_ROLE,
    ROLE_FLAGS,
    AccessLevel,
    DocumentLevel,
    Module,
    UserRole,
    can_read_level,
    default_role_for_department,
    has_access,
    module_access,
)


class TestAccessMatrix:

    @pytest.mark.parametrize("role", list(UserRole))
    def test_every_role_sees_dashboard_and_owns_profile(self, role):
        assert module_access(role, Module.dashboard) == AccessLevel.view
        assert module_access(role, Module.personal_profile) == AccessLevel.full

    def test_system_administrator_has_full_everywhere(self):
        for module in Module:
            assert module_access(UserRole.system_administrator, module) == AccessLevel.full

    @pytest.mark.parametrize(
        "role, module, level",
        [
            (UserRole.basic_user_1, Module.call_centre, AccessLevel.view),
            (UserRole.basic_user_1, Module.meal, AccessLevel.none),
            (UserRole.basic_user_2, Module.call_centre, AccessLevel.none),
            (UserRole.basic_user_2, Module.meal, AccessLevel.view),
            (UserRole.advance_user_1, Module.call_centre, AccessLevel.full),
            (UserRole.advance_user_1, Module.programs, AccessLevel.edit),
            (UserRole.advance_user_2, Module.programs, AccessLevel.full),
            (UserRole.advance_user_2, Module.risks, AccessLevel.view),
            (UserRole.hr, Module.hr, AccessLevel.full),
            (UserRole.hr, Module.payroll, AccessLevel.full),
            (UserRole.hr, Module.meal, AccessLevel.edit),
        ],
    )
    def test_matrix_entries(self, role, module, level):
        assert module_access(role, module) == level

    def test_has_access_is_ordered(self):
        assert has_access(UserRole.advance_user_1, Module.programs, AccessLevel.view)
        assert has_access(UserRole.advance_user_1, Module.programs, AccessLevel.edit)
        assert not has_access(UserRole.advance_user_1, Module.programs, AccessLevel.full)
        assert not has_access(UserRole.basic_user_1, Module.hr, AccessLevel.view)

    def test_only_hr_roles_have_hr_or_payroll(self):
        for role in UserRole:
            expected = role in (UserRole.hr, UserRole.system_administrator)
            assert has_access(role, Module.hr, AccessLevel.view) is expected
            assert has_access(role, Module.payroll, AccessLevel.view) is expected


class TestClearance:

    @pytest.mark.parametrize(
        "role, highest",
        [
            (UserRole.basic_user_1, DocumentLevel.confidential),
            (UserRole.basic_user_2, DocumentLevel.confidential),
            (UserRole.advance_user_1, DocumentLevel.secret),
            (UserRole.advance_user_2, DocumentLevel.secret),
            (UserRole.hr, DocumentLevel.top_secret),
            (UserRole.system_administrator, DocumentLevel.top_secret),
        ],
    )
    def test_highest_readable_level(self, role, highest):
        for level in DocumentLevel:
            assert can_read_level(role, level) is (level.rank <= highest.rank)

    def test_public_is_readable_by_all(self):
        assert all(can_read_level(role, DocumentLevel.public) for role in UserRole)


class TestFlagsAndDefaults:

    def test_flags(self):
        assert ROLE_FLAGS[UserRole.hr]["can_view_others_profiles"] is True
        assert ROLE_FLAGS[UserRole.hr]["can_manage_users"] is False
        assert ROLE_FLAGS[UserRole.system_administrator]["full_access"] is True
        assert ROLE_FLAGS[UserRole.advance_user_2]["can_view_others_profiles"] is False

    @pytest.mark.parametrize(
        "code, role",
        [
            ("HUMAN_RESOURCE_MANAGEMENT", UserRole.hr),
            ("PROGRAMS", UserRole.advance_user_1),
            ("CALL_CENTER", UserRole.basic_user_1),
            ("EXECUTIVE_DIRECTORS_OFFICE", UserRole.system_administrator),
            ("FINANCE_AND_ADMINISTRATION", UserRole.advance_user_2),
        ],
    )
    def test_department_default_roles(self, code, role):
        assert default_role_for_department(code) == role

    def test_unknown_department_falls_back(self):
        assert default_role_for_department("LOGISTICS") == DEFAULT_ROLE
        assert default_role_for_department(None) == DEFAULT_ROLE


class TestEnforcement:

    async def test_module_gate_reports_required_level(self, client, login_as):
        _, headers = await login_as(UserRole.basic_user_2)
        resp = await client.get("/api/v1/call-centre/calls", headers=headers)

        assert resp.status_code == 403
        assert "call_centre" in resp.json()["detail"]

    async def test_demotion_applies_immediately(self, client, db, login_as):
        user, headers = await login_as(UserRole.hr)
        assert (await client.get("/api/v1/employees", headers=headers)).status_code == 200

        user.role = UserRole.basic_user_1.value
        await db.commit()

        assert (await client.get("/api/v1/employees", headers=headers)).status_code == 403
