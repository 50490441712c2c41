"""
Tests for the role to module capability table.
"""
from types import SimpleNamespace

import pytest

from backend.core.permissions import (
    ALL_MODULES,
    DEFAULT_MODULES,
    get_default_modules_for_role,
    has_module,
    is_admin,
    unknown_modules,
)
from backend.models import UserRole


class TestDefaultModules:
    """Tests for role defaults."""

    def test_every_role_has_defaults(self):
        assert set(DEFAULT_MODULES) == set(UserRole)

    def test_defaults_only_name_known_modules(self):
        for modules in DEFAULT_MODULES.values():
            assert unknown_modules(list(modules)) == []

    def test_super_admin_gets_everything(self):
        assert get_default_modules_for_role(UserRole.SUPER_ADMIN) == list(ALL_MODULES)

    def test_faculty_defaults(self):
        modules = get_default_modules_for_role(UserRole.FACULTY)
        assert "incentive-claim" in modules
        assert "new-submission" in modules
        assert "schedule-meeting" not in modules
        assert "manage-users" not in modules

    def test_roles_widen_in_order(self):
        faculty = set(get_default_modules_for_role(UserRole.FACULTY))
        evaluator = set(get_default_modules_for_role(UserRole.EVALUATOR))
        cro = set(get_default_modules_for_role(UserRole.CRO))
        admin = set(get_default_modules_for_role(UserRole.ADMIN))
        assert faculty < evaluator < cro < admin

    def test_result_follows_catalogue_order(self):
        modules = get_default_modules_for_role(UserRole.ADMIN)
        assert modules == [m for m in ALL_MODULES if m in modules]

    @pytest.mark.parametrize("designation", ["Principal", "HOD"])
    def test_heads_see_all_projects(self, designation):
        modules = get_default_modules_for_role(UserRole.FACULTY, designation)
        assert "all-projects" in modules
        assert "analytics" in modules

    def test_other_designations_add_nothing(self):
        assert get_default_modules_for_role(UserRole.FACULTY, "Professor") == get_default_modules_for_role(
            UserRole.FACULTY
        )

    def test_accepts_role_value(self):
        assert get_default_modules_for_role("Evaluator") == get_default_modules_for_role(UserRole.EVALUATOR)


class TestModuleChecks:
    """Tests for has_module, is_admin and unknown_modules."""

    def test_explicit_list_wins(self):
        user = SimpleNamespace(role=UserRole.FACULTY.value, designation=None, allowed_modules=["manage-users"])
        assert has_module(user, "manage-users")
        assert not has_module(user, "incentive-claim")

    def test_empty_list_falls_back_to_role(self):
        user = SimpleNamespace(role=UserRole.ADMIN.value, designation=None, allowed_modules=[])
        assert has_module(user, "schedule-meeting")
        assert not has_module(user, "system-settings")

    @pytest.mark.parametrize(
        "role,expected",
        [
            (UserRole.FACULTY, False),
            (UserRole.EVALUATOR, False),
            (UserRole.CRO, False),
            (UserRole.ADMIN, True),
            (UserRole.SUPER_ADMIN, True),
        ],
    )
    def test_is_admin(self, role, expected):
        assert is_admin(SimpleNamespace(role=role.value)) is expected

    def test_unknown_modules(self):
        assert unknown_modules(["dashboard", "teleport", "arps-calculator", "x"]) == ["teleport", "x"]
