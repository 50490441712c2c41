"""
Role to module capability table.

Every portal page is a "module" identified by a string id. A user's
``allowed_modules`` list decides what they can open; new accounts and role
changes are seeded from ``DEFAULT_MODULES``.
"""
from typing import Optional

from backend.models.enums import UserRole

ALL_MODULES: tuple[str, ...] = (
    "dashboard",
    "new-submission",
    "my-projects",
    "emr-calendar",
    "evaluator-dashboard",
    "my-evaluations",
    "emr-evaluations",
    "schedule-meeting",
    "pending-reviews",
    "completed-reviews",
    "all-projects",
    "emr-management",
    "incentive-claim",
    "manage-incentive-claims",
    "incentive-approvals",
    "recruitment-approvals",
    "post-a-job",
    "analytics",
    "manage-users",
    "module-management",
    "bulk-upload",
    "system-settings",
    "notifications",
    "settings",
    "arps-calculator",
)

CORE_MODULES = ("dashboard", "notifications", "settings", "emr-calendar")
FACULTY_MODULES = CORE_MODULES + ("new-submission", "my-projects", "incentive-claim", "post-a-job")
EVALUATOR_MODULES = FACULTY_MODULES + ("evaluator-dashboard", "my-evaluations", "emr-evaluations")
CRO_MODULES = EVALUATOR_MODULES + ("all-projects", "analytics")
ADMIN_MODULES = CRO_MODULES + (
    "schedule-meeting",
    "pending-reviews",
    "completed-reviews",
    "emr-management",
    "manage-incentive-claims",
    "recruitment-approvals",
    "bulk-upload",
)

DEFAULT_MODULES: dict[UserRole, tuple[str, ...]] = {
    UserRole.FACULTY: FACULTY_MODULES,
    UserRole.EVALUATOR: EVALUATOR_MODULES,
    UserRole.CRO: CRO_MODULES,
    UserRole.ADMIN: ADMIN_MODULES,
    UserRole.SUPER_ADMIN: ALL_MODULES,
}

# Heads of institute and department see their hierarchy's projects
DESIGNATION_MODULES: dict[str, tuple[str, ...]] = {
    "Principal": ("all-projects", "analytics"),
    "HOD": ("all-projects", "analytics"),
}

_missing = set(UserRole) - set(DEFAULT_MODULES)
assert not _missing, f"DEFAULT_MODULES has no entry for {sorted(r.value for r in _missing)}"
del _missing

# Roles that may act on any user's records
ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


def get_default_modules_for_role(role: UserRole, designation: Optional[str] = None) -> list[str]:
    """Default module list for a role, in ``ALL_MODULES`` order."""
    modules = set(DEFAULT_MODULES[UserRole(role)])
    if designation:
        modules.update(DESIGNATION_MODULES.get(designation, ()))
    return [module for module in ALL_MODULES if module in modules]


def unknown_modules(modules: list[str]) -> list[str]:
    return [module for module in modules if module not in ALL_MODULES]


def has_module(user, module_id: str) -> bool:
    """True if the user may open ``module_id``; empty lists fall back to role defaults."""
    allowed = user.allowed_modules or get_default_modules_for_role(user.role, user.designation)
    return module_id in allowed


def is_admin(user) -> bool:
    return UserRole(user.role) in ADMIN_ROLES
