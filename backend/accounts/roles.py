# accounts/roles.py
"""
Closed role and permission sets, plus the default permission set each role
is provisioned with. Nothing here changes at runtime.
"""

from django.db import models


class Role(models.TextChoices):
    ADMIN = "ADMIN", "Administrator"
    DEVELOPER = "DEVELOPER", "Developer"
    COMPANY_ADMIN = "COMPANY_ADMIN", "Company administrator"
    COMPANY_USER = "COMPANY_USER", "Company user"
    CLIENT = "CLIENT", "Client"
    AGENT = "AGENT", "Agent"
    MANAGER = "MANAGER", "Manager"
    STAFF = "STAFF", "Staff"


class Permission(models.TextChoices):
    ALL = "ALL", "Everything"
    DEFAULT = "DEFAULT", "Own profile"
    COMPANY_VIEW = "company.view", "View company"
    COMPANY_MANAGE = "company.manage", "Manage company"
    STAFF_VIEW = "staff.view", "View staff"
    STAFF_MANAGE = "staff.manage", "Manage staff"


# Platform roles. They are provisioned with Permission.ALL, which passes every
# guard, including ownership checks.
BYPASS_ROLES = frozenset({Role.ADMIN, Role.DEVELOPER})

ROLE_DEFAULTS = {
    **{role: frozenset({Permission.ALL}) for role in BYPASS_ROLES},
    Role.COMPANY_ADMIN: frozenset({
        Permission.DEFAULT,
        Permission.COMPANY_VIEW,
        Permission.COMPANY_MANAGE,
        Permission.STAFF_VIEW,
        Permission.STAFF_MANAGE,
    }),
    Role.MANAGER: frozenset({
        Permission.DEFAULT,
        Permission.COMPANY_VIEW,
        Permission.STAFF_VIEW,
    }),
    Role.COMPANY_USER: frozenset({Permission.DEFAULT, Permission.COMPANY_VIEW}),
    Role.STAFF: frozenset({Permission.DEFAULT, Permission.COMPANY_VIEW}),
    Role.AGENT: frozenset({Permission.DEFAULT, Permission.COMPANY_VIEW}),
    Role.CLIENT: frozenset({Permission.DEFAULT}),
}

# Roles that only mean something inside a company; removed with the membership.
COMPANY_SCOPED_ROLES = frozenset({
    Role.COMPANY_ADMIN,
    Role.COMPANY_USER,
    Role.MANAGER,
    Role.STAFF,
    Role.AGENT,
})

# Roles a company admin may hand to its staff.
STAFF_ROLES = frozenset({
    Role.COMPANY_USER,
    Role.MANAGER,
    Role.STAFF,
    Role.AGENT,
})


def default_permissions(role) -> list[str]:
    """Sorted permission codes stored on a freshly assigned role."""
    return sorted(str(p) for p in ROLE_DEFAULTS[Role(role)])
