# tests/test_authz.py
"""
Tests for roles and the access guard.

Tests cover:
- Default permission sets
- authorize() decision order
- Owner checks (company, member, self)
- Permission codes behind the bypass and the owner checks
"""

import pytest

from accounts.authz import (
    Allow,
    Deny,
    authorize,
    manages_member,
    manages_staff_of,
    member_of,
    owns_company,
    is_self,
    require_authenticated,
    require_roles,
    views_staff_of,
)
from accounts.models import CompanyMembership, UserRole
from accounts.roles import BYPASS_ROLES, STAFF_ROLES, Permission, Role, default_permissions
from common.errors import AuthorizationError, DenyReason


class TestRoleDefaults:
    def test_platform_roles_get_all(self):
        assert default_permissions(Role.ADMIN) == [Permission.ALL.value]
        assert default_permissions(Role.DEVELOPER) == [Permission.ALL.value]

    def test_company_admin_can_manage_company_and_staff(self):
        perms = default_permissions(Role.COMPANY_ADMIN)
        assert "company.manage" in perms
        assert "staff.manage" in perms
        assert perms == sorted(perms)

    def test_every_role_has_defaults(self):
        for role in Role:
            assert default_permissions(role)

    def test_staff_roles_exclude_platform_and_company_admin(self):
        assert Role.COMPANY_ADMIN not in STAFF_ROLES
        assert not (STAFF_ROLES & BYPASS_ROLES)


@pytest.mark.django_db
class TestAuthorize:
    def test_anonymous_is_unauthenticated(self):
        decision = authorize(None, {Role.ADMIN})
        assert isinstance(decision, Deny)
        assert decision.reason == DenyReason.UNAUTHENTICATED

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.DEVELOPER])
    def test_platform_roles_bypass_every_guard(self, make_user, actor, role):
        user = make_user(f"{role.lower()}@test.com", role)
        assert isinstance(authorize(actor(user), {Role.COMPANY_ADMIN}), Allow)
        assert isinstance(authorize(actor(user), (), lambda a: False), Allow)

    def test_required_role_allows(self, company_admin, actor):
        assert isinstance(authorize(actor(company_admin), {Role.COMPANY_ADMIN}), Allow)

    @pytest.mark.parametrize(
        "role",
        [r for r in Role if r not in (Role.ADMIN, Role.DEVELOPER)],
    )
    def test_admin_only_guard_denies_every_other_role(self, make_user, actor, role):
        user = make_user(f"{role.lower()}@test.com", role)
        decision = authorize(actor(user), {Role.ADMIN})
        assert isinstance(decision, Deny)
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_failed_owner_check_is_not_owner(self, client_user, actor):
        decision = authorize(actor(client_user), {Role.ADMIN}, lambda a: False)
        assert decision.reason == DenyReason.NOT_OWNER

    def test_user_without_roles_is_denied(self, make_user, actor):
        user = make_user("nobody@test.com")
        decision = authorize(actor(user), {Role.CLIENT})
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_require_roles_raises_with_status(self, client_user, actor):
        with pytest.raises(AuthorizationError) as exc:
            require_roles(actor(client_user), {Role.ADMIN})
        assert exc.value.status_code == 403

        with pytest.raises(AuthorizationError) as exc:
            require_roles(None, {Role.ADMIN})
        assert exc.value.status_code == 401

    def test_require_authenticated_accepts_any_user(self, make_user, actor):
        user = make_user("plain@test.com")
        assert require_authenticated(actor(user)).user == user


@pytest.mark.django_db
class TestOwnerChecks:
    def test_company_admin_owns_own_company_only(self, company, other_company, company_admin, actor):
        ctx = actor(company_admin)
        assert owns_company(company)(ctx)
        assert not owns_company(other_company)(ctx)

    def test_staff_member_does_not_own_company(self, company, staff_user, actor):
        ctx = actor(staff_user)
        assert not owns_company(company)(ctx)
        assert member_of(company)(ctx)

    def test_inactive_membership_owns_nothing(self, company, company_admin, actor):
        CompanyMembership.objects.filter(user=company_admin).update(is_active=False)
        ctx = actor(company_admin)
        assert not owns_company(company)(ctx)
        assert not member_of(company)(ctx)

    def test_manages_member(self, company_admin, staff_user, other_company_admin, actor):
        target = CompanyMembership.objects.get(user=staff_user)
        assert manages_member(target)(actor(company_admin))
        assert manages_member(target)(actor(staff_user))
        assert not manages_member(target)(actor(other_company_admin))

    def test_is_self(self, client_user, admin_user, actor):
        assert is_self(client_user)(actor(client_user))
        assert not is_self(admin_user)(actor(client_user))


@pytest.mark.django_db
class TestPermissionCodes:
    def test_actor_collects_role_permissions(self, company_admin, actor):
        ctx = actor(company_admin)
        assert ctx.has(Permission.STAFF_MANAGE)
        assert not ctx.has(Permission.ALL)
        assert not ctx.is_admin

    def test_all_grants_every_code(self, admin_user, actor):
        ctx = actor(admin_user)
        assert ctx.is_admin
        assert ctx.has(Permission.COMPANY_MANAGE)

    def test_bypass_follows_all_permission(self, admin_user, actor):
        UserRole.objects.filter(user=admin_user).update(permissions=["DEFAULT"])
        decision = authorize(actor(admin_user), {Role.COMPANY_ADMIN})
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_company_and_staff_management_are_separate(self, company, company_admin, actor):
        UserRole.objects.filter(user=company_admin).update(permissions=["DEFAULT", "company.view", "staff.manage"])
        ctx = actor(company_admin)
        assert not owns_company(company)(ctx)
        assert manages_staff_of(company)(ctx)

    def test_staff_manage_needed_to_manage_members(self, company_admin, staff_user, actor):
        target = CompanyMembership.objects.get(user=staff_user)
        UserRole.objects.filter(user=company_admin).update(permissions=["DEFAULT", "company.view", "company.manage"])
        assert not manages_member(target)(actor(company_admin))

    def test_membership_without_company_view_is_not_member(self, company, staff_user, actor):
        UserRole.objects.filter(user=staff_user).update(permissions=["DEFAULT"])
        assert not member_of(company)(actor(staff_user))

    def test_staff_view(self, company, company_admin, staff_user, make_member, actor):
        manager = make_member(company, "lead@globex.test", Role.MANAGER, phone_number="+102")
        assert views_staff_of(company)(actor(manager))
        assert views_staff_of(company)(actor(company_admin))
        assert not views_staff_of(company)(actor(staff_user))
