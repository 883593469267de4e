# accounts/queries.py
"""
Read side for users, companies and company staff.

Queries share the authorization rules of the commands but never write.
List queries return ServiceResult with paging extras (totalItems,
currentPage, itemsPerPage).
"""

from django.contrib.auth import get_user_model
from django.db.models import Count, Prefetch, Q
from django.db.models.functions import ExtractMonth

from accounts.authz import (
    ActorContext,
    is_self,
    manages_member,
    member_of,
    require_authenticated,
    require_roles,
    views_staff_of,
)
from accounts.commands import fetch_company, fetch_membership, fetch_user
from accounts.models import Company, CompanyMembership
from accounts.roles import Role
from accounts.serializers import (
    CompanySerializer,
    ContactPersonSerializer,
    StaffSerializer,
    UserSerializer,
)
from common.errors import AuthorizationError, DenyReason
from common.responses import ServiceResult, paged

User = get_user_model()

DEFAULT_PAGE_SIZE = 15


def _search(queryset, search: str, fields):
    search = (search or "").strip()
    if not search:
        return queryset
    condition = Q()
    for name in fields:
        condition |= Q(**{f"{name}__icontains": search})
    return queryset.filter(condition)


def _counts_by_month(queryset, year: int) -> list:
    """Twelve {"month", "count"} rows for the year, zero-filled."""
    rows = (
        queryset.filter(created_at__year=year)
        .annotate(month=ExtractMonth("created_at"))
        .values("month")
        .annotate(count=Count("id"))
        .order_by("month")
    )
    counts = {row["month"]: row["count"] for row in rows}
    return [{"month": month, "count": counts.get(month, 0)} for month in range(1, 13)]


def _company_with_contact(company: Company) -> dict:
    admins = getattr(company, "admin_memberships", None)
    if admins is None:
        admins = list(
            company.memberships.select_related("user").filter(role=Role.COMPANY_ADMIN)[:1]
        )
    contact = admins[0] if admins else None
    return {
        "company": CompanySerializer(company).data,
        "contact_person": ContactPersonSerializer(contact).data if contact else None,
    }


# =============================================================================
# Users
# =============================================================================

def get_me(actor: ActorContext) -> ServiceResult:
    require_authenticated(actor)
    data = {"user": UserSerializer(actor.user).data, "company": None, "membership": None}
    if actor.membership is not None:
        data["company"] = CompanySerializer(actor.membership.company).data
        data["membership"] = StaffSerializer(actor.membership).data
    return ServiceResult.ok("Profile fetched successfully", data)


def get_user(actor: ActorContext, public_id) -> ServiceResult:
    user = fetch_user(public_id)
    require_roles(actor, {Role.ADMIN}, is_self(user))
    return ServiceResult.ok("User fetched successfully", UserSerializer(user).data)


def list_users(actor: ActorContext, search: str = "", page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> ServiceResult:
    """Users matching `search` on name or email, newest first. ADMIN only."""
    require_roles(actor, {Role.ADMIN})
    queryset = _search(
        User.objects.prefetch_related("roles"),
        search,
        ("first_name", "last_name", "email"),
    )
    items, extras = paged(queryset, page, limit)
    return ServiceResult.ok("Users fetched successfully", UserSerializer(items, many=True).data, **extras)


# =============================================================================
# Companies
# =============================================================================

def get_company(actor: ActorContext, public_id) -> ServiceResult:
    """A company with its contact person. ADMIN, or any member of the company."""
    company = fetch_company(public_id)
    require_roles(actor, {Role.ADMIN}, member_of(company))
    return ServiceResult.ok("Company fetched successfully", _company_with_contact(company))


def list_companies(actor: ActorContext, search: str = "", page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> ServiceResult:
    require_roles(actor, {Role.ADMIN})
    queryset = _search(
        Company.objects.prefetch_related(
            Prefetch(
                "memberships",
                queryset=CompanyMembership.objects.select_related("user").filter(role=Role.COMPANY_ADMIN),
                to_attr="admin_memberships",
            )
        ),
        search,
        ("name", "email", "industry"),
    )
    items, extras = paged(queryset, page, limit)
    return ServiceResult.ok(
        "Companies fetched successfully",
        [_company_with_contact(company) for company in items],
        **extras,
    )


def companies_count_by_month(actor: ActorContext, year: int) -> ServiceResult:
    require_roles(actor, {Role.ADMIN})
    return ServiceResult.ok(
        "Company statistics fetched successfully",
        {"year": year, "months": _counts_by_month(Company.objects.all(), year)},
    )


# =============================================================================
# Company staff
# =============================================================================

def _staff_scope(actor: ActorContext, company_public_id=None):
    """
    Staff the actor may list: everything for ADMIN (optionally one company),
    the actor's own company otherwise.
    """
    queryset = CompanyMembership.objects.select_related("user", "company")
    if actor.is_admin:
        if company_public_id:
            queryset = queryset.filter(company=fetch_company(company_public_id))
        return queryset

    company = actor.company
    if company is None or not views_staff_of(company)(actor):
        raise AuthorizationError(DenyReason.NOT_OWNER, "You cannot view staff of any company")
    if company_public_id and str(company_public_id) != str(company.public_id):
        raise AuthorizationError(DenyReason.NOT_OWNER, "You can only view staff of your own company")
    return queryset.filter(company=company)


def get_staff_member(actor: ActorContext, public_id) -> ServiceResult:
    """ADMIN, the member themself, or the COMPANY_ADMIN of their company."""
    membership = fetch_membership(public_id)
    require_roles(actor, {Role.ADMIN}, manages_member(membership))
    return ServiceResult.ok("Staff member fetched successfully", StaffSerializer(membership).data)


def list_staff(
    actor: ActorContext,
    search: str = "",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    company_public_id=None,
) -> ServiceResult:
    require_roles(actor, {Role.COMPANY_ADMIN, Role.MANAGER})
    queryset = _search(
        _staff_scope(actor, company_public_id),
        search,
        ("user__first_name", "user__last_name", "user__email", "title", "phone_number"),
    )
    items, extras = paged(queryset, page, limit)
    return ServiceResult.ok("Staff fetched successfully", StaffSerializer(items, many=True).data, **extras)


def staff_count_by_month(actor: ActorContext, year: int, company_public_id=None) -> ServiceResult:
    require_roles(actor, {Role.COMPANY_ADMIN, Role.MANAGER})
    queryset = _staff_scope(actor, company_public_id)
    return ServiceResult.ok(
        "Staff statistics fetched successfully",
        {"year": year, "months": _counts_by_month(queryset, year)},
    )
