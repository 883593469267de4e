# accounts/authz.py
"""
Authorization for staffdesk.

Provides:
- ActorContext: immutable snapshot of who is calling (user, roles, membership)
- resolve_actor: build the ActorContext once per request
- authorize: pure decision -> Allow | Deny(reason)
- require_roles: authorize, raising AuthorizationError on Deny
- owner checks: owns_company, manages_staff_of, member_of, views_staff_of,
  manages_member, is_self

Roles gate operations. Owner checks also require the permission code the
actor's roles grant (company.view, company.manage, staff.view, staff.manage).

Decision order in authorize():
1. No authenticated actor            -> Deny(Unauthenticated)
2. Permission.ALL (ADMIN, DEVELOPER) -> Allow (bypasses ownership)
3. Any of the required roles         -> Allow
4. Owner check supplied              -> Allow if it passes, else Deny(NotOwner)
5. Otherwise                         -> Deny(InsufficientRole)
"""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Union

from accounts.models import Company, CompanyMembership
from accounts.roles import Permission, Role
from common.errors import AuthorizationError, DenyReason


@dataclass(frozen=True)
class ActorContext:
    """
    Who is performing the action.

    Attributes:
        user: The authenticated user
        roles: Role names the user holds
        perms: Permission codes granted through those roles
        membership: The user's company membership, None when they have none
    """
    user: object
    roles: FrozenSet[str]
    perms: FrozenSet[str]
    membership: Optional[CompanyMembership] = None

    def has_role(self, *roles) -> bool:
        return any(str(role) in self.roles for role in roles)

    def has(self, code) -> bool:
        return str(Permission.ALL) in self.perms or str(code) in self.perms

    @property
    def is_admin(self) -> bool:
        """Platform roles (ADMIN, DEVELOPER) carry Permission.ALL."""
        return self.has(Permission.ALL)

    @property
    def company(self) -> Optional[Company]:
        if self.membership is None:
            return None
        return self.membership.company

    @property
    def is_authenticated(self) -> bool:
        return bool(getattr(self.user, "is_authenticated", False))


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    detail: str = ""


Decision = Union[Allow, Deny]
OwnerCheck = Callable[[ActorContext], bool]


def build_actor(user) -> ActorContext:
    roles = list(user.roles.all())
    perms = set()
    for role in roles:
        perms.update(role.permissions or [])
    try:
        membership = CompanyMembership.objects.select_related("company").get(user=user)
    except CompanyMembership.DoesNotExist:
        membership = None
    return ActorContext(
        user=user,
        roles=frozenset(role.name for role in roles),
        perms=frozenset(perms),
        membership=membership,
    )


def resolve_actor(request) -> Optional[ActorContext]:
    """
    Load the caller's roles and membership, once per request.

    Returns None for anonymous requests; authorize() turns that into
    Deny(Unauthenticated).
    """
    cached = getattr(request, "_staffdesk_actor", None)
    if cached is not None:
        return cached

    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return None

    actor = build_actor(user)
    request._staffdesk_actor = actor
    return actor


def authorize(
    actor: Optional[ActorContext],
    required_roles: Iterable,
    owner_check: Optional[OwnerCheck] = None,
) -> Decision:
    if actor is None or not actor.is_authenticated:
        return Deny(DenyReason.UNAUTHENTICATED, "Authentication required.")

    if actor.is_admin:
        return Allow()

    required = [str(role) for role in required_roles]
    if actor.has_role(*required):
        return Allow()

    if owner_check is not None:
        if owner_check(actor):
            return Allow()
        return Deny(DenyReason.NOT_OWNER, "You can only act on resources you own.")

    return Deny(DenyReason.INSUFFICIENT_ROLE, f"Requires one of: {', '.join(required) or 'ADMIN'}")


def require_roles(
    actor: Optional[ActorContext],
    required_roles: Iterable,
    owner_check: Optional[OwnerCheck] = None,
) -> ActorContext:
    """
    Raise AuthorizationError unless authorize() allows.

    Example:
        actor = require_roles(resolve_actor(request), {Role.ADMIN}, owns_company(company))
    """
    decision = authorize(actor, required_roles, owner_check)
    if isinstance(decision, Deny):
        raise AuthorizationError(decision.reason, decision.detail or None)
    return actor


# =============================================================================
# Owner checks
# =============================================================================

def _admin_of(actor: ActorContext, company: Company) -> bool:
    membership = actor.membership
    if membership is None or not membership.is_active:
        return False
    return membership.company_id == company.id and membership.role == Role.COMPANY_ADMIN


def owns_company(company: Company) -> OwnerCheck:
    """True when the actor is the COMPANY_ADMIN of this company and may manage it."""
    def check(actor: ActorContext) -> bool:
        return _admin_of(actor, company) and actor.has(Permission.COMPANY_MANAGE)
    return check


def manages_staff_of(company: Company) -> OwnerCheck:
    """True when the actor is the COMPANY_ADMIN of this company and may manage its staff."""
    def check(actor: ActorContext) -> bool:
        return _admin_of(actor, company) and actor.has(Permission.STAFF_MANAGE)
    return check


def manages_member(target: CompanyMembership) -> OwnerCheck:
    """The member themself, or whoever manages staff of their company."""
    def check(actor: ActorContext) -> bool:
        if target.user_id == getattr(actor.user, "id", None):
            return True
        return manages_staff_of(target.company)(actor)
    return check


def is_self(user) -> OwnerCheck:
    def check(actor: ActorContext) -> bool:
        return getattr(actor.user, "id", None) == user.id
    return check


def member_of(company: Company) -> OwnerCheck:
    """True for an active member of the company whose roles grant company.view."""
    def check(actor: ActorContext) -> bool:
        membership = actor.membership
        if membership is None or not membership.is_active or membership.company_id != company.id:
            return False
        return actor.has(Permission.COMPANY_VIEW)
    return check


def views_staff_of(company: Company) -> OwnerCheck:
    """True for an active member of the company whose roles grant staff.view."""
    def check(actor: ActorContext) -> bool:
        return member_of(company)(actor) and actor.has(Permission.STAFF_VIEW)
    return check


def require_authenticated(actor: Optional[ActorContext]) -> ActorContext:
    """Any signed-in user, whatever roles they hold."""
    return require_roles(actor, (), lambda _actor: True)
