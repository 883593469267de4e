# accounts/commands.py
"""
Command layer for users, companies and company staff.

Every mutation follows the same sequence:
1. Authorize the actor
2. Validate the input (advisory, see accounts.validators)
3. Commit the write plan with run_transaction()
4. Emit the domain event
5. Return a ServiceResult for the view to put in the envelope

Side effects that belong to another aggregate (provisioning a company's
contact person, invitation and reset emails) are reactions to the event,
see accounts.reactions. A failing reaction never changes the result
returned here.
"""

import uuid
from datetime import date, datetime

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.core.exceptions import ValidationError as DjangoValidationError

from accounts.authz import (
    ActorContext,
    is_self,
    manages_staff_of,
    owns_company,
    require_roles,
)
from accounts.models import Company, CompanyMembership, UserRole
from accounts.passwords import verify_otp
from accounts.roles import COMPANY_SCOPED_ROLES, Role, default_permissions
from accounts.serializers import CompanySerializer, StaffSerializer, UserSerializer
from accounts.validators import (
    company_name_errors,
    contact_person_errors,
    email_errors,
    normalize_email,
    password_errors,
    raise_if_errors,
    staff_phone_errors,
    staff_role_errors,
)
from common.errors import AuthorizationError, DenyReason, FieldError, NotFoundError, ValidationError
from common.responses import ServiceResult
from events.dispatcher import emit
from events.types import (
    EventTypes,
    CompanyCreatedData,
    CompanyDeletedData,
    CompanyStaffCreatedData,
    CompanyStaffDeletedData,
    CompanyStaffUpdatedData,
    CompanyUpdatedData,
    PasswordResetData,
    PasswordResetRequestedData,
    UserCreatedData,
    UserDeletedData,
    UserUpdatedData,
)
from store.repository import Create, Delete, DeleteWhere, Ensure, Ref, Update, run_transaction

User = get_user_model()

USER_FIELDS = ("first_name", "last_name", "email", "phone_number", "photo", "is_active")
COMPANY_FIELDS = (
    "name",
    "address",
    "phone_number",
    "email",
    "occupation",
    "industry",
    "website",
    "registration_date",
    "tin",
    "company_type",
    "certificate",
    "logo",
    "is_active",
)
CONTACT_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "title",
    "id_number",
    "id_attachment",
)
STAFF_USER_FIELDS = ("first_name", "last_name", "email")
STAFF_MEMBERSHIP_FIELDS = ("phone_number", "title", "id_number", "id_attachment", "is_active")


# =============================================================================
# Helpers
# =============================================================================

def _json_value(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _jsonable(values: dict) -> dict:
    return {key: _json_value(value) for key, value in values.items()}


def _pick(data: dict, names) -> dict:
    return {name: data[name] for name in names if name in data}


def _diff(instance, values: dict):
    """
    Split requested values into those that actually change the instance.

    Returns:
        (changed_values, changes) where changes maps field -> {"from", "to"}
    """
    changed, changes = {}, {}
    for name, new in values.items():
        old = getattr(instance, name)
        if old != new:
            changed[name] = new
            changes[name] = {"from": _json_value(old), "to": _json_value(new)}
    return changed, changes


def _role_step(key: str, user, role) -> Create:
    return Create(key, UserRole, {
        "user": user,
        "name": str(role),
        "permissions": default_permissions(role),
    })


def _role_names(user) -> list:
    return list(user.roles.values_list("name", flat=True))


def fetch_user(public_id) -> User:
    try:
        return User.objects.get(public_id=public_id)
    except (User.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("User not found")


def fetch_company(public_id) -> Company:
    try:
        return Company.objects.get(public_id=public_id)
    except (Company.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Company not found")


def fetch_membership(public_id) -> CompanyMembership:
    try:
        return CompanyMembership.objects.select_related("user", "company").get(public_id=public_id)
    except (CompanyMembership.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Staff member not found")


def _contact_membership(company: Company):
    return (
        CompanyMembership.objects.select_related("user")
        .filter(company=company, role=Role.COMPANY_ADMIN)
        .first()
    )


def _actor_public_id(actor: ActorContext):
    return str(actor.user.public_id) if actor is not None else None


# =============================================================================
# Users
# =============================================================================

def register_client(data: dict) -> ServiceResult:
    """
    Self-registration. The new user holds the CLIENT role only.

    Args:
        data: first_name, last_name, email, password, optional phone_number/photo
    """
    email = normalize_email(data.get("email"))
    raise_if_errors(email_errors(email) + password_errors(data.get("password")))

    result = run_transaction([
        Create("user", User, {
            "email": email,
            "first_name": data.get("first_name", ""),
            "last_name": data.get("last_name", ""),
            "phone_number": data.get("phone_number") or "",
            "photo": data.get("photo") or "",
            "password": make_password(data["password"]),
        }),
        _role_step("role", Ref("user"), Role.CLIENT),
    ])
    user = result["user"]

    event = emit(
        EventTypes.USER_CREATED,
        UserCreatedData(
            user_public_id=str(user.public_id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=[str(Role.CLIENT)],
            self_registered=True,
        ),
        aggregate_type="User",
        aggregate_id=user.public_id,
        user=user,
    )
    return ServiceResult.created("Account created successfully", UserSerializer(user).data, event=event)


def create_user(actor: ActorContext, data: dict) -> ServiceResult:
    """Create a user with one role. ADMIN only."""
    require_roles(actor, {Role.ADMIN})

    email = normalize_email(data.get("email"))
    role = Role(data.get("role") or Role.CLIENT)
    raise_if_errors(email_errors(email) + password_errors(data.get("password")))

    result = run_transaction([
        Create("user", User, {
            "email": email,
            "first_name": data.get("first_name", ""),
            "last_name": data.get("last_name", ""),
            "phone_number": data.get("phone_number") or "",
            "photo": data.get("photo") or "",
            "password": make_password(data["password"]),
        }),
        _role_step("role", Ref("user"), role),
    ])
    user = result["user"]

    event = emit(
        EventTypes.USER_CREATED,
        UserCreatedData(
            user_public_id=str(user.public_id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=[str(role)],
            created_by_user_public_id=_actor_public_id(actor),
        ),
        aggregate_type="User",
        aggregate_id=user.public_id,
        user=actor.user,
    )
    return ServiceResult.created("User created successfully", UserSerializer(user).data, event=event)


def update_user(actor: ActorContext, public_id, data: dict) -> ServiceResult:
    """
    Update a user's profile. ADMIN, or the user themself.

    Only ADMIN may change `role` or `is_active`. A new role replaces every
    role the user held.
    """
    user = fetch_user(public_id)
    require_roles(actor, {Role.ADMIN}, is_self(user))

    if not actor.is_admin and ("role" in data or "is_active" in data):
        raise AuthorizationError(DenyReason.INSUFFICIENT_ROLE, "Only administrators can change roles or account status")

    values = _pick(data, USER_FIELDS)
    if "email" in values:
        values["email"] = normalize_email(values["email"])
        raise_if_errors(email_errors(values["email"], exclude_user_id=user.pk))

    changed, changes = _diff(user, values)
    steps = []
    if changed:
        steps.append(Update("user", User, {"pk": user.pk}, changed))

    role = str(data["role"]) if data.get("role") else None
    if role and set(_role_names(user)) != {str(role)}:
        changes["roles"] = {"from": _role_names(user), "to": [str(role)]}
        steps.append(DeleteWhere("previous_roles", UserRole, {"user_id": user.pk}))
        steps.append(_role_step("role", user, Role(role)))

    if not steps:
        return ServiceResult.ok("User updated successfully", UserSerializer(user).data)

    result = run_transaction(steps)
    user = result.get("user", user)

    event = emit(
        EventTypes.USER_UPDATED,
        UserUpdatedData(
            user_public_id=str(user.public_id),
            email=user.email,
            changes=changes,
            roles=_role_names(user),
        ),
        aggregate_type="User",
        aggregate_id=user.public_id,
        user=actor.user,
    )
    return ServiceResult.ok("User updated successfully", UserSerializer(user).data, event=event)


def delete_user(actor: ActorContext, public_id) -> ServiceResult:
    """Delete a user with their roles and membership. ADMIN only."""
    user = fetch_user(public_id)
    require_roles(actor, {Role.ADMIN})

    if user.pk == actor.user.pk:
        raise ValidationError([FieldError("id", "You cannot delete your own account")])

    roles = _role_names(user)
    membership = CompanyMembership.objects.filter(user=user).first()

    run_transaction([
        DeleteWhere("roles", UserRole, {"user_id": user.pk}),
        DeleteWhere("membership", CompanyMembership, {"user_id": user.pk}),
        Delete("user", User, {"pk": user.pk}),
    ])

    event = emit(
        EventTypes.USER_DELETED,
        UserDeletedData(
            user_public_id=str(public_id),
            email=user.email,
            removed_roles=roles,
            removed_membership_public_id=str(membership.public_id) if membership else None,
        ),
        aggregate_type="User",
        aggregate_id=public_id,
        user=actor.user,
    )
    return ServiceResult.ok("User deleted successfully", {"id": str(public_id)}, event=event)


def request_password_reset(email: str) -> ServiceResult:
    """
    Start a password reset. The code itself is issued and mailed by the
    reaction to user.password_reset_requested.
    """
    email = normalize_email(email)
    user = User.objects.filter(email=email).first()
    if user is None:
        raise NotFoundError("User not found")

    event = emit(
        EventTypes.USER_PASSWORD_RESET_REQUESTED,
        PasswordResetRequestedData(user_public_id=str(user.public_id), email=user.email),
        aggregate_type="User",
        aggregate_id=user.public_id,
        user=user,
    )
    return ServiceResult.ok("A reset code has been sent to your email", event=event)


def reset_password(email: str, otp: str, new_password: str) -> ServiceResult:
    """Set a new password with a valid one-time code; the code is consumed."""
    email = normalize_email(email)
    user = User.objects.filter(email=email).first()
    if user is None:
        raise NotFoundError("User not found")

    errors = password_errors(new_password, field="new_password")
    if not verify_otp(user, otp):
        errors.append(FieldError("otp", "Invalid or expired code"))
    raise_if_errors(errors)

    run_transaction([
        Update("user", User, {"pk": user.pk}, {
            "password": make_password(new_password),
            "otp_hash": "",
            "otp_expires_at": None,
        }),
    ])

    event = emit(
        EventTypes.USER_PASSWORD_RESET,
        PasswordResetData(user_public_id=str(user.public_id), email=user.email),
        aggregate_type="User",
        aggregate_id=user.public_id,
        user=user,
    )
    return ServiceResult.ok("Password has been reset successfully", event=event)


# =============================================================================
# Companies
# =============================================================================

def create_company(actor: ActorContext, data: dict) -> ServiceResult:
    """
    Create a company. ADMIN only.

    The contact person's user, COMPANY_ADMIN role and membership are
    provisioned by the reaction to company.created; the company is
    committed and returned even if provisioning fails.

    Args:
        data: {"company": {...}, "contact_person": {...}}
    """
    require_roles(actor, {Role.ADMIN})

    company_data = dict(data.get("company") or {})
    contact = dict(data.get("contact_person") or {})
    if "name" in company_data and company_data["name"]:
        company_data["name"] = company_data["name"].strip()

    raise_if_errors(
        company_name_errors(company_data.get("name"))
        + contact_person_errors(contact)
        + staff_phone_errors(contact.get("phone_number"), field="contact_person.phone_number")
    )
    contact["email"] = normalize_email(contact["email"])

    result = run_transaction([
        Create("company", Company, _pick(company_data, COMPANY_FIELDS)),
    ])
    company = result["company"]

    event = emit(
        EventTypes.COMPANY_CREATED,
        CompanyCreatedData(
            company_public_id=str(company.public_id),
            name=company.name,
            email=company.email,
            contact_person=_jsonable(_pick(contact, CONTACT_FIELDS)),
            company=_jsonable(_pick(company_data, COMPANY_FIELDS)),
        ),
        aggregate_type="Company",
        aggregate_id=company.public_id,
        user=actor.user,
    )
    return ServiceResult.created("Company created successfully", CompanySerializer(company).data, event=event)


def update_company(actor: ActorContext, public_id, data: dict) -> ServiceResult:
    """
    Update a company. ADMIN, or the company's own COMPANY_ADMIN.

    Contact person changes are applied by the reaction to company.updated.
    """
    company = fetch_company(public_id)
    require_roles(actor, {Role.ADMIN}, owns_company(company))

    values = _pick(dict(data.get("company") or {}), COMPANY_FIELDS)
    contact = data.get("contact_person")

    errors = []
    if "name" in values:
        values["name"] = (values["name"] or "").strip()
        if values["name"] != company.name:
            errors += company_name_errors(values["name"], exclude_company_id=company.pk)

    if contact:
        contact = _pick(dict(contact), CONTACT_FIELDS)
        current = _contact_membership(company)
        if current is None:
            errors += contact_person_errors(contact)
        if contact.get("email"):
            contact["email"] = normalize_email(contact["email"])
            errors += email_errors(
                contact["email"],
                exclude_user_id=current.user_id if current else None,
                field="contact_person.email",
            )
        errors += staff_phone_errors(
            contact.get("phone_number"),
            exclude_membership_id=current.pk if current else None,
            field="contact_person.phone_number",
        )
    raise_if_errors(errors)

    changed, changes = _diff(company, values)
    if changed:
        company = run_transaction([
            Update("company", Company, {"pk": company.pk}, changed),
        ])["company"]

    if not changes and not contact:
        return ServiceResult.ok("Company updated successfully", CompanySerializer(company).data)

    event = emit(
        EventTypes.COMPANY_UPDATED,
        CompanyUpdatedData(
            company_public_id=str(company.public_id),
            name=company.name,
            changes=changes,
            contact_person=_jsonable(contact) if contact else None,
        ),
        aggregate_type="Company",
        aggregate_id=company.public_id,
        user=actor.user,
    )
    return ServiceResult.ok("Company updated successfully", CompanySerializer(company).data, event=event)


def delete_company(actor: ActorContext, public_id) -> ServiceResult:
    """
    Delete a company and its memberships. ADMIN only.

    Members keep their user accounts but lose their company-scoped roles.
    """
    company = fetch_company(public_id)
    require_roles(actor, {Role.ADMIN})

    memberships = list(company.memberships.select_related("user"))

    run_transaction([
        DeleteWhere("member_roles", UserRole, {
            "user__membership__company": company.pk,
            "name__in": [str(role) for role in COMPANY_SCOPED_ROLES],
        }),
        DeleteWhere("memberships", CompanyMembership, {"company_id": company.pk}),
        Delete("company", Company, {"pk": company.pk}),
    ])

    event = emit(
        EventTypes.COMPANY_DELETED,
        CompanyDeletedData(
            company_public_id=str(public_id),
            name=company.name,
            removed_membership_public_ids=[str(m.public_id) for m in memberships],
            affected_user_public_ids=[str(m.user.public_id) for m in memberships],
        ),
        aggregate_type="Company",
        aggregate_id=public_id,
        user=actor.user,
    )
    return ServiceResult.ok("Company deleted successfully", {"id": str(public_id)}, event=event)


# =============================================================================
# Company staff
# =============================================================================

def _staff_company(actor: ActorContext, company_public_id=None) -> Company:
    """The company new staff is added to: the actor's own, or any for ADMIN."""
    if actor.is_admin:
        if not company_public_id:
            raise ValidationError([FieldError("company_id", "This field is required")])
        return fetch_company(company_public_id)

    company = actor.company
    if company is None or not manages_staff_of(company)(actor):
        raise AuthorizationError(DenyReason.NOT_OWNER, "You can only add staff to your own company")
    if company_public_id and str(company_public_id) != str(company.public_id):
        raise AuthorizationError(DenyReason.NOT_OWNER, "You can only add staff to your own company")
    return company


def create_staff(actor: ActorContext, data: dict) -> ServiceResult:
    """
    Add a staff member to a company. COMPANY_ADMIN of that company, or ADMIN.

    User, role and membership are committed together. The invitation with
    a password setup code is sent by the reaction to company_staff.created.
    """
    require_roles(actor, {Role.COMPANY_ADMIN})
    company = _staff_company(actor, data.get("company_id"))

    email = normalize_email(data.get("email"))
    role = str(data.get("role") or Role.COMPANY_USER)
    phone_number = data.get("phone_number") or ""

    errors = []
    for name in ("first_name", "last_name"):
        if not (data.get(name) or "").strip():
            errors.append(FieldError(name, "This field is required"))
    errors += email_errors(email)
    errors += staff_phone_errors(phone_number)
    errors += staff_role_errors(role)
    raise_if_errors(errors)

    result = run_transaction([
        Create("user", User, {
            "email": email,
            "first_name": data["first_name"].strip(),
            "last_name": data["last_name"].strip(),
            "password": make_password(None),
        }),
        _role_step("role", Ref("user"), Role(role)),
        Create("membership", CompanyMembership, {
            "company": company,
            "user": Ref("user"),
            "role": role,
            "title": data.get("title") or "N/A",
            "phone_number": phone_number,
            "id_number": data.get("id_number") or "",
            "id_attachment": data.get("id_attachment") or "",
        }),
    ])
    user = result["user"]
    membership = result["membership"]

    event = emit(
        EventTypes.COMPANY_STAFF_CREATED,
        CompanyStaffCreatedData(
            membership_public_id=str(membership.public_id),
            company_public_id=str(company.public_id),
            user_public_id=str(user.public_id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=role,
            title=membership.title,
            created_by_user_public_id=_actor_public_id(actor),
        ),
        aggregate_type="CompanyStaff",
        aggregate_id=membership.public_id,
        user=actor.user,
    )
    return ServiceResult.created("Staff member created successfully", StaffSerializer(membership).data, event=event)


def update_staff(actor: ActorContext, public_id, data: dict) -> ServiceResult:
    """Update a staff member. COMPANY_ADMIN of their company, or ADMIN."""
    membership = fetch_membership(public_id)
    require_roles(actor, (), manages_staff_of(membership.company))

    user_values = _pick(data, STAFF_USER_FIELDS)
    membership_values = _pick(data, STAFF_MEMBERSHIP_FIELDS)
    role = str(data["role"]) if data.get("role") else None

    errors = []
    if "email" in user_values:
        user_values["email"] = normalize_email(user_values["email"])
        errors += email_errors(user_values["email"], exclude_user_id=membership.user_id)
    if membership_values.get("phone_number"):
        errors += staff_phone_errors(membership_values["phone_number"], exclude_membership_id=membership.pk)
    if role and role != membership.role:
        if membership.role == Role.COMPANY_ADMIN:
            errors.append(FieldError("role", "The company administrator's role cannot be changed"))
        else:
            errors += staff_role_errors(role)
    raise_if_errors(errors)

    user_changed, changes = _diff(membership.user, user_values)
    membership_changed, membership_changes = _diff(membership, membership_values)
    changes.update(membership_changes)

    previous_role = membership.role
    steps = []
    if user_changed:
        steps.append(Update("user", User, {"pk": membership.user_id}, user_changed))
    if role and role != previous_role:
        membership_changed["role"] = role
        changes["role"] = {"from": previous_role, "to": role}
        steps.append(DeleteWhere("previous_role", UserRole, {"user_id": membership.user_id, "name": previous_role}))
        steps.append(Ensure("role", UserRole, {"user_id": membership.user_id, "name": role}, {
            "permissions": default_permissions(Role(role)),
        }))
    if membership_changed:
        steps.append(Update("membership", CompanyMembership, {"pk": membership.pk}, membership_changed))

    if not steps:
        return ServiceResult.ok("Staff member updated successfully", StaffSerializer(membership).data)

    run_transaction(steps)
    membership = fetch_membership(public_id)

    event = emit(
        EventTypes.COMPANY_STAFF_UPDATED,
        CompanyStaffUpdatedData(
            membership_public_id=str(membership.public_id),
            company_public_id=str(membership.company.public_id),
            user_public_id=str(membership.user.public_id),
            changes=changes,
            role=membership.role,
            previous_role=previous_role,
        ),
        aggregate_type="CompanyStaff",
        aggregate_id=membership.public_id,
        user=actor.user,
    )
    return ServiceResult.ok("Staff member updated successfully", StaffSerializer(membership).data, event=event)


def delete_staff(actor: ActorContext, public_id) -> ServiceResult:
    """Remove a staff member and their account. COMPANY_ADMIN of their company, or ADMIN."""
    membership = fetch_membership(public_id)
    require_roles(actor, (), manages_staff_of(membership.company))

    if membership.user_id == actor.user.pk:
        raise ValidationError([FieldError("id", "You cannot remove yourself")])

    user = membership.user
    run_transaction([
        DeleteWhere("roles", UserRole, {"user_id": user.pk}),
        Delete("membership", CompanyMembership, {"pk": membership.pk}),
        Delete("user", User, {"pk": user.pk}),
    ])

    event = emit(
        EventTypes.COMPANY_STAFF_DELETED,
        CompanyStaffDeletedData(
            membership_public_id=str(public_id),
            company_public_id=str(membership.company.public_id),
            user_public_id=str(user.public_id),
            email=user.email,
        ),
        aggregate_type="CompanyStaff",
        aggregate_id=public_id,
        user=actor.user,
    )
    return ServiceResult.ok("Staff member deleted successfully", {"id": str(public_id)}, event=event)
