# accounts/validators.py
"""
Business-rule checks run before a write plan is built.

Each function returns the full list of FieldError it found, so the caller
can report every violation at once. These checks only read the store:
two concurrent requests can both pass them, and the unique constraints
enforced by run_transaction() decide in that case.
"""

from typing import List, Optional

from django.contrib.auth import get_user_model

from accounts.models import Company, CompanyMembership
from accounts.roles import Role, STAFF_ROLES
from common.errors import FieldError, ValidationError

User = get_user_model()

MIN_PASSWORD_LENGTH = 8


def raise_if_errors(errors: List[FieldError]) -> None:
    if errors:
        raise ValidationError(errors)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def email_errors(email: str, exclude_user_id=None, field: str = "email") -> List[FieldError]:
    if not email:
        return [FieldError(field, "Email is required")]
    qs = User.objects.filter(email__iexact=email)
    if exclude_user_id is not None:
        qs = qs.exclude(pk=exclude_user_id)
    if qs.exists():
        return [FieldError(field, "Email is already taken")]
    return []


def password_errors(password: Optional[str], field: str = "password") -> List[FieldError]:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return [FieldError(field, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")]
    return []


def staff_phone_errors(phone_number: Optional[str], exclude_membership_id=None, field: str = "phone_number") -> List[FieldError]:
    if not phone_number:
        return []
    qs = CompanyMembership.objects.filter(phone_number=phone_number)
    if exclude_membership_id is not None:
        qs = qs.exclude(pk=exclude_membership_id)
    if qs.exists():
        return [FieldError(field, "Phone number is already taken")]
    return []


def company_name_errors(name: Optional[str], exclude_company_id=None, field: str = "company.name") -> List[FieldError]:
    if not name or not name.strip():
        return [FieldError(field, "Company name is required")]
    qs = Company.objects.filter(name__iexact=name.strip())
    if exclude_company_id is not None:
        qs = qs.exclude(pk=exclude_company_id)
    if qs.exists():
        return [FieldError(field, "Company name is already taken")]
    return []


def staff_role_errors(role: Optional[str], field: str = "role") -> List[FieldError]:
    if role is None:
        return []
    if role not in Role.values:
        return [FieldError(field, f"Unknown role '{role}'")]
    if Role(role) not in STAFF_ROLES:
        return [FieldError(field, f"Role '{role}' cannot be assigned to company staff")]
    return []


def contact_person_errors(contact: Optional[dict], field: str = "contact_person") -> List[FieldError]:
    if not contact:
        return [FieldError(field, "Contact person is required")]
    errors = []
    for name in ("first_name", "last_name", "email"):
        if not (contact.get(name) or "").strip():
            errors.append(FieldError(f"{field}.{name}", "This field is required"))
    return errors
