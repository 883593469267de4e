# accounts/reactions.py
"""
Reactions owned by the accounts app.

- ProvisionCompanyAdmin: company.created -> contact person's user,
  COMPANY_ADMIN role and membership, then a welcome email with a setup code
- SyncCompanyContact: company.updated -> apply contact person changes
- SendStaffInvitation: company_staff.created -> setup code + invitation
- SendPasswordResetOtp: user.password_reset_requested -> reset code + email

All of them are safe to run again for the same event.
"""

import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password

from accounts.email_service import (
    send_company_admin_welcome_email,
    send_password_reset_email,
    send_staff_invitation_email,
)
from accounts.models import Company, CompanyMembership, UserRole
from accounts.passwords import generate_otp, issue_password_otp, otp_fields
from accounts.roles import Role, default_permissions
from accounts.validators import normalize_email
from common.errors import ConflictError, DependencyError
from events.models import DomainEvent
from events.reactions import BaseReaction, reaction_registry
from events.types import EventTypes
from store.repository import Ensure, Ref, Update, run_transaction

logger = logging.getLogger(__name__)
User = get_user_model()

CONTACT_USER_FIELDS = ("first_name", "last_name", "email")
CONTACT_MEMBERSHIP_FIELDS = ("phone_number", "title", "id_number", "id_attachment")


def provision_company_admin(company: Company, contact: dict):
    """
    Make sure the contact person has a user, the COMPANY_ADMIN role and a
    membership in `company`.

    Returns:
        (membership, otp) where otp is None unless the user was created now

    Raises:
        ConflictError: the email belongs to a user outside this company
    """
    email = normalize_email(contact.get("email"))
    existing = User.objects.filter(email=email).first()
    if existing is not None:
        membership = CompanyMembership.objects.filter(user=existing).first()
        if membership is None or membership.company_id != company.id:
            raise ConflictError(
                f"User with this email already exists: {email}",
                fields=["contact_person.email"],
            )

    otp = generate_otp()
    result = run_transaction([
        Ensure("user", User, {"email": email}, {
            "first_name": contact.get("first_name", ""),
            "last_name": contact.get("last_name", ""),
            "password": make_password(None),
            **otp_fields(otp),
        }),
        Ensure("role", UserRole, {"user": Ref("user"), "name": str(Role.COMPANY_ADMIN)}, {
            "permissions": default_permissions(Role.COMPANY_ADMIN),
        }),
        Ensure("membership", CompanyMembership, {"user": Ref("user"), "company": company}, {
            "role": str(Role.COMPANY_ADMIN),
            "title": contact.get("title") or "N/A",
            "phone_number": contact.get("phone_number") or "",
            "id_number": contact.get("id_number") or "",
            "id_attachment": contact.get("id_attachment") or "",
        }),
    ])
    return result["membership"], (otp if result.was_created("user") else None)


def _company(event: DomainEvent):
    company = Company.objects.filter(public_id=event.data["company_public_id"]).first()
    if company is None:
        logger.warning(
            "reaction_target_missing",
            extra={"event_id": str(event.id), "company_public_id": event.data["company_public_id"]},
        )
    return company


class ProvisionCompanyAdmin(BaseReaction):
    @property
    def name(self) -> str:
        return "provision_company_admin"

    @property
    def consumes(self):
        return [EventTypes.COMPANY_CREATED]

    def handle(self, event: DomainEvent) -> None:
        company = _company(event)
        if company is None:
            return

        membership, otp = provision_company_admin(company, event.data["contact_person"])
        if otp is None:
            return

        # Welcome email failure does not undo provisioning.
        if not send_company_admin_welcome_email(membership.user, company, otp):
            logger.warning(
                "welcome_email_not_sent",
                extra={"event_id": str(event.id), "user_public_id": str(membership.user.public_id)},
            )


class SyncCompanyContact(BaseReaction):
    @property
    def name(self) -> str:
        return "sync_company_contact"

    @property
    def consumes(self):
        return [EventTypes.COMPANY_UPDATED]

    def handle(self, event: DomainEvent) -> None:
        contact = event.data.get("contact_person")
        if not contact:
            return
        company = _company(event)
        if company is None:
            return

        current = (
            CompanyMembership.objects.select_related("user")
            .filter(company=company, role=Role.COMPANY_ADMIN)
            .first()
        )
        if current is None:
            membership, otp = provision_company_admin(company, contact)
            if otp is not None:
                send_company_admin_welcome_email(membership.user, company, otp)
            return

        user_values = {
            name: contact[name] for name in CONTACT_USER_FIELDS
            if name in contact and getattr(current.user, name) != contact[name]
        }
        membership_values = {
            name: contact[name] for name in CONTACT_MEMBERSHIP_FIELDS
            if name in contact and getattr(current, name) != contact[name]
        }
        steps = []
        if user_values:
            steps.append(Update("user", User, {"pk": current.user_id}, user_values))
        if membership_values:
            steps.append(Update("membership", CompanyMembership, {"pk": current.pk}, membership_values))
        if steps:
            run_transaction(steps)


class SendStaffInvitation(BaseReaction):
    @property
    def name(self) -> str:
        return "send_staff_invitation"

    @property
    def consumes(self):
        return [EventTypes.COMPANY_STAFF_CREATED]

    def handle(self, event: DomainEvent) -> None:
        membership = (
            CompanyMembership.objects.select_related("user", "company")
            .filter(public_id=event.data["membership_public_id"])
            .first()
        )
        if membership is None:
            return
        user = membership.user
        if user.has_usable_password():
            # Already set up; nothing to invite.
            return

        otp = issue_password_otp(user)
        if not send_staff_invitation_email(user, membership.company, otp):
            raise DependencyError(f"Invitation email to {user.email} was not sent")


class SendPasswordResetOtp(BaseReaction):
    @property
    def name(self) -> str:
        return "send_password_reset_otp"

    @property
    def consumes(self):
        return [EventTypes.USER_PASSWORD_RESET_REQUESTED]

    def handle(self, event: DomainEvent) -> None:
        user = User.objects.filter(public_id=event.data["user_public_id"]).first()
        if user is None:
            return

        otp = issue_password_otp(user)
        if not send_password_reset_email(user, otp):
            raise DependencyError(f"Password reset email to {user.email} was not sent")


reaction_registry.register(ProvisionCompanyAdmin())
reaction_registry.register(SyncCompanyContact())
reaction_registry.register(SendStaffInvitation())
reaction_registry.register(SendPasswordResetOtp())
