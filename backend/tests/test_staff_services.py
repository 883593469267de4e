# tests/test_staff_services.py
"""
Tests for the company staff services.

Tests cover:
- Staff creation commits user, role and membership together
- Invitation emails with a setup code
- Scoping: company admins only see and manage their own company
- Role changes and removal
"""

import pytest
from django.contrib.auth import get_user_model
from django.core import mail

from accounts import commands, queries
from accounts.models import CompanyMembership, UserRole
from accounts.passwords import verify_otp
from accounts.roles import Role
from common.errors import AuthorizationError, ConflictError, DenyReason, NotFoundError, ValidationError
from events.models import DomainEvent, ReactionRun
from events.types import EventTypes

User = get_user_model()


def _staff_data(**overrides):
    data = {
        "first_name": "Wanda",
        "last_name": "Worker",
        "email": "Wanda@Globex.test",
        "phone_number": "+555",
        "role": Role.STAFF,
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestCreateStaff:
    def test_company_admin_adds_staff(self, company, company_admin, actor, monkeypatch):
        monkeypatch.setattr("accounts.passwords.generate_otp", lambda: "BEEF01")

        result = commands.create_staff(actor(company_admin), _staff_data())

        assert result.status_code == 201
        user = User.objects.get(email="wanda@globex.test")
        membership = CompanyMembership.objects.get(user=user)
        assert membership.company == company
        assert membership.role == Role.STAFF
        assert membership.title == "N/A"
        assert list(user.roles.values_list("name", flat=True)) == [Role.STAFF]
        assert result.data["id"] == str(membership.public_id)
        assert result.data["company_name"] == "Globex"

        assert result.event.event_type == EventTypes.COMPANY_STAFF_CREATED
        assert len(mail.outbox) == 1
        assert "BEEF01" in mail.outbox[0].body
        user.refresh_from_db()
        assert verify_otp(user, "BEEF01")

    def test_admin_must_name_the_company(self, admin_user, actor):
        with pytest.raises(ValidationError) as exc:
            commands.create_staff(actor(admin_user), _staff_data())
        assert exc.value.errors[0].field == "company_id"

    def test_admin_adds_staff_to_any_company(self, admin_user, other_company, actor):
        result = commands.create_staff(actor(admin_user), _staff_data(company_id=str(other_company.public_id)))
        assert result.data["company_id"] == str(other_company.public_id)

    def test_company_admin_cannot_target_other_company(self, company_admin, other_company, actor):
        with pytest.raises(AuthorizationError) as exc:
            commands.create_staff(actor(company_admin), _staff_data(company_id=str(other_company.public_id)))
        assert exc.value.reason == DenyReason.NOT_OWNER

    def test_company_admin_without_staff_manage_is_denied(self, company_admin, actor):
        UserRole.objects.filter(user=company_admin).update(permissions=["DEFAULT", "company.view", "company.manage"])

        with pytest.raises(AuthorizationError) as exc:
            commands.create_staff(actor(company_admin), _staff_data())
        assert exc.value.reason == DenyReason.NOT_OWNER
        assert not User.objects.filter(email="wanda@globex.test").exists()

    def test_staff_user_cannot_add_staff(self, staff_user, actor):
        with pytest.raises(AuthorizationError) as exc:
            commands.create_staff(actor(staff_user), _staff_data())
        assert exc.value.reason == DenyReason.INSUFFICIENT_ROLE

    def test_all_field_errors_reported(self, company_admin, staff_user, actor):
        data = _staff_data(first_name="", email=staff_user.email, phone_number="+101", role=Role.ADMIN)

        with pytest.raises(ValidationError) as exc:
            commands.create_staff(actor(company_admin), data)

        assert {e.field for e in exc.value.errors} == {"first_name", "email", "phone_number", "role"}

    def test_membership_failure_rolls_back_user_and_role(self, company_admin, staff_user, actor, monkeypatch):
        # Skip the advisory check so the unique constraint decides.
        monkeypatch.setattr("accounts.commands.staff_phone_errors", lambda *args, **kwargs: [])

        with pytest.raises(ConflictError) as exc:
            commands.create_staff(actor(company_admin), _staff_data(phone_number="+101"))

        assert "phone_number" in exc.value.fields
        assert not User.objects.filter(email="wanda@globex.test").exists()
        assert not UserRole.objects.filter(user__email="wanda@globex.test").exists()
        assert not DomainEvent.objects.filter(event_type=EventTypes.COMPANY_STAFF_CREATED).exists()

    def test_invitation_failure_is_recorded(self, company_admin, actor, monkeypatch):
        monkeypatch.setattr("accounts.reactions.send_staff_invitation_email", lambda user, company, otp: False)

        result = commands.create_staff(actor(company_admin), _staff_data())

        assert result.status_code == 201
        run = ReactionRun.objects.get(event=result.event, reaction_name="send_staff_invitation")
        assert run.status == ReactionRun.Status.FAILED
        assert "DependencyError" in run.last_error


@pytest.mark.django_db
class TestStaffScope:
    def test_company_admin_lists_own_company_only(self, company_admin, staff_user, other_company_admin, actor):
        result = queries.list_staff(actor(company_admin))

        emails = {row["email"] for row in result.data}
        assert emails == {company_admin.email, staff_user.email}
        assert result.extra["totalItems"] == 2

    def test_company_admin_cannot_list_other_company(self, company_admin, other_company, actor):
        with pytest.raises(AuthorizationError):
            queries.list_staff(actor(company_admin), company_public_id=other_company.public_id)

    def test_admin_filters_by_company(self, admin_user, company_admin, other_company, other_company_admin, actor):
        result = queries.list_staff(actor(admin_user), company_public_id=other_company.public_id)
        assert [row["email"] for row in result.data] == [other_company_admin.email]

    def test_search(self, company_admin, staff_user, actor):
        result = queries.list_staff(actor(company_admin), search="worker")
        assert [row["email"] for row in result.data] == [staff_user.email]

    def test_company_user_cannot_list(self, staff_user, actor):
        with pytest.raises(AuthorizationError):
            queries.list_staff(actor(staff_user))

    def test_member_reads_own_record(self, staff_user, actor):
        membership = CompanyMembership.objects.get(user=staff_user)
        result = queries.get_staff_member(actor(staff_user), membership.public_id)
        assert result.data["email"] == staff_user.email

    def test_other_company_admin_cannot_read(self, staff_user, other_company_admin, actor):
        membership = CompanyMembership.objects.get(user=staff_user)
        with pytest.raises(AuthorizationError) as exc:
            queries.get_staff_member(actor(other_company_admin), membership.public_id)
        assert exc.value.reason == DenyReason.NOT_OWNER

    def test_count_by_month(self, company_admin, staff_user, actor):
        result = queries.staff_count_by_month(actor(company_admin), staff_user.date_joined.year)
        assert sum(m["count"] for m in result.data["months"]) == 2


@pytest.mark.django_db
class TestUpdateStaff:
    def test_role_change_replaces_user_role(self, company_admin, staff_user, actor):
        membership = CompanyMembership.objects.get(user=staff_user)

        result = commands.update_staff(actor(company_admin), membership.public_id, {
            "role": Role.MANAGER,
            "title": "Shift lead",
        })

        membership.refresh_from_db()
        assert membership.role == Role.MANAGER
        assert membership.title == "Shift lead"
        assert list(staff_user.roles.values_list("name", flat=True)) == [Role.MANAGER]
        assert result.event.data["previous_role"] == Role.COMPANY_USER
        assert result.event.data["changes"]["role"] == {"from": "COMPANY_USER", "to": "MANAGER"}

    def test_company_admin_role_is_fixed(self, admin_user, company_admin, actor):
        membership = CompanyMembership.objects.get(user=company_admin)
        with pytest.raises(ValidationError) as exc:
            commands.update_staff(actor(admin_user), membership.public_id, {"role": Role.STAFF})
        assert exc.value.errors[0].field == "role"

    def test_phone_taken_by_other_member(self, company_admin, staff_user, actor):
        membership = CompanyMembership.objects.get(user=staff_user)
        with pytest.raises(ValidationError):
            commands.update_staff(actor(company_admin), membership.public_id, {"phone_number": "+100"})

    def test_other_company_admin_denied(self, staff_user, other_company_admin, actor):
        membership = CompanyMembership.objects.get(user=staff_user)
        with pytest.raises(AuthorizationError):
            commands.update_staff(actor(other_company_admin), membership.public_id, {"title": "X"})


@pytest.mark.django_db
class TestDeleteStaff:
    def test_remove_staff_member(self, company_admin, staff_user, actor):
        membership = CompanyMembership.objects.get(user=staff_user)

        result = commands.delete_staff(actor(company_admin), membership.public_id)

        assert not User.objects.filter(pk=staff_user.pk).exists()
        assert not CompanyMembership.objects.filter(pk=membership.pk).exists()
        assert result.event.data["email"] == staff_user.email

        with pytest.raises(NotFoundError):
            commands.delete_staff(actor(company_admin), membership.public_id)

    def test_company_admin_cannot_remove_self(self, company_admin, actor):
        membership = CompanyMembership.objects.get(user=company_admin)
        with pytest.raises(ValidationError):
            commands.delete_staff(actor(company_admin), membership.public_id)
