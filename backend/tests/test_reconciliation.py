# tests/test_reconciliation.py
"""
Tests for reaction reconciliation.

The failing reaction used throughout is company admin provisioning: the
contact person's email already belongs to a user outside the company.
"""

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from accounts import commands
from accounts.models import CompanyMembership, UserRole
from accounts.reactions import ProvisionCompanyAdmin
from accounts.roles import Role
from events.models import ReactionRun
from events.reconciliation import count_unreconciled, find_unreconciled, reconcile, reconcile_event
from common.errors import NotFoundError

User = get_user_model()


@pytest.fixture
def failed_company_event(admin_user, client_user, actor):
    """company.created whose provisioning failed on client_user's email."""
    result = commands.create_company(actor(admin_user), {
        "company": {"name": "Umbrella"},
        "contact_person": {"first_name": "Ada", "last_name": "Wong", "email": client_user.email},
    })
    run = ReactionRun.objects.get(event=result.event, reaction_name="provision_company_admin")
    assert run.status == ReactionRun.Status.FAILED
    return result.event


def _provisioned(email):
    return (
        User.objects.filter(email=email).count(),
        UserRole.objects.filter(user__email=email, name=Role.COMPANY_ADMIN).count(),
        CompanyMembership.objects.filter(user__email=email).count(),
    )


@pytest.mark.django_db
class TestFindUnreconciled:
    def test_failed_event_is_unreconciled(self, failed_company_event):
        assert [e.id for e in find_unreconciled(grace_seconds=0)] == [failed_company_event.id]
        assert count_unreconciled(grace_seconds=0) == 1

    def test_grace_period_hides_fresh_events(self, failed_company_event):
        assert find_unreconciled(grace_seconds=3600) == []

    def test_succeeded_events_are_reconciled(self, admin_user, actor):
        commands.create_company(actor(admin_user), {
            "company": {"name": "Acme"},
            "contact_person": {"first_name": "J", "last_name": "Doe", "email": "j@acme.com"},
        })
        assert count_unreconciled(grace_seconds=0) == 0


@pytest.mark.django_db
class TestReconcile:
    def test_reconcile_repairs_after_cause_is_removed(self, failed_company_event, client_user):
        User.objects.filter(pk=client_user.pk).delete()

        report = reconcile(grace_seconds=0)

        assert report == [{
            "event_id": str(failed_company_event.id),
            "event_type": "company.created",
            "results": {"provision_company_admin": "SUCCEEDED"},
        }]
        assert _provisioned("client@test.com") == (1, 1, 1)
        run = ReactionRun.objects.get(event=failed_company_event, reaction_name="provision_company_admin")
        assert run.attempts == 2

    def test_reconciling_twice_keeps_one_of_everything(self, failed_company_event, client_user):
        User.objects.filter(pk=client_user.pk).delete()

        reconcile(grace_seconds=0)
        second = reconcile(grace_seconds=0)

        assert second == []
        assert _provisioned("client@test.com") == (1, 1, 1)

    def test_reaction_is_idempotent_when_replayed(self, failed_company_event, client_user):
        User.objects.filter(pk=client_user.pk).delete()
        reaction = ProvisionCompanyAdmin()

        reaction.handle(failed_company_event)
        reaction.handle(failed_company_event)

        assert _provisioned("client@test.com") == (1, 1, 1)

    def test_still_failing_event_stays_unreconciled(self, failed_company_event):
        report = reconcile(grace_seconds=0)

        assert report[0]["results"] == {"provision_company_admin": "FAILED"}
        assert count_unreconciled(grace_seconds=0) == 1

    def test_reconcile_single_event(self, failed_company_event, client_user):
        User.objects.filter(pk=client_user.pk).delete()
        item = reconcile_event(failed_company_event.id)
        assert item["results"] == {"provision_company_admin": "SUCCEEDED"}

    def test_reconcile_unknown_event(self):
        with pytest.raises(NotFoundError):
            reconcile_event("not-a-uuid")


@pytest.mark.django_db
class TestReconcileEndpoints:
    def test_admin_lists_and_reconciles(self, failed_company_event, client_user, admin_user, client_for):
        api = client_for(admin_user)

        listed = api.get("/api/events/unreconciled/?grace_seconds=0")
        assert listed.status_code == 200
        assert [e["id"] for e in listed.json()["data"]] == [str(failed_company_event.id)]

        User.objects.filter(pk=client_user.pk).delete()
        response = api.post(f"/api/events/{failed_company_event.id}/reconcile/")
        assert response.status_code == 200
        assert response.json()["data"]["results"] == {"provision_company_admin": "SUCCEEDED"}

    def test_non_platform_user_forbidden(self, failed_company_event, company_admin, client_for):
        response = client_for(company_admin).post("/api/events/reconcile/?grace_seconds=0")
        assert response.status_code == 403
        assert response.json()["statusCode"] == 403


@pytest.mark.django_db
class TestReconcileCommand:
    def test_list_then_repair(self, failed_company_event, client_user, capsys):
        call_command("reconcile_reactions", "--list", "--grace-seconds", "0")
        out = capsys.readouterr().out
        assert "1 unreconciled event(s)" in out
        assert "provision_company_admin" in out

        User.objects.filter(pk=client_user.pk).delete()
        call_command("reconcile_reactions", "--grace-seconds", "0")
        assert "reconciled" in capsys.readouterr().out
        assert count_unreconciled(grace_seconds=0) == 0

    def test_nothing_to_do(self, db, capsys):
        call_command("reconcile_reactions", "--grace-seconds", "0")
        assert "All events reconciled." in capsys.readouterr().out
