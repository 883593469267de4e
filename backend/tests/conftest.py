# tests/conftest.py
"""
Pytest fixtures for staffdesk tests.

Users, roles, companies and memberships are created directly with the
ORM: settings.TESTING lifts the repository write barrier. Services are
called with an ActorContext built the same way the views build it.
"""

import logging

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.authz import build_actor
from accounts.models import Company, CompanyMembership, UserRole
from accounts.roles import Role, default_permissions


User = get_user_model()

PASSWORD = "testpass123"


@pytest.fixture(autouse=True)
def _test_settings(settings):
    settings.TESTING = True
    settings.REACTIONS_SYNC = True
    settings.DISABLE_EVENT_VALIDATION = False


@pytest.fixture
def app_logs(caplog, monkeypatch):
    """caplog that also sees the project loggers (they do not propagate by default)."""
    for name in ("accounts", "events", "store", "common"):
        monkeypatch.setattr(logging.getLogger(name), "propagate", True)
    caplog.set_level(logging.INFO)
    return caplog


# =============================================================================
# Users & Companies
# =============================================================================

@pytest.fixture
def make_user(db):
    """Factory: make_user("a@b.com", Role.ADMIN) -> User holding that role."""
    def _make(email, role=None, first_name="Test", last_name="User", password=PASSWORD):
        user = User.objects.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )
        if role is not None:
            UserRole.objects.create(user=user, name=role, permissions=default_permissions(role))
        return user
    return _make


@pytest.fixture
def make_company(db):
    def _make(name, **fields):
        return Company.objects.create(name=name, **fields)
    return _make


@pytest.fixture
def make_member(make_user):
    """Factory: a user with `role` and a membership in `company` with the same role."""
    def _make(company, email, role=Role.COMPANY_USER, phone_number="", title="N/A"):
        user = make_user(email, role)
        CompanyMembership.objects.create(
            company=company,
            user=user,
            role=role,
            phone_number=phone_number,
            title=title,
        )
        return user
    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@test.com", Role.ADMIN, first_name="Platform", last_name="Admin")


@pytest.fixture
def developer_user(make_user):
    return make_user("dev@test.com", Role.DEVELOPER)


@pytest.fixture
def client_user(make_user):
    return make_user("client@test.com", Role.CLIENT)


@pytest.fixture
def company(make_company):
    return make_company("Globex", email="info@globex.test")


@pytest.fixture
def other_company(make_company):
    return make_company("Initech", email="info@initech.test")


@pytest.fixture
def company_admin(company, make_member):
    return make_member(company, "boss@globex.test", Role.COMPANY_ADMIN, phone_number="+100")


@pytest.fixture
def staff_user(company, make_member):
    return make_member(company, "worker@globex.test", Role.COMPANY_USER, phone_number="+101")


@pytest.fixture
def other_company_admin(other_company, make_member):
    return make_member(other_company, "boss@initech.test", Role.COMPANY_ADMIN, phone_number="+200")


@pytest.fixture
def actor():
    """actor(user) -> ActorContext, or None for anonymous."""
    def _build(user):
        return build_actor(user) if user is not None else None
    return _build


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(db):
    """client_for(user) -> APIClient authenticated as that user."""
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
