# tests/test_api.py
"""
HTTP-level tests: response envelope, auth flow, status codes.

Service behaviour is covered by the test_*_services modules; these
tests only check what the views add on top.
"""

import pytest
from django.core import mail

from accounts.models import Company, CompanyMembership
from accounts.roles import Role

PASSWORD = "testpass123"


def _body(response):
    body = response.json()
    assert body["statusCode"] == response.status_code
    assert isinstance(body["message"], str)
    return body


# =============================================================================
# Envelope & errors
# =============================================================================

@pytest.mark.django_db
class TestEnvelope:
    def test_anonymous_request_is_401(self, api_client):
        response = api_client.get("/api/users/")
        assert response.status_code == 401
        body = _body(response)
        assert "data" not in body
        assert "error" not in body

    def test_insufficient_role_is_403(self, client_for, client_user):
        response = client_for(client_user).get("/api/users/")
        assert response.status_code == 403
        _body(response)

    def test_serializer_errors_are_listed(self, client_for, admin_user):
        response = client_for(admin_user).post("/api/companies/", {"company": {}}, format="json")

        assert response.status_code == 400
        body = _body(response)
        assert set(body) == {"statusCode", "message", "data"}
        fields = {e["field"] for e in body["data"]}
        assert "company.name" in fields
        assert "contact_person" in fields

    def test_unknown_resource_is_404(self, client_for, admin_user):
        response = client_for(admin_user).get("/api/companies/00000000-0000-0000-0000-000000000000/")
        assert response.status_code == 404
        assert _body(response)["message"] == "Company not found"

    def test_conflict_is_409(self, client_for, admin_user, company_admin, staff_user, monkeypatch):
        monkeypatch.setattr("accounts.commands.staff_phone_errors", lambda *args, **kwargs: [])
        company = Company.objects.get(name="Globex")

        response = client_for(admin_user).post("/api/staff/", {
            "first_name": "Dup",
            "last_name": "Phone",
            "email": "dup@globex.test",
            "phone_number": "+101",
            "company_id": str(company.public_id),
        }, format="json")

        assert response.status_code == 409
        _body(response)

    def test_bad_paging_params(self, client_for, admin_user):
        response = client_for(admin_user).get("/api/users/?page=abc")
        assert response.status_code == 400
        assert _body(response)["data"][0]["field"] == "page"


# =============================================================================
# Auth
# =============================================================================

@pytest.mark.django_db
class TestAuthFlow:
    def test_signup_returns_tokens(self, api_client):
        response = api_client.post("/api/auth/signup/", {
            "first_name": "New",
            "last_name": "Client",
            "email": "new@client.test",
            "password": "longenough",
        }, format="json")

        assert response.status_code == 201
        data = _body(response)["data"]
        assert data["user"]["email"] == "new@client.test"
        assert data["user"]["roles"][0]["name"] == Role.CLIENT
        assert data["access"] and data["refresh"]

    def test_login_me_refresh_logout(self, api_client, client_user):
        login = api_client.post("/api/auth/login/", {"email": "Client@Test.com", "password": PASSWORD}, format="json")
        assert login.status_code == 200
        tokens = _body(login)["data"]
        assert tokens["roles"] == ["CLIENT"]

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        me = api_client.get("/api/auth/me/")
        assert me.status_code == 200
        assert _body(me)["data"]["user"]["email"] == "client@test.com"
        assert me.json()["data"]["company"] is None

        refreshed = api_client.post("/api/auth/refresh/", {"refresh": tokens["refresh"]}, format="json")
        assert refreshed.status_code == 200
        new_refresh = _body(refreshed)["data"]["refresh"]

        logout = api_client.post("/api/auth/logout/", {"refresh": new_refresh}, format="json")
        assert logout.status_code == 200

        api_client.credentials()
        reuse = api_client.post("/api/auth/refresh/", {"refresh": new_refresh}, format="json")
        assert reuse.status_code == 401

    def test_login_wrong_password(self, api_client, client_user):
        response = api_client.post("/api/auth/login/", {"email": client_user.email, "password": "nope-nope"}, format="json")
        assert response.status_code == 401
        assert _body(response)["message"] == "Invalid email or password"

    def test_logout_requires_token(self, client_for, client_user):
        response = client_for(client_user).post("/api/auth/logout/", {}, format="json")
        assert response.status_code == 400

    def test_password_reset_over_http(self, api_client, client_user, monkeypatch):
        monkeypatch.setattr("accounts.passwords.generate_otp", lambda: "D00D00")

        requested = api_client.post("/api/auth/password-reset/", {"email": client_user.email}, format="json")
        assert requested.status_code == 200
        assert len(mail.outbox) == 1

        confirmed = api_client.post("/api/auth/password-reset/confirm/", {
            "email": client_user.email,
            "otp": "D00D00",
            "new_password": "fresh-password",
        }, format="json")
        assert confirmed.status_code == 200

        login = api_client.post("/api/auth/login/", {"email": client_user.email, "password": "fresh-password"}, format="json")
        assert login.status_code == 200

    def test_me_includes_membership(self, client_for, staff_user):
        data = client_for(staff_user).get("/api/auth/me/").json()["data"]
        assert data["company"]["name"] == "Globex"
        assert data["membership"]["role"] == Role.COMPANY_USER


# =============================================================================
# Resources
# =============================================================================

@pytest.mark.django_db
class TestResources:
    def test_user_list_is_paged(self, client_for, admin_user, make_user):
        for i in range(3):
            make_user(f"paged{i}@test.com", Role.CLIENT)

        response = client_for(admin_user).get("/api/users/?search=paged&page=1&limit=2")

        body = _body(response)
        assert body["totalItems"] == 3
        assert body["currentPage"] == 1
        assert body["itemsPerPage"] == 2
        assert len(body["data"]) == 2

    def test_create_company_over_http(self, client_for, admin_user):
        response = client_for(admin_user).post("/api/companies/", {
            "company": {"name": "Acme"},
            "contact_person": {"first_name": "J", "last_name": "Doe", "email": "j@acme.com"},
        }, format="json")

        assert response.status_code == 201
        assert _body(response)["message"] == "Company created successfully"
        assert CompanyMembership.objects.filter(user__email="j@acme.com", role=Role.COMPANY_ADMIN).exists()

    def test_company_admin_patches_own_company(self, client_for, company, company_admin):
        response = client_for(company_admin).patch(
            f"/api/companies/{company.public_id}/",
            {"company": {"website": "https://globex.test"}},
            format="json",
        )
        assert response.status_code == 200
        assert _body(response)["data"]["website"] == "https://globex.test"

    def test_company_stats(self, client_for, admin_user, company):
        response = client_for(admin_user).get(f"/api/companies/stats/{company.created_at.year}/")
        months = _body(response)["data"]["months"]
        assert sum(m["count"] for m in months) == 1

    def test_staff_crud(self, client_for, company_admin):
        api = client_for(company_admin)

        created = api.post("/api/staff/", {
            "first_name": "Sam",
            "last_name": "Staff",
            "email": "sam@globex.test",
            "role": "STAFF",
        }, format="json")
        assert created.status_code == 201
        staff_id = _body(created)["data"]["id"]

        updated = api.patch(f"/api/staff/{staff_id}/", {"title": "Cashier"}, format="json")
        assert _body(updated)["data"]["title"] == "Cashier"

        listed = api.get("/api/staff/")
        assert {row["email"] for row in _body(listed)["data"]} == {company_admin.email, "sam@globex.test"}

        deleted = api.delete(f"/api/staff/{staff_id}/")
        assert deleted.status_code == 200
        assert api.get(f"/api/staff/{staff_id}/").status_code == 404


# =============================================================================
# Health
# =============================================================================

@pytest.mark.django_db
class TestHealth:
    def test_liveness(self, api_client):
        assert api_client.get("/_health/live").json() == {"status": "alive"}

    def test_readiness(self, api_client):
        response = api_client.get("/_health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_full_report(self, api_client):
        body = api_client.get("/_health/full").json()
        assert body["checks"]["broker"]["status"] == "skipped"
        assert body["checks"]["reactions"]["unreconciled_events"] == 0
        assert body["status"] == "healthy"
