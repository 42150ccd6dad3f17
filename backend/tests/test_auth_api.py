# Overview: Pytest coverage for signup, verification, login and session resolution.

"""
Tenant Authentication Tests

Verifies:
- Signup creates company + founding member and mails a verification link
- Login requires a verified email and picks (or asks for) a company
- Role, membership status and subscription are re-read on every request
- Tenant and boss sessions are never interchangeable
"""

from datetime import timedelta

import pytest

from kora.models import Company, CompanyUser, SecurityEvent, User
from kora.time_utils import utcnow

from conftest import PASSWORD, create_member, verification_token

SIGNUP = {
    "company_name": "Himal Foods",
    "full_name": "Anita Sharma",
    "email": "Anita@Himal.test",
    "password": PASSWORD,
    "phone": "+9779812345678",
}


class TestSignup:
    def test_signup_verify_login(self, client, db_session, outbox):
        resp = client.post("/api/auth/signup-company", json=SIGNUP)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["company"]["slug"] == "himal-foods"
        assert body["membership"]["role"] == "manager"
        assert body["membership"]["status"] == "invited"
        assert body["verification_sent"] is True

        company = db_session.query(Company).filter_by(slug="himal-foods").one()
        assert company.subscription_ends_at is not None
        assert company.staff_limit == 5

        # Unverified users cannot log in
        resp = client.post("/api/auth/login", json={"email": "anita@himal.test", "password": PASSWORD})
        assert resp.status_code == 403

        assert len(outbox) == 1
        assert outbox[0].to == "anita@himal.test"
        token = verification_token(outbox[0])

        resp = client.get(f"/api/auth/verify-email?token={token}")
        assert resp.status_code == 302
        assert "verified=true" in resp.headers["Location"]

        db_session.expire_all()
        membership = db_session.query(CompanyUser).filter_by(company_id=company.id).one()
        assert membership.status == "active"

        resp = client.post("/api/auth/login", json={"email": "anita@himal.test", "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["role"] == "manager"
        assert "MANAGE_STAFF" in body["permissions"]
        assert body["company"]["slug"] == "himal-foods"

        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["company"]["name"] == "Himal Foods"

    def test_verification_link_is_single_use(self, client, db_session, outbox):
        client.post("/api/auth/signup-company", json=SIGNUP)
        token = verification_token(outbox[0])

        client.get(f"/api/auth/verify-email?token={token}")
        resp = client.get(f"/api/auth/verify-email?token={token}")

        assert resp.status_code == 302
        assert "error=" in resp.headers["Location"]

    def test_signup_as_boss_role(self, client, db_session):
        resp = client.post("/api/auth/signup-company", json={**SIGNUP, "role": "boss", "company_slug": "Himal HQ"})
        assert resp.status_code == 201
        assert resp.get_json()["membership"]["role"] == "boss"
        assert resp.get_json()["company"]["slug"] == "himal-hq"

    def test_duplicate_slug_conflicts(self, client, db_session):
        client.post("/api/auth/signup-company", json=SIGNUP)
        resp = client.post("/api/auth/signup-company", json={**SIGNUP, "email": "other@himal.test"})

        assert resp.status_code == 409
        assert db_session.query(User).filter_by(email="other@himal.test").count() == 0

    def test_existing_email_needs_its_password(self, client, db_session, manager_a):
        resp = client.post(
            "/api/auth/signup-company",
            json={**SIGNUP, "email": manager_a.user.email, "password": "WrongPassword1"},
        )
        assert resp.status_code == 409

    def test_existing_verified_user_founds_active_company(self, client, db_session, manager_a, outbox):
        resp = client.post(
            "/api/auth/signup-company",
            json={**SIGNUP, "email": manager_a.user.email, "password": PASSWORD},
        )
        assert resp.status_code == 201
        assert resp.get_json()["membership"]["status"] == "active"
        assert resp.get_json()["verification_sent"] is False
        assert outbox == []

    @pytest.mark.parametrize(
        "override",
        [
            {"phone": "9812345678"},
            {"password": "short"},
            {"email": "nope"},
            {"role": "rep"},
            {"company_name": "X"},
        ],
    )
    def test_signup_validation(self, client, db_session, override):
        resp = client.post("/api/auth/signup-company", json={**SIGNUP, **override})
        assert resp.status_code == 400


class TestLogin:
    def test_bad_password_is_logged(self, client, db_session, manager_a):
        resp = client.post("/api/auth/login", json={"email": manager_a.user.email, "password": "WrongPassword1"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert manager_a.user.email in event.reason

    def test_unknown_email_same_message(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "ghost@nowhere.test", "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

    def test_login_is_case_insensitive(self, client, db_session, manager_a):
        resp = client.post("/api/auth/login", json={"email": "MANAGER@acme.test", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.get_json()["company_user_id"] == manager_a.id

    def test_several_companies_require_selection(self, client, db_session, company_a, company_b):
        create_member(db_session, company_a, email="shared@both.test", role="rep")
        create_member(db_session, company_b, email="shared@both.test", role="manager")

        resp = client.post("/api/auth/login", json={"email": "shared@both.test", "password": PASSWORD})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["company_selection_required"] is True
        assert {c["slug"] for c in body["companies"]} == {"acme", "beta"}

        resp = client.post(
            "/api/auth/login",
            json={"email": "shared@both.test", "password": PASSWORD, "company_slug": "beta"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "manager"

    def test_inactive_membership_cannot_log_in(self, client, db_session, company_a):
        create_member(db_session, company_a, email="gone@acme.test", role="rep", status="inactive")
        resp = client.post("/api/auth/login", json={"email": "gone@acme.test", "password": PASSWORD})
        assert resp.status_code == 403

    def test_logout_clears_session(self, login, manager_a):
        c = login(manager_a)
        assert c.post("/api/auth/logout").status_code == 200
        assert c.get("/api/auth/me").status_code == 401


class TestSessionResolution:
    def test_no_cookie(self, client, db_session):
        assert client.get("/api/auth/me").status_code == 401

    def test_forged_cookie(self, client, db_session, app):
        client.set_cookie(app.config["TENANT_SESSION_COOKIE_NAME"], "not-a-token")
        assert client.get("/api/auth/me").status_code == 401

    def test_role_change_applies_on_next_request(self, db_session, login, manager_a):
        c = login(manager_a)
        assert c.get("/api/manager/staff").status_code == 200

        manager_a.role = "rep"
        db_session.commit()

        assert c.get("/api/manager/staff").status_code == 403

    def test_deactivated_member_loses_session(self, db_session, login, manager_a):
        c = login(manager_a)
        manager_a.status = "inactive"
        db_session.commit()
        assert c.get("/api/auth/me").status_code == 401

    def test_expired_subscription_is_distinguished(self, db_session, login, company_a, manager_a):
        c = login(manager_a)
        company_a.subscription_suspended = True
        db_session.commit()

        resp = c.get("/api/manager/orders")
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["subscription_expired"] is True
        assert body["company_name"] == "Acme Traders"

    def test_lapsed_end_date_is_expired(self, db_session, login, company_a, manager_a):
        c = login(manager_a)
        company_a.subscription_ends_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert c.get("/api/auth/me").get_json()["subscription_expired"] is True


class TestDisjointSessions:
    def test_boss_cookie_is_not_a_tenant_session(self, boss_client, db_session):
        assert boss_client.get("/api/auth/me").status_code == 401
        assert boss_client.get("/api/manager/orders").status_code == 401

    def test_tenant_cookie_is_not_a_boss_session(self, login, manager_a):
        c = login(manager_a)
        assert c.get("/api/boss/companies").status_code == 401
        assert c.get("/api/boss/auth/me").status_code == 401

    def test_tenant_user_cannot_use_boss_login(self, client, db_session, manager_a):
        resp = client.post("/api/boss/auth/login", json={"email": manager_a.user.email, "password": PASSWORD})
        assert resp.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="BOSS_LOGIN_FAILED").count() == 1
