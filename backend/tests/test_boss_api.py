# Overview: Pytest coverage for the platform boss surface; tenant overview, subscriptions and boss accounts.

"""
Boss Surface Tests

Verifies:
- Subscription actions (add_days, add_months, suspend, resume)
- Company overview with pagination, totals and contact
- Boss account management rules
"""

from datetime import timedelta

import pytest

from kora.models import Boss, Company, CompanyPayment
from kora.time_utils import as_utc_naive, utcnow

from conftest import PASSWORD, create_company


def _subscription(c, company_id, **body):
    return c.post(f"/api/boss/companies/{company_id}/subscription", json=body)


class TestSubscriptionActions:
    def test_add_days_revives_lapsed_suspended_company(self, boss_client, db_session, platform_boss):
        company = create_company(db_session, "Lapsed Ltd", "lapsed", ends_in=timedelta(days=-1), suspended=True)

        resp = _subscription(boss_client, company.id, action="add_days", days=7)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["subscription_suspended"] is False
        assert body["expired"] is False
        assert body["payment"]["kind"] == "grace"
        assert body["payment"]["days_added"] == 7

        db_session.expire_all()
        ends_at = as_utc_naive(db_session.get(Company, company.id).subscription_ends_at)
        expected = utcnow() + timedelta(days=7)
        assert abs((ends_at - expected).total_seconds()) < 60

        payment = db_session.query(CompanyPayment).filter_by(company_id=company.id).one()
        assert payment.recorded_by_boss_id == platform_boss.id
        assert payment.months_added is None

    def test_add_months_extends_from_current_end(self, boss_client, db_session, company_a):
        before = as_utc_naive(company_a.subscription_ends_at)

        resp = _subscription(boss_client, company_a.id, action="add_months", months=1, amount_notes="NPR 5000 cash")
        assert resp.status_code == 200
        assert resp.get_json()["payment"]["kind"] == "payment"

        db_session.expire_all()
        after = as_utc_naive(db_session.get(Company, company_a.id).subscription_ends_at)
        assert 28 <= (after - before).days <= 31

    def test_suspend_and_resume(self, boss_client, db_session, company_a, manager_a, login):
        tenant = login(manager_a)

        assert _subscription(boss_client, company_a.id, action="suspend").get_json()["expired"] is True
        assert tenant.get("/api/manager/orders").status_code == 403

        assert _subscription(boss_client, company_a.id, action="resume").get_json()["expired"] is False
        assert tenant.get("/api/manager/orders").status_code == 200

    @pytest.mark.parametrize(
        "body",
        [
            {"action": "refund"},
            {"action": "add_days", "days": 0},
            {"action": "add_days", "days": 366},
            {"action": "add_months", "months": 121},
            {"action": "add_months", "months": 1, "kind": "grace"},
        ],
    )
    def test_rejected_bodies(self, boss_client, db_session, company_a, body):
        assert _subscription(boss_client, company_a.id, **body).status_code == 400

    def test_unknown_company(self, boss_client, db_session):
        assert _subscription(boss_client, 9999, action="add_days", days=3).status_code == 404


class TestCompanyOverview:
    def test_list_with_contact_and_totals(self, boss_client, db_session, company_a, company_b, boss_a, manager_a):
        company_b.subscription_suspended = True
        db_session.commit()

        body = boss_client.get("/api/boss/companies").get_json()
        assert body["totals"] == {"companies": 2, "active_subscriptions": 1, "expired": 1}
        rows = {row["slug"]: row for row in body["companies"]}
        assert rows["acme"]["contact"]["role"] == "boss"
        assert rows["acme"]["contact"]["email"] == boss_a.user.email
        assert rows["acme"]["staff"]["total"] == 2
        assert rows["acme"]["seat_limit"] == 6
        assert rows["beta"]["expired"] is True

    def test_pagination_is_clamped(self, boss_client, db_session):
        for n in range(7):
            create_company(db_session, f"Company {n}", f"company-{n}")

        body = boss_client.get("/api/boss/companies?limit=1&page=2").get_json()
        assert body["pagination"] == {"page": 2, "limit": 5, "total": 7, "pages": 2}
        assert len(body["companies"]) == 2

    def test_search_by_name_or_contact_email(self, boss_client, db_session, company_a, company_b, manager_b):
        by_name = boss_client.get("/api/boss/companies?q=acme").get_json()["companies"]
        assert [c["slug"] for c in by_name] == ["acme"]

        by_email = boss_client.get("/api/boss/companies?q=manager@beta").get_json()["companies"]
        assert [c["slug"] for c in by_email] == ["beta"]

    def test_staff_limit(self, boss_client, db_session, company_a):
        resp = boss_client.patch(f"/api/boss/companies/{company_a.id}", json={"staff_limit": 12})
        assert resp.status_code == 200
        assert resp.get_json()["company"]["seat_limit"] == 13

        assert boss_client.patch(f"/api/boss/companies/{company_a.id}", json={"staff_limit": -1}).status_code == 400
        assert boss_client.patch(f"/api/boss/companies/{company_a.id}", json={"staff_limit": "9"}).status_code == 400
        assert boss_client.patch(f"/api/boss/companies/{company_a.id}", json={}).status_code == 400

    def test_detail_not_found(self, boss_client, db_session):
        assert boss_client.get("/api/boss/companies/9999").status_code == 404


class TestBossAccounts:
    def test_me(self, boss_client, db_session, platform_boss):
        assert boss_client.get("/api/boss/auth/me").get_json()["boss"]["email"] == platform_boss.email

    def test_create_and_duplicate(self, boss_client, db_session):
        body = {"email": "Second@Kora.test", "password": PASSWORD, "full_name": "Second"}
        resp = boss_client.post("/api/boss/bosses", json=body)
        assert resp.status_code == 201
        assert resp.get_json()["boss"]["email"] == "second@kora.test"

        assert boss_client.post("/api/boss/bosses", json=body).status_code == 409
        assert len(boss_client.get("/api/boss/bosses").get_json()["bosses"]) == 2

    def test_password_only_changed_by_owner(self, boss_client, db_session, platform_boss):
        other = Boss(email="other@kora.test", full_name="Other", password_hash="x")
        db_session.add(other)
        db_session.commit()

        resp = boss_client.patch(f"/api/boss/bosses/{other.id}", json={"new_password": "AnotherPass1!"})
        assert resp.status_code == 403

        resp = boss_client.patch(f"/api/boss/bosses/{other.id}", json={"full_name": "Renamed"})
        assert resp.status_code == 200

        resp = boss_client.patch(f"/api/boss/bosses/{platform_boss.id}", json={"new_password": "AnotherPass1!"})
        assert resp.status_code == 200

    def test_cannot_delete_self(self, boss_client, db_session, platform_boss):
        assert boss_client.delete(f"/api/boss/bosses/{platform_boss.id}").status_code == 400

    def test_delete_other(self, boss_client, db_session):
        other = Boss(email="other@kora.test", full_name="Other", password_hash="x")
        db_session.add(other)
        db_session.commit()

        assert boss_client.delete(f"/api/boss/bosses/{other.id}").status_code == 200
        db_session.expire_all()
        assert db_session.get(Boss, other.id) is None

    def test_logout(self, boss_client, db_session):
        assert boss_client.post("/api/boss/auth/logout").status_code == 200
        assert boss_client.get("/api/boss/auth/me").status_code == 401
