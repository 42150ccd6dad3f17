# Overview: Pytest coverage for staff invites, seat accounting and deactivation.

"""
Staff Management Tests

Verifies:
- Seat quota is staff_limit + 1 and counts every membership
- Invites mail credentials and a verification link
- Deactivation of a rep with shops requires (and performs) reassignment
"""

import pytest

from kora.models import CompanyUser, ShopAssignment, User

from conftest import create_company, create_member


def _invite(c, n, **extra):
    body = {"full_name": f"Staff Member {n}", "email": f"staff{n}@acme.test", "phone": f"98000000{n:02d}"}
    body.update(extra)
    return c.post("/api/manager/staff", json=body)


class TestSeatQuota:
    def test_quota_fills_then_rejects(self, db_session, login, manager_a):
        """staff_limit=5: founding manager + 5 invites fill the plan; the next invite is refused."""
        c = login(manager_a)

        for n in range(1, 6):
            resp = _invite(c, n)
            assert resp.status_code == 201, resp.get_json()

        resp = _invite(c, 6)
        assert resp.status_code == 403
        assert "Staff limit reached" in resp.get_json()["error"]
        assert db_session.query(CompanyUser).filter_by(company_id=manager_a.company_id).count() == 6

    def test_inactive_members_still_hold_seats(self, db_session, login):
        company = create_company(db_session, "Tiny", "tiny", staff_limit=1)
        manager = create_member(db_session, company, email="boss@tiny.test", role="manager")
        create_member(db_session, company, email="old@tiny.test", role="rep", status="inactive")

        resp = login(manager).post(
            "/api/manager/staff",
            json={"full_name": "New Rep", "email": "new@tiny.test", "phone": "9800000001"},
        )
        assert resp.status_code == 403

    def test_zero_limit_leaves_only_the_manager(self, db_session, login):
        company = create_company(db_session, "Solo", "solo", staff_limit=0)
        manager = create_member(db_session, company, email="me@solo.test", role="manager")

        resp = login(manager).post(
            "/api/manager/staff",
            json={"full_name": "Anyone", "email": "any@solo.test", "phone": "9800000001"},
        )
        assert resp.status_code == 403


class TestInvite:
    def test_invite_sends_credentials_and_verification(self, db_session, login, manager_a, outbox):
        resp = _invite(login(manager_a), 1, role="back_office")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["staff"]["status"] == "invited"
        assert body["staff"]["role"] == "back_office"
        assert body["staff"]["phone"] == "+9779800000001"
        assert body["credentials_sent"] is True
        assert body["verification_sent"] is True

        subjects = sorted(m.subject for m in outbox)
        assert subjects == ["Verify your email", "Your Acme Traders account"]

    def test_invite_reuses_existing_user(self, db_session, login, manager_a, manager_b):
        resp = login(manager_a).post(
            "/api/manager/staff",
            json={"full_name": "Beta Manager", "email": "manager@beta.test", "phone": "9800000009", "role": "rep"},
        )
        assert resp.status_code == 201
        assert db_session.query(User).filter_by(email="manager@beta.test").count() == 1

    def test_duplicate_membership_conflicts(self, db_session, login, manager_a, rep_a):
        resp = login(manager_a).post(
            "/api/manager/staff",
            json={"full_name": "Ram Rep", "email": rep_a.user.email, "phone": "9800000009"},
        )
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "override",
        [
            {"role": "boss"},
            {"phone": "12345"},
            {"email": "bad"},
            {"full_name": "A"},
            {"salary": 100},
        ],
    )
    def test_invite_validation(self, db_session, login, manager_a, override):
        assert _invite(login(manager_a), 1, **override).status_code == 400

    def test_supervisor_must_be_manager_or_boss(self, db_session, login, manager_a, rep_a):
        c = login(manager_a)
        assert _invite(c, 1, manager_company_user_id=rep_a.id).status_code == 400
        assert _invite(c, 2, manager_company_user_id=manager_a.id).status_code == 201

    def test_back_office_cannot_invite(self, db_session, login, back_office_a):
        c = login(back_office_a)
        assert c.get("/api/manager/staff").status_code == 200
        assert _invite(c, 1).status_code == 403

    def test_rep_cannot_list_staff(self, db_session, login, rep_a):
        assert login(rep_a).get("/api/manager/staff").status_code == 403

    def test_resend_invite_mails_new_password(self, db_session, login, manager_a, outbox):
        c = login(manager_a)
        staff_id = _invite(c, 1).get_json()["staff"]["company_user_id"]
        outbox.clear()

        resp = c.post(f"/api/manager/staff/{staff_id}/resend-invite")
        assert resp.status_code == 200
        assert resp.get_json()["credentials_sent"] is True
        assert len(outbox) == 2


class TestListAndUpdate:
    def test_list_with_counts_and_filters(self, db_session, login, manager_a, rep_a, rep_a2, shop_a):
        db_session.add(ShopAssignment(company_id=manager_a.company_id, shop_id=shop_a.id, rep_company_user_id=rep_a.id))
        db_session.commit()
        c = login(manager_a)

        body = c.get("/api/manager/staff").get_json()
        assert body["counts"] == {"active": 3, "invited": 0, "inactive": 0}
        by_id = {s["company_user_id"]: s for s in body["staff"]}
        assert by_id[rep_a.id]["assigned_shops_count"] == 1
        assert by_id[rep_a2.id]["assigned_shops_count"] == 0

        body = c.get("/api/manager/staff?role=rep&q=sita").get_json()
        assert [s["company_user_id"] for s in body["staff"]] == [rep_a2.id]

    def test_email_change_requires_reverification(self, db_session, login, manager_a, rep_a):
        resp = login(manager_a).patch(f"/api/manager/staff/{rep_a.id}", json={"email": "New@Acme.test"})
        assert resp.status_code == 200
        assert resp.get_json()["staff"]["email"] == "new@acme.test"
        assert resp.get_json()["staff"]["email_verified_at"] is None

    def test_email_clash(self, db_session, login, manager_a, rep_a, rep_a2):
        resp = login(manager_a).patch(f"/api/manager/staff/{rep_a.id}", json={"email": rep_a2.user.email})
        assert resp.status_code == 409

    def test_empty_patch(self, db_session, login, manager_a, rep_a):
        assert login(manager_a).patch(f"/api/manager/staff/{rep_a.id}", json={}).status_code == 400

    def test_other_tenant_member_is_not_found(self, db_session, login, manager_a, manager_b):
        resp = login(manager_a).patch(f"/api/manager/staff/{manager_b.id}", json={"full_name": "Hijack"})
        assert resp.status_code == 404

    def test_activate(self, db_session, login, manager_a, company_a):
        invited = create_member(db_session, company_a, email="late@acme.test", role="rep", status="invited")
        resp = login(manager_a).post(f"/api/manager/staff/{invited.id}/activate")
        assert resp.status_code == 200
        assert resp.get_json()["staff"]["status"] == "active"


class TestDeactivate:
    def test_rep_without_shops(self, db_session, login, manager_a, rep_a):
        resp = login(manager_a).post(f"/api/manager/staff/{rep_a.id}/deactivate")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "inactive"
        assert resp.get_json()["reassigned_assignments"] == 0

    def test_rep_with_shops_needs_replacement(self, db_session, login, manager_a, rep_a, shop_a):
        db_session.add(ShopAssignment(company_id=manager_a.company_id, shop_id=shop_a.id, rep_company_user_id=rep_a.id))
        db_session.commit()

        resp = login(manager_a).post(f"/api/manager/staff/{rep_a.id}/deactivate", json={})
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.get(CompanyUser, rep_a.id).status == "active"

    def test_reassignment_merges_and_keeps_primary(self, db_session, login, manager_a, rep_a, rep_a2, shop_a):
        company_id = manager_a.company_id
        db_session.add_all([
            ShopAssignment(company_id=company_id, shop_id=shop_a.id, rep_company_user_id=rep_a.id, is_primary=True),
            ShopAssignment(company_id=company_id, shop_id=shop_a.id, rep_company_user_id=rep_a2.id, is_primary=False),
        ])
        db_session.commit()

        resp = login(manager_a).post(
            f"/api/manager/staff/{rep_a.id}/deactivate", json={"reassign_to_staff_id": rep_a2.id}
        )
        assert resp.status_code == 200
        assert resp.get_json()["reassigned_assignments"] == 1

        db_session.expire_all()
        remaining = db_session.query(ShopAssignment).filter_by(shop_id=shop_a.id).all()
        assert [(a.rep_company_user_id, a.is_primary) for a in remaining] == [(rep_a2.id, True)]

    def test_replacement_must_be_active_rep(self, db_session, login, manager_a, rep_a, back_office_a, shop_a):
        db_session.add(ShopAssignment(company_id=manager_a.company_id, shop_id=shop_a.id, rep_company_user_id=rep_a.id))
        db_session.commit()

        c = login(manager_a)
        resp = c.post(f"/api/manager/staff/{rep_a.id}/deactivate", json={"reassign_to_staff_id": back_office_a.id})
        assert resp.status_code == 400
        resp = c.post(f"/api/manager/staff/{rep_a.id}/deactivate", json={"reassign_to_staff_id": rep_a.id})
        assert resp.status_code == 400

    def test_patch_cannot_bypass_reassignment(self, db_session, login, manager_a, rep_a, shop_a):
        db_session.add(ShopAssignment(
            company_id=manager_a.company_id, shop_id=shop_a.id, rep_company_user_id=rep_a.id, is_primary=True
        ))
        db_session.commit()
        c = login(manager_a)

        resp = c.patch(f"/api/manager/staff/{rep_a.id}", json={"status": "inactive"})
        assert resp.status_code == 400
        assert "/deactivate" in resp.get_json()["error"]

        assert c.patch(f"/api/manager/staff/{rep_a.id}", json={"role": "back_office"}).status_code == 400

        db_session.expire_all()
        member = db_session.get(CompanyUser, rep_a.id)
        assert (member.status, member.role) == ("active", "rep")
        assert db_session.query(ShopAssignment).filter_by(rep_company_user_id=rep_a.id).count() == 1

    def test_patch_status_allowed_without_shops(self, db_session, login, manager_a, rep_a):
        c = login(manager_a)
        assert c.patch(f"/api/manager/staff/{rep_a.id}", json={"status": "inactive"}).status_code == 200
        assert c.patch(f"/api/manager/staff/{rep_a.id}", json={"role": "back_office"}).status_code == 200
