# Overview: Pytest coverage for the subscription expiry gate and extensions.

"""
Subscription Lifecycle Tests

Verifies:
- Expiry gate: suspended, never started or lapsed means expired
- Extensions anchor on max(current_end, now)
- Calendar month arithmetic clamps the day of month
- Every extension clears suspension and writes one audit row
"""

from datetime import datetime, timedelta

import pytest

from kora.errors import NotFoundError, ValidationError
from kora.models import Company, CompanyPayment
from kora.services import subscription_service
from kora.time_utils import add_months, utcnow

from conftest import create_company


class TestExpiryGate:
    def test_future_end_is_active(self):
        company = Company(subscription_ends_at=utcnow() + timedelta(days=1), subscription_suspended=False)
        assert not subscription_service.is_expired(company)

    def test_past_end_is_expired(self):
        company = Company(subscription_ends_at=utcnow() - timedelta(seconds=1), subscription_suspended=False)
        assert subscription_service.is_expired(company)

    def test_missing_end_is_expired(self):
        company = Company(subscription_ends_at=None, subscription_suspended=False)
        assert subscription_service.is_expired(company)

    def test_suspended_wins_over_future_end(self):
        company = Company(subscription_ends_at=utcnow() + timedelta(days=300), subscription_suspended=True)
        assert subscription_service.is_expired(company)


class TestAnchor:
    def test_future_end_is_kept(self):
        now = datetime(2026, 10, 16, 12, 0)
        end = datetime(2026, 11, 1)
        assert subscription_service.extension_anchor(end, now) == end

    def test_past_end_anchors_at_now(self):
        now = datetime(2026, 10, 16, 12, 0)
        assert subscription_service.extension_anchor(datetime(2026, 1, 1), now) == now

    def test_missing_end_anchors_at_now(self):
        now = datetime(2026, 10, 16, 12, 0)
        assert subscription_service.extension_anchor(None, now) == now

    def test_month_end_is_clamped(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)


class TestExtensions:
    def test_add_days_after_lapse_starts_from_now(self, db_session):
        company = create_company(db_session, "Lapsed", "lapsed", ends_in=timedelta(days=-1), suspended=True)

        before = utcnow()
        payment = subscription_service.extend_days(company_id=company.id, days=7, boss_id=None)
        after = utcnow()

        db_session.refresh(company)
        assert before + timedelta(days=7) <= company.subscription_ends_at <= after + timedelta(days=7)
        assert company.subscription_suspended is False
        assert payment.days_added == 7
        assert payment.months_added is None
        assert payment.kind == "grace"

    def test_add_months_early_renewal_keeps_remaining_time(self, db_session):
        company = create_company(db_session, "Early", "early", ends_in=timedelta(days=10))
        previous_end = company.subscription_ends_at

        payment = subscription_service.extend_months(company_id=company.id, months=2)

        assert payment.new_ends_at == add_months(previous_end, 2)
        assert payment.previous_ends_at == previous_end
        assert db_session.query(CompanyPayment).filter_by(company_id=company.id).count() == 1

    @pytest.mark.parametrize("months", [0, 121, "3", True])
    def test_month_range_enforced(self, db_session, months):
        company = create_company(db_session, "Range", "range")
        with pytest.raises(ValidationError):
            subscription_service.extend_months(company_id=company.id, months=months)

    def test_day_kind_rejects_payment(self, db_session):
        company = create_company(db_session, "Kind", "kind")
        with pytest.raises(ValidationError):
            subscription_service.extend_days(company_id=company.id, days=3, kind="payment")

    def test_unknown_company(self, db_session):
        with pytest.raises(NotFoundError):
            subscription_service.extend_days(company_id=424242, days=3)

    def test_suspend_and_resume_leave_end_alone(self, db_session):
        company = create_company(db_session, "Flip", "flip")
        end = company.subscription_ends_at

        subscription_service.suspend(company_id=company.id)
        db_session.refresh(company)
        assert company.subscription_suspended is True
        assert subscription_service.is_expired(company)

        subscription_service.resume(company_id=company.id)
        db_session.refresh(company)
        assert company.subscription_suspended is False
        assert company.subscription_ends_at == end
        assert db_session.query(CompanyPayment).count() == 0

    def test_apply_action_rejects_unknown_action(self, db_session):
        company = create_company(db_session, "Act", "act")
        with pytest.raises(ValidationError):
            subscription_service.apply_action(company_id=company.id, payload={"action": "refund"}, boss_id=None)
