# Overview: Service-layer operations for subscription; expiry gate, extensions, suspend/resume, seat sizing.

"""
Company Subscription Lifecycle

EXPIRY GATE (applied to every tenant request):
    expired = suspended OR ends_at IS NULL OR ends_at < now

EXTENSIONS (boss only):
    new_end = max(current_end, now) + N months | N days

Anchoring on max(current_end, now) keeps unused time when a company renews
early and starts fresh from now when it renews late. Every extension clears
the suspended flag and writes one CompanyPayment audit row.

Suspend and resume only flip the flag; ends_at is left alone.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Company, CompanyPayment
from ..errors import ValidationError
from ..validation import optional_text, require_choice, require_int_in_range
from .concurrency import lock_company
from kora.time_utils import add_months, as_utc_naive, utcnow

MONTH_KINDS = ("payment", "complimentary")
DAY_KINDS = ("grace", "complimentary")
ACTIONS = ("add_months", "add_days", "suspend", "resume")

MAX_MONTHS = 120
MAX_DAYS = 365
MAX_NOTE_LENGTH = 1000
MAX_AMOUNT_NOTES_LENGTH = 500


def is_expired(company: Company, now: datetime | None = None) -> bool:
    if company.subscription_suspended:
        return True
    ends_at = as_utc_naive(company.subscription_ends_at)
    if ends_at is None:
        return True
    return ends_at < (now or utcnow())


def extension_anchor(current_end: datetime | None, now: datetime) -> datetime:
    """max(current_end, now); a missing end anchors at now."""
    current_end = as_utc_naive(current_end)
    if current_end is None or current_end < now:
        return now
    return current_end


def extend_months(
    *,
    company_id: int,
    months: int,
    kind: str = "payment",
    amount_notes: str | None = None,
    notes: str | None = None,
    boss_id: int | None = None,
) -> CompanyPayment:
    require_int_in_range("months", months, 1, MAX_MONTHS)
    require_choice("kind", kind, MONTH_KINDS)

    company = lock_company(company_id)
    now = utcnow()
    previous_end = as_utc_naive(company.subscription_ends_at)
    new_end = add_months(extension_anchor(previous_end, now), months)

    company.subscription_ends_at = new_end
    company.subscription_suspended = False
    payment = CompanyPayment(
        company=company,
        months_added=months,
        days_added=None,
        kind=kind,
        amount_notes=amount_notes,
        notes=notes,
        recorded_by_boss_id=boss_id,
        previous_ends_at=previous_end,
        new_ends_at=new_end,
        created_at=now,
    )
    db.session.add(payment)
    db.session.commit()

    current_app.logger.info(
        "Extended company %s by %s month(s) (%s) to %s", company.id, months, kind, new_end.isoformat()
    )
    return payment


def extend_days(
    *,
    company_id: int,
    days: int,
    kind: str = "grace",
    notes: str | None = None,
    boss_id: int | None = None,
) -> CompanyPayment:
    require_int_in_range("days", days, 1, MAX_DAYS)
    require_choice("kind", kind, DAY_KINDS)

    company = lock_company(company_id)
    now = utcnow()
    previous_end = as_utc_naive(company.subscription_ends_at)
    new_end = extension_anchor(previous_end, now) + timedelta(days=days)

    company.subscription_ends_at = new_end
    company.subscription_suspended = False
    payment = CompanyPayment(
        company=company,
        months_added=None,
        days_added=days,
        kind=kind,
        notes=notes,
        recorded_by_boss_id=boss_id,
        previous_ends_at=previous_end,
        new_ends_at=new_end,
        created_at=now,
    )
    db.session.add(payment)
    db.session.commit()

    current_app.logger.info(
        "Extended company %s by %s day(s) (%s) to %s", company.id, days, kind, new_end.isoformat()
    )
    return payment


def set_suspended(*, company_id: int, suspended: bool) -> Company:
    company = lock_company(company_id)
    company.subscription_suspended = suspended
    db.session.commit()
    current_app.logger.info(
        "%s subscription for company %s", "Suspended" if suspended else "Resumed", company.id
    )
    return company


def suspend(*, company_id: int) -> Company:
    return set_suspended(company_id=company_id, suspended=True)


def resume(*, company_id: int) -> Company:
    return set_suspended(company_id=company_id, suspended=False)


def set_staff_limit(*, company_id: int, staff_limit) -> Company:
    """Plan sizing; independent of subscription time."""
    max_limit = current_app.config.get("MAX_STAFF_LIMIT", 500)
    require_int_in_range("staff_limit", staff_limit, 0, max_limit)
    company = lock_company(company_id)
    company.staff_limit = staff_limit
    db.session.commit()
    return company


def apply_action(*, company_id: int, payload: dict, boss_id: int | None) -> dict:
    """
    Dispatch a boss subscription request body.

    add_months: {months, kind?=payment, amount_notes?, note?}
    add_days:   {days, kind?=grace, note?}
    suspend / resume: {}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    action = require_choice("action", payload.get("action"), ACTIONS)
    note = optional_text("note", payload.get("note"), MAX_NOTE_LENGTH)

    payment = None
    if action == "add_months":
        payment = extend_months(
            company_id=company_id,
            months=payload.get("months"),
            kind=payload.get("kind") or "payment",
            amount_notes=optional_text("amount_notes", payload.get("amount_notes"), MAX_AMOUNT_NOTES_LENGTH),
            notes=note,
            boss_id=boss_id,
        )
        company = payment.company
    elif action == "add_days":
        payment = extend_days(
            company_id=company_id,
            days=payload.get("days"),
            kind=payload.get("kind") or "grace",
            notes=note,
            boss_id=boss_id,
        )
        company = payment.company
    elif action == "suspend":
        company = suspend(company_id=company_id)
    else:
        company = resume(company_id=company_id)

    result = {
        "company_id": company.id,
        "subscription_ends_at": company.to_dict()["subscription_ends_at"],
        "subscription_suspended": bool(company.subscription_suspended),
        "expired": is_expired(company),
    }
    if payment is not None:
        result["payment"] = payment.to_dict()
    return result
