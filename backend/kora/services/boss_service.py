# Overview: Service-layer operations for the platform boss surface; tenant overview and boss accounts.

"""
Boss Service

The boss surface is not tenant-scoped: every query here may read across
companies, and nothing here is reachable from a tenant session.
"""

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Boss, Company, CompanyUser, User
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..validation import normalize_email, optional_text, validate_password
from . import subscription_service
from .auth_service import hash_password
from kora.time_utils import utcnow

DEFAULT_PAGE_SIZE = 10
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 50
RECENT_SIGNUPS = 10

# Preferred contact role first
CONTACT_ROLES = ("boss", "manager")


def clamp_page(page, limit) -> tuple[int, int]:
    try:
        page = int(page) if page not in (None, "") else 1
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit) if limit not in (None, "") else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    return max(page, 1), min(max(limit, MIN_PAGE_SIZE), MAX_PAGE_SIZE)


def _staff_counts(company_ids: list[int]) -> dict[int, dict]:
    counts = {cid: {"total": 0, "active": 0, "invited": 0, "inactive": 0} for cid in company_ids}
    if not company_ids:
        return counts
    rows = (
        db.session.query(CompanyUser.company_id, CompanyUser.status, func.count(CompanyUser.id))
        .filter(CompanyUser.company_id.in_(company_ids))
        .group_by(CompanyUser.company_id, CompanyUser.status)
        .all()
    )
    for company_id, status, count in rows:
        bucket = counts[company_id]
        bucket["total"] += count
        if status in bucket:
            bucket[status] = count
    return counts


def _primary_contacts(company_ids: list[int]) -> dict[int, dict]:
    if not company_ids:
        return {}
    rows = (
        db.session.query(CompanyUser, User)
        .join(User, User.id == CompanyUser.user_id)
        .filter(CompanyUser.company_id.in_(company_ids), CompanyUser.role.in_(CONTACT_ROLES))
        .order_by(CompanyUser.created_at.asc(), CompanyUser.id.asc())
        .all()
    )
    contacts: dict[int, dict] = {}
    ranks: dict[int, int] = {}
    for membership, user in rows:
        rank = CONTACT_ROLES.index(membership.role)
        if membership.company_id in ranks and ranks[membership.company_id] <= rank:
            continue
        ranks[membership.company_id] = rank
        contacts[membership.company_id] = {
            "full_name": user.full_name,
            "email": user.email,
            "phone": membership.phone,
            "role": membership.role,
        }
    return contacts


def _company_row(company: Company, staff: dict, contact: dict | None, now) -> dict:
    data = company.to_dict()
    data["expired"] = subscription_service.is_expired(company, now)
    data["staff"] = staff
    data["seat_limit"] = company.staff_limit + 1
    data["contact"] = contact
    return data


def list_companies(*, q: str | None = None, page=1, limit=DEFAULT_PAGE_SIZE) -> dict:
    page, limit = clamp_page(page, limit)
    now = utcnow()

    query = db.session.query(Company)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        contact_match = (
            db.session.query(CompanyUser.company_id)
            .join(User, User.id == CompanyUser.user_id)
            .filter(CompanyUser.role.in_(CONTACT_ROLES), User.email.ilike(pattern))
        )
        query = query.filter(or_(Company.name.ilike(pattern), Company.id.in_(contact_match)))

    total = query.count()
    companies = (
        query.order_by(Company.created_at.desc(), Company.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    ids = [c.id for c in companies]
    staff = _staff_counts(ids)
    contacts = _primary_contacts(ids)

    all_companies = db.session.query(Company).all()
    expired = sum(1 for c in all_companies if subscription_service.is_expired(c, now))
    recent = (
        db.session.query(Company)
        .order_by(Company.created_at.desc(), Company.id.desc())
        .limit(RECENT_SIGNUPS)
        .all()
    )

    return {
        "companies": [_company_row(c, staff[c.id], contacts.get(c.id), now) for c in companies],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
        "totals": {
            "companies": len(all_companies),
            "active_subscriptions": len(all_companies) - expired,
            "expired": expired,
        },
        "recent_signups": [
            {"id": c.id, "name": c.name, "slug": c.slug, "created_at": c.to_dict()["created_at"]}
            for c in recent
        ],
    }


def get_company(company_id: int) -> dict:
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return _company_row(
        company,
        _staff_counts([company.id])[company.id],
        _primary_contacts([company.id]).get(company.id),
        utcnow(),
    )


def update_company(*, company_id: int, payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = set(payload) - {"staff_limit"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "staff_limit" not in payload:
        raise ValidationError("No fields provided to update")
    subscription_service.set_staff_limit(company_id=company_id, staff_limit=payload["staff_limit"])
    return get_company(company_id)


# Boss accounts

def list_bosses() -> list[Boss]:
    return db.session.query(Boss).order_by(Boss.created_at.asc(), Boss.id.asc()).all()


def _get_boss(boss_id: int) -> Boss:
    boss = db.session.get(Boss, boss_id)
    if boss is None:
        raise NotFoundError("Boss not found")
    return boss


def create_boss(*, email, password, full_name=None) -> Boss:
    email = normalize_email(email)
    password = validate_password(password)
    full_name = optional_text("full_name", full_name, 255) or ""

    if db.session.query(Boss.id).filter_by(email=email).first():
        raise ConflictError("A boss with this email already exists")

    boss = Boss(email=email, full_name=full_name, password_hash=hash_password(password))
    db.session.add(boss)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A boss with this email already exists")
    return boss


def update_boss(*, boss_id: int, acting_boss_id: int, payload: dict) -> Boss:
    """
    {email?, full_name?, new_password?}

    A password can only be changed by its owner.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = set(payload) - {"email", "full_name", "new_password"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if not payload:
        raise ValidationError("No fields provided to update")

    boss = _get_boss(boss_id)

    if payload.get("new_password") is not None:
        if boss.id != acting_boss_id:
            raise AuthorizationError("You can only change your own password")
        boss.password_hash = hash_password(validate_password(payload["new_password"], "new_password"))

    if "email" in payload:
        email = normalize_email(payload["email"])
        clash = db.session.query(Boss.id).filter(Boss.email == email, Boss.id != boss.id).first()
        if clash:
            raise ConflictError("A boss with this email already exists")
        boss.email = email

    if "full_name" in payload:
        boss.full_name = optional_text("full_name", payload["full_name"], 255) or ""

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A boss with this email already exists")
    return boss


def delete_boss(*, boss_id: int, acting_boss_id: int) -> None:
    if boss_id == acting_boss_id:
        raise ValidationError("You cannot delete your own account")
    boss = _get_boss(boss_id)
    db.session.delete(boss)
    db.session.commit()
