# Overview: Service-layer operations for shops and rep assignments.

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Shop, ShopAssignment
from ..errors import ConflictError
from .tenant_service import require_in_company, require_rep

SHOP_DEFAULTS = {
    "geofence_radius_m": 60,
    "location_source": "manual_pin",
    "location_verified": False,
    "arrival_prompt_enabled": True,
    "min_dwell_seconds": 120,
    "cooldown_minutes": 30,
}


def list_shops(*, company_id: int, q: str | None = None) -> list[dict]:
    query = (
        db.session.query(Shop, func.count(ShopAssignment.id))
        .outerjoin(
            ShopAssignment,
            (ShopAssignment.shop_id == Shop.id) & (ShopAssignment.company_id == Shop.company_id),
        )
        .filter(Shop.company_id == company_id)
        .group_by(Shop.id)
    )
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Shop.name.ilike(pattern), Shop.external_shop_code.ilike(pattern)))

    shops = []
    for shop, assignment_count in query.order_by(Shop.created_at.desc(), Shop.id.desc()).all():
        item = shop.to_dict()
        item["assignment_count"] = int(assignment_count or 0)
        shops.append(item)
    return shops


def create_shop(*, company_id: int, patch: dict) -> Shop:
    """Create a shop from a validated patch; unset settings take the defaults."""
    values = dict(SHOP_DEFAULTS)
    values.update({k: v for k, v in patch.items() if v is not None or k not in SHOP_DEFAULTS})

    shop = Shop(company_id=company_id, is_active=True, **values)
    db.session.add(shop)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A shop with this external code already exists")
    return shop


def list_assignments(*, company_id: int) -> list[ShopAssignment]:
    return (
        db.session.query(ShopAssignment)
        .filter_by(company_id=company_id)
        .order_by(ShopAssignment.assigned_at.desc(), ShopAssignment.id.desc())
        .all()
    )


def assign_shop(*, company_id: int, shop_id, rep_company_user_id, is_primary: bool = False) -> ShopAssignment:
    """
    Upsert the (company, shop, rep) assignment.

    Marking an assignment primary clears the flag on every other assignment
    of the same shop in the same transaction, so a shop has at most one
    primary rep.
    """
    shop = require_in_company(Shop, shop_id, company_id, label="Shop")
    rep = require_rep(rep_company_user_id, company_id, label="rep_company_user_id")

    # Serialize writers on this shop's assignments
    siblings = (
        db.session.query(ShopAssignment)
        .filter_by(company_id=company_id, shop_id=shop.id)
        .with_for_update()
        .all()
    )

    assignment = next((a for a in siblings if a.rep_company_user_id == rep.id), None)
    if is_primary:
        for other in siblings:
            if other is not assignment:
                other.is_primary = False

    if assignment is None:
        assignment = ShopAssignment(
            company_id=company_id,
            shop_id=shop.id,
            rep_company_user_id=rep.id,
            is_primary=is_primary,
        )
        db.session.add(assignment)
    else:
        assignment.is_primary = is_primary

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Assignment was changed concurrently, please retry")
    return assignment
