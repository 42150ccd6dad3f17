# Overview: Service-layer operations for leads; capture, ownership and convert-to-shop.

"""
Lead Service

OWNERSHIP: a rep sees and edits only leads assigned to them or created by
them. Managers and bosses see every lead of the company.

CONVERSION: converted is a one-way status. It is reached either through
convert-to-shop (creates a Shop and links it) or when an order is placed
against the lead (see order_service). A lead that is converted AND linked
to a shop can never be converted again.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Lead, Shop
from ..errors import AuthorizationError, InvalidTransitionError
from .permission_service import log_security_event
from .tenant_service import require_in_company, require_rep
from kora.time_utils import utcnow

# Placeholder pin (Kathmandu) until the shop's real location is captured
DEFAULT_LATITUDE = 27.7172
DEFAULT_LONGITUDE = 85.324


def _visible_to(query, *, role: str, company_user_id: int):
    if role == "rep":
        query = query.filter(
            or_(
                Lead.assigned_rep_company_user_id == company_user_id,
                Lead.created_by_company_user_id == company_user_id,
            )
        )
    return query


def can_access(lead: Lead, *, role: str, company_user_id: int) -> bool:
    if role != "rep":
        return True
    return company_user_id in (lead.assigned_rep_company_user_id, lead.created_by_company_user_id)


def get_lead(*, company_id: int, lead_id, role: str, company_user_id: int) -> Lead:
    lead = require_in_company(Lead, lead_id, company_id, label="Lead")
    if not can_access(lead, role=role, company_user_id=company_user_id):
        log_security_event(
            event_type="OWNERSHIP_DENIED",
            success=False,
            company_id=company_id,
            resource=f"leads/{lead.id}",
            reason=f"company_user {company_user_id} does not own lead {lead.id}",
        )
        raise AuthorizationError("You can only work with leads that are assigned to you or that you added")
    return lead


def list_leads(*, company_id: int, role: str, company_user_id: int, status: str | None = None, q: str | None = None) -> list[Lead]:
    query = db.session.query(Lead).filter(Lead.company_id == company_id)
    query = _visible_to(query, role=role, company_user_id=company_user_id)
    if status:
        query = query.filter(Lead.status == status)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(Lead.name.ilike(pattern), Lead.contact_name.ilike(pattern), Lead.phone.ilike(pattern))
        )
    return query.order_by(Lead.created_at.desc(), Lead.id.desc()).all()


def create_lead(*, company_id: int, created_by_company_user_id: int, patch: dict) -> Lead:
    if patch.get("assigned_rep_company_user_id") is not None:
        require_rep(patch["assigned_rep_company_user_id"], company_id, label="assigned_rep_company_user_id")

    lead = Lead(
        company_id=company_id,
        status="new",
        created_by_company_user_id=created_by_company_user_id,
        **patch,
    )
    db.session.add(lead)
    db.session.commit()
    return lead


def update_lead(*, company_id: int, lead_id, role: str, company_user_id: int, patch: dict) -> Lead:
    lead = get_lead(company_id=company_id, lead_id=lead_id, role=role, company_user_id=company_user_id)

    if "status" in patch and lead.status == "converted" and patch["status"] != "converted":
        raise InvalidTransitionError("A converted lead cannot change status")
    if patch.get("assigned_rep_company_user_id") is not None:
        require_rep(patch["assigned_rep_company_user_id"], company_id, label="assigned_rep_company_user_id")

    for key, value in patch.items():
        setattr(lead, key, value)
    db.session.commit()
    return lead


def mark_converted(lead: Lead, *, shop_id: int | None = None) -> None:
    """Stage the converted status on `lead`; converted_at is stamped once."""
    lead.status = "converted"
    if lead.converted_at is None:
        lead.converted_at = utcnow()
    if shop_id is not None:
        lead.shop_id = shop_id


def convert_to_shop(*, company_id: int, lead_id, role: str, company_user_id: int) -> Shop:
    """Create a Shop from the lead and link it, in one transaction."""
    lead = get_lead(company_id=company_id, lead_id=lead_id, role=role, company_user_id=company_user_id)

    # Re-read under lock so two concurrent conversions cannot both pass the guard
    lead = db.session.query(Lead).filter_by(id=lead.id).with_for_update().populate_existing().one()
    if lead.status == "converted" and lead.shop_id is not None:
        raise InvalidTransitionError("Lead is already converted to a shop")

    shop = Shop(
        company_id=company_id,
        name=lead.name,
        contact_name=lead.contact_name,
        phone=lead.phone,
        address=lead.address,
        latitude=DEFAULT_LATITUDE,
        longitude=DEFAULT_LONGITUDE,
        geofence_radius_m=60,
        location_source="manual_pin",
        location_verified=False,
    )
    db.session.add(shop)
    db.session.flush()

    mark_converted(lead, shop_id=shop.id)
    db.session.commit()
    return shop
