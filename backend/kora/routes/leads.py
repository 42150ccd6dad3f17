# Overview: Flask API routes for leads; capture, edits and convert-to-shop.

"""
Lead routes.

MULTI-TENANT: leads are scoped to g.tenant.company_id.

SECURITY: every route requires MANAGE_LEADS (boss, manager, rep). Reps are
further limited to leads assigned to them or created by them.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_permission, require_tenant
from ..models import Lead
from ..models.field import LEAD_STATUSES
from ..services import lead_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_lead,
    require_choice,
    require_json_object,
    validate_payload,
)

LEAD_FIELDS = {"name", "contact_name", "phone", "email", "address", "notes", "assigned_rep_company_user_id"}

LEAD_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=LEAD_FIELDS,
    required_on_create={"name"},
)

LEAD_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=LEAD_FIELDS | {"status"},
)

leads_bp = Blueprint("leads", __name__, url_prefix="/api/manager/leads")


def _caller() -> dict:
    return {"role": g.tenant.role, "company_user_id": g.tenant.company_user_id}


@leads_bp.get("")
@require_tenant
@require_permission("MANAGE_LEADS")
def list_leads_route():
    """Query params: status, q (name/contact/phone)"""
    status = (request.args.get("status") or "").strip() or None
    if status is not None:
        require_choice("status", status, LEAD_STATUSES)
    leads = lead_service.list_leads(
        company_id=g.tenant.company_id,
        status=status,
        q=(request.args.get("q") or "").strip() or None,
        **_caller(),
    )
    return jsonify({"ok": True, "leads": [lead.to_dict() for lead in leads]})


@leads_bp.post("")
@require_tenant
@require_permission("MANAGE_LEADS")
def create_lead_route():
    payload = require_json_object(request.get_json(silent=True))
    patch = validate_payload(model=Lead, payload=payload, policy=LEAD_CREATE_POLICY, partial=False)
    enforce_rules_lead(patch)

    lead = lead_service.create_lead(
        company_id=g.tenant.company_id,
        created_by_company_user_id=g.tenant.company_user_id,
        patch=patch,
    )
    return jsonify({"ok": True, "lead": lead.to_dict()}), 201


@leads_bp.get("/<int:lead_id>")
@require_tenant
@require_permission("MANAGE_LEADS")
def get_lead_route(lead_id: int):
    lead = lead_service.get_lead(company_id=g.tenant.company_id, lead_id=lead_id, **_caller())
    return jsonify({"ok": True, "lead": lead.to_dict()})


@leads_bp.patch("/<int:lead_id>")
@require_tenant
@require_permission("MANAGE_LEADS")
def update_lead_route(lead_id: int):
    payload = require_json_object(request.get_json(silent=True))
    patch = validate_payload(model=Lead, payload=payload, policy=LEAD_UPDATE_POLICY, partial=True)
    enforce_rules_lead(patch)

    lead = lead_service.update_lead(
        company_id=g.tenant.company_id, lead_id=lead_id, patch=patch, **_caller()
    )
    return jsonify({"ok": True, "lead": lead.to_dict()})


@leads_bp.post("/<int:lead_id>/convert-to-shop")
@require_tenant
@require_permission("MANAGE_LEADS")
def convert_lead_route(lead_id: int):
    shop = lead_service.convert_to_shop(company_id=g.tenant.company_id, lead_id=lead_id, **_caller())
    return jsonify({"ok": True, "shop": shop.to_dict(), "lead_id": lead_id}), 201
