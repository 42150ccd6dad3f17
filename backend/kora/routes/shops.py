# Overview: Flask API routes for shops and shop assignments; parses input and returns JSON responses.

"""
Shop and shop-assignment routes.

MULTI-TENANT: shops and assignments are scoped to g.tenant.company_id.

SECURITY:
- Shop read requires VIEW_SHOPS (boss, manager, back_office)
- Shop creation requires CREATE_SHOP (boss, manager)
- Assignment read/write requires MANAGE_SHOP_ASSIGNMENTS (boss, manager, back_office)
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_permission, require_tenant
from ..errors import ValidationError
from ..models import Shop
from ..services import shop_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_shop,
    optional_int,
    require_json_object,
    validate_payload,
)

SHOP_POLICY = ModelValidationPolicy(
    writable_fields={
        "external_shop_code",
        "name",
        "contact_name",
        "phone",
        "address",
        "latitude",
        "longitude",
        "geofence_radius_m",
        "location_source",
        "location_verified",
        "location_accuracy_m",
        "arrival_prompt_enabled",
        "min_dwell_seconds",
        "cooldown_minutes",
        "timezone",
    },
    required_on_create={"name", "latitude", "longitude"},
)

shops_bp = Blueprint("shops", __name__, url_prefix="/api/manager/shops")
assignments_bp = Blueprint("shop_assignments", __name__, url_prefix="/api/manager/shop-assignments")


@shops_bp.get("")
@require_tenant
@require_permission("VIEW_SHOPS")
def list_shops_route():
    """Query params: q (name or external code)"""
    shops = shop_service.list_shops(
        company_id=g.tenant.company_id,
        q=(request.args.get("q") or "").strip() or None,
    )
    return jsonify({"ok": True, "shops": shops})


@shops_bp.post("")
@require_tenant
@require_permission("CREATE_SHOP")
def create_shop_route():
    payload = require_json_object(request.get_json(silent=True))
    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=False)
    enforce_rules_shop(patch)

    shop = shop_service.create_shop(company_id=g.tenant.company_id, patch=patch)
    return jsonify({"ok": True, "shop": shop.to_dict()}), 201


@assignments_bp.get("")
@require_tenant
@require_permission("MANAGE_SHOP_ASSIGNMENTS")
def list_assignments_route():
    assignments = shop_service.list_assignments(company_id=g.tenant.company_id)
    return jsonify({"ok": True, "assignments": [a.to_dict() for a in assignments]})


@assignments_bp.post("")
@require_tenant
@require_permission("MANAGE_SHOP_ASSIGNMENTS")
def assign_shop_route():
    """
    Upsert a rep assignment.

    Body: {shop_id, rep_company_user_id, is_primary?}
    """
    payload = require_json_object(request.get_json(silent=True))
    unknown = set(payload) - {"shop_id", "rep_company_user_id", "is_primary"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    shop_id = optional_int("shop_id", payload.get("shop_id"))
    if shop_id is None:
        raise ValidationError("shop_id is required")
    rep_id = optional_int("rep_company_user_id", payload.get("rep_company_user_id"))
    if rep_id is None:
        raise ValidationError("rep_company_user_id is required")
    is_primary = payload.get("is_primary", False)
    if not isinstance(is_primary, bool):
        raise ValidationError("is_primary must be a boolean")

    assignment = shop_service.assign_shop(
        company_id=g.tenant.company_id,
        shop_id=shop_id,
        rep_company_user_id=rep_id,
        is_primary=is_primary,
    )
    return jsonify({"ok": True, "assignment": assignment.to_dict()})
