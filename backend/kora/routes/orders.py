# Overview: Flask API routes for orders; placement, listing, status steps and cancellation.

"""
Order routes.

MULTI-TENANT: orders are scoped to g.tenant.company_id. Reps only see the
orders they placed; another rep's order is reported as not found.

SECURITY:
- Read requires VIEW_ORDERS (all roles)
- Placement requires CREATE_ORDER (boss, manager, rep)
- Status steps and cancellation require TRANSITION_ORDER (boss, manager, back_office)
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_permission, require_tenant
from ..errors import ValidationError
from ..services import order_service
from ..validation import require_json_object

ORDER_FIELDS = {"shop_id", "lead_id", "notes", "currency_code", "items"}

orders_bp = Blueprint("orders", __name__, url_prefix="/api/manager/orders")


def _caller() -> dict:
    return {"role": g.tenant.role, "company_user_id": g.tenant.company_user_id}


@orders_bp.get("")
@require_tenant
@require_permission("VIEW_ORDERS")
def list_orders_route():
    """
    Query params: status, q, date_from, date_to, rep, shop,
    sort (placed_at_asc | placed_at_desc)
    """
    filters = order_service.OrderFilter.from_args(request.args)
    orders = order_service.list_orders(company_id=g.tenant.company_id, filters=filters, **_caller())
    return jsonify({"ok": True, "orders": [o.to_dict(include_items=False) for o in orders]})


@orders_bp.get("/counts")
@require_tenant
@require_permission("VIEW_ORDERS")
def order_counts_route():
    counts = order_service.status_counts(company_id=g.tenant.company_id, **_caller())
    return jsonify({"ok": True, "counts": counts})


@orders_bp.get("/<int:order_id>")
@require_tenant
@require_permission("VIEW_ORDERS")
def get_order_route(order_id: int):
    order = order_service.get_order(company_id=g.tenant.company_id, order_id=order_id, **_caller())
    return jsonify({"ok": True, "order": order.to_dict()})


@orders_bp.post("")
@require_tenant
@require_permission("CREATE_ORDER")
def create_order_route():
    """
    Body: {shop_id?, lead_id?, notes?, currency_code?,
           items: [{product_id?, product_name, product_sku?, quantity, unit_price, notes?}]}
    """
    payload = require_json_object(request.get_json(silent=True))
    unknown = set(payload) - ORDER_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    order = order_service.create_order(
        company_id=g.tenant.company_id,
        placed_by_company_user_id=g.tenant.company_user_id,
        items=payload.get("items"),
        shop_id=payload.get("shop_id"),
        lead_id=payload.get("lead_id"),
        notes=payload.get("notes"),
        currency_code=payload.get("currency_code"),
    )
    return jsonify({
        "ok": True,
        "order": {
            "id": order.id,
            "order_number": order.order_number,
            "total_amount": float(order.total_amount),
        },
    }), 201


@orders_bp.patch("/<int:order_id>")
@require_tenant
@require_permission("TRANSITION_ORDER")
def update_order_route(order_id: int):
    """Body: {status?, notes?}; status must be the single next step."""
    payload = require_json_object(request.get_json(silent=True))
    order = order_service.update_order(company_id=g.tenant.company_id, order_id=order_id, payload=payload)
    return jsonify({"ok": True, "order": order.to_dict()})


@orders_bp.post("/<int:order_id>/cancel")
@require_tenant
@require_permission("TRANSITION_ORDER")
def cancel_order_route(order_id: int):
    """Body: {cancel_reason, cancel_note?}"""
    payload = require_json_object(request.get_json(silent=True))
    order = order_service.cancel_order(
        company_id=g.tenant.company_id,
        order_id=order_id,
        cancelled_by_company_user_id=g.tenant.company_user_id,
        payload=payload,
    )
    return jsonify({"ok": True, "order": order.to_dict()})
