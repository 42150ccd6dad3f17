# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's company.

SECURITY:
- Read operations require VIEW_PRODUCTS (all roles)
- Write operations require MANAGE_PRODUCTS (boss, manager, back_office)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_permission, require_tenant
from ..errors import ValidationError
from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    enforce_currency,
    enforce_price,
    enforce_rules_product,
    require_choice,
    require_json_object,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "unit", "is_active"},
    required_on_create={"sku", "name"},
    extra_fields={"price", "currency_code", "status"},
)

PRODUCT_STATUSES = ("active", "inactive")

products_bp = Blueprint("products", __name__, url_prefix="/api/manager/products")


def _product_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    # "status" is the client-facing spelling of is_active
    status = patch.pop("status", None)
    if status is not None:
        patch["is_active"] = require_choice("status", status, PRODUCT_STATUSES) == "active"
    patch.pop("price", None)
    patch.pop("currency_code", None)
    enforce_rules_product(patch)
    return patch


def _default_currency() -> str:
    return current_app.config.get("DEFAULT_CURRENCY", "NPR")


@products_bp.get("")
@require_tenant
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """Query params: q (name or SKU), status (active|inactive)"""
    status = (request.args.get("status") or "").strip() or None
    if status is not None:
        require_choice("status", status, PRODUCT_STATUSES)
    products = products_service.list_products(
        company_id=g.tenant.company_id,
        q=(request.args.get("q") or "").strip() or None,
        status=status,
    )
    return jsonify({"ok": True, "products": products})


@products_bp.post("")
@require_tenant
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = require_json_object(request.get_json(silent=True))
    patch = _product_patch(payload, partial=False)

    price = None
    if payload.get("price") is not None:
        price = enforce_price("price", payload["price"])

    product = products_service.create_product(
        company_id=g.tenant.company_id,
        patch=patch,
        price=price,
        currency_code=enforce_currency(payload.get("currency_code"), _default_currency()),
    )
    return jsonify({"ok": True, "product": product}), 201


@products_bp.get("/<int:product_id>")
@require_tenant
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    product = products_service.get_product(company_id=g.tenant.company_id, product_id=product_id)
    return jsonify({"ok": True, "product": product})


@products_bp.patch("/<int:product_id>")
@require_tenant
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = require_json_object(request.get_json(silent=True))
    if "price" in payload or "currency_code" in payload:
        raise ValidationError("Use POST /api/manager/products/<id>/prices to change the price")
    patch = _product_patch(payload, partial=True)
    if not patch:
        raise ValidationError("No fields provided to update")

    product = products_service.update_product(
        company_id=g.tenant.company_id, product_id=product_id, patch=patch
    )
    return jsonify({"ok": True, "product": product})


@products_bp.post("/<int:product_id>/prices")
@require_tenant
@require_permission("MANAGE_PRODUCTS")
def set_price_route(product_id: int):
    """Body: {price, currency_code?}"""
    payload = require_json_object(request.get_json(silent=True))
    unknown = set(payload) - {"price", "currency_code"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if payload.get("price") is None:
        raise ValidationError("price is required")

    product = products_service.set_price(
        company_id=g.tenant.company_id,
        product_id=product_id,
        price=enforce_price("price", payload["price"]),
        currency_code=enforce_currency(payload.get("currency_code"), _default_currency()),
    )
    return jsonify({"ok": True, "product": product})


@products_bp.delete("/<int:product_id>")
@require_tenant
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    products_service.delete_product(company_id=g.tenant.company_id, product_id=product_id)
    return jsonify({"ok": True})
