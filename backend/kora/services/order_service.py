# Overview: Service-layer operations for orders; creation, numbering, listing and status changes.

"""
Order Service

CREATION (one transaction):
1. Validate shop / lead / product references against the tenant
2. Lock the company row and count today's orders -> ORD-YYYYMMDD-NNNN
3. Insert the order with total_amount = sum(quantity * unit_price)
4. Insert the items (name/SKU snapshots)
5. Mark the lead converted when the order was placed against one

The (company_id, order_number) unique constraint backs the numbering; a
collision (databases without row locks) retries the whole creation.

VISIBILITY: reps only ever see orders they placed. Other roles see all
orders of the company.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CompanyUser, Lead, Order, OrderItem, Product, Shop, User
from ..errors import ConflictError, NotFoundError, ValidationError
from ..validation import coerce_decimal, enforce_currency, enforce_price, optional_int, optional_text
from . import order_lifecycle
from .concurrency import lock_company, run_with_retry
from .lead_service import mark_converted
from .tenant_service import require_in_company
from kora.time_utils import parse_iso_datetime, utc_day_bounds, utcnow

ORDER_NUMBER_PREFIX = "ORD"
LIST_LIMIT = 500
MAX_NOTES_LENGTH = 2000
MAX_ITEM_NOTES_LENGTH = 500

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")


@dataclass(frozen=True)
class OrderFilter:
    """Enumerable set of list filters; every field maps to one WHERE clause."""
    status: str | None = None
    q: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    rep_company_user_id: int | None = None
    shop_id: int | None = None
    sort: str = "placed_at_desc"

    @classmethod
    def from_args(cls, args) -> "OrderFilter":
        """Build from request query args; malformed values are a 400."""
        status = (args.get("status") or "").strip() or None
        if status is not None:
            order_lifecycle.validate_status(status)

        def _date(key):
            raw = (args.get(key) or "").strip()
            if not raw:
                return None
            try:
                return parse_iso_datetime(raw)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 date or datetime")

        def _int(key):
            raw = (args.get(key) or "").strip()
            if not raw:
                return None
            if not raw.isdigit():
                raise ValidationError(f"{key} must be an integer id")
            return int(raw)

        sort = (args.get("sort") or "").strip()
        return cls(
            status=status,
            q=(args.get("q") or "").strip() or None,
            date_from=_date("date_from"),
            date_to=_date("date_to"),
            rep_company_user_id=_int("rep"),
            shop_id=_int("shop"),
            sort="placed_at_asc" if sort == "placed_at_asc" else "placed_at_desc",
        )


@dataclass
class LineInput:
    product_id: int | None
    product_name: str
    product_sku: str | None
    quantity: Decimal
    unit_price: Decimal
    notes: str | None


def format_order_number(moment: datetime, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{moment:%Y%m%d}-{sequence:04d}"


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (quantity * unit_price).quantize(CENT, rounding=ROUND_HALF_UP)


def order_total(lines) -> Decimal:
    total = sum((line.quantity * line.unit_price for line in lines), Decimal("0"))
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def _visible(query, *, role: str, company_user_id: int):
    if role == "rep":
        query = query.filter(Order.placed_by_company_user_id == company_user_id)
    return query


def parse_items(raw_items) -> list[LineInput]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")

    lines = []
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{prefix} must be an object")
        unknown = set(raw) - {"product_id", "product_name", "product_sku", "quantity", "unit_price", "notes"}
        if unknown:
            raise ValidationError(f"{prefix}: field not allowed: {sorted(unknown)[0]}")

        quantity = coerce_decimal(f"{prefix}.quantity", raw.get("quantity"))
        if quantity <= 0:
            raise ValidationError(f"{prefix}.quantity must be > 0")
        if quantity != quantity.quantize(QUANTITY_STEP):
            raise ValidationError(f"{prefix}.quantity allows at most 3 decimal places")

        unit_price = enforce_price(f"{prefix}.unit_price", raw.get("unit_price"))
        if unit_price != unit_price.quantize(CENT):
            raise ValidationError(f"{prefix}.unit_price allows at most 2 decimal places")

        lines.append(
            LineInput(
                product_id=optional_int(f"{prefix}.product_id", raw.get("product_id")),
                product_name=optional_text(f"{prefix}.product_name", raw.get("product_name"), 200) or "",
                product_sku=optional_text(f"{prefix}.product_sku", raw.get("product_sku"), 80),
                quantity=quantity,
                unit_price=unit_price,
                notes=optional_text(f"{prefix}.notes", raw.get("notes"), MAX_ITEM_NOTES_LENGTH),
            )
        )
    return lines


def _resolve_products(company_id: int, lines: list[LineInput]) -> None:
    """Check product refs belong to the tenant; fill missing name/SKU from the catalog."""
    for index, line in enumerate(lines):
        if line.product_id is None:
            if not line.product_name:
                raise ValidationError(f"items[{index}].product_name is required")
            continue
        product = require_in_company(Product, line.product_id, company_id, label="Product")
        if not line.product_name:
            line.product_name = product.name
        if line.product_sku is None:
            line.product_sku = product.sku


def create_order(
    *,
    company_id: int,
    placed_by_company_user_id: int,
    items,
    shop_id=None,
    lead_id=None,
    notes: str | None = None,
    currency_code: str | None = None,
) -> Order:
    lines = parse_items(items)
    notes = optional_text("notes", notes, MAX_NOTES_LENGTH)
    currency = enforce_currency(currency_code, current_app.config.get("DEFAULT_CURRENCY", "NPR"))
    shop_id = optional_int("shop_id", shop_id)
    lead_id = optional_int("lead_id", lead_id)

    if shop_id is not None:
        require_in_company(Shop, shop_id, company_id, label="Shop")
    if lead_id is not None:
        require_in_company(Lead, lead_id, company_id, label="Lead")
    _resolve_products(company_id, lines)

    total = order_total(lines)

    def _op() -> Order:
        lock_company(company_id)
        now = utcnow()
        day_start, day_end = utc_day_bounds(now)
        placed_today = (
            db.session.query(func.count(Order.id))
            .filter(Order.company_id == company_id, Order.placed_at >= day_start, Order.placed_at < day_end)
            .scalar()
            or 0
        )

        order = Order(
            company_id=company_id,
            order_number=format_order_number(now, placed_today + 1),
            shop_id=shop_id,
            lead_id=lead_id,
            placed_by_company_user_id=placed_by_company_user_id,
            status="received",
            notes=notes,
            total_amount=total,
            currency_code=currency,
            placed_at=now,
        )
        for line in lines:
            order.items.append(
                OrderItem(
                    company_id=company_id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    product_sku=line.product_sku,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line_total(line.quantity, line.unit_price),
                    notes=line.notes,
                )
            )
        db.session.add(order)

        if lead_id is not None:
            lead = db.session.query(Lead).filter_by(id=lead_id, company_id=company_id).with_for_update().one()
            if lead.status != "converted":
                mark_converted(lead)

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op, retry_on=(IntegrityError,))
    except IntegrityError:
        raise ConflictError("Could not allocate an order number, please retry")

    current_app.logger.info(
        "Order %s created for company %s (total %s %s)", order.order_number, company_id, total, currency
    )
    return order


def list_orders(*, company_id: int, role: str, company_user_id: int, filters: OrderFilter) -> list[Order]:
    query = (
        db.session.query(Order)
        .outerjoin(Shop, Shop.id == Order.shop_id)
        .outerjoin(CompanyUser, CompanyUser.id == Order.placed_by_company_user_id)
        .outerjoin(User, User.id == CompanyUser.user_id)
        .filter(Order.company_id == company_id)
    )
    query = _visible(query, role=role, company_user_id=company_user_id)

    if filters.status:
        query = query.filter(Order.status == filters.status)
    if filters.q:
        pattern = f"%{filters.q}%"
        query = query.filter(
            or_(Order.order_number.ilike(pattern), Shop.name.ilike(pattern), User.full_name.ilike(pattern))
        )
    if filters.date_from:
        query = query.filter(Order.placed_at >= filters.date_from)
    if filters.date_to:
        query = query.filter(Order.placed_at <= filters.date_to)
    if filters.rep_company_user_id:
        query = query.filter(Order.placed_by_company_user_id == filters.rep_company_user_id)
    if filters.shop_id:
        query = query.filter(Order.shop_id == filters.shop_id)

    ordering = Order.placed_at.asc() if filters.sort == "placed_at_asc" else Order.placed_at.desc()
    return query.order_by(ordering, Order.id.asc() if filters.sort == "placed_at_asc" else Order.id.desc()).limit(LIST_LIMIT).all()


def status_counts(*, company_id: int, role: str, company_user_id: int) -> dict:
    query = db.session.query(Order.status, func.count(Order.id)).filter(Order.company_id == company_id)
    query = _visible(query, role=role, company_user_id=company_user_id)
    counts = {status: 0 for status in order_lifecycle.VALID_STATUSES}
    for status, count in query.group_by(Order.status).all():
        if status in counts:
            counts[status] = count
    return counts


def get_order(*, company_id: int, order_id, role: str, company_user_id: int) -> Order:
    order = require_in_company(Order, order_id, company_id, label="Order")
    if role == "rep" and order.placed_by_company_user_id != company_user_id:
        raise NotFoundError("Order not found")
    return order


def _locked_order(company_id: int, order_id) -> Order:
    order = require_in_company(Order, order_id, company_id, label="Order")
    return db.session.query(Order).filter_by(id=order.id).with_for_update().populate_existing().one()


def update_order(*, company_id: int, order_id, payload: dict) -> Order:
    """
    Forward status step and/or notes edit.

    {"status": "processing" | "shipped" | "closed", "notes": "..."}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = set(payload) - {"status", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "status" not in payload and "notes" not in payload:
        raise ValidationError("No fields provided to update")

    order = _locked_order(company_id, order_id)

    if "status" in payload:
        requested = payload["status"]
        if not isinstance(requested, str):
            raise ValidationError("status must be a string")
        order_lifecycle.require_transition(order.status, requested)
        order.status = requested
        order_lifecycle.stamp(order, requested, utcnow())

    if "notes" in payload:
        order.notes = optional_text("notes", payload["notes"], MAX_NOTES_LENGTH)

    db.session.commit()
    return order


def cancel_order(*, company_id: int, order_id, cancelled_by_company_user_id: int, payload: dict) -> Order:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    reason = order_lifecycle.require_cancel_reason(payload.get("cancel_reason"))
    note = optional_text("cancel_note", payload.get("cancel_note"), MAX_NOTES_LENGTH)

    order = _locked_order(company_id, order_id)
    order_lifecycle.require_cancel(
        order.status, allow_after_ship=bool(current_app.config.get("ALLOW_CANCEL_AFTER_SHIP"))
    )

    order.status = "cancelled"
    order_lifecycle.stamp(order, "cancelled", utcnow())
    order.cancelled_by_company_user_id = cancelled_by_company_user_id
    order.cancel_reason = reason
    order.cancel_note = note
    db.session.commit()

    current_app.logger.info("Order %s cancelled (%s)", order.order_number, reason)
    return order
