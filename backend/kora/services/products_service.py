# backend/kora/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: Every product and price row carries company_id; lookups go
through require_in_company.

PRICING: ProductPrice rows are time windows. Repricing closes the open
window at now and opens a new one starting now, so history is preserved
and exactly one window is current at any moment.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderItem, Product, ProductPrice
from ..errors import ConflictError, ValidationError
from .tenant_service import require_in_company
from kora.time_utils import as_utc_naive, utcnow

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "unit", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _current_window_filter(now: datetime):
    return (
        ProductPrice.starts_at <= now,
        or_(ProductPrice.ends_at.is_(None), ProductPrice.ends_at > now),
    )


def current_prices(company_id: int, product_ids=None, now: datetime | None = None) -> dict[int, ProductPrice]:
    """Map product_id -> the current ProductPrice (most recently started open window)."""
    now = now or utcnow()
    query = db.session.query(ProductPrice).filter(
        ProductPrice.company_id == company_id, *_current_window_filter(now)
    )
    if product_ids is not None:
        query = query.filter(ProductPrice.product_id.in_(list(product_ids)))

    current: dict[int, ProductPrice] = {}
    for price in query.order_by(ProductPrice.starts_at.asc(), ProductPrice.id.asc()).all():
        current[price.product_id] = price
    return current


def order_counts(company_id: int) -> dict[int, int]:
    rows = (
        db.session.query(OrderItem.product_id, func.count(func.distinct(OrderItem.order_id)))
        .filter(OrderItem.company_id == company_id, OrderItem.product_id.isnot(None))
        .group_by(OrderItem.product_id)
        .all()
    )
    return {product_id: count for product_id, count in rows}


def _with_pricing(p: Product, price: ProductPrice | None, order_count: int) -> dict:
    data = p.to_dict()
    data["current_price"] = float(price.price) if price else None
    data["currency_code"] = price.currency_code if price else None
    data["order_count"] = order_count
    return data


def list_products(*, company_id: int, q: str | None = None, status: str | None = None) -> list[dict]:
    query = db.session.query(Product).filter(Product.company_id == company_id)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if status == "active":
        query = query.filter(Product.is_active.is_(True))
    elif status == "inactive":
        query = query.filter(Product.is_active.is_(False))

    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    prices = current_prices(company_id, [p.id for p in products]) if products else {}
    counts = order_counts(company_id)
    return [_with_pricing(p, prices.get(p.id), counts.get(p.id, 0)) for p in products]


def get_product(*, company_id: int, product_id) -> dict:
    p = require_in_company(Product, product_id, company_id, label="Product")
    prices = current_prices(company_id, [p.id])
    data = _with_pricing(p, prices.get(p.id), order_counts(company_id).get(p.id, 0))
    history = (
        db.session.query(ProductPrice)
        .filter_by(company_id=company_id, product_id=p.id)
        .order_by(ProductPrice.starts_at.desc(), ProductPrice.id.desc())
        .all()
    )
    data["prices"] = [price.to_dict() for price in history]
    return data


def create_product(
    *, company_id: int, patch: dict, price: Decimal | None = None, currency_code: str = "NPR"
) -> dict:
    """
    Create product using a validated patch dict, with an optional opening price.

    Raises:
        ConflictError: If SKU already exists in the company
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")

    existing = db.session.query(Product.id).filter_by(company_id=company_id, sku=sku).first()
    if existing:
        raise ConflictError("A product with this SKU already exists")

    p = Product(company_id=company_id)
    apply_product_patch(p, patch)
    db.session.add(p)

    opening = None
    if price is not None:
        opening = ProductPrice(
            company_id=company_id,
            product=p,
            price=price,
            currency_code=currency_code,
            starts_at=utcnow(),
        )
        db.session.add(opening)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A product with this SKU already exists")
    return _with_pricing(p, opening, 0)


def update_product(*, company_id: int, product_id, patch: dict) -> dict:
    p = require_in_company(Product, product_id, company_id, label="Product")

    if "sku" in patch and patch["sku"] != p.sku:
        clash = (
            db.session.query(Product.id)
            .filter(Product.company_id == company_id, Product.sku == patch["sku"], Product.id != p.id)
            .first()
        )
        if clash:
            raise ConflictError("A product with this SKU already exists")

    apply_product_patch(p, patch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A product with this SKU already exists")
    return get_product(company_id=company_id, product_id=p.id)


def set_price(*, company_id: int, product_id, price: Decimal, currency_code: str) -> dict:
    """Close the open window(s) at now and open a new one starting now."""
    p = require_in_company(Product, product_id, company_id, label="Product")
    now = utcnow()

    open_windows = (
        db.session.query(ProductPrice)
        .filter(
            ProductPrice.company_id == company_id,
            ProductPrice.product_id == p.id,
            or_(ProductPrice.ends_at.is_(None), ProductPrice.ends_at > now),
        )
        .with_for_update()
        .all()
    )
    for window in open_windows:
        window.ends_at = max(now, as_utc_naive(window.starts_at))

    db.session.add(
        ProductPrice(
            company_id=company_id,
            product=p,
            price=price,
            currency_code=currency_code,
            starts_at=now,
        )
    )
    db.session.commit()
    return get_product(company_id=company_id, product_id=p.id)


def delete_product(*, company_id: int, product_id) -> None:
    """Delete a product and its price history; refused once any order references it."""
    p = require_in_company(Product, product_id, company_id, label="Product")

    used = db.session.query(OrderItem.id).filter_by(company_id=company_id, product_id=p.id).first()
    if used:
        raise ValidationError("Product is used in orders and cannot be deleted. Deactivate it instead.")

    db.session.delete(p)
    db.session.commit()
