from __future__ import annotations

from ..extensions import db
from kora.time_utils import to_utc_z
from .catalog import as_number

ORDER_STATUSES = ("received", "processing", "shipped", "closed", "cancelled")


class Order(db.Model):
    """
    Customer order placed by a rep (or manager/boss).

    STATE MACHINE: received -> processing -> shipped -> closed, with
    cancelled reachable from received/processing (and shipped when the
    ALLOW_CANCEL_AFTER_SHIP policy is on). See services/order_lifecycle.py.

    order_number is ORD-YYYYMMDD-NNNN, unique per company.
    total_amount is computed once at creation from the items.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("company_id", "order_number", name="uq_orders_company_number"),
        db.CheckConstraint(
            "status IN ('received', 'processing', 'shipped', 'closed', 'cancelled')",
            name="ck_orders_status",
        ),
        db.Index("ix_orders_company_placed", "company_id", "placed_at"),
        db.Index("ix_orders_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True)
    lead_id = db.Column(db.Integer, db.ForeignKey("leads.id"), nullable=True)
    placed_by_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="received")
    notes = db.Column(db.Text, nullable=True)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    currency_code = db.Column(db.String(3), nullable=False, default="NPR")

    # Lifecycle timestamps (each set once)
    placed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cancelled_by_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=True)
    cancel_reason = db.Column(db.String(100), nullable=True)
    cancel_note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop")
    lead = db.relationship("Lead")
    placed_by = db.relationship("CompanyUser", foreign_keys=[placed_by_company_user_id])
    cancelled_by = db.relationship("CompanyUser", foreign_keys=[cancelled_by_company_user_id])
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        placed_by_user = self.placed_by.user if self.placed_by else None
        cancelled_by_user = self.cancelled_by.user if self.cancelled_by else None
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "notes": self.notes,
            "total_amount": as_number(self.total_amount),
            "currency_code": self.currency_code,
            "placed_at": to_utc_z(self.placed_at),
            "processed_at": to_utc_z(self.processed_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "closed_at": to_utc_z(self.closed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "cancel_note": self.cancel_note,
            "cancelled_by_company_user_id": self.cancelled_by_company_user_id,
            "cancelled_by_name": cancelled_by_user.full_name if cancelled_by_user else None,
            "shop_id": self.shop_id,
            "shop_name": self.shop.name if self.shop else None,
            "lead_id": self.lead_id,
            "lead_name": self.lead.name if self.lead else None,
            "placed_by_company_user_id": self.placed_by_company_user_id,
            "placed_by_name": placed_by_user.full_name if placed_by_user else None,
            "items_count": len(self.items),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Order line. Product name/SKU are snapshots: later catalog edits or
    deletion never change what was ordered. product_id is optional so
    free-text lines are allowed.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.Index("ix_order_items_company_product", "company_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product_name = db.Column(db.String(200), nullable=False)
    product_sku = db.Column(db.String(80), nullable=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": as_number(self.quantity),
            "unit_price": as_number(self.unit_price),
            "line_total": as_number(self.line_total),
            "notes": self.notes,
        }
