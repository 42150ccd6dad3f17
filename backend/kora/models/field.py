from __future__ import annotations

from ..extensions import db
from kora.time_utils import to_utc_z

LOCATION_SOURCES = ("manual_pin", "gps_capture", "imported")
LEAD_STATUSES = ("new", "contacted", "qualified", "converted", "lost")


class Shop(db.Model):
    """
    A customer location reps visit, with its geofence.

    MULTI-TENANT: Shops belong to one company; external_shop_code is unique
    within a company, not globally.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.UniqueConstraint("company_id", "external_shop_code", name="uq_shops_company_code"),
        db.CheckConstraint(
            "location_source IN ('manual_pin', 'gps_capture', 'imported')",
            name="ck_shops_location_source",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    external_shop_code = db.Column(db.String(80), nullable=True)
    name = db.Column(db.String(150), nullable=False)
    contact_name = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(500), nullable=True)

    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    geofence_radius_m = db.Column(db.Integer, nullable=False, default=60)
    location_source = db.Column(db.String(16), nullable=False, default="manual_pin")
    location_verified = db.Column(db.Boolean, nullable=False, default=False)
    location_accuracy_m = db.Column(db.Float, nullable=True)

    # Arrival prompt tuning for the mobile client
    arrival_prompt_enabled = db.Column(db.Boolean, nullable=False, default=True)
    min_dwell_seconds = db.Column(db.Integer, nullable=False, default=120)
    cooldown_minutes = db.Column(db.Integer, nullable=False, default=30)
    timezone = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("shops", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "external_shop_code": self.external_shop_code,
            "name": self.name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "geofence_radius_m": self.geofence_radius_m,
            "location_source": self.location_source,
            "location_verified": self.location_verified,
            "location_accuracy_m": self.location_accuracy_m,
            "arrival_prompt_enabled": self.arrival_prompt_enabled,
            "min_dwell_seconds": self.min_dwell_seconds,
            "cooldown_minutes": self.cooldown_minutes,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ShopAssignment(db.Model):
    """
    Rep coverage of a shop.

    At most one row per (company, shop, rep); at most one primary rep per
    shop (enforced in shop_service.assign_shop).
    """
    __tablename__ = "shop_assignments"
    __table_args__ = (
        db.UniqueConstraint(
            "company_id", "shop_id", "rep_company_user_id", name="uq_shop_assignments_company_shop_rep"
        ),
        db.Index("ix_shop_assignments_rep", "company_id", "rep_company_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    rep_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("assignments", lazy=True))
    rep = db.relationship("CompanyUser", backref=db.backref("shop_assignments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "rep_company_user_id": self.rep_company_user_id,
            "is_primary": self.is_primary,
            "assigned_at": to_utc_z(self.assigned_at),
        }


class Lead(db.Model):
    """
    Pre-sale prospect.

    A lead converts exactly once: either into a new Shop (convert-to-shop)
    or by having an order placed against it. converted_at is set once.
    """
    __tablename__ = "leads"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('new', 'contacted', 'qualified', 'converted', 'lost')", name="ck_leads_status"
        ),
        db.Index("ix_leads_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(150), nullable=False)
    contact_name = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="new")
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True)
    assigned_rep_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=True)
    created_by_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=True)
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "status": self.status,
            "shop_id": self.shop_id,
            "assigned_rep_company_user_id": self.assigned_rep_company_user_id,
            "created_by_company_user_id": self.created_by_company_user_id,
            "converted_at": to_utc_z(self.converted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
