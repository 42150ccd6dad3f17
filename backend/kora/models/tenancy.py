from __future__ import annotations

from ..extensions import db
from kora.time_utils import to_utc_z

COMPANY_USER_ROLES = ("boss", "manager", "rep", "back_office")
COMPANY_USER_STATUSES = ("invited", "active", "inactive")
PAYMENT_KINDS = ("payment", "complimentary", "grace")


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    DESIGN:
    - All tenant-owned rows carry company_id and every query filters on it
    - staff_limit counts purchasable seats; one manager seat is always reserved
      on top (see staff_service.ensure_seat_available)
    - Subscription is expired when suspended, never started (NULL end) or lapsed
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(80), nullable=False, unique=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    plan = db.Column(db.String(32), nullable=False, default="standard")
    address = db.Column(db.String(500), nullable=True)

    staff_limit = db.Column(db.Integer, nullable=False, default=5)

    subscription_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    subscription_suspended = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "status": self.status,
            "plan": self.plan,
            "address": self.address,
            "staff_limit": self.staff_limit,
            "subscription_ends_at": to_utc_z(self.subscription_ends_at),
            "subscription_suspended": bool(self.subscription_suspended),
            "created_at": to_utc_z(self.created_at),
        }


class CompanyUser(db.Model):
    """
    Membership: links one User to one Company with a role.

    Lifecycle: invited -> active (on email verification or forced by a
    boss/manager) -> inactive (deactivation). A User holds at most one
    membership per Company.
    """
    __tablename__ = "company_users"
    __table_args__ = (
        db.UniqueConstraint("company_id", "user_id", name="uq_company_users_company_user"),
        db.CheckConstraint(
            "role IN ('boss', 'manager', 'rep', 'back_office')", name="ck_company_users_role"
        ),
        db.CheckConstraint(
            "status IN ('invited', 'active', 'inactive')", name="ck_company_users_status"
        ),
        db.Index("ix_company_users_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    role = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="invited")
    phone = db.Column(db.String(20), nullable=True)

    # Supervisor (a boss or manager in the same company)
    manager_company_user_id = db.Column(db.Integer, db.ForeignKey("company_users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("memberships", lazy=True))
    user = db.relationship("User", backref=db.backref("memberships", lazy=True))
    manager = db.relationship("CompanyUser", remote_side=[id])

    def __repr__(self) -> str:
        return f"<CompanyUser id={self.id} company_id={self.company_id} role={self.role}>"

    def to_dict(self) -> dict:
        user = self.user
        return {
            "company_user_id": self.id,
            "user_id": self.user_id,
            "full_name": user.full_name if user else None,
            "email": user.email if user else None,
            "role": self.role,
            "status": self.status,
            "phone": self.phone,
            "manager_company_user_id": self.manager_company_user_id,
            "email_verified_at": to_utc_z(user.email_verified_at) if user else None,
            "last_login_at": to_utc_z(user.last_login_at) if user else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CompanyPayment(db.Model):
    """
    Audit row for every subscription extension a boss records.

    Exactly one of months_added / days_added is set. kind separates paid
    time from grace and complimentary time; the arithmetic is identical.
    """
    __tablename__ = "company_payments"
    __table_args__ = (
        db.CheckConstraint(
            "(months_added IS NULL) <> (days_added IS NULL)", name="ck_company_payments_one_unit"
        ),
        db.CheckConstraint(
            "kind IN ('payment', 'complimentary', 'grace')", name="ck_company_payments_kind"
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    months_added = db.Column(db.Integer, nullable=True)
    days_added = db.Column(db.Integer, nullable=True)
    kind = db.Column(db.String(16), nullable=False)

    amount_notes = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    recorded_by_boss_id = db.Column(db.Integer, db.ForeignKey("bosses.id", ondelete="SET NULL"), nullable=True)

    # Subscription end before and after, for reconciliation
    previous_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    new_ends_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("payments", lazy=True))
    recorded_by = db.relationship("Boss")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "months_added": self.months_added,
            "days_added": self.days_added,
            "kind": self.kind,
            "amount_notes": self.amount_notes,
            "notes": self.notes,
            "recorded_by_boss_id": self.recorded_by_boss_id,
            "previous_ends_at": to_utc_z(self.previous_ends_at),
            "new_ends_at": to_utc_z(self.new_ends_at),
            "created_at": to_utc_z(self.created_at),
        }
