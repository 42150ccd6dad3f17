# Overview: Service-layer operations for staff; invites, seat accounting, updates and deactivation.

"""
Staff Membership Service

SEAT ACCOUNTING:
    membership_count < staff_limit + 1

One seat on top of staff_limit is reserved for the founding manager. Every
membership counts, whatever its status. The check runs under a lock on the
company row, so two concurrent invites cannot both take the last seat.

DEACTIVATION GUARD:
A member who still covers shops cannot be deactivated without an active rep
to take those shops over. Reassignment and the status flip commit together.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Company, CompanyUser, ShopAssignment, User
from ..models.tenancy import COMPANY_USER_STATUSES
from ..errors import CapacityError, ConflictError, ValidationError
from .auth_service import generate_password, hash_password
from .concurrency import lock_company
from .tenant_service import require_member, require_rep

INVITABLE_ROLES = ("manager", "rep", "back_office")
SUPERVISOR_ROLES = ("boss", "manager")


@dataclass
class Invitation:
    """Result of an invite; password is the plaintext to mail, never stored."""
    membership: CompanyUser
    user: User
    password: str


def seat_limit(company: Company) -> int:
    return (company.staff_limit if company.staff_limit is not None else 5) + 1


def membership_count(company_id: int) -> int:
    return db.session.query(func.count(CompanyUser.id)).filter_by(company_id=company_id).scalar() or 0


def ensure_seat_available(company: Company) -> None:
    """Raise CapacityError when the company has no free seat left."""
    total_allowed = seat_limit(company)
    if membership_count(company.id) >= total_allowed:
        raise CapacityError(
            f"Staff limit reached. Your plan allows 1 manager + {total_allowed - 1} staff "
            f"({total_allowed} users total). Contact support to increase your limit."
        )


def _require_supervisor(company_id: int, manager_company_user_id) -> CompanyUser:
    supervisor = db.session.get(CompanyUser, manager_company_user_id) if isinstance(manager_company_user_id, int) else None
    if (
        supervisor is None
        or supervisor.company_id != company_id
        or supervisor.role not in SUPERVISOR_ROLES
    ):
        raise ValidationError("manager_company_user_id must reference a boss or manager in this company")
    return supervisor


def list_staff(*, company_id: int, q: str | None = None, status: str | None = None, role: str | None = None) -> dict:
    shop_counts = (
        db.session.query(
            ShopAssignment.rep_company_user_id.label("company_user_id"),
            func.count(ShopAssignment.id).label("assigned_shops_count"),
        )
        .filter(ShopAssignment.company_id == company_id)
        .group_by(ShopAssignment.rep_company_user_id)
        .subquery()
    )

    query = (
        db.session.query(CompanyUser, func.coalesce(shop_counts.c.assigned_shops_count, 0))
        .join(User, User.id == CompanyUser.user_id)
        .outerjoin(shop_counts, shop_counts.c.company_user_id == CompanyUser.id)
        .filter(CompanyUser.company_id == company_id)
    )
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                CompanyUser.phone.ilike(pattern),
            )
        )
    if status in COMPANY_USER_STATUSES:
        query = query.filter(CompanyUser.status == status)
    if role in ("boss",) + INVITABLE_ROLES:
        query = query.filter(CompanyUser.role == role)

    rows = query.order_by(CompanyUser.created_at.desc(), CompanyUser.id.desc()).all()

    counts = {key: 0 for key in ("active", "invited", "inactive")}
    for row_status, count in (
        db.session.query(CompanyUser.status, func.count(CompanyUser.id))
        .filter(CompanyUser.company_id == company_id)
        .group_by(CompanyUser.status)
        .all()
    ):
        if row_status in counts:
            counts[row_status] = count

    staff = []
    for membership, assigned in rows:
        item = membership.to_dict()
        item["assigned_shops_count"] = int(assigned or 0)
        staff.append(item)
    return {"staff": staff, "counts": counts}


def invite_staff(
    *,
    company_id: int,
    full_name: str,
    email: str,
    phone: str,
    role: str = "rep",
    manager_company_user_id: int | None = None,
) -> Invitation:
    """
    Add a staff member as "invited" with a generated password.

    An existing User (same email, e.g. working for another company) is
    reused; their name and password are replaced with the new ones.
    """
    if role not in INVITABLE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(INVITABLE_ROLES)}")

    company = lock_company(company_id)
    ensure_seat_available(company)

    if manager_company_user_id is not None:
        _require_supervisor(company_id, manager_company_user_id)

    password = generate_password()
    password_hash = hash_password(password)

    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        user = User(email=email, full_name=full_name, password_hash=password_hash)
        db.session.add(user)
    else:
        user.full_name = full_name
        user.password_hash = password_hash

    membership = CompanyUser(
        company_id=company_id,
        user=user,
        role=role,
        status="invited",
        phone=phone,
        manager_company_user_id=manager_company_user_id,
    )
    db.session.add(membership)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This user is already a member of the company")

    current_app.logger.info("Invited %s as %s to company %s", email, role, company_id)
    return Invitation(membership=membership, user=user, password=password)


def update_staff(*, company_id: int, company_user_id: int, patch: dict) -> CompanyUser:
    """
    Apply a validated staff patch.

    User-level fields (full_name, email) change the global identity; a new
    email must be re-verified.
    """
    membership = require_member(company_user_id, company_id)
    user = membership.user

    leaves_coverage = (
        (patch.get("status") == "inactive" and membership.status != "inactive")
        or ("role" in patch and patch["role"] != "rep" and membership.role == "rep")
    )
    if leaves_coverage:
        covered = (
            db.session.query(ShopAssignment.id)
            .filter_by(company_id=company_id, rep_company_user_id=membership.id)
            .count()
        )
        if covered:
            if patch.get("status") == "inactive":
                raise ValidationError(
                    "This rep has assigned shops. Use /deactivate with reassign_to_staff_id instead."
                )
            raise ValidationError("Reassign this rep's shops before changing their role")

    if "manager_company_user_id" in patch and patch["manager_company_user_id"] is not None:
        if patch["manager_company_user_id"] == membership.id:
            raise ValidationError("A staff member cannot supervise themselves")
        _require_supervisor(company_id, patch["manager_company_user_id"])

    if "full_name" in patch:
        user.full_name = patch["full_name"]

    if "email" in patch and patch["email"] != user.email:
        clash = db.session.query(User.id).filter(User.email == patch["email"], User.id != user.id).first()
        if clash:
            raise ConflictError("Email is already in use")
        user.email = patch["email"]
        user.email_verified_at = None

    for key in ("role", "status", "phone", "manager_company_user_id"):
        if key in patch:
            setattr(membership, key, patch[key])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email is already in use")
    return membership


def activate_staff(*, company_id: int, company_user_id: int) -> CompanyUser:
    membership = require_member(company_user_id, company_id)
    membership.status = "active"
    db.session.commit()
    return membership


def deactivate_staff(*, company_id: int, company_user_id: int, reassign_to_staff_id: int | None = None) -> dict:
    """
    Deactivate a member, moving their shop coverage to `reassign_to_staff_id`.

    If the replacement already covers one of the shops, the two assignments
    merge into the replacement's row and the primary flag survives.
    """
    membership = require_member(company_user_id, company_id)

    assignments = (
        db.session.query(ShopAssignment)
        .filter_by(company_id=company_id, rep_company_user_id=membership.id)
        .with_for_update()
        .all()
    )

    reassigned = 0
    if assignments:
        if reassign_to_staff_id is None:
            raise ValidationError(
                "This rep has assigned shops. Provide reassign_to_staff_id to reassign them before deactivating."
            )
        if reassign_to_staff_id == membership.id:
            raise ValidationError("reassign_to_staff_id must be a different rep")
        replacement = require_rep(reassign_to_staff_id, company_id, active=True, label="reassign_to_staff_id")

        existing = {
            a.shop_id: a
            for a in db.session.query(ShopAssignment)
            .filter_by(company_id=company_id, rep_company_user_id=replacement.id)
            .all()
        }
        for assignment in assignments:
            already = existing.get(assignment.shop_id)
            if already is not None:
                already.is_primary = bool(already.is_primary or assignment.is_primary)
                db.session.delete(assignment)
            else:
                assignment.rep_company_user_id = replacement.id
            reassigned += 1

    membership.status = "inactive"
    db.session.commit()

    current_app.logger.info(
        "Deactivated company_user %s in company %s (%s assignment(s) reassigned)",
        membership.id, company_id, reassigned,
    )
    return {"company_user_id": membership.id, "status": membership.status, "reassigned_assignments": reassigned}


def reset_invite(*, company_id: int, company_user_id: int) -> Invitation:
    """Issue a fresh generated password for a member so the invite can be resent."""
    membership = require_member(company_user_id, company_id)
    if membership.status == "inactive":
        raise ValidationError("Cannot resend an invite to an inactive staff member")
    password = generate_password()
    membership.user.password_hash = hash_password(password)
    db.session.commit()
    return Invitation(membership=membership, user=membership.user, password=password)
