# Overview: Flask API routes for staff management; invites, edits, activation and deactivation.

"""
Staff management routes.

MULTI-TENANT: every route works on memberships of g.tenant.company_id.

SECURITY:
- Listing requires VIEW_STAFF (boss, manager, back_office)
- Every mutation requires MANAGE_STAFF (boss, manager)
"""

from urllib.parse import urlencode

from flask import Blueprint, g, jsonify, request

from ..cookies import public_url
from ..decorators import require_permission, require_tenant
from ..errors import ValidationError
from ..models.tenancy import COMPANY_USER_STATUSES
from ..services import auth_service, mail_service, staff_service
from ..validation import (
    normalize_email,
    normalize_phone,
    optional_int,
    optional_text,
    require_choice,
    require_json_object,
)

STAFF_FIELDS = {"full_name", "email", "phone", "role", "status", "manager_company_user_id"}

staff_bp = Blueprint("staff", __name__, url_prefix="/api/manager/staff")


def _full_name(value) -> str:
    name = optional_text("full_name", value, 120)
    if name is None or len(name) < 2:
        raise ValidationError("full_name must be at least 2 characters")
    return name


def _deliver_invitation(invitation) -> dict:
    """Credentials and verification mails, after the invite has committed."""
    user = invitation.user
    company = invitation.membership.company
    credentials_sent = mail_service.send_credentials(
        email=user.email,
        name=user.full_name,
        company_name=company.name,
        password=invitation.password,
        login_link=public_url("/auth/login"),
    )
    verification_sent = False
    if user.email_verified_at is None:
        token = auth_service.issue_email_verification_token(user)
        verification_sent = mail_service.send_verification(
            email=user.email,
            name=user.full_name,
            link=public_url(f"/api/auth/verify-email?{urlencode({'token': token})}"),
        )
    return {"credentials_sent": credentials_sent, "verification_sent": verification_sent}


@staff_bp.get("")
@require_tenant
@require_permission("VIEW_STAFF")
def list_staff_route():
    """
    Query params: q (name/email/phone), status, role
    """
    status = (request.args.get("status") or "").strip() or None
    if status is not None:
        require_choice("status", status, COMPANY_USER_STATUSES)
    result = staff_service.list_staff(
        company_id=g.tenant.company_id,
        q=(request.args.get("q") or "").strip() or None,
        status=status,
        role=(request.args.get("role") or "").strip() or None,
    )
    return jsonify({"ok": True, **result})


@staff_bp.post("")
@require_tenant
@require_permission("MANAGE_STAFF")
def invite_staff_route():
    payload = require_json_object(request.get_json(silent=True))
    unknown = set(payload) - {"full_name", "email", "phone", "role", "manager_company_user_id"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    invitation = staff_service.invite_staff(
        company_id=g.tenant.company_id,
        full_name=_full_name(payload.get("full_name")),
        email=normalize_email(payload.get("email")),
        phone=normalize_phone(payload.get("phone")),
        role=payload.get("role") or "rep",
        manager_company_user_id=optional_int("manager_company_user_id", payload.get("manager_company_user_id")),
    )
    delivery = _deliver_invitation(invitation)
    return jsonify({"ok": True, "staff": invitation.membership.to_dict(), **delivery}), 201


@staff_bp.patch("/<int:company_user_id>")
@require_tenant
@require_permission("MANAGE_STAFF")
def update_staff_route(company_user_id: int):
    payload = require_json_object(request.get_json(silent=True))
    unknown = set(payload) - STAFF_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if not payload:
        raise ValidationError("No fields provided to update")

    patch = {}
    if "full_name" in payload:
        patch["full_name"] = _full_name(payload["full_name"])
    if "email" in payload:
        patch["email"] = normalize_email(payload["email"])
    if "phone" in payload:
        patch["phone"] = normalize_phone(payload["phone"])
    if "role" in payload:
        patch["role"] = require_choice("role", payload["role"], staff_service.INVITABLE_ROLES)
    if "status" in payload:
        patch["status"] = require_choice("status", payload["status"], COMPANY_USER_STATUSES)
    if "manager_company_user_id" in payload:
        patch["manager_company_user_id"] = optional_int(
            "manager_company_user_id", payload["manager_company_user_id"]
        )

    membership = staff_service.update_staff(
        company_id=g.tenant.company_id, company_user_id=company_user_id, patch=patch
    )
    return jsonify({"ok": True, "staff": membership.to_dict()})


@staff_bp.post("/<int:company_user_id>/activate")
@require_tenant
@require_permission("MANAGE_STAFF")
def activate_staff_route(company_user_id: int):
    membership = staff_service.activate_staff(company_id=g.tenant.company_id, company_user_id=company_user_id)
    return jsonify({"ok": True, "staff": membership.to_dict()})


@staff_bp.post("/<int:company_user_id>/deactivate")
@require_tenant
@require_permission("MANAGE_STAFF")
def deactivate_staff_route(company_user_id: int):
    """Body: {reassign_to_staff_id?} required when the member still covers shops."""
    payload = request.get_json(silent=True) or {}
    payload = require_json_object(payload)
    result = staff_service.deactivate_staff(
        company_id=g.tenant.company_id,
        company_user_id=company_user_id,
        reassign_to_staff_id=optional_int("reassign_to_staff_id", payload.get("reassign_to_staff_id")),
    )
    return jsonify({"ok": True, **result})


@staff_bp.post("/<int:company_user_id>/resend-invite")
@require_tenant
@require_permission("MANAGE_STAFF")
def resend_invite_route(company_user_id: int):
    invitation = staff_service.reset_invite(company_id=g.tenant.company_id, company_user_id=company_user_id)
    delivery = _deliver_invitation(invitation)
    return jsonify({"ok": True, "staff": invitation.membership.to_dict(), **delivery})
