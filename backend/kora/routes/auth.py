# Overview: Flask API routes for tenant auth; signup, email verification, login and session info.

"""
Tenant Authentication API routes

SECURITY FEATURES:
- bcrypt password hashes, password length 8..128
- Login requires a verified email
- Signed, HTTP-only, same-site session cookie; role and subscription are
  re-derived from the database on every request
- Failed logins return one uniform message and are written to security_events
"""

import time
from urllib.parse import urlencode

from flask import Blueprint, current_app, g, jsonify, redirect, request

from ..cookies import clear_session_cookie, public_url, set_session_cookie
from ..decorators import require_tenant
from ..errors import AuthenticationError, ValidationError
from ..permissions import get_role_permissions
from ..services import auth_service, mail_service, permission_service, session_service
from ..validation import (
    NEPAL_PHONE_RE,
    normalize_email,
    optional_text,
    require_choice,
    require_json_object,
    slugify,
    validate_password,
)

SIGNUP_ROLES = ("boss", "manager")

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _required_text(payload: dict, key: str, min_length: int, max_length: int) -> str:
    value = optional_text(key, payload.get(key), max_length)
    if value is None:
        raise ValidationError(f"{key} is required")
    if len(value) < min_length:
        raise ValidationError(f"{key} must be at least {min_length} characters")
    return value


def _send_verification(user) -> bool:
    token = auth_service.issue_email_verification_token(user)
    link = public_url(f"/api/auth/verify-email?{urlencode({'token': token})}")
    return mail_service.send_verification(email=user.email, name=user.full_name, link=link)


@auth_bp.post("/signup-company")
def signup_company_route():
    """
    Create a company and its founding boss/manager in one transaction.

    Body: {company_name, company_slug?, full_name, email, password, phone, role?}
    """
    payload = require_json_object(request.get_json(silent=True))

    company_name = _required_text(payload, "company_name", 2, 120)
    full_name = _required_text(payload, "full_name", 2, 120)
    email = normalize_email(payload.get("email"))
    password = validate_password(payload.get("password"))
    role = require_choice("role", payload.get("role") or "manager", SIGNUP_ROLES)

    phone = payload.get("phone")
    if not isinstance(phone, str) or not NEPAL_PHONE_RE.match(phone.strip()):
        raise ValidationError("Phone must be in +977XXXXXXXXXX format")

    slug_source = optional_text("company_slug", payload.get("company_slug"), 80) or company_name
    company_slug = slugify(slug_source) or f"company-{int(time.time())}"

    company, user, membership = auth_service.signup_company(
        company_name=company_name,
        company_slug=company_slug,
        full_name=full_name,
        email=email,
        password=password,
        phone=phone.strip(),
        role=role,
    )

    verification_sent = False
    if user.email_verified_at is None:
        verification_sent = _send_verification(user)

    current_app.logger.info("Company %s signed up by %s", company.slug, user.email)
    return jsonify({
        "ok": True,
        "company": company.to_dict(),
        "membership": membership.to_dict(),
        "verification_sent": verification_sent,
    }), 201


@auth_bp.get("/verify-email")
def verify_email_route():
    """Redeem a verification link and bounce to the login page."""
    try:
        auth_service.consume_email_verification_token(request.args.get("token"))
    except ValidationError as e:
        return redirect("/auth/login?" + urlencode({"error": e.message}))
    return redirect("/auth/login?verified=true")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and open a tenant session.

    Body: {email, password, company_slug?}
    A user with several active memberships must pass company_slug.
    """
    payload = require_json_object(request.get_json(silent=True))
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
        raise ValidationError("email and password are required")
    email = email.strip().lower()

    try:
        user = auth_service.authenticate_user(email, password)
    except AuthenticationError:
        permission_service.log_security_event(
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=f"Invalid credentials for {email}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        raise

    membership = auth_service.resolve_login_membership(user, optional_text("company_slug", payload.get("company_slug"), 80))
    auth_service.record_login(user)

    token = session_service.create_tenant_token(membership)
    response = jsonify({
        "ok": True,
        "user": user.to_dict(),
        "role": membership.role,
        "permissions": get_role_permissions(membership.role),
        "company": membership.company.to_dict(),
        "company_user_id": membership.id,
    })
    return set_session_cookie(
        response,
        current_app.config["TENANT_SESSION_COOKIE_NAME"],
        token,
        session_service.tenant_session_ttl(),
    )


@auth_bp.post("/logout")
def logout_route():
    response = jsonify({"ok": True})
    return clear_session_cookie(response, current_app.config["TENANT_SESSION_COOKIE_NAME"])


@auth_bp.get("/me")
@require_tenant
def me_route():
    tenant = g.tenant
    company = tenant.company
    return jsonify({
        "ok": True,
        "user": tenant.user.to_dict(),
        "role": tenant.role,
        "permissions": get_role_permissions(tenant.role),
        "company_user_id": tenant.company_user_id,
        "company": {
            "id": company.id,
            "name": company.name,
            "slug": company.slug,
            "subscription_ends_at": company.to_dict()["subscription_ends_at"],
            "staff_limit": company.staff_limit,
        },
    })
