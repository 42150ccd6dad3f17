# Overview: Flask API routes for the platform boss surface; auth, tenant overview, subscriptions, boss accounts.

"""
Boss (platform operator) routes.

SECURITY:
- Boss cookie only; tenant sessions never reach these handlers
- No tenant scoping: bosses manage every company
- Failed boss logins are written to security_events as BOSS_LOGIN_FAILED
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..cookies import clear_session_cookie, set_session_cookie
from ..decorators import require_boss
from ..errors import AuthenticationError, ValidationError
from ..services import auth_service, boss_service, permission_service, session_service, subscription_service
from ..validation import require_json_object

boss_bp = Blueprint("boss", __name__, url_prefix="/api/boss")


@boss_bp.post("/auth/login")
def boss_login_route():
    payload = require_json_object(request.get_json(silent=True))
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
        raise ValidationError("email and password are required")
    email = email.strip().lower()

    try:
        boss = auth_service.authenticate_boss(email, password)
    except AuthenticationError:
        permission_service.log_security_event(
            event_type="BOSS_LOGIN_FAILED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=f"Invalid credentials for {email}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        raise

    response = jsonify({"ok": True, "boss": boss.to_dict()})
    return set_session_cookie(
        response,
        current_app.config["BOSS_SESSION_COOKIE_NAME"],
        session_service.create_boss_token(boss),
        session_service.boss_session_ttl(),
    )


@boss_bp.post("/auth/logout")
def boss_logout_route():
    response = jsonify({"ok": True})
    return clear_session_cookie(response, current_app.config["BOSS_SESSION_COOKIE_NAME"])


@boss_bp.get("/auth/me")
@require_boss
def boss_me_route():
    return jsonify({"ok": True, "boss": g.boss.boss.to_dict()})


@boss_bp.get("/companies")
@require_boss
def list_companies_route():
    """Query params: q (company name or contact email), page, limit (5..50)"""
    result = boss_service.list_companies(
        q=request.args.get("q"),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify({"ok": True, **result})


@boss_bp.get("/companies/<int:company_id>")
@require_boss
def get_company_route(company_id: int):
    return jsonify({"ok": True, "company": boss_service.get_company(company_id)})


@boss_bp.patch("/companies/<int:company_id>")
@require_boss
def update_company_route(company_id: int):
    """Body: {staff_limit}"""
    payload = require_json_object(request.get_json(silent=True))
    company = boss_service.update_company(company_id=company_id, payload=payload)
    current_app.logger.info(
        "Boss %s set staff_limit=%s for company %s", g.boss.boss_id, company["staff_limit"], company_id
    )
    return jsonify({"ok": True, "company": company})


@boss_bp.post("/companies/<int:company_id>/subscription")
@require_boss
def subscription_route(company_id: int):
    """
    Body: {action: add_months | add_days | suspend | resume, ...}

    add_months: {months 1..120, kind? payment|complimentary, amount_notes?, note?}
    add_days:   {days 1..365, kind? grace|complimentary, note?}
    """
    payload = require_json_object(request.get_json(silent=True))
    result = subscription_service.apply_action(company_id=company_id, payload=payload, boss_id=g.boss.boss_id)
    return jsonify({"ok": True, **result})


@boss_bp.get("/bosses")
@require_boss
def list_bosses_route():
    return jsonify({"ok": True, "bosses": [b.to_dict() for b in boss_service.list_bosses()]})


@boss_bp.post("/bosses")
@require_boss
def create_boss_route():
    """Body: {email, password, full_name?}"""
    payload = require_json_object(request.get_json(silent=True))
    boss = boss_service.create_boss(
        email=payload.get("email"),
        password=payload.get("password"),
        full_name=payload.get("full_name"),
    )
    return jsonify({"ok": True, "boss": boss.to_dict()}), 201


@boss_bp.patch("/bosses/<int:boss_id>")
@require_boss
def update_boss_route(boss_id: int):
    """Body: {email?, full_name?, new_password?}"""
    payload = require_json_object(request.get_json(silent=True))
    boss = boss_service.update_boss(boss_id=boss_id, acting_boss_id=g.boss.boss_id, payload=payload)
    return jsonify({"ok": True, "boss": boss.to_dict()})


@boss_bp.delete("/bosses/<int:boss_id>")
@require_boss
def delete_boss_route(boss_id: int):
    boss_service.delete_boss(boss_id=boss_id, acting_boss_id=g.boss.boss_id)
    return jsonify({"ok": True})
