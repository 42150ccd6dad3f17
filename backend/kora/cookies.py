# Overview: Session cookie and public link helpers shared by the auth routes.

from __future__ import annotations

from datetime import timedelta

from flask import current_app, request


def set_session_cookie(response, name: str, token: str, ttl: timedelta):
    response.set_cookie(
        name,
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        samesite="Lax",
        secure=bool(current_app.config.get("COOKIE_SECURE")),
        path="/",
    )
    return response


def clear_session_cookie(response, name: str):
    response.delete_cookie(
        name,
        path="/",
        httponly=True,
        samesite="Lax",
        secure=bool(current_app.config.get("COOKIE_SECURE")),
    )
    return response


def public_url(path: str) -> str:
    """Absolute link for outgoing mail; BASE_URL wins over the request host."""
    base = current_app.config.get("BASE_URL") or request.host_url
    return f"{base.rstrip('/')}/{path.lstrip('/')}"
