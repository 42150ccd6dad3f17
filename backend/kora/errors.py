# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a service can report to a caller maps to exactly one HTTP
status. Services raise these; the app-level handler in kora/__init__.py
rolls back the session and renders {"ok": false, "error": ...}.
"""

from __future__ import annotations


class KoraError(Exception):
    """Base for all expected, user-visible failures."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.message}
        body.update(self.details)
        return body


class ValidationError(KoraError):
    """400-level input problem."""
    status_code = 400


class AuthenticationError(KoraError):
    """No session, or a session that no longer resolves."""
    status_code = 401


class AuthorizationError(KoraError):
    """Valid session, disallowed role or ownership."""
    status_code = 403


class NotFoundError(KoraError):
    """Referenced entity absent or outside the caller's tenant."""
    status_code = 404


class ConflictError(KoraError):
    """409-level uniqueness conflict (e.g., duplicate SKU)."""
    status_code = 409


class InvalidTransitionError(KoraError):
    """Requested state change is not allowed from the current state."""
    status_code = 400


class CapacityError(KoraError):
    """Staff seat limit reached."""
    status_code = 403


class SubscriptionExpiredError(KoraError):
    """
    Tenant session resolved, but the company's subscription is suspended or
    lapsed. Distinct from AuthorizationError so clients can route to renewal.
    """
    status_code = 403

    def __init__(self, company_name: str):
        super().__init__(
            "Subscription expired or suspended. Please contact support.",
            details={"subscription_expired": True, "company_name": company_name},
        )
        self.company_name = company_name
