# Overview: Service-layer operations for role checks and security event logging.

"""
Role Checking and Security Event Logging with Multi-Tenant Support

Every tenant operation declares a permission code; each code maps to an
explicit allow-list of membership roles (kora.permissions.roles). The check
is a pure predicate over the role re-read from the database on this request.

MULTI-TENANT: Security events carry company_id (tenant surface) or
boss_id (platform surface) so they can be filtered per tenant.

DESIGN PRINCIPLES:
- Fail closed: unknown codes and unknown roles are denied
- Log denials only: grants are not logged
- Append-only audit trail
"""

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import roles_allowed, validate_permission_code
from ..errors import AuthorizationError
from kora.time_utils import utcnow


def log_security_event(
    event_type: str,
    success: bool,
    user_id: int | None = None,
    company_id: int | None = None,
    boss_id: int | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Commits immediately: callers only log at denial points, before any
    tenant mutation has been staged.

    event_type examples:
    - ROLE_DENIED
    - OWNERSHIP_DENIED
    - LOGIN_FAILED
    - BOSS_LOGIN_FAILED
    - SUBSCRIPTION_EXPIRED
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        boss_id=boss_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def is_allowed(role: str | None, permission_code: str) -> bool:
    """True when `role` is on the allow-list for `permission_code`."""
    if not role or not validate_permission_code(permission_code):
        return False
    return role in roles_allowed(permission_code)


def require_role(
    *,
    role: str | None,
    permission_code: str,
    user_id: int | None = None,
    company_id: int | None = None,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise AuthorizationError unless `role` may perform `permission_code`.

    Denials are written to security_events with the tenant context.
    """
    if is_allowed(role, permission_code):
        return

    log_security_event(
        event_type="ROLE_DENIED",
        success=False,
        user_id=user_id,
        company_id=company_id,
        resource=resource,
        action=permission_code,
        reason=f"Role {role!r} not allowed for {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise AuthorizationError("Forbidden")
