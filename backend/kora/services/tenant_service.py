"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

SECURITY INVARIANTS:
1. Every tenant request carries a resolved company_id (see session_service)
2. Ids from client input are validated against that company_id before use
3. A row that exists in another company is reported exactly like a missing
   row (404) so tenants cannot probe each other
4. Cross-tenant lookups are logged as security events

USAGE:
    from kora.services.tenant_service import require_in_company

    shop = require_in_company(Shop, shop_id, g.tenant.company_id, label="Shop")
"""

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import CompanyUser
from ..errors import NotFoundError, ValidationError
from .permission_service import log_security_event


def _log_cross_tenant_attempt(reason: str, *, company_id: int, resource: str) -> None:
    log_security_event(
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        company_id=company_id,
        resource=resource,
        action=request.method if has_request_context() else None,
        reason=reason,
        ip_address=request.remote_addr if has_request_context() else None,
        user_agent=request.headers.get("User-Agent") if has_request_context() else None,
    )


def require_in_company(model, object_id, company_id: int, *, label: str):
    """
    Load `model` row `object_id` and require it to belong to `company_id`.

    Raises NotFoundError("<label> not found") when absent or foreign.
    """
    if object_id is None:
        raise NotFoundError(f"{label} not found")
    if isinstance(object_id, bool) or not isinstance(object_id, int):
        raise ValidationError(f"{label} id must be an integer")

    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")

    if obj.company_id != company_id:
        _log_cross_tenant_attempt(
            f"{label} {object_id} belongs to company {obj.company_id}, not {company_id}",
            company_id=company_id,
            resource=f"{model.__tablename__}/{object_id}",
        )
        raise NotFoundError(f"{label} not found")

    return obj


def require_member(company_user_id, company_id: int, *, label: str = "Staff member") -> CompanyUser:
    return require_in_company(CompanyUser, company_user_id, company_id, label=label)


def require_rep(company_user_id, company_id: int, *, active: bool = False, label: str = "Rep") -> CompanyUser:
    """
    A membership in this company with role rep (400 otherwise).

    Unlike require_in_company this reports a missing or foreign id as a bad
    reference in the request body, not as a missing resource.
    """
    if isinstance(company_user_id, bool) or not isinstance(company_user_id, int):
        raise ValidationError(f"{label} must reference a rep in this company")
    member = db.session.get(CompanyUser, company_user_id)
    if member is None or member.company_id != company_id or member.role != "rep":
        raise ValidationError(f"{label} must reference a rep in this company")
    if active and member.status != "active":
        raise ValidationError(f"{label} must be an active rep")
    return member
