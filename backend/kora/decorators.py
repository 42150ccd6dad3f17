# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import AuthenticationError
from .services import permission_service, session_service


def _is_tenant() -> bool:
    return getattr(g, "tenant", None) is not None


def require_tenant(f):
    """
    Require a tenant session and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant: TenantContext (user, membership, company) re-read this request

    SECURITY: 401 if the cookie is missing, invalid, expired, or the
    membership/company is no longer active. 403 with subscription_expired
    if the company's subscription is suspended or lapsed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get(current_app.config["TENANT_SESSION_COOKIE_NAME"])
        g.tenant = session_service.resolve_tenant_session(token)
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require the caller's role to be on the allow-list for `permission_code`.

    MULTI-TENANT: Denials are logged with company_id for tenant-scoped auditing.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_tenant was called first
            if not _is_tenant():
                raise AuthenticationError("Authentication required")

            tenant = g.tenant
            permission_service.require_role(
                role=tenant.role,
                permission_code=permission_code,
                user_id=tenant.user_id,
                company_id=tenant.company_id,
                resource=request.path,
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_boss(f):
    """
    Require a boss session. Sets g.boss (BossContext).

    Tenant cookies never satisfy this check and boss cookies never satisfy
    require_tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get(current_app.config["BOSS_SESSION_COOKIE_NAME"])
        g.boss = session_service.resolve_boss_session(token)
        return f(*args, **kwargs)

    return decorated_function
