# Overview: Service-layer operations for session; signed cookie tokens and per-request context resolution.

"""
Session Token Management Service with Multi-Tenant Support

Two disjoint session kinds, never interchangeable:

- Tenant session: {"sub": "user", "uid", "cid", "cuid"} signed with
  SESSION_SECRET, delivered in the tenant cookie.
- Boss session: {"sub": "boss", "bid"} signed with BOSS_SESSION_SECRET,
  delivered in the boss cookie.

The token only proves identity. Role, membership status, company status and
subscription state are re-read from the database on every request, so a role
change or suspension takes effect on the very next call.

SECURITY FEATURES:
- HS256 signatures via python-jose, independent secrets per session kind
- Expiry enforced by the token (exp claim) and the cookie max_age
- The "sub" claim is checked, so a boss token never resolves as tenant
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from jose import JWTError, jwt

from ..extensions import db
from ..models import Boss, Company, CompanyUser, User
from ..errors import AuthenticationError, SubscriptionExpiredError
from .subscription_service import is_expired
from kora.time_utils import utcnow

ALGORITHM = "HS256"
TENANT_SUBJECT = "user"
BOSS_SUBJECT = "boss"


@dataclass
class TenantContext:
    """
    Tenant identity resolved for one request.

    MULTI-TENANT: company_id is the only tenant scope services accept.
    """
    user: User
    membership: CompanyUser
    company: Company

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def company_id(self) -> int:
        return self.company.id

    @property
    def company_user_id(self) -> int:
        return self.membership.id

    @property
    def role(self) -> str:
        return self.membership.role


@dataclass
class BossContext:
    """Platform operator identity resolved for one request. Carries no tenant."""
    boss: Boss

    @property
    def boss_id(self) -> int:
        return self.boss.id


def _sign(claims: dict, secret: str, ttl: timedelta) -> str:
    now = utcnow()
    payload = dict(claims)
    payload["iat"] = now
    payload["exp"] = now + ttl
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def _verify(token: str | None, secret: str, subject: str) -> dict | None:
    if not token:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("sub") != subject:
        return None
    return payload


def tenant_session_ttl() -> timedelta:
    return timedelta(days=current_app.config.get("SESSION_TTL_DAYS", 7))


def boss_session_ttl() -> timedelta:
    return timedelta(days=current_app.config.get("BOSS_SESSION_TTL_DAYS", 7))


def create_tenant_token(membership: CompanyUser) -> str:
    return _sign(
        {
            "sub": TENANT_SUBJECT,
            "uid": membership.user_id,
            "cid": membership.company_id,
            "cuid": membership.id,
        },
        current_app.config["SESSION_SECRET"],
        tenant_session_ttl(),
    )


def create_boss_token(boss: Boss) -> str:
    return _sign(
        {"sub": BOSS_SUBJECT, "bid": boss.id},
        current_app.config["BOSS_SESSION_SECRET"],
        boss_session_ttl(),
    )


def resolve_tenant_session(token: str | None) -> TenantContext:
    """
    Resolve a tenant cookie into a TenantContext.

    Raises:
        AuthenticationError: no/invalid token, membership gone or not active,
            user or company missing, company not active
        SubscriptionExpiredError: identity is fine but the subscription is
            suspended, never started or lapsed
    """
    payload = _verify(token, current_app.config["SESSION_SECRET"], TENANT_SUBJECT)
    if payload is None:
        raise AuthenticationError("Authentication required")

    membership = db.session.get(CompanyUser, payload.get("cuid"))
    if (
        membership is None
        or membership.user_id != payload.get("uid")
        or membership.company_id != payload.get("cid")
        or membership.status != "active"
    ):
        raise AuthenticationError("Session is no longer valid")

    company = membership.company
    user = membership.user
    if company is None or user is None or company.status != "active":
        raise AuthenticationError("Session is no longer valid")

    if is_expired(company):
        raise SubscriptionExpiredError(company.name)

    return TenantContext(user=user, membership=membership, company=company)


def resolve_boss_session(token: str | None) -> BossContext:
    payload = _verify(token, current_app.config["BOSS_SESSION_SECRET"], BOSS_SUBJECT)
    if payload is None:
        raise AuthenticationError("Authentication required")
    boss = db.session.get(Boss, payload.get("bid"))
    if boss is None:
        raise AuthenticationError("Session is no longer valid")
    return BossContext(boss=boss)
