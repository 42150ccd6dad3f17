# Overview: Service-layer operations for auth; credentials, signup, login resolution and email tokens.

"""
Authentication Service with Multi-Tenant Support

MULTI-TENANT: A User is a global identity (one email, one password). What
tenant a login lands in is decided by its CompanyUser memberships, never by
the User row itself.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Password length 8..128
- Email verification tokens are random, single-use, expiring, and stored
  only as SHA-256 hashes
- Login failures return one uniform message regardless of cause
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AuthToken, Boss, Company, CompanyUser, User
from ..errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from kora.time_utils import as_utc_naive, utcnow

EMAIL_VERIFY_PURPOSE = "email_verify"

# No 0/O, 1/l/I: passwords are read out of an email by humans
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
GENERATED_PASSWORD_LENGTH = 16

INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str) -> str:
    """Hash password using bcrypt at the configured cost factor."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Malformed hashes verify as False rather than raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_email_verification_token(user: User) -> str:
    """
    Create a single-use verification token for `user` and return the plaintext.

    Earlier unconsumed tokens for the same user stay valid until they expire.
    """
    token = secrets.token_urlsafe(32)
    ttl_hours = current_app.config.get("EMAIL_VERIFY_TTL_HOURS", 24)
    now = utcnow()
    db.session.add(
        AuthToken(
            user_id=user.id,
            purpose=EMAIL_VERIFY_PURPOSE,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )
    )
    db.session.commit()
    return token


def consume_email_verification_token(token: str | None) -> User:
    """
    Redeem a verification token.

    Stamps email_verified_at (first time only) and activates the user's
    invited memberships. Inactive memberships stay inactive.
    """
    if not token:
        raise ValidationError("Missing verification token")

    record = (
        db.session.query(AuthToken)
        .filter_by(token_hash=hash_token(token), purpose=EMAIL_VERIFY_PURPOSE)
        .with_for_update()
        .first()
    )
    if record is None or record.consumed_at is not None:
        raise ValidationError("Invalid or already used verification link")
    now = utcnow()
    if as_utc_naive(record.expires_at) < now:
        raise ValidationError("Verification link has expired")

    user = record.user
    record.consumed_at = now
    if user.email_verified_at is None:
        user.email_verified_at = now

    (
        db.session.query(CompanyUser)
        .filter_by(user_id=user.id, status="invited")
        .update({"status": "active", "updated_at": now}, synchronize_session="fetch")
    )
    db.session.commit()
    return user


def signup_company(
    *,
    company_name: str,
    company_slug: str,
    full_name: str,
    email: str,
    password: str,
    phone: str,
    role: str,
) -> tuple[Company, User, CompanyUser]:
    """
    Create a tenant, its founding member and (if new) the User, atomically.

    An existing User may found another company only by proving the password
    of that account. The founding membership is active straight away when
    the email is already verified, otherwise it waits for verification.
    """
    cfg = current_app.config
    now = utcnow()

    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        user = User(email=email, full_name=full_name, password_hash=hash_password(password))
        db.session.add(user)
    elif not verify_password(password, user.password_hash):
        raise ConflictError("Email is already registered. Log in with that password to add a company.")

    company = Company(
        name=company_name,
        slug=company_slug,
        status="active",
        staff_limit=cfg.get("DEFAULT_STAFF_LIMIT", 5),
        subscription_ends_at=now + timedelta(days=cfg.get("TRIAL_DAYS", 14)),
        subscription_suspended=False,
    )
    membership = CompanyUser(
        company=company,
        user=user,
        role=role,
        status="active" if user.email_verified_at else "invited",
        phone=phone,
    )
    db.session.add(company)
    db.session.add(membership)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Company slug or user membership already exists")

    return company, user, membership


def authenticate_user(email: str, password: str) -> User:
    """Return the User for valid credentials or raise AuthenticationError."""
    user = db.session.query(User).filter_by(email=email).first()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)
    if user.email_verified_at is None:
        raise AuthorizationError("Please verify your email before logging in")
    return user


def active_memberships(user_id: int) -> list[CompanyUser]:
    """Active memberships of the user in active companies, oldest first."""
    return (
        db.session.query(CompanyUser)
        .join(Company, Company.id == CompanyUser.company_id)
        .filter(
            CompanyUser.user_id == user_id,
            CompanyUser.status == "active",
            Company.status == "active",
        )
        .order_by(CompanyUser.created_at.asc(), CompanyUser.id.asc())
        .all()
    )


def resolve_login_membership(user: User, company_slug: str | None) -> CompanyUser:
    """
    Pick the membership a tenant session is opened for.

    - No active membership: 403
    - company_slug given: that company's membership, 403 if not a member
    - Exactly one: that one
    - Several and no slug: 400 asking the client to choose
    """
    memberships = active_memberships(user.id)
    if not memberships:
        raise AuthorizationError("No active company membership for this account")

    if company_slug:
        for membership in memberships:
            if membership.company.slug == company_slug:
                return membership
        raise AuthorizationError("No active membership in the selected company")

    if len(memberships) == 1:
        return memberships[0]

    raise ValidationError(
        "Select a company to sign in to",
        details={
            "company_selection_required": True,
            "companies": [
                {"name": m.company.name, "slug": m.company.slug, "role": m.role}
                for m in memberships
            ],
        },
    )


def record_login(user: User) -> None:
    user.last_login_at = utcnow()
    db.session.commit()


def authenticate_boss(email: str, password: str) -> Boss:
    boss = db.session.query(Boss).filter_by(email=email).first()
    if boss is None or not verify_password(password, boss.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)
    return boss
