from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
import re
from kora.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Float, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Largest unit price / line value accepted (fits Numeric(12, 2))
MAX_PRICE = Decimal("9999999999.99")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NEPAL_PHONE_RE = re.compile(r"^\+977\d{10}$")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns (handled by the caller)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(key: str, value: Any) -> Decimal:
    """Numbers and numeric strings become Decimal; booleans, NaN and infinities are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
    else:
        raise ValidationError(f"{key} must be a number")
    try:
        number = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")
    if not number.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Float before Numeric: sqlalchemy.Float subclasses Numeric
    if isinstance(coltype, Float):
        return float(coerce_decimal(col.key, value))

    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable column fields.
    Keys listed in policy.extra_fields pass through untouched.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            # Optional text: blank means "clear"
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_json_object(payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def normalize_email(value) -> str:
    if not isinstance(value, str):
        raise ValidationError("email is required")
    email = value.strip().lower()
    if not email or len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def validate_password(value, field: str = "password") -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"{field} must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(value) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"{field} must be at most {PASSWORD_MAX_LENGTH} characters long")
    return value


def normalize_phone(value) -> str:
    """
    Normalize a staff phone number to +977XXXXXXXXXX.

    10 digits get the +977 prefix, 13 digits starting with 977 get a "+",
    anything longer keeps its last 10 digits.
    """
    if not isinstance(value, str):
        raise ValidationError("phone is required")
    digits = re.sub(r"\D", "", value)
    if len(digits) == 10:
        normalized = f"+977{digits}"
    elif len(digits) == 13 and digits.startswith("977"):
        normalized = f"+{digits}"
    elif len(digits) >= 10:
        normalized = f"+977{digits[-10:]}"
    else:
        normalized = digits
    if not NEPAL_PHONE_RE.match(normalized):
        raise ValidationError("Phone must be a valid number in +977XXXXXXXXXX format")
    return normalized


def slugify(value: str) -> str:
    slug = _SLUG_STRIP_RE.sub("-", (value or "").strip().lower()).strip("-")
    return slug[:80].strip("-")


def require_choice(key: str, value, choices) -> str:
    if value not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}")
    return value


def require_int_in_range(key: str, value, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < low or value > high:
        raise ValidationError(f"{key} must be between {low} and {high}")
    return value


def optional_int(key: str, value):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def optional_text(key: str, value, max_length: int):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value or None


def enforce_rules_shop(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")
    if patch.get("latitude") is not None and not -90 <= patch["latitude"] <= 90:
        raise ValidationError("latitude must be between -90 and 90")
    if patch.get("longitude") is not None and not -180 <= patch["longitude"] <= 180:
        raise ValidationError("longitude must be between -180 and 180")
    if "geofence_radius_m" in patch and patch["geofence_radius_m"] is not None:
        if not 1 <= patch["geofence_radius_m"] <= 500:
            raise ValidationError("geofence_radius_m must be between 1 and 500")
    if "location_source" in patch and patch["location_source"] is not None:
        from .models.field import LOCATION_SOURCES
        require_choice("location_source", patch["location_source"], LOCATION_SOURCES)
    if patch.get("location_accuracy_m") is not None and patch["location_accuracy_m"] < 0:
        raise ValidationError("location_accuracy_m must be >= 0")
    for key in ("min_dwell_seconds", "cooldown_minutes"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def enforce_rules_lead(patch: dict) -> None:
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")
    if patch.get("email"):
        patch["email"] = normalize_email(patch["email"])
    if "status" in patch:
        # converted is reached only through conversion or order placement
        require_choice("status", patch["status"], ("new", "contacted", "qualified", "lost"))


def enforce_rules_product(patch: dict) -> None:
    if "sku" in patch and patch["sku"] is not None:
        patch["sku"] = patch["sku"].strip()
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")


def enforce_price(key: str, value) -> Decimal:
    price = coerce_decimal(key, value)
    if price < 0:
        raise ValidationError(f"{key} must be >= 0")
    if price > MAX_PRICE:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE}")
    return price


def enforce_currency(value, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not re.fullmatch(r"[A-Za-z]{3}", value.strip()):
        raise ValidationError("currency_code must be a 3-letter code")
    return value.strip().upper()
