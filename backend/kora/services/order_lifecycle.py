# Overview: Order status state machine; pure rules, no database access.

"""
Kora Order Lifecycle

================================================================================
STATE MACHINE:
    received -> processing -> shipped -> closed
    received | processing -> cancelled
    shipped -> cancelled            (only when ALLOW_CANCEL_AFTER_SHIP is on)
================================================================================

RULES:
1. Forward only, one step at a time (received -> shipped is forbidden)
2. No backward movement (processing -> received is forbidden)
3. closed and cancelled are terminal
4. Cancellation requires a reason from CANCEL_REASONS
5. Each transition timestamp is stamped once ("set if null")
"""

from __future__ import annotations

from typing import Literal

from ..errors import InvalidTransitionError, ValidationError


VALID_STATUSES = ("received", "processing", "shipped", "closed", "cancelled")
OrderStatus = Literal["received", "processing", "shipped", "closed", "cancelled"]

NEXT_STATUS = {
    "received": "processing",
    "processing": "shipped",
    "shipped": "closed",
}

TERMINAL_STATUSES = frozenset({"closed", "cancelled"})

CANCELLABLE_STATUSES = frozenset({"received", "processing"})

CANCEL_REASONS = (
    "Customer requested",
    "Out of stock",
    "Duplicate order",
    "Wrong address",
    "Payment issue",
    "Other",
)

# Order column stamped when a status is entered
STATUS_TIMESTAMPS = {
    "processing": "processed_at",
    "shipped": "shipped_at",
    "closed": "closed_at",
    "cancelled": "cancelled_at",
}


def validate_status(status: str) -> None:
    """
    Raises:
        ValidationError: If status is not in VALID_STATUSES
    """
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    True only for the single allowed forward step out of `from_status`.

    Cancellation is not a forward step; see can_cancel.
    """
    return NEXT_STATUS.get(from_status) == to_status


def require_transition(from_status: str, to_status: str) -> None:
    validate_status(to_status)
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(
            f"Invalid transition: {from_status} -> {to_status}. Only forward steps allowed.",
            details={"from_status": from_status, "to_status": to_status},
        )


def can_cancel(from_status: str, *, allow_after_ship: bool = False) -> bool:
    if from_status in CANCELLABLE_STATUSES:
        return True
    return allow_after_ship and from_status == "shipped"


def require_cancel(from_status: str, *, allow_after_ship: bool = False) -> None:
    if not can_cancel(from_status, allow_after_ship=allow_after_ship):
        raise InvalidTransitionError(
            f'Order cannot be cancelled from status "{from_status}".',
            details={"from_status": from_status, "to_status": "cancelled"},
        )


def require_cancel_reason(reason) -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Cancel reason is required")
    reason = reason.strip()
    if reason not in CANCEL_REASONS:
        raise ValidationError(f"cancel_reason must be one of: {', '.join(CANCEL_REASONS)}")
    return reason


def stamp(order, status: str, moment) -> None:
    """Set the timestamp column for `status` unless it is already set."""
    column = STATUS_TIMESTAMPS.get(status)
    if column and getattr(order, column) is None:
        setattr(order, column, moment)
