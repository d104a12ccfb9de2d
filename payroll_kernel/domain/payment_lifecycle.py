"""
Payment lifecycle types (``payroll_kernel.domain.payment_lifecycle``).

Responsibility
--------------
Status enums and transition tables for weekly payments and ledger
bonuses, plus the validators that services call before every status
write.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``payroll_kernel.exceptions``.

Invariants enforced
-------------------
* ``PAYMENT_TRANSITIONS`` defines the only valid payment status moves.
  ``paid`` is terminal: a paid record is never re-approved, denied or
  reopened.
* ``denied`` can be overturned by approving or paying the record.
* ``BONUS_TRANSITIONS``: a bonus leaves ``pending`` exactly once, to
  ``merged`` or ``reset``.
"""

from __future__ import annotations

from enum import Enum

from payroll_kernel.exceptions import (
    InvalidBonusTransitionError,
    InvalidPaymentTransitionError,
    ValidationError,
)


class PaymentStatus(str, Enum):
    """Weekly payment lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    PAID = "paid"


class PaymentType(str, Enum):
    """Regular weekly pay, or a standalone bonus payout record."""

    REGULAR = "regular"
    BONUS = "bonus"


class BonusStatus(str, Enum):
    """Ledger bonus lifecycle states."""

    PENDING = "pending"
    MERGED = "merged"
    RESET = "reset"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.APPROVED,
        PaymentStatus.DENIED,
        PaymentStatus.PAID,
    }),
    PaymentStatus.APPROVED: frozenset({
        PaymentStatus.DENIED,
        PaymentStatus.PAID,
    }),
    PaymentStatus.DENIED: frozenset({
        PaymentStatus.APPROVED,
        PaymentStatus.PAID,
    }),
    PaymentStatus.PAID: frozenset(),
}

TERMINAL_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.PAID,
})

BONUS_TRANSITIONS: dict[BonusStatus, frozenset[BonusStatus]] = {
    BonusStatus.PENDING: frozenset({BonusStatus.MERGED, BonusStatus.RESET}),
    BonusStatus.MERGED: frozenset(),
    BonusStatus.RESET: frozenset(),
}


def parse_payment_status(value: str | PaymentStatus) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError(
            "status",
            f"must be one of {[s.value for s in PaymentStatus]}, got {value!r}",
        ) from None


def parse_bonus_status(value: str | BonusStatus) -> BonusStatus:
    try:
        return BonusStatus(value)
    except ValueError:
        raise ValidationError(
            "status",
            f"must be one of {[s.value for s in BonusStatus]}, got {value!r}",
        ) from None


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[PaymentStatus(current)]


def validate_payment_transition(
    payment_id: object,
    current: str | PaymentStatus,
    target: str | PaymentStatus,
) -> PaymentStatus:
    """
    Check a payment status move against ``PAYMENT_TRANSITIONS``.

    Returns:
        The target as a PaymentStatus.

    Raises:
        ValidationError: target is not a known status.
        InvalidPaymentTransitionError: the move is not allowed.
    """
    current_status = PaymentStatus(current)
    target_status = parse_payment_status(target)
    if not can_transition_payment(current_status, target_status):
        raise InvalidPaymentTransitionError(
            str(payment_id), current_status.value, target_status.value
        )
    return target_status


def validate_bonus_transition(
    bonus_id: object,
    current: str | BonusStatus,
    target: str | BonusStatus,
) -> BonusStatus:
    current_status = BonusStatus(current)
    target_status = BonusStatus(target)
    if target_status not in BONUS_TRANSITIONS[current_status]:
        raise InvalidBonusTransitionError(
            str(bonus_id), current_status.value, target_status.value
        )
    return target_status
