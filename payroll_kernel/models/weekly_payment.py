"""
Module: payroll_kernel.models.weekly_payment
Responsibility: ORM persistence for a worker's weekly payment record: the
    aggregated entry figures, the earnings derived from them, merged bonuses
    and the approval/payout lifecycle.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - total_earnings = base_earnings + bonus_earnings + extra_bonus for
      regular records, and = extra_bonus for bonus records.  Every writer
      calls ``recompute_total()`` after touching a component.
    - One regular record per (user, week_start).  The index on
      (user_id, week_start, payment_type) is non-unique; the
      upsert serializes on the worker row lock instead.
    - status/paid/paid_date are written only by lifecycle operations.

Failure modes:
    - None raised here; services validate transitions before assignment.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.db.types import round_money
from payroll_kernel.domain.payment_lifecycle import PaymentStatus, PaymentType


class WeeklyPayment(TrackedBase):
    """
    Weekly payment record.

    Contract:
        Keyed by (user_id, week_start) as produced by the week resolver.
        Callers never derive week_start themselves.
    """

    __tablename__ = "weekly_payments"

    __table_args__ = (
        Index("idx_payment_user_week_type", "user_id", "week_start", "payment_type"),
        Index("idx_payment_status_paid", "status", "paid"),
        Index("idx_payment_week_start", "week_start"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    week_start: Mapped[datetime] = mapped_column(nullable=False)
    week_end: Mapped[datetime] = mapped_column(nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Worker's week start day at the time the record was keyed
    week_start_day: Mapped[int] = mapped_column(Integer, nullable=False)

    total_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    avg_quality: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    entry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    hourly_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    base_earnings: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    performance_multiplier: Mapped[Decimal] = mapped_column(default=Decimal("1"), nullable=False)
    performance_tier: Mapped[str] = mapped_column(String(20), default="flat", nullable=False)
    bonus_earnings: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    extra_bonus: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    extra_bonus_reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    total_earnings: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    payment_type: Mapped[str] = mapped_column(
        String(20),
        default=PaymentType.REGULAR.value,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )

    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paid_date: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    denied_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    denied_at: Mapped[datetime | None] = mapped_column(nullable=True)
    denial_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WeeklyPayment {self.user_id} {self.week_start:%Y-%m-%d} "
            f"{self.payment_type}:{self.status}>"
        )

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID.value

    @property
    def is_regular(self) -> bool:
        return self.payment_type == PaymentType.REGULAR.value

    def recompute_total(self) -> Decimal:
        """Recompute total_earnings from its components and return it."""
        extra = self.extra_bonus or Decimal("0")
        if self.is_regular:
            total = (self.base_earnings or Decimal("0")) + (
                self.bonus_earnings or Decimal("0")
            ) + extra
        else:
            total = extra
        self.total_earnings = round_money(total)
        return self.total_earnings

    def clear_denial(self) -> None:
        self.denied_by_id = None
        self.denied_at = None
        self.denial_reason = None

    def clear_approval(self) -> None:
        self.approved_by_id = None
        self.approved_at = None
