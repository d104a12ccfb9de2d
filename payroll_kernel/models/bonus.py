"""
Module: payroll_kernel.models.bonus
Responsibility: ORM persistence for the bonus ledger: ad-hoc amounts owed to
    a worker that are folded into a weekly payment when it is paid.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - The sum of a worker's pending bonuses is the amount owed.  This ledger
      is the only source of truth for it.
    - A merged bonus points at exactly one weekly payment.
    - merged and reset are terminal; status leaves pending at most once,
      through a guarded UPDATE ... WHERE status = 'pending'.

Failure modes:
    - ConcurrentBonusDrainError (raised by the ledger service) if a guarded
      merge touches fewer rows than were drained.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.payment_lifecycle import BonusStatus

DEFAULT_BONUS_REASON = "Not specified"


class Bonus(TrackedBase):
    """One ledger line: an amount owed to a worker, with its reason."""

    __tablename__ = "bonuses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bonus_amount_positive"),
        Index("idx_bonus_user_status", "user_id", "status"),
        Index("idx_bonus_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(
        String(1000),
        default=DEFAULT_BONUS_REASON,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=BonusStatus.PENDING.value,
        nullable=False,
    )

    merged_into_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("weekly_payments.id"),
        nullable=True,
    )
    merged_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reset_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Bonus {self.user_id} {self.amount} {self.status}>"
