"""
Module: payroll_kernel.models.worker
Responsibility: ORM persistence for the worker a weekly payment belongs to.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - week_start_day is 0..6 (0 = Sunday).  It decides which calendar days
      form the worker's pay week, and every payment snapshots it.
    - extra_bonus / extra_bonus_reason are a cache of the worker's pending
      bonus ledger.  BonusLedgerService rebuilds them after every ledger
      write; nothing reads them as the amount owed.

Failure modes:
    - IntegrityError on duplicate email (uq_worker_email).
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase

DEFAULT_WEEK_START_DAY = 2  # Tuesday


class Worker(TrackedBase):
    """
    A person who logs entries and receives weekly pay.

    Contract:
        The worker row is the lock target for every payment write that
        concerns this worker (upsert, payout, bonus drain).
    """

    __tablename__ = "workers"

    __table_args__ = (
        UniqueConstraint("email", name="uq_worker_email"),
        CheckConstraint(
            "week_start_day >= 0 AND week_start_day <= 6",
            name="ck_worker_week_start_day",
        ),
        Index("idx_worker_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str] = mapped_column(String(320), nullable=False)

    week_start_day: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_WEEK_START_DAY,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Cache of the pending bonus ledger (sum and "; "-joined reasons)
    extra_bonus: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    extra_bonus_reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return f"<Worker {self.email}>"
