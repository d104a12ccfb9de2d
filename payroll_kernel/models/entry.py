"""
Module: payroll_kernel.models.entry
Responsibility: ORM persistence for daily time/quality entries that workers
    log against client profiles and admins vet.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One entry per (profile, worker, day): uq_entry_profile_worker_day.
    - effective_time / effective_quality prefer the admin override.  These
      accessors are the only way payment code reads an entry's values.
    - Only admin_approved entries feed payment aggregation.

Failure modes:
    - IntegrityError on a second entry for the same profile, worker and day.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString


class Entry(TrackedBase):
    """
    One worker's day on one client profile.

    Guarantees:
        - admin_time / admin_quality are None until an admin overrides them.
        - approved_by_id and approved_at are stamped together on vetting.
    """

    __tablename__ = "entries"

    __table_args__ = (
        UniqueConstraint(
            "profile_id", "worker_id", "work_date",
            name="uq_entry_profile_worker_day",
        ),
        Index("idx_entry_worker_date_approved", "worker_id", "work_date", "admin_approved"),
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    # Client profile; profiles live outside this service
    profile_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    work_date: Mapped[date] = mapped_column(Date, nullable=False)

    time: Mapped[Decimal] = mapped_column(nullable=False)
    quality: Mapped[Decimal] = mapped_column(nullable=False)

    admin_time: Mapped[Decimal | None] = mapped_column(nullable=True)
    admin_quality: Mapped[Decimal | None] = mapped_column(nullable=True)

    admin_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Entry {self.worker_id} {self.work_date} approved={self.admin_approved}>"

    @property
    def effective_time(self) -> Decimal:
        return self.admin_time if self.admin_time is not None else self.time

    @property
    def effective_quality(self) -> Decimal:
        return self.admin_quality if self.admin_quality is not None else self.quality
