"""
EntryService -- recording and vetting of daily work entries.

Responsibility:
    Stores the time/quality entries workers submit, lets workers correct
    them until they are approved, and applies admin vetting (optional
    overrides plus approval).  Vetting is the event that
    triggers weekly payment materialization; that side effect is owned by
    the weekly pay facade, not by this service.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Invariants enforced:
    - time >= 0 and 0 <= quality <= 100, for worker and admin values alike.
    - One entry per (profile, worker, day).
    - approved_by_id and approved_at are stamped together from the
      injected clock.
    - Only the owning worker edits an entry, and only while unapproved.

Failure modes:
    - WorkerNotFoundError: unknown worker.
    - EntryNotFoundError: unknown entry id, or another worker's entry on edit.
    - EntryAlreadyApprovedError: worker edit of an approved entry.
    - DuplicateEntryError: second entry for the same profile/worker/day.
    - ValidationError: value out of range.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.db.types import ZERO, to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import EntryInfo
from payroll_kernel.exceptions import (
    DuplicateEntryError,
    EntryAlreadyApprovedError,
    EntryNotFoundError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.entry import Entry
from payroll_kernel.services.base import BaseService

logger = get_logger("services.entry")

MAX_QUALITY = Decimal("100")


def _validated_time(field: str, value) -> Decimal:
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise ValidationError(field, "cannot be negative")
    return amount


def _validated_quality(field: str, value) -> Decimal:
    score = to_decimal(value, field)
    if not ZERO <= score <= MAX_QUALITY:
        raise ValidationError(field, "must be between 0 and 100")
    return score


class EntryService(BaseService[Entry]):
    """Record and vet entries; returns ``EntryInfo`` DTOs."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record_entry(
        self,
        worker_id: UUID,
        profile_id: UUID,
        work_date: date,
        time: Decimal | int | float | str,
        quality: Decimal | int | float | str,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> EntryInfo:
        """
        Store a worker's entry for one day on one profile.

        Raises:
            WorkerNotFoundError: Unknown worker.
            DuplicateEntryError: An entry already exists for the day.
            ValidationError: time or quality out of range.
        """
        if isinstance(work_date, datetime):
            work_date = work_date.date()
        entry_time = _validated_time("time", time)
        entry_quality = _validated_quality("quality", quality)
        self._get_worker(worker_id)

        duplicate = self.session.scalar(
            select(Entry.id).where(
                Entry.profile_id == profile_id,
                Entry.worker_id == worker_id,
                Entry.work_date == work_date,
            )
        )
        if duplicate is not None:
            raise DuplicateEntryError(str(profile_id), str(worker_id), work_date.isoformat())

        entry = Entry(
            worker_id=worker_id,
            profile_id=profile_id,
            work_date=work_date,
            time=entry_time,
            quality=entry_quality,
            admin_approved=False,
            notes=notes,
            created_by_id=actor_id or worker_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "worker_id": str(worker_id),
                "work_date": work_date,
            },
        )
        return EntryInfo.from_model(entry)

    def vet_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        admin_time: Decimal | int | float | str | None = None,
        admin_quality: Decimal | int | float | str | None = None,
        admin_notes: str | None = None,
        approve: bool = True,
    ) -> EntryInfo:
        """
        Apply admin overrides and approval to an entry.

        Overrides left as None keep any earlier override.  ``approve=False``
        withdraws approval and clears the approval stamp.

        Raises:
            EntryNotFoundError: Unknown entry.
            ValidationError: Override out of range.
        """
        entry = self.session.get(Entry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))

        if admin_time is not None:
            entry.admin_time = _validated_time("admin_time", admin_time)
        if admin_quality is not None:
            entry.admin_quality = _validated_quality("admin_quality", admin_quality)
        if admin_notes is not None:
            entry.admin_notes = admin_notes

        if approve:
            entry.admin_approved = True
            entry.approved_by_id = actor_id
            entry.approved_at = self._clock.now_utc()
        else:
            entry.admin_approved = False
            entry.approved_by_id = None
            entry.approved_at = None

        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "entry_vetted",
            extra={
                "entry_id": str(entry_id),
                "worker_id": str(entry.worker_id),
                "approved": approve,
                "admin_time": entry.admin_time,
                "admin_quality": entry.admin_quality,
            },
        )
        return EntryInfo.from_model(entry)

    def update_entry(
        self,
        entry_id: UUID,
        worker_id: UUID,
        time: Decimal | int | float | str | None = None,
        quality: Decimal | int | float | str | None = None,
        notes: str | None = None,
    ) -> EntryInfo:
        """
        Let a worker correct their own entry before an admin approves it.

        Fields left as None are unchanged.  Withdrawing approval through
        ``vet_entry`` makes the entry editable again.

        Raises:
            EntryNotFoundError: Unknown entry, or an entry of another worker.
            EntryAlreadyApprovedError: The entry is admin-approved.
            ValidationError: No field given, or a value out of range.
        """
        if time is None and quality is None and notes is None:
            raise ValidationError("entry", "at least one of time, quality or notes is required")

        entry = self.session.get(Entry, entry_id)
        if entry is None or entry.worker_id != worker_id:
            raise EntryNotFoundError(str(entry_id))
        if entry.admin_approved:
            raise EntryAlreadyApprovedError(str(entry_id))

        if time is not None:
            entry.time = _validated_time("time", time)
        if quality is not None:
            entry.quality = _validated_quality("quality", quality)
        if notes is not None:
            entry.notes = notes
        entry.updated_by_id = worker_id
        self.session.flush()

        logger.info(
            "entry_updated",
            extra={
                "entry_id": str(entry_id),
                "worker_id": str(worker_id),
                "time": entry.time,
                "quality": entry.quality,
            },
        )
        return EntryInfo.from_model(entry)

    def get_entry(self, entry_id: UUID) -> EntryInfo:
        entry = self.session.get(Entry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return EntryInfo.from_model(entry)
