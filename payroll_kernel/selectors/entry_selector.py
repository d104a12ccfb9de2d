"""
Module: payroll_kernel.selectors.entry_selector
Responsibility: Read-side queries over entries: the weekly aggregation that
    feeds payment computation, and entry listings.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only admin_approved entries are aggregated.
    - Effective values (admin override, else worker value) are used, via
      COALESCE in SQL, matching Entry.effective_time / effective_quality.
    - The window is inclusive on both calendar days.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.dtos import EntryInfo
from payroll_kernel.domain.entry_stats import EntryStats
from payroll_kernel.models.entry import Entry
from payroll_kernel.selectors.base import BaseSelector


class EntrySelector(BaseSelector[Entry]):
    """Aggregations and lookups over worker entries."""

    def __init__(self, session: Session):
        super().__init__(session)

    def aggregate_approved_entries(
        self,
        worker_id: UUID,
        window_start: date,
        window_end: date,
    ) -> EntryStats:
        """
        Totals and averages of the worker's approved entries in the window.

        An empty window yields zeros and entry_count 0.
        """
        effective_time = func.coalesce(Entry.admin_time, Entry.time)
        effective_quality = func.coalesce(Entry.admin_quality, Entry.quality)

        row = self.session.execute(
            select(
                func.sum(effective_time),
                func.sum(effective_quality),
                func.count(Entry.id),
            ).where(
                Entry.worker_id == worker_id,
                Entry.admin_approved.is_(True),
                Entry.work_date >= window_start,
                Entry.work_date <= window_end,
            )
        ).one()

        total_time, total_quality, count = row
        if not count:
            return EntryStats.empty()
        return EntryStats.from_sums(total_time, total_quality, int(count))

    def workers_with_approved_entries(
        self, window_start: date, window_end: date
    ) -> list[UUID]:
        """Distinct worker ids with at least one approved entry in the window."""
        rows = self.session.execute(
            select(Entry.worker_id)
            .where(
                Entry.admin_approved.is_(True),
                Entry.work_date >= window_start,
                Entry.work_date <= window_end,
            )
            .distinct()
        ).scalars()
        return sorted(rows, key=str)

    def list_for_worker(
        self,
        worker_id: UUID,
        window_start: date | None = None,
        window_end: date | None = None,
        approved_only: bool = False,
    ) -> list[EntryInfo]:
        stmt = select(Entry).where(Entry.worker_id == worker_id)
        if window_start is not None:
            stmt = stmt.where(Entry.work_date >= window_start)
        if window_end is not None:
            stmt = stmt.where(Entry.work_date <= window_end)
        if approved_only:
            stmt = stmt.where(Entry.admin_approved.is_(True))
        stmt = stmt.order_by(Entry.work_date, Entry.created_at)
        return [EntryInfo.from_model(e) for e in self.session.scalars(stmt)]
