"""
Weekly Pay Module Service (``payroll_modules.weekly_pay.service``).

Responsibility
--------------
Orchestrates the weekly pay workflow: entry recording and vetting, weekly
payment materialization, payouts (week and bonus), the admin review
lifecycle, the bonus ledger, benchmark administration and batch
generation, by delegating to the kernel services and selectors.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``WeeklyPayService`` is the sole public
entry point for weekly pay operations.  Kernel services only flush; this
facade decides where each transaction ends.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).
* Vetting an entry commits first.  Materializing the affected week runs in
  a second transaction whose failure is logged and never undoes the vet.
* Batch generation commits once per worker; one worker failing does not
  roll back the others.

Failure modes
-------------
* Kernel exceptions (``PayrollKernelError`` subclasses) propagate after
  rollback.
* ``on_entry_vetted`` swallows and logs materialization failures.

Audit relevance
---------------
Structured log events at operation start and on rollback, with the actor,
worker and payment ids bound into ``LogContext`` for every line the kernel
emits underneath.

Usage::

    service = WeeklyPayService(session, clock=clock)
    entry = service.record_entry(worker_id, profile_id, date(2024, 1, 3),
                                 time=8, quality=90)
    service.vet_entry(entry.id, actor_id=admin_id)
    service.mark_week_as_paid(worker_id, date(2024, 1, 3), actor_id=admin_id)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import (
    BenchmarkInfo,
    BonusInfo,
    BonusPayoutResult,
    EntryInfo,
    GenerationResult,
    Page,
    PaymentFilter,
    PaymentPatch,
    WeeklyPaymentInfo,
    WeeklySummary,
    WorkerInfo,
    WorkerPerformance,
)
from payroll_kernel.domain.payment_lifecycle import BonusStatus
from payroll_kernel.domain.valuation import BonusRates, EarningsMode, Thresholds
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.selectors.entry_selector import EntrySelector
from payroll_kernel.selectors.payment_selector import PaymentSelector
from payroll_kernel.services.benchmark_service import BenchmarkService
from payroll_kernel.services.bonus_ledger import BonusLedgerService
from payroll_kernel.services.entry_service import EntryService
from payroll_kernel.services.weekly_payment_service import WeeklyPaymentService
from payroll_kernel.services.worker_service import WorkerService
from payroll_modules.weekly_pay.config import WeeklyPayConfig

logger = get_logger("modules.weekly_pay.service")


def _as_instant(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class WeeklyPayService:
    """
    Orchestrates weekly pay operations over the kernel services.

    Contract:
        Every write commits on success and rolls back on failure.  Reads
        never write.  All results are frozen DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: WeeklyPayConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or WeeklyPayConfig.with_defaults()

        # Kernel services share the session; this facade owns the boundary.
        self._workers = WorkerService(
            session, self._clock, self._config.default_week_start_day
        )
        self._entries = EntryService(session, self._clock)
        self._benchmarks = BenchmarkService(session, self._clock)
        self._ledger = BonusLedgerService(session, self._clock)
        self._payments = WeeklyPaymentService(
            session, self._clock, self._config.hourly_rate
        )
        self._selector = PaymentSelector(session, self._config.max_page_limit)
        self._entry_selector = EntrySelector(session)

    @property
    def config(self) -> WeeklyPayConfig:
        return self._config

    def _limit(self, limit: int | None) -> int:
        return self._config.default_page_limit if limit is None else limit

    # =========================================================================
    # Workers
    # =========================================================================

    def register_worker(
        self,
        name: str,
        email: str,
        actor_id: UUID,
        week_start_day: int | None = None,
    ) -> WorkerInfo:
        with LogContext.bind(actor_id=actor_id):
            try:
                worker = self._workers.create_worker(name, email, actor_id, week_start_day)
                self._session.commit()
                return worker
            except Exception:
                self._session.rollback()
                raise

    def set_week_start_day(
        self, worker_id: UUID, week_start_day: int, actor_id: UUID
    ) -> WorkerInfo:
        """Change a worker's pay week.  Existing payment records are untouched."""
        with LogContext.bind(actor_id=actor_id, worker_id=worker_id):
            try:
                worker = self._workers.set_week_start_day(worker_id, week_start_day, actor_id)
                self._session.commit()
                return worker
            except Exception:
                self._session.rollback()
                raise

    def set_worker_active(
        self, worker_id: UUID, is_active: bool, actor_id: UUID
    ) -> WorkerInfo:
        with LogContext.bind(actor_id=actor_id, worker_id=worker_id):
            try:
                worker = self._workers.set_active(worker_id, is_active, actor_id)
                self._session.commit()
                return worker
            except Exception:
                self._session.rollback()
                raise

    def get_worker(self, worker_id: UUID) -> WorkerInfo:
        return self._workers.get_worker(worker_id)

    # =========================================================================
    # Entries
    # =========================================================================

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
        with LogContext.bind(actor_id=actor_id or worker_id, worker_id=worker_id):
            try:
                entry = self._entries.record_entry(
                    worker_id, profile_id, work_date, time, quality,
                    notes=notes, actor_id=actor_id,
                )
                self._session.commit()
                return entry
            except Exception:
                self._session.rollback()
                raise

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
        Vet an entry, then refresh the weekly payment of its week.

        The vet is committed before the payment refresh starts, so a
        refresh failure leaves the vet in place (see ``on_entry_vetted``).
        """
        with LogContext.bind(actor_id=actor_id, entry_id=entry_id):
            logger.info(
                "entry_vetting_started",
                extra={"entry_id": str(entry_id), "approve": approve},
            )
            try:
                entry = self._entries.vet_entry(
                    entry_id,
                    actor_id,
                    admin_time=admin_time,
                    admin_quality=admin_quality,
                    admin_notes=admin_notes,
                    approve=approve,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            self.on_entry_vetted(entry, actor_id)
            return entry

    def on_entry_vetted(
        self, entry: EntryInfo, actor_id: UUID
    ) -> WeeklyPaymentInfo | None:
        """
        Best-effort materialization of the week containing a vetted entry.

        Returns the refreshed payment, or None when the week is empty or
        the refresh failed.  Failures are logged at ERROR and swallowed.
        """
        with LogContext.bind(worker_id=entry.worker_id):
            try:
                payment = self._payments.materialize_week(
                    entry.worker_id, entry.work_date, actor_id
                )
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                logger.error(
                    "payment_materialization_failed",
                    extra={
                        "entry_id": str(entry.id),
                        "worker_id": str(entry.worker_id),
                        "work_date": entry.work_date,
                    },
                    exc_info=True,
                )
                return None

    def update_entry(
        self,
        entry_id: UUID,
        worker_id: UUID,
        time: Decimal | int | float | str | None = None,
        quality: Decimal | int | float | str | None = None,
        notes: str | None = None,
    ) -> EntryInfo:
        """Worker correction of their own unapproved entry."""
        with LogContext.bind(actor_id=worker_id, worker_id=worker_id, entry_id=entry_id):
            try:
                entry = self._entries.update_entry(
                    entry_id, worker_id, time=time, quality=quality, notes=notes
                )
                self._session.commit()
                return entry
            except Exception:
                self._session.rollback()
                raise

    def get_entry(self, entry_id: UUID) -> EntryInfo:
        return self._entries.get_entry(entry_id)

    def list_entries(
        self,
        worker_id: UUID,
        window_start: date | None = None,
        window_end: date | None = None,
        approved_only: bool = False,
    ) -> list[EntryInfo]:
        return self._entry_selector.list_for_worker(
            worker_id, window_start, window_end, approved_only
        )

    def workers_with_approved_entries(
        self, window_start: date, window_end: date
    ) -> list[UUID]:
        return self._entry_selector.workers_with_approved_entries(window_start, window_end)

    # =========================================================================
    # Weekly payments
    # =========================================================================

    def materialize_week(
        self,
        user_id: UUID,
        reference: datetime | date,
        actor_id: UUID,
    ) -> WeeklyPaymentInfo | None:
        """Recompute the worker's regular payment for the week containing ``reference``."""
        with LogContext.bind(actor_id=actor_id, worker_id=user_id):
            try:
                payment = self._payments.materialize_week(user_id, reference, actor_id)
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                raise

    def generate_weekly_payments(
        self,
        actor_id: UUID,
        reference_date: datetime | date | None = None,
    ) -> GenerationResult:
        """
        Materialize the week containing ``reference_date`` for every active
        worker, each in its own transaction.

        Workers with no approved entries and no existing record are counted
        as skipped.  A worker whose materialization raises is rolled back,
        logged and counted as failed; the run continues.
        """
        reference = reference_date or self._clock.now_utc()
        with LogContext.bind(actor_id=actor_id):
            logger.info(
                "weekly_payment_generation_started",
                extra={"reference_date": reference},
            )
            worker_ids = self._workers.active_worker_ids()

            processed = skipped = failed = 0
            payments: list[WeeklyPaymentInfo] = []
            for worker_id in worker_ids:
                try:
                    payment = self._payments.materialize_week(worker_id, reference, actor_id)
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    failed += 1
                    logger.error(
                        "weekly_payment_generation_failed",
                        extra={"worker_id": str(worker_id)},
                        exc_info=True,
                    )
                    continue
                if payment is None:
                    skipped += 1
                else:
                    processed += 1
                    payments.append(payment)

            logger.info(
                "weekly_payment_generation_completed",
                extra={
                    "reference_date": reference,
                    "workers": len(worker_ids),
                    "processed": processed,
                    "skipped": skipped,
                    "failed": failed,
                },
            )
            return GenerationResult(
                reference_date=_as_instant(reference),
                processed=processed,
                skipped=skipped,
                failed=failed,
                payments=tuple(payments),
            )

    def mark_week_as_paid(
        self,
        user_id: UUID,
        reference: datetime | date,
        actor_id: UUID,
    ) -> WeeklyPaymentInfo:
        """Pay the worker's week containing ``reference``, merging pending bonuses."""
        with LogContext.bind(actor_id=actor_id, worker_id=user_id):
            logger.info(
                "mark_week_paid_started",
                extra={"worker_id": str(user_id), "reference": reference},
            )
            try:
                payment = self._payments.mark_week_paid(user_id, reference, actor_id)
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                logger.warning(
                    "mark_week_paid_rolled_back",
                    extra={"worker_id": str(user_id)},
                )
                raise

    def pay_pending_bonus(self, user_id: UUID, actor_id: UUID) -> BonusPayoutResult:
        """Pay pending bonuses into the latest unpaid week, or leave them queued."""
        with LogContext.bind(actor_id=actor_id, worker_id=user_id):
            logger.info("bonus_payout_started", extra={"worker_id": str(user_id)})
            try:
                result = self._payments.pay_pending_bonus(user_id, actor_id)
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    def approve_payment(self, payment_id: UUID, actor_id: UUID) -> WeeklyPaymentInfo:
        with LogContext.bind(actor_id=actor_id, payment_id=payment_id):
            try:
                payment = self._payments.approve_payment(payment_id, actor_id)
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                raise

    def deny_payment(
        self, payment_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> WeeklyPaymentInfo:
        with LogContext.bind(actor_id=actor_id, payment_id=payment_id):
            try:
                payment = self._payments.deny_payment(payment_id, actor_id, reason)
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                raise

    def update_payment(
        self, payment_id: UUID, patch: PaymentPatch, actor_id: UUID
    ) -> WeeklyPaymentInfo:
        with LogContext.bind(actor_id=actor_id, payment_id=payment_id):
            try:
                payment = self._payments.update_payment(payment_id, patch, actor_id)
                self._session.commit()
                return payment
            except Exception:
                self._session.rollback()
                raise

    def get_payment(self, payment_id: UUID) -> WeeklyPaymentInfo | None:
        return self._selector.get_payment(payment_id)

    def list_payments(
        self,
        payment_filter: PaymentFilter | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[WeeklyPaymentInfo]:
        return self._selector.list_payments(payment_filter, page, self._limit(limit))

    def list_worker_payments(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[WeeklyPaymentInfo]:
        """A worker's own payment history, newest week first."""
        return self._selector.list_payments(
            PaymentFilter(user_id=user_id), page, self._limit(limit)
        )

    def get_weekly_summary(
        self,
        user_id: UUID,
        reference: datetime | date | None = None,
    ) -> WeeklySummary:
        return self._payments.get_weekly_summary(
            user_id, reference or self._clock.now_utc()
        )

    def worker_performance_stats(
        self,
        window_start: datetime | date | None = None,
        window_end: datetime | date | None = None,
        user_id: UUID | None = None,
    ) -> list[WorkerPerformance]:
        """Per-worker approved-entry performance; the window defaults to the last 30 days."""
        return self._payments.worker_performance_stats(window_start, window_end, user_id)

    # =========================================================================
    # Bonus ledger
    # =========================================================================

    def add_bonus(
        self,
        user_id: UUID,
        amount: Decimal | int | float | str,
        actor_id: UUID,
        reason: str | None = None,
    ) -> BonusInfo:
        with LogContext.bind(actor_id=actor_id, worker_id=user_id):
            try:
                bonus = self._ledger.add_bonus(user_id, amount, actor_id, reason)
                self._session.commit()
                return bonus
            except Exception:
                self._session.rollback()
                raise

    def reset_pending_bonuses(self, user_id: UUID, actor_id: UUID) -> int:
        with LogContext.bind(actor_id=actor_id, worker_id=user_id):
            try:
                count = self._ledger.reset_pending(user_id, actor_id)
                self._session.commit()
                return count
            except Exception:
                self._session.rollback()
                raise

    def reset_bonus(self, bonus_id: UUID, actor_id: UUID) -> BonusInfo:
        with LogContext.bind(actor_id=actor_id):
            try:
                bonus = self._ledger.reset_bonus(bonus_id, actor_id)
                self._session.commit()
                return bonus
            except Exception:
                self._session.rollback()
                raise

    def list_bonuses(
        self,
        user_id: UUID | None = None,
        status: BonusStatus | str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[BonusInfo]:
        return self._selector.list_bonuses(user_id, status, page, self._limit(limit))

    def pending_bonus_total(self, user_id: UUID) -> Decimal:
        return self._selector.pending_bonus_total(user_id)

    # =========================================================================
    # Benchmarks
    # =========================================================================

    def create_benchmark(
        self,
        time_benchmark: Decimal | int | float | str,
        quality_benchmark: Decimal | int | float | str,
        start_date: datetime | date,
        end_date: datetime | date,
        actor_id: UUID,
        pay_per_hour: Decimal | int | float | str | None = None,
        earnings_mode: EarningsMode | str = EarningsMode.FLAT,
        thresholds: Thresholds | Mapping[str, Any] | None = None,
        bonus_rates: BonusRates | Mapping[str, Any] | None = None,
        is_active: bool = True,
        notes: str | None = None,
    ) -> BenchmarkInfo:
        with LogContext.bind(actor_id=actor_id):
            try:
                benchmark = self._benchmarks.create_benchmark(
                    time_benchmark,
                    quality_benchmark,
                    start_date,
                    end_date,
                    actor_id,
                    pay_per_hour=pay_per_hour,
                    earnings_mode=earnings_mode,
                    thresholds=thresholds,
                    bonus_rates=bonus_rates,
                    is_active=is_active,
                    notes=notes,
                )
                self._session.commit()
                return benchmark
            except Exception:
                self._session.rollback()
                raise

    def update_benchmark(
        self, benchmark_id: UUID, actor_id: UUID, changes: Mapping[str, Any]
    ) -> BenchmarkInfo:
        with LogContext.bind(actor_id=actor_id):
            try:
                benchmark = self._benchmarks.update_benchmark(benchmark_id, actor_id, changes)
                self._session.commit()
                return benchmark
            except Exception:
                self._session.rollback()
                raise

    def delete_benchmark(self, benchmark_id: UUID, actor_id: UUID) -> None:
        with LogContext.bind(actor_id=actor_id):
            try:
                self._benchmarks.delete_benchmark(benchmark_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

    def get_benchmark(self, benchmark_id: UUID) -> BenchmarkInfo:
        return self._benchmarks.get_benchmark(benchmark_id)

    def list_benchmarks(
        self,
        active: bool | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[BenchmarkInfo]:
        return self._benchmarks.list_benchmarks(active, page, self._limit(limit))

    def resolve_current_benchmark(
        self, as_of: datetime | None = None
    ) -> BenchmarkInfo | None:
        return self._benchmarks.resolve_current(as_of)
