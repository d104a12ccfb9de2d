"""
WeeklyPaymentService -- weekly payment materialization, payout and review.

Responsibility:
    Turns a worker's approved entries for one pay week into a regular
    weekly payment record, pays weeks out (folding in the worker's pending
    ledger bonuses), and applies the admin approve / deny / override
    lifecycle.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.
    Called by the weekly pay facade, which owns the transaction.
    Composes BenchmarkService (rate and tier), BonusLedgerService (drain and
    merge) and EntrySelector (aggregation).  Also reports per-worker
    performance over a date window, valued the same way as a payment.

Invariants enforced:
    - Week keys come only from ``resolve_week`` with the worker's own
      week_start_day.
    - One regular record per (user, week_start): every write looks the
      record up by key while holding the worker row lock, then updates it
      in place or inserts it.
    - The upsert never writes status / paid / paid_date, and leaves paid
      records untouched.
    - total_earnings = base + bonus_earnings + extra_bonus (regular) and
      = extra_bonus (bonus), recomputed after every component change.
    - Drain, payout and guarded merge happen in one flush sequence under
      the worker lock; a merge shortfall raises and the caller rolls back.
    - Status changes go through PAYMENT_TRANSITIONS; paid is terminal.

Failure modes:
    - WorkerNotFoundError, PaymentNotFoundError.
    - NoPendingBonusError: bonus payout with nothing pending.
    - InvalidPaymentTransitionError: e.g. approving a paid record.
    - ConcurrentBonusDrainError: propagated from the ledger.
    - ValidationError: negative extra_bonus, empty patch, bad status.

Audit relevance:
    Every upsert, payout, approval, denial and override is logged with the
    payment id, worker id and the resulting totals.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.db.types import ZERO, round_money, to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import (
    QUEUED_FOR_NEXT_WEEK,
    BenchmarkInfo,
    BonusPayoutResult,
    PaymentPatch,
    WeeklyPaymentInfo,
    WeeklySummary,
    WorkerPerformance,
)
from payroll_kernel.domain.entry_stats import EntryStats
from payroll_kernel.domain.payment_lifecycle import (
    PaymentStatus,
    PaymentType,
    parse_payment_status,
    validate_payment_transition,
)
from payroll_kernel.domain.valuation import (
    DEFAULT_HOURLY_RATE,
    BenchmarkPolicy,
    EarningsResult,
    performance_score,
)
from payroll_kernel.domain.week import WeekKey, resolve_week
from payroll_kernel.exceptions import (
    NoPendingBonusError,
    PaymentNotFoundError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.weekly_payment import WeeklyPayment
from payroll_kernel.models.worker import Worker
from payroll_kernel.selectors.entry_selector import EntrySelector
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.benchmark_service import BenchmarkService
from payroll_kernel.services.bonus_ledger import (
    REASON_SEPARATOR,
    BonusLedgerService,
    PendingDrain,
)

logger = get_logger("services.weekly_payment")

DEFAULT_DENIAL_REASON = "Denied by admin"

# Default span of worker_performance_stats, ending today
PERFORMANCE_WINDOW_DAYS = 30


def _as_date(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _join_reasons(existing: str | None, added: str) -> str | None:
    parts = [p for p in (existing, added) if p]
    return REASON_SEPARATOR.join(parts) or None


class WeeklyPaymentService(BaseService[WeeklyPayment]):
    """
    Service for weekly payment records.

    Contract:
        All public methods return frozen ``WeeklyPaymentInfo`` (or composite)
        DTOs and flush within the caller's transaction.

    Non-goals:
        - Does NOT commit; the facade owns transaction boundaries.
        - Does NOT issue money to any payment rail.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_hourly_rate: Decimal = DEFAULT_HOURLY_RATE,
    ):
        super().__init__(session, clock)
        self._default_hourly_rate = to_decimal(default_hourly_rate, "default_hourly_rate")
        self._benchmarks = BenchmarkService(session, self._clock)
        self._ledger = BonusLedgerService(session, self._clock)
        self._entries = EntrySelector(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _find_regular(
        self, user_id: UUID, week_start: datetime, for_update: bool = False
    ) -> WeeklyPayment | None:
        stmt = (
            select(WeeklyPayment)
            .where(
                WeeklyPayment.user_id == user_id,
                WeeklyPayment.week_start == week_start,
                WeeklyPayment.payment_type == PaymentType.REGULAR.value,
            )
            .order_by(WeeklyPayment.created_at)
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def _get_payment_for_update(self, payment_id: UUID) -> WeeklyPayment:
        payment = self.session.execute(
            select(WeeklyPayment)
            .where(WeeklyPayment.id == payment_id)
            .with_for_update()
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def _latest_unpaid_regular(self, user_id: UUID) -> WeeklyPayment | None:
        return self.session.execute(
            select(WeeklyPayment)
            .where(
                WeeklyPayment.user_id == user_id,
                WeeklyPayment.payment_type == PaymentType.REGULAR.value,
                WeeklyPayment.paid.is_(False),
            )
            .order_by(WeeklyPayment.week_start.desc())
            .limit(1)
            .with_for_update()
        ).scalars().first()

    def resolve_worker_week(self, worker: Worker, reference: datetime | date) -> WeekKey:
        return resolve_week(reference, worker.week_start_day)

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def _value(
        self, stats: EntryStats, benchmark: BenchmarkInfo | None
    ) -> tuple[Decimal, EarningsResult]:
        policy = benchmark.policy if benchmark is not None else BenchmarkPolicy.flat_fallback()
        score = performance_score(stats.avg_quality, stats.avg_time)
        return score, policy.calculate_earnings(
            stats.total_hours, score, self._default_hourly_rate
        )

    def _apply_earnings(
        self,
        payment: WeeklyPayment,
        stats: EntryStats,
        benchmark: BenchmarkInfo | None,
    ) -> None:
        _, earnings = self._value(stats, benchmark)

        payment.total_hours = stats.total_hours
        payment.avg_quality = stats.avg_quality
        payment.entry_count = stats.entry_count
        payment.hourly_rate = earnings.hourly_rate
        payment.base_earnings = earnings.base_earnings
        payment.performance_multiplier = earnings.multiplier
        payment.performance_tier = earnings.tier
        payment.bonus_earnings = earnings.bonus
        payment.recompute_total()

    def _new_regular(self, user_id: UUID, week: WeekKey, actor_id: UUID) -> WeeklyPayment:
        payment = WeeklyPayment(
            user_id=user_id,
            week_start=week.week_start,
            week_end=week.week_end,
            week_number=week.week_number,
            year=week.year,
            week_start_day=week.week_start_day,
            payment_type=PaymentType.REGULAR.value,
            status=PaymentStatus.PENDING.value,
            paid=False,
            extra_bonus=ZERO,
            created_by_id=actor_id,
        )
        self.session.add(payment)
        return payment

    def upsert_regular_payment(
        self,
        user_id: UUID,
        week: WeekKey,
        stats: EntryStats,
        benchmark: BenchmarkInfo | None,
        actor_id: UUID,
    ) -> WeeklyPaymentInfo:
        """
        Create or refresh the regular payment for ``week``.

        Preconditions:
            ``week`` was resolved with the worker's week_start_day.

        Postconditions:
            Exactly one regular record exists for (user_id, week.week_start).
            Its figures reflect ``stats``.  status/paid/paid_date are
            unchanged for an existing record; a paid record is not touched.

        Raises:
            WorkerNotFoundError: Unknown worker.
        """
        self._lock_worker(user_id)
        payment = self._find_regular(user_id, week.week_start, for_update=True)

        if payment is not None and payment.is_paid:
            logger.info(
                "regular_payment_frozen",
                extra={
                    "payment_id": str(payment.id),
                    "worker_id": str(user_id),
                    "week_start": week.week_start,
                },
            )
            return WeeklyPaymentInfo.from_model(payment)

        created = payment is None
        if created:
            payment = self._new_regular(user_id, week, actor_id)
        else:
            payment.week_end = week.week_end
            payment.week_number = week.week_number
            payment.year = week.year
            payment.updated_by_id = actor_id

        self._apply_earnings(payment, stats, benchmark)
        self.session.flush()

        logger.info(
            "regular_payment_upserted",
            extra={
                "payment_id": str(payment.id),
                "worker_id": str(user_id),
                "week_start": week.week_start,
                "inserted": created,
                "entry_count": stats.entry_count,
                "total_hours": stats.total_hours,
                "performance_tier": payment.performance_tier,
                "total_earnings": payment.total_earnings,
            },
        )
        return WeeklyPaymentInfo.from_model(payment)

    def materialize_week(
        self,
        user_id: UUID,
        reference: datetime | date,
        actor_id: UUID,
        skip_empty: bool = True,
    ) -> WeeklyPaymentInfo | None:
        """
        Resolve the worker's week containing ``reference``, aggregate it and
        upsert its regular payment.

        With ``skip_empty`` a week without approved entries creates nothing,
        but an existing record is still refreshed so withdrawn approvals
        are reflected.
        """
        worker = self._lock_worker(user_id)
        week = self.resolve_worker_week(worker, reference)
        stats = self._entries.aggregate_approved_entries(
            user_id, week.boundaries.start_date, week.boundaries.end_date
        )
        if skip_empty and stats.entry_count == 0:
            if self._find_regular(user_id, week.week_start) is None:
                logger.debug(
                    "empty_week_skipped",
                    extra={"worker_id": str(user_id), "week_start": week.week_start},
                )
                return None
        benchmark = self._benchmarks.resolve_current()
        return self.upsert_regular_payment(user_id, week, stats, benchmark, actor_id)

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    def _pay(
        self,
        payment: WeeklyPayment,
        drain: PendingDrain,
        actor_id: UUID,
    ) -> None:
        """Fold ``drain`` into ``payment``, mark it paid and merge the bonuses."""
        if not drain.is_empty:
            payment.extra_bonus = round_money((payment.extra_bonus or ZERO) + drain.total)
            payment.extra_bonus_reason = _join_reasons(
                payment.extra_bonus_reason, drain.reason
            )
        payment.recompute_total()

        if not payment.is_paid:
            validate_payment_transition(payment.id, payment.status, PaymentStatus.PAID)
            self._stamp_paid(payment, actor_id)
        payment.updated_by_id = actor_id
        self.session.flush()

        self._ledger.mark_merged(drain, payment.id, actor_id)

    def mark_week_paid(
        self,
        user_id: UUID,
        reference: datetime | date,
        actor_id: UUID,
    ) -> WeeklyPaymentInfo:
        """
        Pay the worker's week containing ``reference``.

        Postconditions:
            - The regular record for the week exists and is paid.  A missing
              record is first built from the week's approved entries.
            - Every bonus pending at call time is merged into it and its
              extra_bonus grew by their sum.
            - The worker cache reflects the (now empty) pending ledger.
            - A repeat call keeps the original paid_date and merges only
              bonuses added since.

        Raises:
            WorkerNotFoundError: Unknown worker.
            ConcurrentBonusDrainError: Bonuses changed state mid-drain.
        """
        worker = self._lock_worker(user_id)
        week = self.resolve_worker_week(worker, reference)
        drain = self._ledger.drain_pending(user_id)

        payment = self._find_regular(user_id, week.week_start, for_update=True)
        synthesized = payment is None
        if synthesized:
            stats = self._entries.aggregate_approved_entries(
                user_id, week.boundaries.start_date, week.boundaries.end_date
            )
            payment = self._new_regular(user_id, week, actor_id)
            self._apply_earnings(payment, stats, self._benchmarks.resolve_current())
            self.session.flush()

        already_paid = payment.is_paid
        self._pay(payment, drain, actor_id)
        self._ledger.rebuild_worker_cache(worker)

        logger.info(
            "week_marked_paid",
            extra={
                "payment_id": str(payment.id),
                "worker_id": str(user_id),
                "week_start": week.week_start,
                "synthesized": synthesized,
                "already_paid": already_paid,
                "merged_bonus_count": drain.count,
                "merged_bonus_total": drain.total,
                "total_earnings": payment.total_earnings,
            },
        )
        return WeeklyPaymentInfo.from_model(payment)

    def pay_pending_bonus(self, user_id: UUID, actor_id: UUID) -> BonusPayoutResult:
        """
        Pay out the worker's pending bonuses.

        Case A: the most recent unpaid regular week takes the bonuses and
        is paid.  Case B: every regular week is already paid; the bonuses
        stay pending for the next weekly payout and nothing is written.

        Raises:
            WorkerNotFoundError: Unknown worker.
            NoPendingBonusError: Nothing is pending.
        """
        worker = self._lock_worker(user_id)
        drain = self._ledger.drain_pending(user_id)
        if drain.is_empty:
            raise NoPendingBonusError(str(user_id))

        payment = self._latest_unpaid_regular(user_id)
        if payment is None:
            logger.info(
                "bonus_payout_queued",
                extra={
                    "worker_id": str(user_id),
                    "bonus_count": drain.count,
                    "amount": drain.total,
                },
            )
            return BonusPayoutResult(
                user_id=user_id,
                amount=drain.total,
                bonus_count=drain.count,
                reason=drain.reason,
                pending=True,
                status=QUEUED_FOR_NEXT_WEEK,
            )

        self._pay(payment, drain, actor_id)
        self._ledger.rebuild_worker_cache(worker)

        logger.info(
            "bonus_paid",
            extra={
                "payment_id": str(payment.id),
                "worker_id": str(user_id),
                "bonus_count": drain.count,
                "amount": drain.total,
                "week_number": payment.week_number,
                "year": payment.year,
            },
        )
        return BonusPayoutResult(
            user_id=user_id,
            amount=drain.total,
            bonus_count=drain.count,
            reason=drain.reason,
            pending=False,
            status=PaymentStatus.PAID.value,
            payment=WeeklyPaymentInfo.from_model(payment),
        )

    # ------------------------------------------------------------------
    # Review lifecycle
    # ------------------------------------------------------------------

    def _stamp_approval(self, payment: WeeklyPayment, actor_id: UUID) -> None:
        payment.status = PaymentStatus.APPROVED.value
        payment.approved_by_id = actor_id
        payment.approved_at = self._clock.now_utc()
        payment.clear_denial()

    def _stamp_denial(
        self, payment: WeeklyPayment, actor_id: UUID, reason: str | None
    ) -> None:
        payment.status = PaymentStatus.DENIED.value
        payment.denied_by_id = actor_id
        payment.denied_at = self._clock.now_utc()
        payment.denial_reason = (reason or "").strip() or DEFAULT_DENIAL_REASON
        payment.clear_approval()

    def _stamp_paid(self, payment: WeeklyPayment, actor_id: UUID) -> None:
        payment.status = PaymentStatus.PAID.value
        payment.paid = True
        payment.paid_date = self._clock.now_utc()
        payment.paid_by_id = actor_id
        payment.clear_denial()

    def approve_payment(self, payment_id: UUID, actor_id: UUID) -> WeeklyPaymentInfo:
        """
        Approve a pending or denied payment.

        Raises:
            PaymentNotFoundError: Unknown id.
            InvalidPaymentTransitionError: Already approved, or paid.
        """
        payment = self._get_payment_for_update(payment_id)
        previous = payment.status
        validate_payment_transition(payment_id, previous, PaymentStatus.APPROVED)
        self._stamp_approval(payment, actor_id)
        payment.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "payment_approved",
            extra={"payment_id": str(payment_id), "from_status": previous},
        )
        return WeeklyPaymentInfo.from_model(payment)

    def deny_payment(
        self, payment_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> WeeklyPaymentInfo:
        """
        Deny a pending or approved payment.

        Raises:
            PaymentNotFoundError: Unknown id.
            InvalidPaymentTransitionError: Already denied, or paid.
        """
        payment = self._get_payment_for_update(payment_id)
        previous = payment.status
        validate_payment_transition(payment_id, previous, PaymentStatus.DENIED)
        self._stamp_denial(payment, actor_id, reason)
        payment.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "payment_denied",
            extra={
                "payment_id": str(payment_id),
                "from_status": previous,
                "denial_reason": payment.denial_reason,
            },
        )
        return WeeklyPaymentInfo.from_model(payment)

    def update_payment(
        self, payment_id: UUID, patch: PaymentPatch, actor_id: UUID
    ) -> WeeklyPaymentInfo:
        """
        Apply an admin override.

        A status in the patch goes through the lifecycle table (a status
        equal to the current one is a no-op).  extra_bonus must be >= 0 and
        recomputes total_earnings.

        Raises:
            PaymentNotFoundError: Unknown id.
            InvalidPaymentTransitionError: Status move not allowed.
            ValidationError: Empty patch, bad status, negative extra_bonus.
        """
        if patch.is_empty():
            raise ValidationError("patch", "no fields to update")

        extra_bonus = None
        if patch.extra_bonus is not None:
            extra_bonus = to_decimal(patch.extra_bonus, "extra_bonus")
            if extra_bonus < ZERO:
                raise ValidationError("extra_bonus", "cannot be negative")

        payment = self._get_payment_for_update(payment_id)
        previous = payment.status

        if patch.status is not None:
            target = parse_payment_status(patch.status)
            if target.value != previous:
                validate_payment_transition(payment_id, previous, target)
                if target is PaymentStatus.APPROVED:
                    self._stamp_approval(payment, actor_id)
                elif target is PaymentStatus.DENIED:
                    self._stamp_denial(payment, actor_id, None)
                elif target is PaymentStatus.PAID:
                    self._stamp_paid(payment, actor_id)

        if extra_bonus is not None:
            payment.extra_bonus = round_money(extra_bonus)
        if patch.extra_bonus_reason is not None:
            payment.extra_bonus_reason = patch.extra_bonus_reason
        if patch.notes is not None:
            payment.notes = patch.notes
        if patch.admin_notes is not None:
            payment.admin_notes = patch.admin_notes

        payment.recompute_total()
        payment.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "payment_updated",
            extra={
                "payment_id": str(payment_id),
                "from_status": previous,
                "to_status": payment.status,
                "extra_bonus": payment.extra_bonus,
                "total_earnings": payment.total_earnings,
            },
        )
        return WeeklyPaymentInfo.from_model(payment)

    # ------------------------------------------------------------------
    # Read-only summary
    # ------------------------------------------------------------------

    def get_weekly_summary(
        self, user_id: UUID, reference: datetime | date
    ) -> WeeklySummary:
        """Week key and approved-entry stats for the worker's week; writes nothing."""
        worker = self._get_worker(user_id)
        week = self.resolve_worker_week(worker, reference)
        stats = self._entries.aggregate_approved_entries(
            user_id, week.boundaries.start_date, week.boundaries.end_date
        )
        payment = self._find_regular(user_id, week.week_start)
        return WeeklySummary(
            user_id=user_id,
            week=week,
            stats=stats,
            payment=WeeklyPaymentInfo.from_model(payment) if payment is not None else None,
        )

    def worker_performance_stats(
        self,
        window_start: datetime | date | None = None,
        window_end: datetime | date | None = None,
        user_id: UUID | None = None,
    ) -> list[WorkerPerformance]:
        """
        Approved-entry performance per worker over an inclusive date window.

        The window defaults to the PERFORMANCE_WINDOW_DAYS days ending today.
        Without ``user_id`` every worker with an approved entry in the window
        is reported.  Valuation uses the benchmark current now, or the flat
        fallback.  Writes nothing.

        Raises:
            WorkerNotFoundError: Unknown ``user_id``.
            ValidationError: window_start after window_end.
        """
        end = _as_date(window_end) if window_end is not None else self._clock.now_utc().date()
        if window_start is not None:
            start = _as_date(window_start)
        else:
            start = end - timedelta(days=PERFORMANCE_WINDOW_DAYS)
        if start > end:
            raise ValidationError("window_start", "must not be after window_end")

        if user_id is not None:
            self._get_worker(user_id)
            user_ids = [user_id]
        else:
            user_ids = self._entries.workers_with_approved_entries(start, end)

        benchmark = self._benchmarks.resolve_current()
        results = []
        for uid in user_ids:
            stats = self._entries.aggregate_approved_entries(uid, start, end)
            score, earnings = self._value(stats, benchmark)
            results.append(
                WorkerPerformance(
                    user_id=uid,
                    window_start=start,
                    window_end=end,
                    stats=stats,
                    score=score,
                    tier=earnings.tier,
                    multiplier=earnings.multiplier,
                    base_earnings=earnings.base_earnings,
                    projected_earnings=earnings.final_earnings,
                )
            )
        return results
