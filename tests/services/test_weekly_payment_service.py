"""
Tests for WeeklyPaymentService.

Invariants tested:
- One regular record per (worker, week_start); upserting twice is idempotent.
- Earnings follow the resolved benchmark, or flat at the default rate.
- total_earnings = base + bonus_earnings + extra_bonus.
- Paid records are frozen against later upserts.
- Paying a week merges exactly the bonuses pending at call time.
- Bonus payout Case A (latest unpaid week) and Case B (queued).
- Lifecycle: denied -> approved allowed; paid rejects approve and deny.
- Performance stats cover approved entries in the window, valued like a payment.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from payroll_kernel.domain.dtos import QUEUED_FOR_NEXT_WEEK, PaymentPatch
from payroll_kernel.domain.entry_stats import EntryStats
from payroll_kernel.domain.payment_lifecycle import BonusStatus, PaymentStatus, PaymentType
from payroll_kernel.domain.week import resolve_week
from payroll_kernel.exceptions import (
    InvalidPaymentTransitionError,
    NoPendingBonusError,
    PaymentNotFoundError,
    ValidationError,
    WorkerNotFoundError,
)
from payroll_kernel.models.bonus import Bonus
from payroll_kernel.models.weekly_payment import WeeklyPayment

UTC = timezone.utc

WEDNESDAY = date(2024, 1, 3)
NEXT_WEDNESDAY = date(2024, 1, 10)


def _regular_count(session, user_id) -> int:
    return session.scalar(
        select(func.count(WeeklyPayment.id)).where(
            WeeklyPayment.user_id == user_id,
            WeeklyPayment.payment_type == PaymentType.REGULAR.value,
        )
    )


class TestMaterializeWeek:
    def test_flat_fallback_without_benchmark(
        self, worker, create_entry, payment_service, test_actor_id
    ):
        create_entry(worker.id, WEDNESDAY, 8, 90)
        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)

        assert payment.week_start == datetime(2024, 1, 2, tzinfo=UTC)
        assert payment.week_start_day == 2
        assert payment.week_number == 1
        assert payment.year == 2024
        assert payment.hourly_rate == Decimal("2000")
        assert payment.base_earnings == Decimal("16000.00")
        assert payment.performance_tier == "flat"
        assert payment.total_earnings == Decimal("16000.00")
        assert payment.status is PaymentStatus.PENDING
        assert not payment.paid

    def test_aggregates_effective_approved_values(
        self, worker, create_entry, create_benchmark, payment_service, test_actor_id
    ):
        create_benchmark(pay_per_hour=Decimal("100"))
        create_entry(worker.id, date(2024, 1, 2), 8, 90)
        create_entry(worker.id, date(2024, 1, 4), 6, 80, admin_time=5, admin_quality=85)
        create_entry(worker.id, date(2024, 1, 5), 10, 70, approve=False)

        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        assert payment.total_hours == Decimal("13.00")
        assert payment.entry_count == 2
        assert payment.avg_quality == Decimal("87.50")
        assert payment.total_earnings == Decimal("1300.00")

    def test_score_mode_applies_tier(
        self, worker, create_entry, create_benchmark, payment_service, test_actor_id
    ):
        create_benchmark(pay_per_hour=Decimal("1000"), earnings_mode="score")
        # score = 95 * 0.6 + 8 * 0.4 = 60.2 -> average, multiplier 1.0
        create_entry(worker.id, WEDNESDAY, 8, 95)

        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        assert payment.performance_tier == "average"
        assert payment.performance_multiplier == Decimal("1.0")
        assert payment.base_earnings == Decimal("8000.00")
        assert payment.total_earnings == Decimal("8000.00")

    def test_entries_outside_week_are_ignored(
        self, worker, create_entry, payment_service, test_actor_id
    ):
        create_entry(worker.id, date(2024, 1, 1), 4, 90)  # previous Tuesday week
        create_entry(worker.id, date(2024, 1, 8), 2, 90)  # last day of this week
        create_entry(worker.id, date(2024, 1, 9), 3, 90)  # next week

        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        assert payment.total_hours == Decimal("2.00")

    def test_empty_week_creates_nothing(self, session, worker, payment_service, test_actor_id):
        assert payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id) is None
        assert _regular_count(session, worker.id) == 0

    def test_empty_week_refreshes_existing_record(
        self, worker, create_entry, entry_service, payment_service, test_actor_id
    ):
        entry = create_entry(worker.id, WEDNESDAY, 8, 90)
        payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        entry_service.vet_entry(entry.id, test_actor_id, approve=False)

        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        assert payment.entry_count == 0
        assert payment.total_earnings == Decimal("0.00")

    def test_unknown_worker(self, payment_service, test_actor_id):
        with pytest.raises(WorkerNotFoundError):
            payment_service.materialize_week(uuid4(), WEDNESDAY, test_actor_id)


class TestUpsertRegularPayment:
    def test_idempotent(self, session, worker, payment_service, test_actor_id):
        week = resolve_week(WEDNESDAY, worker.week_start_day)
        stats = EntryStats.from_sums(Decimal("8"), Decimal("90"), 1)

        first = payment_service.upsert_regular_payment(worker.id, week, stats, None, test_actor_id)
        second = payment_service.upsert_regular_payment(worker.id, week, stats, None, test_actor_id)

        assert first.id == second.id
        assert first.total_earnings == second.total_earnings
        assert _regular_count(session, worker.id) == 1

    def test_keeps_status_and_extra_bonus(
        self, worker, payment_service, test_actor_id
    ):
        week = resolve_week(WEDNESDAY, worker.week_start_day)
        stats = EntryStats.from_sums(Decimal("1"), Decimal("90"), 1)
        payment = payment_service.upsert_regular_payment(worker.id, week, stats, None, test_actor_id)
        payment_service.approve_payment(payment.id, test_actor_id)
        payment_service.update_payment(
            payment.id, PaymentPatch(extra_bonus=Decimal("10")), test_actor_id
        )

        more = EntryStats.from_sums(Decimal("2"), Decimal("90"), 2)
        refreshed = payment_service.upsert_regular_payment(worker.id, week, more, None, test_actor_id)
        assert refreshed.status is PaymentStatus.APPROVED
        assert refreshed.extra_bonus == Decimal("10.00")
        assert refreshed.total_earnings == Decimal("4010.00")

    def test_paid_record_is_frozen(self, worker, payment_service, test_actor_id):
        week = resolve_week(WEDNESDAY, worker.week_start_day)
        stats = EntryStats.from_sums(Decimal("1"), Decimal("90"), 1)
        payment_service.upsert_regular_payment(worker.id, week, stats, None, test_actor_id)
        paid = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)

        more = EntryStats.from_sums(Decimal("5"), Decimal("90"), 2)
        after = payment_service.upsert_regular_payment(worker.id, week, more, None, test_actor_id)
        assert after.total_hours == paid.total_hours
        assert after.total_earnings == paid.total_earnings
        assert after.paid


class TestMarkWeekPaid:
    def test_merges_pending_bonuses(
        self, session, worker, create_entry, bonus_ledger, payment_service,
        test_actor_id, deterministic_clock,
    ):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        bonus_ledger.add_bonus(worker.id, "100", test_actor_id, "Referral")
        deterministic_clock.tick()
        bonus_ledger.add_bonus(worker.id, "25.50", test_actor_id, "Weekend")

        paid = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)

        assert paid.paid
        assert paid.status is PaymentStatus.PAID
        assert paid.paid_by_id == test_actor_id
        assert paid.paid_date == deterministic_clock.now_utc()
        assert paid.extra_bonus == Decimal("125.50")
        assert paid.extra_bonus_reason == "Referral; Weekend"
        assert paid.total_earnings == Decimal("2125.50")
        assert bonus_ledger.pending_total(worker.id) == Decimal("0.00")

        merged = session.scalars(select(Bonus).where(Bonus.user_id == worker.id)).all()
        assert {b.status for b in merged} == {BonusStatus.MERGED.value}
        assert {b.merged_into_payment_id for b in merged} == {paid.id}

    def test_second_call_merges_nothing_more(
        self, worker, create_entry, bonus_ledger, payment_service, test_actor_id,
        deterministic_clock,
    ):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        bonus_ledger.add_bonus(worker.id, 50, test_actor_id)
        first = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        deterministic_clock.advance(60)
        second = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)

        assert second.id == first.id
        assert second.extra_bonus == first.extra_bonus == Decimal("50.00")
        assert second.paid_date == first.paid_date

    def test_bonus_added_after_payment_lands_on_repeat_call(
        self, worker, create_entry, bonus_ledger, payment_service, test_actor_id
    ):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        bonus_ledger.add_bonus(worker.id, 30, test_actor_id, "Late")

        again = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        assert again.extra_bonus == Decimal("30.00")
        assert again.total_earnings == Decimal("2030.00")

    def test_synthesizes_missing_record(self, session, worker, payment_service, test_actor_id):
        paid = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        assert paid.paid
        assert paid.entry_count == 0
        assert paid.total_earnings == Decimal("0.00")
        assert _regular_count(session, worker.id) == 1

    def test_pays_a_denied_week(self, worker, create_entry, payment_service, test_actor_id):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        payment = payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        payment_service.deny_payment(payment.id, test_actor_id, "hours disputed")

        paid = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        assert paid.status is PaymentStatus.PAID
        assert paid.denial_reason is None

    def test_paid_stamp_matches_status_patch(
        self, worker, create_worker, create_entry, payment_service, test_actor_id,
        deterministic_clock,
    ):
        other = create_worker()
        stamped = []
        for user_id in (worker.id, other.id):
            create_entry(user_id, WEDNESDAY, 1, 90)
            payment = payment_service.materialize_week(user_id, WEDNESDAY, test_actor_id)
            payment_service.deny_payment(payment.id, test_actor_id, "recount")
        stamped.append(payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id))
        stamped.append(
            payment_service.update_payment(payment.id, PaymentPatch(status="paid"), test_actor_id)
        )

        for paid in stamped:
            assert paid.paid
            assert paid.paid_by_id == test_actor_id
            assert paid.paid_date == deterministic_clock.now_utc()
            assert (paid.denied_by_id, paid.denied_at, paid.denial_reason) == (None, None, None)


class TestPayPendingBonus:
    def test_nothing_pending(self, worker, payment_service, test_actor_id):
        with pytest.raises(NoPendingBonusError):
            payment_service.pay_pending_bonus(worker.id, test_actor_id)

    def test_case_a_pays_latest_unpaid_week(
        self, worker, create_entry, bonus_ledger, payment_service, test_actor_id
    ):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        create_entry(worker.id, NEXT_WEDNESDAY, 2, 90)
        payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)
        latest = payment_service.materialize_week(worker.id, NEXT_WEDNESDAY, test_actor_id)
        bonus_ledger.add_bonus(worker.id, 75, test_actor_id, "Spot")

        result = payment_service.pay_pending_bonus(worker.id, test_actor_id)

        assert not result.pending
        assert result.status == PaymentStatus.PAID.value
        assert result.amount == Decimal("75.00")
        assert result.bonus_count == 1
        assert result.payment.id == latest.id
        assert result.payment.paid
        assert result.payment.extra_bonus == Decimal("75.00")
        assert bonus_ledger.pending_total(worker.id) == Decimal("0.00")

    def test_case_b_queues_when_every_week_is_paid(
        self, session, worker, create_entry, bonus_ledger, payment_service, test_actor_id
    ):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        paid = payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        bonus_ledger.add_bonus(worker.id, 40, test_actor_id, "Queued")

        result = payment_service.pay_pending_bonus(worker.id, test_actor_id)

        assert result.pending
        assert result.status == QUEUED_FOR_NEXT_WEEK
        assert result.payment is None
        assert result.amount == Decimal("40.00")
        assert bonus_ledger.pending_total(worker.id) == Decimal("40.00")
        assert session.get(WeeklyPayment, paid.id).extra_bonus == Decimal("0.00")


class TestReviewLifecycle:
    @pytest.fixture
    def payment(self, worker, create_entry, payment_service, test_actor_id):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        return payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)

    def test_approve(self, payment, payment_service, test_actor_id):
        approved = payment_service.approve_payment(payment.id, test_actor_id)
        assert approved.status is PaymentStatus.APPROVED
        assert approved.approved_by_id == test_actor_id
        assert approved.approved_at is not None

    def test_approve_twice_rejected(self, payment, payment_service, test_actor_id):
        payment_service.approve_payment(payment.id, test_actor_id)
        with pytest.raises(InvalidPaymentTransitionError):
            payment_service.approve_payment(payment.id, test_actor_id)

    def test_deny_default_reason(self, payment, payment_service, test_actor_id):
        denied = payment_service.deny_payment(payment.id, test_actor_id)
        assert denied.status is PaymentStatus.DENIED
        assert denied.denial_reason == "Denied by admin"
        assert denied.denied_by_id == test_actor_id

    def test_denied_then_approved_clears_denial(self, payment, payment_service, test_actor_id):
        payment_service.deny_payment(payment.id, test_actor_id, "wrong hours")
        approved = payment_service.approve_payment(payment.id, test_actor_id)
        assert approved.status is PaymentStatus.APPROVED
        assert approved.denial_reason is None
        assert approved.denied_by_id is None
        assert approved.denied_at is None

    def test_paid_rejects_approve_and_deny(self, payment, worker, payment_service, test_actor_id):
        payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        with pytest.raises(InvalidPaymentTransitionError):
            payment_service.approve_payment(payment.id, test_actor_id)
        with pytest.raises(InvalidPaymentTransitionError):
            payment_service.deny_payment(payment.id, test_actor_id)

    def test_unknown_payment(self, payment_service, test_actor_id):
        with pytest.raises(PaymentNotFoundError):
            payment_service.approve_payment(uuid4(), test_actor_id)


class TestUpdatePayment:
    @pytest.fixture
    def payment(self, worker, create_entry, payment_service, test_actor_id):
        create_entry(worker.id, WEDNESDAY, 1, 90)
        return payment_service.materialize_week(worker.id, WEDNESDAY, test_actor_id)

    def test_extra_bonus_recomputes_total(self, payment, payment_service, test_actor_id):
        updated = payment_service.update_payment(
            payment.id,
            PaymentPatch(extra_bonus=Decimal("99.99"), extra_bonus_reason="manual"),
            test_actor_id,
        )
        assert updated.extra_bonus == Decimal("99.99")
        assert updated.total_earnings == Decimal("2099.99")

    def test_notes(self, payment, payment_service, test_actor_id):
        updated = payment_service.update_payment(
            payment.id, PaymentPatch(notes="n", admin_notes="a"), test_actor_id
        )
        assert (updated.notes, updated.admin_notes) == ("n", "a")

    def test_status_to_paid(self, payment, payment_service, test_actor_id):
        updated = payment_service.update_payment(
            payment.id, PaymentPatch(status="paid"), test_actor_id
        )
        assert updated.paid
        assert updated.paid_by_id == test_actor_id

    def test_same_status_is_noop(self, payment, payment_service, test_actor_id):
        updated = payment_service.update_payment(
            payment.id, PaymentPatch(status=PaymentStatus.PENDING, notes="x"), test_actor_id
        )
        assert updated.status is PaymentStatus.PENDING

    def test_paid_cannot_be_reopened(self, payment, worker, payment_service, test_actor_id):
        payment_service.mark_week_paid(worker.id, WEDNESDAY, test_actor_id)
        with pytest.raises(InvalidPaymentTransitionError):
            payment_service.update_payment(
                payment.id, PaymentPatch(status="pending"), test_actor_id
            )

    @pytest.mark.parametrize(
        "patch",
        [PaymentPatch(), PaymentPatch(extra_bonus=Decimal("-1")), PaymentPatch(status="reopened")],
    )
    def test_invalid_patch(self, payment, payment_service, test_actor_id, patch):
        with pytest.raises(ValidationError):
            payment_service.update_payment(payment.id, patch, test_actor_id)


class TestWeeklySummary:
    def test_summary_reads_without_writing(
        self, session, worker, create_entry, payment_service
    ):
        create_entry(worker.id, WEDNESDAY, 8, 90)
        summary = payment_service.get_weekly_summary(worker.id, WEDNESDAY)

        assert summary.week.week_start == datetime(2024, 1, 2, tzinfo=UTC)
        assert summary.stats.total_hours == Decimal("8.00")
        assert summary.payment is None
        assert _regular_count(session, worker.id) == 0


class TestWorkerPerformanceStats:
    def test_defaults_to_last_30_days(self, worker, create_entry, payment_service):
        create_entry(worker.id, date(2023, 12, 3), 5, 80)
        create_entry(worker.id, date(2023, 12, 4), 2, 80)
        create_entry(worker.id, WEDNESDAY, 4, 60)
        create_entry(worker.id, date(2024, 1, 2), 3, 70, approve=False)

        [perf] = payment_service.worker_performance_stats()
        assert (perf.window_start, perf.window_end) == (date(2023, 12, 4), WEDNESDAY)
        assert perf.stats.entry_count == 2
        assert perf.stats.total_hours == Decimal("6.00")
        assert perf.tier == "flat"
        assert perf.projected_earnings == Decimal("12000.00")

    def test_values_against_current_benchmark(
        self, worker, create_worker, create_entry, create_benchmark, payment_service
    ):
        create_benchmark(pay_per_hour=Decimal("100"), earnings_mode="score")
        other = create_worker()
        # 95 * 0.6 + 8 * 0.4 = 60.2 -> average; 100 * 0.6 + 50 * 0.4 = 80 -> excellent
        create_entry(worker.id, WEDNESDAY, 8, 95)
        create_entry(other.id, WEDNESDAY, 50, 100)

        by_user = {p.user_id: p for p in payment_service.worker_performance_stats()}
        assert set(by_user) == {worker.id, other.id}
        assert by_user[worker.id].tier == "average"
        assert by_user[worker.id].multiplier == Decimal("1.0")
        assert by_user[worker.id].projected_earnings == Decimal("800.00")
        assert by_user[other.id].score == Decimal("80.00")
        assert by_user[other.id].tier == "excellent"
        assert by_user[other.id].base_earnings == Decimal("5000.00")
        assert by_user[other.id].projected_earnings == Decimal("6000.00")

    def test_single_worker_explicit_window(self, worker, create_entry, payment_service):
        create_entry(worker.id, date(2024, 1, 2), 8, 90)
        create_entry(worker.id, WEDNESDAY, 4, 70)

        [perf] = payment_service.worker_performance_stats(
            WEDNESDAY, datetime(2024, 1, 3, 23, tzinfo=UTC), user_id=worker.id
        )
        assert perf.stats.entry_count == 1
        assert perf.stats.avg_quality == Decimal("70.00")

    def test_worker_without_entries_reports_zeros(self, worker, payment_service):
        [perf] = payment_service.worker_performance_stats(user_id=worker.id)
        assert perf.stats.entry_count == 0
        assert perf.projected_earnings == Decimal("0.00")

    def test_reversed_window(self, payment_service):
        with pytest.raises(ValidationError):
            payment_service.worker_performance_stats(date(2024, 2, 1), date(2024, 1, 1))

    def test_unknown_worker(self, payment_service):
        with pytest.raises(WorkerNotFoundError):
            payment_service.worker_performance_stats(user_id=uuid4())
