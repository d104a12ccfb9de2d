"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable snapshots of workers, entries, benchmarks, weekly payments and
    bonuses as they cross the service boundary, plus the request shapes
    (filters, patches) and composite results (pages, payouts, summaries)
    returned by the facade.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods exist as boundary
    converters and are only invoked from services and selectors.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities, so callers
      cannot mutate persisted state outside a service method.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import UUID

from payroll_kernel.domain.entry_stats import EntryStats
from payroll_kernel.domain.payment_lifecycle import (
    BonusStatus,
    PaymentStatus,
    PaymentType,
)
from payroll_kernel.domain.valuation import (
    BenchmarkPolicy,
    BonusRates,
    EarningsMode,
    Thresholds,
)
from payroll_kernel.domain.week import WeekKey

if TYPE_CHECKING:
    from payroll_kernel.models.benchmark import Benchmark as BenchmarkModel
    from payroll_kernel.models.bonus import Bonus as BonusModel
    from payroll_kernel.models.entry import Entry as EntryModel
    from payroll_kernel.models.weekly_payment import (
        WeeklyPayment as WeeklyPaymentModel,
    )
    from payroll_kernel.models.worker import Worker as WorkerModel

T = TypeVar("T")


@dataclass(frozen=True)
class WorkerInfo:
    id: UUID
    name: str
    email: str
    week_start_day: int
    is_active: bool
    extra_bonus: Decimal
    extra_bonus_reason: str | None

    @classmethod
    def from_model(cls, model: WorkerModel) -> WorkerInfo:
        return cls(
            id=model.id,
            name=model.name,
            email=model.email,
            week_start_day=model.week_start_day,
            is_active=model.is_active,
            extra_bonus=model.extra_bonus,
            extra_bonus_reason=model.extra_bonus_reason,
        )


@dataclass(frozen=True)
class EntryInfo:
    id: UUID
    worker_id: UUID
    profile_id: UUID
    work_date: date
    time: Decimal
    quality: Decimal
    admin_time: Decimal | None
    admin_quality: Decimal | None
    effective_time: Decimal
    effective_quality: Decimal
    admin_approved: bool
    approved_by_id: UUID | None
    approved_at: datetime | None
    notes: str | None
    admin_notes: str | None

    @classmethod
    def from_model(cls, model: EntryModel) -> EntryInfo:
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            profile_id=model.profile_id,
            work_date=model.work_date,
            time=model.time,
            quality=model.quality,
            admin_time=model.admin_time,
            admin_quality=model.admin_quality,
            effective_time=model.effective_time,
            effective_quality=model.effective_quality,
            admin_approved=model.admin_approved,
            approved_by_id=model.approved_by_id,
            approved_at=model.approved_at,
            notes=model.notes,
            admin_notes=model.admin_notes,
        )


@dataclass(frozen=True)
class BenchmarkInfo:
    id: UUID
    time_benchmark: Decimal
    quality_benchmark: Decimal
    start_date: datetime
    end_date: datetime
    pay_per_hour: Decimal | None
    earnings_mode: EarningsMode
    thresholds: Thresholds
    bonus_rates: BonusRates
    is_active: bool
    notes: str | None
    created_by_id: UUID

    @property
    def policy(self) -> BenchmarkPolicy:
        return BenchmarkPolicy(
            earnings_mode=self.earnings_mode,
            pay_per_hour=self.pay_per_hour,
            thresholds=self.thresholds,
            bonus_rates=self.bonus_rates,
        )

    @classmethod
    def from_model(cls, model: BenchmarkModel) -> BenchmarkInfo:
        return cls(
            id=model.id,
            time_benchmark=model.time_benchmark,
            quality_benchmark=model.quality_benchmark,
            start_date=model.start_date,
            end_date=model.end_date,
            pay_per_hour=model.pay_per_hour,
            earnings_mode=EarningsMode(model.earnings_mode),
            thresholds=model.thresholds,
            bonus_rates=model.bonus_rates,
            is_active=model.is_active,
            notes=model.notes,
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class WeeklyPaymentInfo:
    id: UUID
    user_id: UUID
    week_start: datetime
    week_end: datetime
    week_number: int
    year: int
    week_start_day: int
    total_hours: Decimal
    avg_quality: Decimal
    entry_count: int
    hourly_rate: Decimal
    base_earnings: Decimal
    performance_multiplier: Decimal
    performance_tier: str
    bonus_earnings: Decimal
    extra_bonus: Decimal
    extra_bonus_reason: str | None
    total_earnings: Decimal
    payment_type: PaymentType
    status: PaymentStatus
    paid: bool
    paid_date: datetime | None
    paid_by_id: UUID | None
    approved_by_id: UUID | None
    approved_at: datetime | None
    denied_by_id: UUID | None
    denied_at: datetime | None
    denial_reason: str | None
    notes: str | None
    admin_notes: str | None

    @classmethod
    def from_model(cls, model: WeeklyPaymentModel) -> WeeklyPaymentInfo:
        return cls(
            id=model.id,
            user_id=model.user_id,
            week_start=model.week_start,
            week_end=model.week_end,
            week_number=model.week_number,
            year=model.year,
            week_start_day=model.week_start_day,
            total_hours=model.total_hours,
            avg_quality=model.avg_quality,
            entry_count=model.entry_count,
            hourly_rate=model.hourly_rate,
            base_earnings=model.base_earnings,
            performance_multiplier=model.performance_multiplier,
            performance_tier=model.performance_tier,
            bonus_earnings=model.bonus_earnings,
            extra_bonus=model.extra_bonus,
            extra_bonus_reason=model.extra_bonus_reason,
            total_earnings=model.total_earnings,
            payment_type=PaymentType(model.payment_type),
            status=PaymentStatus(model.status),
            paid=model.paid,
            paid_date=model.paid_date,
            paid_by_id=model.paid_by_id,
            approved_by_id=model.approved_by_id,
            approved_at=model.approved_at,
            denied_by_id=model.denied_by_id,
            denied_at=model.denied_at,
            denial_reason=model.denial_reason,
            notes=model.notes,
            admin_notes=model.admin_notes,
        )


@dataclass(frozen=True)
class BonusInfo:
    id: UUID
    user_id: UUID
    amount: Decimal
    reason: str
    status: BonusStatus
    merged_into_payment_id: UUID | None
    merged_at: datetime | None
    reset_at: datetime | None
    created_by_id: UUID
    created_at: datetime | None

    @classmethod
    def from_model(cls, model: BonusModel) -> BonusInfo:
        return cls(
            id=model.id,
            user_id=model.user_id,
            amount=model.amount,
            reason=model.reason,
            status=BonusStatus(model.status),
            merged_into_payment_id=model.merged_into_payment_id,
            merged_at=model.merged_at,
            reset_at=model.reset_at,
            created_by_id=model.created_by_id,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing, newest week first."""

    items: tuple[T, ...]
    total: int
    page: int
    pages: int

    @classmethod
    def build(cls, items: list[T], total: int, page: int, limit: int) -> Page[T]:
        return cls(
            items=tuple(items),
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )


@dataclass(frozen=True)
class PaymentFilter:
    """Optional predicates for payment listings.  None means "any"."""

    user_id: UUID | None = None
    status: PaymentStatus | None = None
    payment_type: PaymentType | None = None
    paid: bool | None = None
    year: int | None = None
    week_number: int | None = None
    week_start_from: datetime | None = None
    week_start_to: datetime | None = None


@dataclass(frozen=True)
class PaymentPatch:
    """Admin override of a weekly payment.  None leaves a field unchanged."""

    status: PaymentStatus | str | None = None
    extra_bonus: Decimal | None = None
    extra_bonus_reason: str | None = None
    notes: str | None = None
    admin_notes: str | None = None

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (
                self.status,
                self.extra_bonus,
                self.extra_bonus_reason,
                self.notes,
                self.admin_notes,
            )
        )


# Result status reported when no unpaid week can take a bonus payout
QUEUED_FOR_NEXT_WEEK = "queued_for_next_week"


@dataclass(frozen=True)
class BonusPayoutResult:
    """
    Outcome of paying a worker's pending bonuses.

    ``pending`` is True when the bonuses were left queued for the next
    weekly payout; ``payment`` is then None.
    """

    user_id: UUID
    amount: Decimal
    bonus_count: int
    reason: str
    pending: bool
    status: str
    payment: WeeklyPaymentInfo | None = None


@dataclass(frozen=True)
class WeeklySummary:
    """Read-only view of one worker week: key plus approved-entry stats."""

    user_id: UUID
    week: WeekKey
    stats: EntryStats
    payment: WeeklyPaymentInfo | None = None


@dataclass(frozen=True)
class WorkerPerformance:
    """
    A worker's approved-entry stats over a date window, valued against the
    current benchmark as if the whole window were paid at once.
    """

    user_id: UUID
    window_start: date
    window_end: date
    stats: EntryStats
    score: Decimal
    tier: str
    multiplier: Decimal
    base_earnings: Decimal
    projected_earnings: Decimal


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a batch weekly payment generation run."""

    reference_date: datetime
    processed: int
    skipped: int
    failed: int
    payments: tuple[WeeklyPaymentInfo, ...] = ()
