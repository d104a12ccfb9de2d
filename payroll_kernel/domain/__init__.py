"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through the injected Clock.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.dtos import (
    QUEUED_FOR_NEXT_WEEK,
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
    EarningsResult,
    Thresholds,
    Tier,
)
from payroll_kernel.domain.week import WeekBoundaries, WeekKey, resolve_week

__all__ = [
    "BenchmarkInfo",
    "BenchmarkPolicy",
    "BonusInfo",
    "BonusPayoutResult",
    "BonusRates",
    "BonusStatus",
    "Clock",
    "DeterministicClock",
    "EarningsMode",
    "EarningsResult",
    "EntryInfo",
    "EntryStats",
    "GenerationResult",
    "Page",
    "PaymentFilter",
    "PaymentPatch",
    "PaymentStatus",
    "PaymentType",
    "QUEUED_FOR_NEXT_WEEK",
    "SystemClock",
    "Thresholds",
    "Tier",
    "WeekBoundaries",
    "WeekKey",
    "WeeklyPaymentInfo",
    "WeeklySummary",
    "WorkerInfo",
    "WorkerPerformance",
    "resolve_week",
]
