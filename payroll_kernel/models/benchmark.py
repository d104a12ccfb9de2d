"""
Module: payroll_kernel.models.benchmark
Responsibility: ORM persistence for performance benchmarks: the time and
    quality targets, tier thresholds and bonus rates in force for a date
    range.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - At most one benchmark is current at any instant.  Creating an active
      benchmark deactivates every active benchmark whose range overlaps it
      (BenchmarkService.create_benchmark).
    - Entry and payment flows never write benchmarks.

Failure modes:
    - ValidationError from the thresholds/bonus_rates accessors if stored
      values were edited out of order directly in the database.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.domain.valuation import (
    BenchmarkPolicy,
    BonusRates,
    EarningsMode,
    Thresholds,
)


class Benchmark(TrackedBase):
    """
    Performance benchmark for a date range.

    Guarantees:
        - ``policy`` returns the pure valuation view of this row.
        - ``overlaps`` uses inclusive ranges on both ends.
    """

    __tablename__ = "benchmarks"

    __table_args__ = (
        Index("idx_benchmark_start_active", "start_date", "is_active"),
        Index("idx_benchmark_range", "start_date", "end_date"),
    )

    time_benchmark: Mapped[Decimal] = mapped_column(nullable=False)
    quality_benchmark: Mapped[Decimal] = mapped_column(nullable=False)

    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)

    pay_per_hour: Mapped[Decimal | None] = mapped_column(nullable=True)

    earnings_mode: Mapped[str] = mapped_column(
        String(20),
        default=EarningsMode.FLAT.value,
        nullable=False,
    )

    threshold_excellent: Mapped[Decimal] = mapped_column(default=Decimal("80"), nullable=False)
    threshold_good: Mapped[Decimal] = mapped_column(default=Decimal("70"), nullable=False)
    threshold_average: Mapped[Decimal] = mapped_column(default=Decimal("60"), nullable=False)
    threshold_minimum: Mapped[Decimal] = mapped_column(default=Decimal("50"), nullable=False)

    rate_excellent: Mapped[Decimal] = mapped_column(default=Decimal("1.2"), nullable=False)
    rate_good: Mapped[Decimal] = mapped_column(default=Decimal("1.1"), nullable=False)
    rate_average: Mapped[Decimal] = mapped_column(default=Decimal("1.0"), nullable=False)
    rate_minimum: Mapped[Decimal] = mapped_column(default=Decimal("0.9"), nullable=False)
    rate_below: Mapped[Decimal] = mapped_column(default=Decimal("0.8"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Benchmark {self.start_date:%Y-%m-%d}..{self.end_date:%Y-%m-%d} "
            f"{self.earnings_mode}{'' if self.is_active else ' inactive'}>"
        )

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            excellent=self.threshold_excellent,
            good=self.threshold_good,
            average=self.threshold_average,
            minimum=self.threshold_minimum,
        )

    @thresholds.setter
    def thresholds(self, value: Thresholds) -> None:
        self.threshold_excellent = value.excellent
        self.threshold_good = value.good
        self.threshold_average = value.average
        self.threshold_minimum = value.minimum

    @property
    def bonus_rates(self) -> BonusRates:
        return BonusRates(
            excellent=self.rate_excellent,
            good=self.rate_good,
            average=self.rate_average,
            minimum=self.rate_minimum,
            below=self.rate_below,
        )

    @bonus_rates.setter
    def bonus_rates(self, value: BonusRates) -> None:
        self.rate_excellent = value.excellent
        self.rate_good = value.good
        self.rate_average = value.average
        self.rate_minimum = value.minimum
        self.rate_below = value.below

    @property
    def policy(self) -> BenchmarkPolicy:
        return BenchmarkPolicy(
            earnings_mode=self.earnings_mode,
            pay_per_hour=self.pay_per_hour,
            thresholds=self.thresholds,
            bonus_rates=self.bonus_rates,
        )
