"""
Benchmark valuation policy.

Responsibility:
    Pure earnings arithmetic for one pay week: tier lookup from a blended
    performance score, the hourly rate in effect, and the base / bonus /
    final earnings triple.  The persisted Benchmark row is converted into a
    ``BenchmarkPolicy`` value before any arithmetic happens, so the math can
    be tested without a database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Tier order: the first threshold met wins, checked from excellent down
      to minimum; anything lower is ``below``.
    - Thresholds are non-increasing and bonus rates are positive.
    - flat mode:  final = base = hours * rate, multiplier 1, bonus 0.
      score mode: final = base * rate_for_tier, bonus = final - base.
    - Monetary outputs are quantized to 0.01 (half up).

Failure modes:
    - ValidationError from BenchmarkPolicy construction for decreasing
      thresholds, non-positive bonus rates or an unknown earnings mode.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from payroll_kernel.db.types import ZERO, round_money, round_quantity, to_decimal
from payroll_kernel.exceptions import ValidationError

# Blend weights for the performance score
QUALITY_WEIGHT = Decimal("0.6")
TIME_WEIGHT = Decimal("0.4")

DEFAULT_HOURLY_RATE = Decimal("2000")

ONE = Decimal("1")


class EarningsMode(str, Enum):
    """How a benchmark turns hours into money."""

    FLAT = "flat"
    SCORE = "score"


class Tier(str, Enum):
    """Performance tier produced by threshold lookup."""

    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    MINIMUM = "minimum"
    BELOW = "below"


# Tier label recorded on flat-mode payments
FLAT_TIER = "flat"


@dataclass(frozen=True)
class Thresholds:
    excellent: Decimal = Decimal("80")
    good: Decimal = Decimal("70")
    average: Decimal = Decimal("60")
    minimum: Decimal = Decimal("50")

    def __post_init__(self) -> None:
        ordered = [self.excellent, self.good, self.average, self.minimum]
        for name, value in zip(("excellent", "good", "average", "minimum"), ordered):
            if value < ZERO:
                raise ValidationError(f"thresholds.{name}", "cannot be negative")
        if any(a < b for a, b in zip(ordered, ordered[1:])):
            raise ValidationError(
                "thresholds",
                "must be non-increasing: excellent >= good >= average >= minimum",
            )


@dataclass(frozen=True)
class BonusRates:
    excellent: Decimal = Decimal("1.2")
    good: Decimal = Decimal("1.1")
    average: Decimal = Decimal("1.0")
    minimum: Decimal = Decimal("0.9")
    below: Decimal = Decimal("0.8")

    def __post_init__(self) -> None:
        for tier in Tier:
            if getattr(self, tier.value) <= ZERO:
                raise ValidationError(f"bonus_rates.{tier.value}", "must be positive")

    def for_tier(self, tier: Tier) -> Decimal:
        return getattr(self, tier.value)


@dataclass(frozen=True)
class EarningsResult:
    """Outcome of one earnings calculation."""

    hourly_rate: Decimal
    base_earnings: Decimal
    multiplier: Decimal
    tier: str
    bonus: Decimal
    final_earnings: Decimal


def performance_score(avg_quality: Decimal, avg_time: Decimal) -> Decimal:
    """
    Blend average quality and average time into one score.

    The blend is raw (quality * 0.6 + time * 0.4) and is not normalized
    against the benchmark targets, so thresholds are set in the same units.
    """
    return round_quantity(
        to_decimal(avg_quality) * QUALITY_WEIGHT + to_decimal(avg_time) * TIME_WEIGHT
    )


@dataclass(frozen=True)
class BenchmarkPolicy:
    """
    Immutable valuation parameters of one benchmark.

    Contract:
        ``pay_per_hour`` of None (or <= 0) defers to the caller's default
        rate.  ``earnings_mode`` decides whether the tier multiplier applies.
    """

    earnings_mode: EarningsMode = EarningsMode.FLAT
    pay_per_hour: Decimal | None = None
    thresholds: Thresholds = field(default_factory=Thresholds)
    bonus_rates: BonusRates = field(default_factory=BonusRates)

    def __post_init__(self) -> None:
        try:
            mode = EarningsMode(self.earnings_mode)
        except ValueError:
            raise ValidationError(
                "earnings_mode",
                f"must be one of {[m.value for m in EarningsMode]}, got {self.earnings_mode!r}",
            ) from None
        object.__setattr__(self, "earnings_mode", mode)

    @classmethod
    def flat_fallback(cls) -> "BenchmarkPolicy":
        """Policy used when no benchmark exists: flat pay at the default rate."""
        return cls(earnings_mode=EarningsMode.FLAT)

    def get_hourly_rate(self, default_rate: Decimal = DEFAULT_HOURLY_RATE) -> Decimal:
        if self.pay_per_hour is not None and self.pay_per_hour > ZERO:
            return self.pay_per_hour
        return to_decimal(default_rate)

    def get_tier(self, score: Decimal) -> Tier:
        t = self.thresholds
        if score >= t.excellent:
            return Tier.EXCELLENT
        if score >= t.good:
            return Tier.GOOD
        if score >= t.average:
            return Tier.AVERAGE
        if score >= t.minimum:
            return Tier.MINIMUM
        return Tier.BELOW

    def calculate_earnings(
        self,
        hours: Decimal,
        score: Decimal,
        default_rate: Decimal = DEFAULT_HOURLY_RATE,
    ) -> EarningsResult:
        """
        Earnings for ``hours`` worked at blended ``score``.

        Postconditions:
            final_earnings == base_earnings + bonus (after rounding each).
        """
        rate = self.get_hourly_rate(default_rate)
        base = to_decimal(hours) * rate

        if self.earnings_mode is EarningsMode.FLAT:
            rounded_base = round_money(base)
            return EarningsResult(
                hourly_rate=rate,
                base_earnings=rounded_base,
                multiplier=ONE,
                tier=FLAT_TIER,
                bonus=round_money(ZERO),
                final_earnings=rounded_base,
            )

        tier = self.get_tier(to_decimal(score))
        multiplier = self.bonus_rates.for_tier(tier)
        rounded_base = round_money(base)
        rounded_final = round_money(base * multiplier)
        return EarningsResult(
            hourly_rate=rate,
            base_earnings=rounded_base,
            multiplier=multiplier,
            tier=tier.value,
            bonus=rounded_final - rounded_base,
            final_earnings=rounded_final,
        )
