"""
Weekly entry statistics.

Pure reduction of vetted entries into the figures a weekly payment is
computed from.  The selector layer performs the same reduction in SQL;
this module is the reference used by previews and tests, and owns the
rounding of the result.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from payroll_kernel.db.types import ZERO, round_quantity, to_decimal


@dataclass(frozen=True)
class EntryStats:
    """Totals and averages of the approved entries in one window."""

    total_hours: Decimal
    avg_quality: Decimal
    avg_time: Decimal
    entry_count: int

    @classmethod
    def empty(cls) -> "EntryStats":
        return cls(
            total_hours=round_quantity(ZERO),
            avg_quality=round_quantity(ZERO),
            avg_time=round_quantity(ZERO),
            entry_count=0,
        )

    @classmethod
    def from_sums(
        cls, total_time: Decimal, total_quality: Decimal, entry_count: int
    ) -> "EntryStats":
        """Build rounded stats from raw sums over ``entry_count`` entries."""
        if entry_count <= 0:
            return cls.empty()
        total_time = to_decimal(total_time)
        total_quality = to_decimal(total_quality)
        return cls(
            total_hours=round_quantity(total_time),
            avg_quality=round_quantity(total_quality / entry_count),
            avg_time=round_quantity(total_time / entry_count),
            entry_count=entry_count,
        )


def aggregate(effective_values: Iterable[tuple[Decimal, Decimal]]) -> EntryStats:
    """
    Reduce ``(effective_time, effective_quality)`` pairs to EntryStats.

    >>> aggregate([(Decimal("8"), Decimal("90")), (Decimal("6"), Decimal("70"))])
    EntryStats(total_hours=Decimal('14.00'), avg_quality=Decimal('80.00'), avg_time=Decimal('7.00'), entry_count=2)
    """
    total_time = ZERO
    total_quality = ZERO
    count = 0
    for time_value, quality_value in effective_values:
        total_time += to_decimal(time_value)
        total_quality += to_decimal(quality_value)
        count += 1
    return EntryStats.from_sums(total_time, total_quality, count)
