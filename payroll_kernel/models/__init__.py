"""ORM models.  Importing this package registers every table on Base.metadata."""

from payroll_kernel.models.benchmark import Benchmark
from payroll_kernel.models.bonus import DEFAULT_BONUS_REASON, Bonus
from payroll_kernel.models.entry import Entry
from payroll_kernel.models.weekly_payment import WeeklyPayment
from payroll_kernel.models.worker import DEFAULT_WEEK_START_DAY, Worker

__all__ = [
    "Benchmark",
    "Bonus",
    "DEFAULT_BONUS_REASON",
    "DEFAULT_WEEK_START_DAY",
    "Entry",
    "WeeklyPayment",
    "Worker",
]
