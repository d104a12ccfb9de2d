"""Services for the payroll kernel (write side)."""

from payroll_kernel.services.benchmark_service import BenchmarkService
from payroll_kernel.services.bonus_ledger import BonusLedgerService, PendingDrain
from payroll_kernel.services.entry_service import EntryService
from payroll_kernel.services.weekly_payment_service import WeeklyPaymentService
from payroll_kernel.services.worker_service import WorkerService

__all__ = [
    "BenchmarkService",
    "BonusLedgerService",
    "EntryService",
    "PendingDrain",
    "WeeklyPaymentService",
    "WorkerService",
]
