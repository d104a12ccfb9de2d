"""
Weekly Pay Module (``payroll_modules.weekly_pay``).

Responsibility
--------------
Weekly payroll for workers who log daily time and quality entries:
materializes one regular payment per worker pay week from approved
entries, pays weeks out together with ledger bonuses, and runs the admin
approve / deny / override lifecycle.

Architecture position
---------------------
**Modules layer** -- a config schema and a service facade that owns
transaction boundaries and delegates everything else to
``payroll_kernel``.
"""

from payroll_modules.weekly_pay.config import WeeklyPayConfig
from payroll_modules.weekly_pay.service import WeeklyPayService

__all__ = [
    "WeeklyPayConfig",
    "WeeklyPayService",
]
