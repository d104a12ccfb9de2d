"""Selectors for the payroll kernel (read side)."""

from payroll_kernel.selectors.entry_selector import EntrySelector
from payroll_kernel.selectors.payment_selector import PaymentSelector

__all__ = [
    "EntrySelector",
    "PaymentSelector",
]
