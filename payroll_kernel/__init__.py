"""
Payroll Kernel

The weekly pay core of the time-tracking backend:
- Week boundary resolution and payment key derivation
- Benchmark-driven earnings valuation
- Approved entry aggregation
- Append-only bonus ledger
- Idempotent weekly payment upsert and merge-on-pay
"""

__version__ = "0.1.0"
