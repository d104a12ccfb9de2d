"""
Module: payroll_kernel.db.types
Responsibility: Annotated column type aliases and the rounding helpers used
    for hours, scores and money.  Centralizes precision so that every model
    and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats: hours, quality scores, multipliers and money are Decimal.
    - Display precision: hours, averages and money are stored rounded to two
      decimal places (half up); multipliers keep their configured precision.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

from payroll_kernel.exceptions import ValidationError

# Monetary amount, 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Hours worked / quality score / multiplier
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (statuses, modes, tiers)
ShortCode = Annotated[str, String(50)]

# Free text for notes and reasons
LongText = Annotated[str, String(2000)]


MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str, field: str = "value") -> Decimal:
    """
    Coerce a numeric input to a finite Decimal without binary float artifacts.

    Floats are routed through ``str`` so ``8.1`` becomes ``Decimal("8.1")``
    rather than ``Decimal("8.0999999999999996447286321199499070644378662109375")``.

    Args:
        value: Decimal, int, float or numeric string.
        field: Input name reported when the value is rejected.

    Raises:
        ValidationError: If value is not numeric, or is NaN or infinite.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ValidationError(field, f"must be finite, got {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_quantity(value: Decimal) -> Decimal:
    """Round hours or an averaged score to two decimal places (half up)."""
    return round_money(value, QUANTITY_DECIMAL_PLACES)
