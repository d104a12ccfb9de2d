"""Tests for Decimal coercion and rounding helpers."""

from decimal import Decimal

import pytest

from payroll_kernel.db.types import round_money, round_quantity, to_decimal
from payroll_kernel.exceptions import ValidationError


@pytest.mark.parametrize(
    "value,expected",
    [
        (8.1, Decimal("8.1")),
        (7, Decimal("7")),
        ("12.50", Decimal("12.50")),
        (Decimal("3.3"), Decimal("3.3")),
    ],
)
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", ["abc", "", None, [1], "NaN", "sNaN", "-Infinity", float("nan")])
def test_to_decimal_rejects_with_field_name(value):
    with pytest.raises(ValidationError) as exc_info:
        to_decimal(value, "amount")
    assert exc_info.value.field == "amount"
    assert exc_info.value.code == "VALIDATION_ERROR"


def test_to_decimal_rejects_non_finite_decimal():
    with pytest.raises(ValidationError):
        to_decimal(Decimal("Infinity"))


def test_rounding_is_half_up():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_quantity(Decimal("0.125")) == Decimal("0.13")
