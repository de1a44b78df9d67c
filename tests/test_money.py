from decimal import Decimal

import pytest

from exceptions import MalformedAmountError, SkippableBudgetError
from money import format_money, to_money


def test_none_defaults_to_zero():
    assert to_money(None) == Decimal("0")


@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("12.50"), Decimal("12.50")),
        (12, Decimal("12")),
        (0.1, Decimal("0.1")),
        (" 42.10 ", Decimal("42.10")),
    ],
)
def test_coerces_supported_types(value, expected):
    assert to_money(value) == expected


@pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", True, [1], object()])
def test_rejects_malformed_values(value):
    with pytest.raises(MalformedAmountError) as excinfo:
        to_money(value, budget_id=7)
    assert isinstance(excinfo.value, SkippableBudgetError)
    assert excinfo.value.budget_id == 7


def test_format_money_uses_two_places_half_up():
    assert format_money(Decimal("4600")) == "4600.00"
    assert format_money(Decimal("10.005")) == "10.01"
    assert format_money(Decimal("10.004")) == "10.00"
    assert format_money(None) == "0.00"
