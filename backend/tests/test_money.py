# Overview: Pytest coverage for decimal parsing, rounding and cents conversion.

from decimal import Decimal

import pytest

from nexero.errors import ValidationError
from nexero.money import MAX_AMOUNT, to_decimal, round2, to_cents, from_cents, percent_to_bps


@pytest.mark.parametrize("raw,expected", [
    ("40,50", Decimal("40.50")),
    (" 7 ", Decimal("7")),
    (3, Decimal("3")),
    (Decimal("1.005"), Decimal("1.005")),
])
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize("raw", [None, True, "", "dez", "NaN", "Infinity", "1e30", "-1e30"])
def test_to_decimal_rejects(raw):
    with pytest.raises(ValidationError):
        to_decimal(raw)


def test_to_decimal_limit_can_be_lifted():
    assert to_decimal("1e30", limit=None) == Decimal("1e30")
    assert to_decimal(str(MAX_AMOUNT)) == MAX_AMOUNT


def test_round2_half_up():
    assert round2("2.345") == Decimal("2.35")
    assert round2(Decimal("0.005")) == Decimal("0.01")


def test_round2_out_of_context_is_a_validation_error():
    with pytest.raises(ValidationError):
        round2(Decimal("1e30"))


def test_cents_and_bps():
    assert to_cents(Decimal("27.00")) == 2700
    assert from_cents(1999) == Decimal("19.99")
    assert from_cents(None) == Decimal("0.00")
    assert percent_to_bps(Decimal("12.5")) == 1250
