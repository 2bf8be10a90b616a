"""
Money helpers.

Pricing math runs on Decimal rounded half-up to 2 places; storage is integer
cents. Conversions between the two only happen here.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
MAX_AMOUNT = Decimal("1000000000000")


def to_decimal(value, field: str = "amount", *, limit: Decimal | None = MAX_AMOUNT) -> Decimal:
    """
    Parse user input into a Decimal.

    Accepts Decimal, int, float and strings; a comma decimal separator
    ("40,50") is accepted as entered on pt-BR keyboards. Magnitudes above
    `limit` raise ValidationError; pass limit=None when the caller clamps
    the value itself.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            raise ValidationError(f"{field} must be a number")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if limit is not None and abs(result) > limit:
        raise ValidationError(f"{field} is out of range", details={"max": str(limit)})
    return result


def round2(value) -> Decimal:
    try:
        return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Amount is out of range", details={"value": str(value)})


def to_cents(amount) -> int:
    return int((round2(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return ZERO
    return (Decimal(cents) / HUNDRED).quantize(TWOPLACES)


def percent_to_bps(percent) -> int:
    """10.5 (%) -> 1050 basis points."""
    return int((Decimal(str(percent)) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def bps_to_percent(bps: int | None) -> Decimal:
    if not bps:
        return Decimal("0")
    return Decimal(bps) / HUNDRED
