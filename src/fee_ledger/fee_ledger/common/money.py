"""Integer money helpers.

Amounts are whole minor units (paise). Halves round away from zero, matching
how fee offices round on paper rather than Python's banker's rounding.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ..core.exceptions import ValidationError

Number = Union[int, float, str, Decimal]


def as_decimal(value: Number, field_name: str = "Value") -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} is not a number")
    if not d.is_finite():
        raise ValidationError(f"{field_name} is not a number")
    return d


def percent_of(amount: int, percent: Number) -> int:
    """round_half_up(amount * percent / 100)."""
    raw = Decimal(int(amount)) * as_decimal(percent, "Percent") / Decimal(100)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
