from __future__ import annotations

from typing import Iterable, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_positive_amount(value: int, field_name: str = "Amount") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number of minor units")
    try:
        amount = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number of minor units")
    if amount != value:
        raise ValidationError(f"{field_name} must be a whole number of minor units")
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than 0")
    return amount


def require_unique_ids(values: Iterable[int], field_name: str) -> list[int]:
    seen: set[int] = set()
    out: list[int] = []
    for v in values:
        v = int(v)
        if v in seen:
            raise ValidationError(f"{field_name} {v} appears more than once")
        seen.add(v)
        out.append(v)
    return out


def clean_optional(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None
