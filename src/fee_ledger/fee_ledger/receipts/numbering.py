from __future__ import annotations

import re
from typing import Optional

from ..core.constants import RECEIPT_NUMBER_WIDTH, RECEIPT_PREFIX_FALLBACK, RECEIPT_PREFIX_LENGTH

_NON_LETTERS = re.compile(r"[^A-Z]")


def org_prefix(org_name: Optional[str], *, fallback: str = RECEIPT_PREFIX_FALLBACK) -> str:
    """'Sunrise Academy' -> 'SUNR'. Names without letters fall back too."""

    prefix = _NON_LETTERS.sub("", (org_name or "").upper())[:RECEIPT_PREFIX_LENGTH]
    return prefix or fallback


def format_receipt_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{int(year)}-{int(number):0{RECEIPT_NUMBER_WIDTH}d}"
