from __future__ import annotations

from typing import Sequence

from ...student_structures.model import StudentFeeLineItem
from ..model import Scholarship
from .base import DiscountCalculator


class FixedAmountCalculator(DiscountCalculator):
    """Flat value, capped at max_amount when set."""

    def discount(self, scholarship: Scholarship, *, gross_amount: int, line_items: Sequence[StudentFeeLineItem]) -> int:
        return self._cap(int(scholarship.value), scholarship)
