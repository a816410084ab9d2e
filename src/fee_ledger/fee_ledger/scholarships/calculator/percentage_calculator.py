from __future__ import annotations

from typing import Sequence

from ...common.money import percent_of
from ...student_structures.model import StudentFeeLineItem
from ..model import Scholarship
from .base import DiscountCalculator


class PercentageCalculator(DiscountCalculator):
    """round_half_up(gross * value / 100), capped at max_amount when set."""

    def discount(self, scholarship: Scholarship, *, gross_amount: int, line_items: Sequence[StudentFeeLineItem]) -> int:
        if gross_amount <= 0:
            return 0
        return self._cap(percent_of(gross_amount, scholarship.value), scholarship)
