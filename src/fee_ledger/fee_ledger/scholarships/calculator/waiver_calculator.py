from __future__ import annotations

from typing import Sequence

from ...student_structures.model import StudentFeeLineItem
from ..model import Scholarship
from .base import DiscountCalculator


class ComponentWaiverCalculator(DiscountCalculator):
    """Whole adjusted amount of the waived component; 0 if absent or already waived."""

    def discount(self, scholarship: Scholarship, *, gross_amount: int, line_items: Sequence[StudentFeeLineItem]) -> int:
        for li in line_items:
            if li.component_id == scholarship.component_id and not li.waived:
                return int(li.adjusted_amount)
        return 0
