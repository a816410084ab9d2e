from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...student_structures.model import StudentFeeLineItem
from ..model import Scholarship


class DiscountCalculator(ABC):
    """Strategy Pattern: how one scholarship turns into a discount amount."""

    @abstractmethod
    def discount(self, scholarship: Scholarship, *, gross_amount: int, line_items: Sequence[StudentFeeLineItem]) -> int:
        raise NotImplementedError

    @staticmethod
    def _cap(amount: int, scholarship: Scholarship) -> int:
        if scholarship.max_amount is not None and amount > scholarship.max_amount:
            return int(scholarship.max_amount)
        return amount
