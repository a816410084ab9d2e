from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import ScholarshipType
from .calculator.base import DiscountCalculator
from .calculator.fixed_calculator import FixedAmountCalculator
from .calculator.percentage_calculator import PercentageCalculator
from .calculator.waiver_calculator import ComponentWaiverCalculator


@dataclass
class DiscountCalculatorFactory:
    """Factory Pattern: choose the calculator for a scholarship type."""

    def for_type(self, type: ScholarshipType) -> DiscountCalculator:
        if type == ScholarshipType.PERCENTAGE:
            return PercentageCalculator()
        if type == ScholarshipType.FIXED_AMOUNT:
            return FixedAmountCalculator()
        if type == ScholarshipType.COMPONENT_WAIVER:
            return ComponentWaiverCalculator()
        raise ValueError(f"Unsupported scholarship type: {type!r}")
