from __future__ import annotations

from dataclasses import dataclass

from .model import ExplicitPlan, PercentagePlan
from .schedules.base import ScheduleStrategy
from .schedules.explicit_schedule import ExplicitSchedule
from .schedules.percentage_schedule import PercentageSchedule


@dataclass
class ScheduleStrategyFactory:
    """Factory Pattern: choose the schedule builder for a resolved plan."""

    def for_plan(self, plan) -> ScheduleStrategy:
        if isinstance(plan, PercentagePlan):
            return PercentageSchedule()
        if isinstance(plan, ExplicitPlan):
            return ExplicitSchedule()
        raise ValueError(f"Unsupported installment plan: {plan!r}")
