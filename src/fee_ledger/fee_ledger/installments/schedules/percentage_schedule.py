from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from ...common.money import as_decimal, percent_of
from ...core.exceptions import ValidationError
from ..model import InstallmentDraft, PercentagePlan, SplitEntry
from .base import ScheduleStrategy


class PercentageSchedule(ScheduleStrategy):
    """Percent of net per installment, due start_date + offset days.

    Each share is rounded half up; whatever rounding leaves over (or takes
    away) lands on the last installment so the schedule sums to net.
    """

    @classmethod
    def validate(cls, splits: Sequence[SplitEntry]) -> None:
        cls._check_count(len(splits))
        total = Decimal(0)
        for split in splits:
            percent = as_decimal(split.percent, "Split percent")
            if percent <= 0 or percent > 100:
                raise ValidationError("Each split percent must be between 0 and 100")
            if int(split.due_days_from_start) < 0:
                raise ValidationError("Due days from start cannot be negative")
            total += percent
        if total != Decimal(100):
            raise ValidationError("Split percentages must sum to 100%")

    def build(self, plan: PercentagePlan, *, net_amount: int, start_date: date) -> list[InstallmentDraft]:
        self.validate(plan.splits)

        drafts = [
            InstallmentDraft(
                installment_number=i,
                amount=percent_of(net_amount, split.percent),
                due_date=start_date + timedelta(days=int(split.due_days_from_start)),
            )
            for i, split in enumerate(plan.splits, start=1)
        ]

        allocated = sum(d.amount for d in drafts[:-1])
        last = drafts[-1]
        drafts[-1] = InstallmentDraft(
            installment_number=last.installment_number,
            amount=net_amount - allocated,
            due_date=last.due_date,
        )

        self._check_amounts(drafts)
        return drafts
