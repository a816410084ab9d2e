from __future__ import annotations

from datetime import date

from ...common.validators import require_positive_amount
from ...core.exceptions import ValidationError
from ..model import ExplicitPlan, InstallmentDraft
from .base import ScheduleStrategy


class ExplicitSchedule(ScheduleStrategy):
    """Caller-supplied amounts and due dates; start_date is not used."""

    def build(self, plan: ExplicitPlan, *, net_amount: int, start_date: date) -> list[InstallmentDraft]:
        self._check_count(len(plan.installments))

        drafts = [
            InstallmentDraft(
                installment_number=i,
                amount=require_positive_amount(item.amount, f"Installment {i} amount"),
                due_date=item.due_date,
            )
            for i, item in enumerate(plan.installments, start=1)
        ]

        total = sum(d.amount for d in drafts)
        if total != net_amount:
            raise ValidationError(f"Installment amounts sum to {total}, expected the net amount {net_amount}")

        self._check_amounts(drafts)
        return drafts
