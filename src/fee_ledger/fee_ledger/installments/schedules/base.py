from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Sequence

from ...core.constants import MAX_INSTALLMENTS, MIN_INSTALLMENT_AMOUNT
from ...core.exceptions import ValidationError
from ..model import InstallmentDraft


class ScheduleStrategy(ABC):
    """Strategy Pattern: how a net amount turns into dated installments."""

    @abstractmethod
    def build(self, plan, *, net_amount: int, start_date: date) -> list[InstallmentDraft]:
        raise NotImplementedError

    @staticmethod
    def _check_count(count: int) -> None:
        if count < 1:
            raise ValidationError("A plan needs at least one installment")
        if count > MAX_INSTALLMENTS:
            raise ValidationError(f"A plan can have at most {MAX_INSTALLMENTS} installments")

    @staticmethod
    def _check_amounts(drafts: Sequence[InstallmentDraft]) -> None:
        for d in drafts:
            if d.amount < MIN_INSTALLMENT_AMOUNT:
                raise ValidationError(
                    f"Installment {d.installment_number} would be {d.amount}; "
                    f"every installment must be at least {MIN_INSTALLMENT_AMOUNT}"
                )
