from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple, Union

from ..core.enums import InstallmentStatus, PaymentMode


def derive_status(*, amount: int, paid_amount: int, due_date: date, today: date) -> InstallmentStatus:
    """Lifecycle status. Overdue is reported separately by `is_overdue`."""

    if paid_amount >= amount:
        return InstallmentStatus.PAID
    if paid_amount > 0:
        return InstallmentStatus.PARTIAL
    if due_date <= today:
        return InstallmentStatus.DUE
    return InstallmentStatus.UPCOMING


@dataclass(frozen=True)
class FeeInstallment:
    installment_id: int
    structure_id: int
    installment_number: int
    amount: int
    due_date: date
    paid_amount: int = 0

    @property
    def outstanding(self) -> int:
        return self.amount - self.paid_amount

    def status_on(self, today: date) -> InstallmentStatus:
        return derive_status(amount=self.amount, paid_amount=self.paid_amount, due_date=self.due_date, today=today)

    def is_overdue(self, today: date) -> bool:
        return self.outstanding > 0 and self.due_date < today

    def display_status(self, today: date) -> InstallmentStatus:
        """Single label for lists: overdue wins over due/partial."""

        return InstallmentStatus.OVERDUE if self.is_overdue(today) else self.status_on(today)


@dataclass(frozen=True)
class InstallmentPayment:
    payment_id: int
    installment_id: int
    amount: int
    mode: PaymentMode
    received_by: int
    received_at: datetime
    transaction_ref: Optional[str] = None
    remarks: Optional[str] = None


@dataclass(frozen=True)
class InstallmentDraft:
    installment_number: int
    amount: int
    due_date: date


# -------- Plans --------
@dataclass(frozen=True)
class SplitEntry:
    percent: Decimal
    due_days_from_start: int


@dataclass(frozen=True)
class PercentagePlan:
    splits: Tuple[SplitEntry, ...]


@dataclass(frozen=True)
class ExplicitInstallment:
    amount: int
    due_date: date


@dataclass(frozen=True)
class ExplicitPlan:
    installments: Tuple[ExplicitInstallment, ...]


@dataclass(frozen=True)
class TemplatePlan:
    plan_id: int


InstallmentPlan = Union[PercentagePlan, ExplicitPlan, TemplatePlan]


@dataclass(frozen=True)
class EmiPlanTemplate:
    plan_id: int
    org_id: int
    name: str
    splits: Tuple[SplitEntry, ...]
    is_default: bool = False
    is_active: bool = True

    @property
    def installment_count(self) -> int:
        return len(self.splits)
