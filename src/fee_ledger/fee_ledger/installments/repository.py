from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence, Tuple

from ..core.enums import PaymentMode
from .model import EmiPlanTemplate, FeeInstallment, InstallmentDraft, InstallmentPayment, SplitEntry


class InstallmentRepository(Protocol):
    def create_many(self, *, structure_id: int, drafts: Sequence[InstallmentDraft]) -> Sequence[int]:
        """Insert the whole schedule; ConflictError if the structure already has one."""

        raise NotImplementedError

    def get(self, *, installment_id: int, org_id: int, branch_id: int) -> Optional[FeeInstallment]:
        raise NotImplementedError

    def list_for_structure(self, *, structure_id: int) -> Sequence[FeeInstallment]:
        raise NotImplementedError

    def count_for_structure(self, *, structure_id: int) -> int:
        raise NotImplementedError

    def has_payments(self, *, structure_id: int) -> bool:
        raise NotImplementedError

    def delete_for_structure(self, *, structure_id: int) -> int:
        """Delete the schedule; ConflictError if a payment exists by the time the lock is held."""

        raise NotImplementedError

    def record_payment(
        self,
        *,
        installment_id: int,
        amount: int,
        mode: PaymentMode,
        received_by: int,
        today: date,
        transaction_ref: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Tuple[InstallmentPayment, FeeInstallment]:
        """Insert the payment and bump paid_amount under a row lock.

        Raises ValidationError (with `outstanding`) if the amount exceeds the
        balance seen under the lock.
        """

        raise NotImplementedError

    def get_payment(self, *, payment_id: int, org_id: int, branch_id: int) -> Optional[InstallmentPayment]:
        raise NotImplementedError

    def list_payments(self, *, installment_id: int) -> Sequence[InstallmentPayment]:
        raise NotImplementedError

    # EMI plan templates
    def create_plan(self, *, org_id: int, name: str, splits: Sequence[SplitEntry], is_default: bool) -> int:
        """Insert a template; clears the org's previous default in the same transaction."""

        raise NotImplementedError

    def update_plan(
        self,
        *,
        plan_id: int,
        org_id: int,
        name: str,
        splits: Sequence[SplitEntry],
        is_default: bool,
        is_active: bool,
    ) -> None:
        """Rewrite a template; making it the default clears the previous one in the same transaction."""

        raise NotImplementedError

    def get_plan(self, *, plan_id: int, org_id: int) -> Optional[EmiPlanTemplate]:
        raise NotImplementedError

    def find_plan_by_name(self, *, org_id: int, name: str) -> Optional[EmiPlanTemplate]:
        raise NotImplementedError

    def list_plans(self, *, org_id: int) -> Sequence[EmiPlanTemplate]:
        """Active templates, default first."""

        raise NotImplementedError
