from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from ..common.datetime_utils import today_local
from ..common.validators import clean_optional, require_positive_amount
from ..core.enums import PaymentMode
from ..core.exceptions import NotFoundError, ValidationError
from ..core.scope import TenantScope
from .events import PaymentEventDispatcher, PaymentRecorded
from .model import FeeInstallment, InstallmentPayment
from .repository import InstallmentRepository

logger = logging.getLogger(__name__)


class PaymentRecorder:
    """Records money against one installment. Append-only; never clamps an overpayment."""

    def __init__(self, installments: InstallmentRepository, *, events: Optional[PaymentEventDispatcher] = None):
        self._installments = installments
        self._events = events or PaymentEventDispatcher()

    def record_payment(
        self,
        *,
        scope: TenantScope,
        installment_id: int,
        amount: int,
        mode: PaymentMode,
        transaction_ref: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Tuple[InstallmentPayment, FeeInstallment]:
        amount = require_positive_amount(amount, "Payment amount")
        installment = self._installments.get(
            installment_id=int(installment_id), org_id=scope.org_id, branch_id=scope.branch_id
        )
        if not installment:
            raise NotFoundError("Installment")
        if amount > installment.outstanding:
            logger.warning(
                "Rejected payment of %s on installment %s (outstanding %s)",
                amount,
                installment.installment_id,
                installment.outstanding,
            )
            raise ValidationError(
                f"Payment amount exceeds pending amount. Maximum allowed: {installment.outstanding}",
                outstanding=installment.outstanding,
            )

        payment, updated = self._installments.record_payment(
            installment_id=installment.installment_id,
            amount=amount,
            mode=mode,
            received_by=scope.user_id,
            today=today_local(),
            transaction_ref=clean_optional(transaction_ref),
            remarks=clean_optional(remarks),
        )
        logger.info(
            "User %s recorded payment %s of %s (%s) on installment %s",
            scope.user_id,
            payment.payment_id,
            payment.amount,
            payment.mode.value,
            updated.installment_id,
        )

        self._events.publish(PaymentRecorded(scope=scope, payment=payment, installment=updated))
        return payment, updated

    def list_payments(self, *, scope: TenantScope, installment_id: int) -> Sequence[InstallmentPayment]:
        installment = self._installments.get(
            installment_id=int(installment_id), org_id=scope.org_id, branch_id=scope.branch_id
        )
        if not installment:
            raise NotFoundError("Installment")
        return self._installments.list_payments(installment_id=installment.installment_id)
