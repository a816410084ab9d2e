from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from ..academics.repository import AcademicsRepository
from ..common.datetime_utils import now_local
from ..core.constants import RECEIPT_PREFIX_FALLBACK
from ..core.exceptions import NotFoundError, ValidationError
from ..core.scope import TenantScope
from ..installments.events import PaymentRecorded
from .model import Receipt
from .numbering import org_prefix
from .repository import ReceiptRepository

logger = logging.getLogger(__name__)


class ReceiptService:
    def __init__(
        self,
        receipts: ReceiptRepository,
        academics: AcademicsRepository,
        *,
        prefix_fallback: str = RECEIPT_PREFIX_FALLBACK,
    ):
        self._receipts = receipts
        self._academics = academics
        self._prefix_fallback = prefix_fallback

    def create_receipt(self, *, scope: TenantScope, payment_id: int) -> Receipt:
        """Return the payment's receipt, issuing it on first call."""

        source = self._receipts.get_source(payment_id=int(payment_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not source:
            raise NotFoundError("Payment")

        existing = self._receipts.get_by_payment(payment_id=source.payment_id)
        if existing:
            return existing

        prefix = org_prefix(self._academics.get_org_name(org_id=scope.org_id), fallback=self._prefix_fallback)
        receipt = self._receipts.issue(
            org_id=scope.org_id,
            branch_id=scope.branch_id,
            source=source,
            year=now_local().year,
            prefix=prefix,
            received_by=scope.user_id,
        )
        logger.info("Issued receipt %s for payment %s", receipt.receipt_number, source.payment_id)
        return receipt

    def get(self, *, scope: TenantScope, receipt_id: int) -> Receipt:
        receipt = self._receipts.get(receipt_id=int(receipt_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not receipt:
            raise NotFoundError("Receipt")
        return receipt

    def list(
        self,
        *,
        scope: TenantScope,
        student_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[Receipt]:
        if start_date and end_date and start_date > end_date:
            raise ValidationError("Start date must be on or before end date")
        return self._receipts.list(
            org_id=scope.org_id,
            branch_id=scope.branch_id,
            student_id=student_id,
            start_date=start_date,
            end_date=end_date,
        )


class ReceiptAutoIssuer:
    """Payment listener that cuts a receipt as soon as a payment commits."""

    def __init__(self, receipts: ReceiptService):
        self._receipts = receipts

    def on_payment_recorded(self, event: PaymentRecorded) -> None:
        self._receipts.create_receipt(scope=event.scope, payment_id=event.payment.payment_id)
