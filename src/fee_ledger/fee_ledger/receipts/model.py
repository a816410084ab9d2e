from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import PaymentMode


@dataclass(frozen=True)
class Receipt:
    receipt_id: int
    org_id: int
    branch_id: int
    receipt_number: str
    payment_id: int
    student_id: int
    amount: int
    mode: PaymentMode
    received_by: int
    generated_at: datetime


@dataclass(frozen=True)
class ReceiptSource:
    """The payment a receipt is cut for, with the student it belongs to."""

    payment_id: int
    installment_id: int
    student_id: int
    amount: int
    mode: PaymentMode
