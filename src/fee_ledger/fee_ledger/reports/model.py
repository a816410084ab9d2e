from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from ..core.enums import InstallmentStatus
from ..installments.model import FeeInstallment


@dataclass(frozen=True)
class BatchCollectionRow:
    batch_id: int
    batch_name: str
    student_count: int
    total_net: int
    total_paid: int

    @property
    def total_outstanding(self) -> int:
        return self.total_net - self.total_paid


@dataclass(frozen=True)
class CollectionReport:
    session_id: int
    rows: Tuple[BatchCollectionRow, ...]
    total_net: int
    total_paid: int


@dataclass(frozen=True)
class StructureRow:
    structure_id: int
    session_id: int
    session_name: str
    gross_amount: int
    scholarship_amount: int
    net_amount: int


@dataclass(frozen=True)
class StructureSummary:
    structure_id: int
    session_id: int
    session_name: str
    net_amount: int
    total_paid: int
    outstanding: int
    total_installments: int
    paid_installments: int
    overdue_installments: int
    next_due_date: Optional[date]


@dataclass(frozen=True)
class PendingRow:
    """An unpaid installment joined with who owes it."""

    installment: FeeInstallment
    student_id: int
    student_name: str
    batch_id: Optional[int]
    batch_name: Optional[str]
    session_id: int


@dataclass(frozen=True)
class PendingInstallment:
    row: PendingRow
    status: InstallmentStatus
    pending_amount: int
