from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import InstallmentStatus
from .model import BatchCollectionRow, PendingRow, StructureRow


class ReportRepository(Protocol):
    """Read-only aggregates over the ledger tables."""

    def collection_by_batch(
        self, *, org_id: int, branch_id: int, session_id: int, batch_id: Optional[int] = None
    ) -> Sequence[BatchCollectionRow]:
        raise NotImplementedError

    def structures_for_student(self, *, student_id: int, session_id: Optional[int] = None) -> Sequence[StructureRow]:
        raise NotImplementedError

    def unpaid_installments(
        self,
        *,
        org_id: int,
        branch_id: int,
        batch_id: Optional[int] = None,
        status: Optional[InstallmentStatus] = None,
        today: Optional[date] = None,
        limit: int,
        offset: int = 0,
    ) -> Sequence[PendingRow]:
        """Installments with a balance, for active students, oldest due date first.

        `status` (never PAID) is matched against `today` before paging.
        """

        raise NotImplementedError
