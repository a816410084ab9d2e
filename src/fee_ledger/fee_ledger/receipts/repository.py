from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.constants import DEFAULT_LIST_LIMIT
from .model import Receipt, ReceiptSource


class ReceiptRepository(Protocol):
    def get_source(self, *, payment_id: int, org_id: int, branch_id: int) -> Optional[ReceiptSource]:
        raise NotImplementedError

    def get_by_payment(self, *, payment_id: int) -> Optional[Receipt]:
        raise NotImplementedError

    def get(self, *, receipt_id: int, org_id: int, branch_id: int) -> Optional[Receipt]:
        raise NotImplementedError

    def list(
        self,
        *,
        org_id: int,
        branch_id: int,
        student_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Sequence[Receipt]:
        """Newest first; `end_date` is inclusive."""

        raise NotImplementedError

    def issue(
        self,
        *,
        org_id: int,
        branch_id: int,
        source: ReceiptSource,
        year: int,
        prefix: str,
        received_by: int,
    ) -> Receipt:
        """Advance the (org, year) counter and insert the receipt in ONE transaction.

        If another writer already receipted the payment, this transaction is
        rolled back (counter included) and the existing receipt is returned.
        """

        raise NotImplementedError
