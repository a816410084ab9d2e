from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import PaymentMode
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import Receipt, ReceiptSource
from .numbering import format_receipt_number
from .repository import ReceiptRepository

logger = logging.getLogger(__name__)

_COLUMNS = (
    "r.receipt_id, r.org_id, r.branch_id, r.receipt_number, r.payment_id, r.student_id, "
    "r.amount, r.payment_mode, r.received_by, r.generated_at"
)


def _to_receipt(r: dict) -> Receipt:
    return Receipt(
        receipt_id=int(r["receipt_id"]),
        org_id=int(r["org_id"]),
        branch_id=int(r["branch_id"]),
        receipt_number=r["receipt_number"],
        payment_id=int(r["payment_id"]),
        student_id=int(r["student_id"]),
        amount=int(r["amount"]),
        mode=PaymentMode(r["payment_mode"]),
        received_by=int(r["received_by"]),
        generated_at=r["generated_at"],
    )


class MySQLReceiptRepository(ReceiptRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_source(self, *, payment_id: int, org_id: int, branch_id: int) -> Optional[ReceiptSource]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT p.payment_id, p.installment_id, p.amount, p.payment_mode, s.student_id
                FROM installment_payments p
                JOIN fee_installments i ON i.installment_id = p.installment_id
                JOIN student_fee_structures s ON s.structure_id = i.structure_id
                JOIN students st ON st.student_id = s.student_id
                WHERE p.payment_id=%s AND st.org_id=%s AND st.branch_id=%s
                """,
                (int(payment_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            if not r:
                return None
            return ReceiptSource(
                payment_id=int(r["payment_id"]),
                installment_id=int(r["installment_id"]),
                student_id=int(r["student_id"]),
                amount=int(r["amount"]),
                mode=PaymentMode(r["payment_mode"]),
            )

    def get_by_payment(self, *, payment_id: int) -> Optional[Receipt]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM receipts r WHERE r.payment_id=%s", (int(payment_id),))
            r = fetchone(cur)
            return _to_receipt(r) if r else None

    def get(self, *, receipt_id: int, org_id: int, branch_id: int) -> Optional[Receipt]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM receipts r WHERE r.receipt_id=%s AND r.org_id=%s AND r.branch_id=%s",
                (int(receipt_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return _to_receipt(r) if r else None

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
        clauses = ["r.org_id=%s", "r.branch_id=%s"]
        params: list[object] = [int(org_id), int(branch_id)]
        if student_id is not None:
            clauses.append("r.student_id=%s")
            params.append(int(student_id))
        if start_date is not None:
            clauses.append("r.generated_at >= %s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("r.generated_at < %s")
            params.append(end_date + timedelta(days=1))
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM receipts r
                WHERE {" AND ".join(clauses)}
                ORDER BY r.generated_at DESC, r.receipt_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_to_receipt(r) for r in fetchall(cur)]

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
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                # LAST_INSERT_ID(expr) hands the new value back on this connection only.
                cur.execute(
                    """
                    INSERT INTO receipt_sequences(org_id, year, last_number)
                    VALUES(%s,%s,LAST_INSERT_ID(1))
                    ON DUPLICATE KEY UPDATE last_number = LAST_INSERT_ID(last_number + 1)
                    """,
                    (int(org_id), int(year)),
                )
                cur.execute("SELECT LAST_INSERT_ID() AS n")
                number = int(fetchone(cur)["n"])
                receipt_number = format_receipt_number(prefix, year, number)

                cur.execute(
                    """
                    INSERT INTO receipts(
                        org_id, branch_id, receipt_number, payment_id, student_id, amount, payment_mode, received_by
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(org_id),
                        int(branch_id),
                        receipt_number,
                        source.payment_id,
                        source.student_id,
                        source.amount,
                        source.mode.value,
                        int(received_by),
                    ),
                )
                receipt_id = int(cur.lastrowid)
                cur.execute(f"SELECT {_COLUMNS} FROM receipts r WHERE r.receipt_id=%s", (receipt_id,))
                receipt = _to_receipt(fetchone(cur))
        except Exception as e:
            if not is_duplicate_key(e):
                raise
            existing = self.get_by_payment(payment_id=source.payment_id)
            if existing is None:
                raise ConflictError("Receipt number collision; retry the request") from e
            logger.info("Payment %s was receipted concurrently; returning %s", source.payment_id, existing.receipt_number)
            return existing

        return receipt
