from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import InstallmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from ..installments.model import FeeInstallment
from .model import BatchCollectionRow, PendingRow, StructureRow
from .repository import ReportRepository

# Same rules as FeeInstallment.display_status, for rows that still owe money.
_STATUS_CLAUSES = {
    InstallmentStatus.OVERDUE: "i.due_date < %s",
    InstallmentStatus.PARTIAL: "i.paid_amount > 0 AND i.due_date >= %s",
    InstallmentStatus.DUE: "i.paid_amount = 0 AND i.due_date = %s",
    InstallmentStatus.UPCOMING: "i.paid_amount = 0 AND i.due_date > %s",
}


class MySQLReportRepository(ReportRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def collection_by_batch(
        self, *, org_id: int, branch_id: int, session_id: int, batch_id: Optional[int] = None
    ) -> Sequence[BatchCollectionRow]:
        clauses = ["st.org_id=%s", "st.branch_id=%s", "s.session_id=%s"]
        params: list[object] = [int(org_id), int(branch_id), int(session_id)]
        if batch_id is not None:
            clauses.append("st.batch_id=%s")
            params.append(int(batch_id))

        sql = f"""
            SELECT b.batch_id, b.name AS batch_name,
                   COUNT(s.structure_id) AS student_count,
                   COALESCE(SUM(s.net_amount), 0) AS total_net,
                   COALESCE(SUM(paid.total_paid), 0) AS total_paid
            FROM student_fee_structures s
            JOIN students st ON st.student_id = s.student_id
            JOIN batches b ON b.batch_id = st.batch_id
            LEFT JOIN (
                SELECT structure_id, SUM(paid_amount) AS total_paid
                FROM fee_installments
                GROUP BY structure_id
            ) paid ON paid.structure_id = s.structure_id
            WHERE {" AND ".join(clauses)}
            GROUP BY b.batch_id, b.name
            ORDER BY b.name ASC
        """

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [
                BatchCollectionRow(
                    batch_id=int(r["batch_id"]),
                    batch_name=r["batch_name"],
                    student_count=int(r["student_count"]),
                    total_net=int(r["total_net"]),
                    total_paid=int(r["total_paid"]),
                )
                for r in fetchall(cur)
            ]

    def structures_for_student(self, *, student_id: int, session_id: Optional[int] = None) -> Sequence[StructureRow]:
        clauses = ["s.student_id=%s"]
        params: list[object] = [int(student_id)]
        if session_id is not None:
            clauses.append("s.session_id=%s")
            params.append(int(session_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.structure_id, s.session_id, se.name AS session_name,
                       s.gross_amount, s.scholarship_amount, s.net_amount
                FROM student_fee_structures s
                JOIN academic_sessions se ON se.session_id = s.session_id
                WHERE {" AND ".join(clauses)}
                ORDER BY se.start_date DESC
                """,
                tuple(params),
            )
            return [
                StructureRow(
                    structure_id=int(r["structure_id"]),
                    session_id=int(r["session_id"]),
                    session_name=r["session_name"],
                    gross_amount=int(r["gross_amount"]),
                    scholarship_amount=int(r["scholarship_amount"]),
                    net_amount=int(r["net_amount"]),
                )
                for r in fetchall(cur)
            ]

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
        clauses = ["st.org_id=%s", "st.branch_id=%s", "st.status='active'", "i.paid_amount < i.amount"]
        params: list[object] = [int(org_id), int(branch_id)]
        if batch_id is not None:
            clauses.append("st.batch_id=%s")
            params.append(int(batch_id))
        if status is not None:
            clauses.append(_STATUS_CLAUSES[status])
            params.append(today)
        params.extend([int(limit), int(offset)])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT i.installment_id, i.structure_id, i.installment_number, i.amount, i.due_date, i.paid_amount,
                       st.student_id, st.first_name, st.last_name, st.batch_id, b.name AS batch_name, s.session_id
                FROM fee_installments i
                JOIN student_fee_structures s ON s.structure_id = i.structure_id
                JOIN students st ON st.student_id = s.student_id
                LEFT JOIN batches b ON b.batch_id = st.batch_id
                WHERE {" AND ".join(clauses)}
                ORDER BY i.due_date ASC, i.installment_number ASC, i.installment_id ASC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            return [
                PendingRow(
                    installment=FeeInstallment(
                        installment_id=int(r["installment_id"]),
                        structure_id=int(r["structure_id"]),
                        installment_number=int(r["installment_number"]),
                        amount=int(r["amount"]),
                        due_date=r["due_date"],
                        paid_amount=int(r["paid_amount"]),
                    ),
                    student_id=int(r["student_id"]),
                    student_name=f"{r['first_name']} {r.get('last_name') or ''}".strip(),
                    batch_id=int(r["batch_id"]) if r.get("batch_id") is not None else None,
                    batch_name=r.get("batch_name"),
                    session_id=int(r["session_id"]),
                )
                for r in fetchall(cur)
            ]
