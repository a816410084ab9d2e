from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from ..core.enums import FeeStructureSource, WriteMode
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from ..scholarships.application import ScholarshipOutcome
from ..scholarships.mysql_rows import select_active_grants
from .model import (
    StructureEdit,
    StudentFeeLineItem,
    StudentFeeStructure,
    StudentStructureDraft,
    StudentStructureListing,
    StudentStructureWrite,
)
from .repository import Recompose, StudentFeeStructureRepository

logger = logging.getLogger(__name__)

_COLUMNS = (
    "s.structure_id, s.student_id, s.session_id, s.source, s.batch_structure_id, "
    "s.gross_amount, s.scholarship_amount, s.net_amount, s.remarks"
)


def _line_item_rows(structure_id: int, items: Sequence[StudentFeeLineItem]) -> list[tuple]:
    return [
        (
            int(structure_id),
            int(li.component_id),
            int(li.original_amount),
            int(li.adjusted_amount),
            1 if li.waived else 0,
            li.waiver_reason,
            int(li.waived_amount),
        )
        for li in items
    ]


_INSERT_LINE_ITEM = """
    INSERT INTO student_fee_line_items(
        structure_id, component_id, original_amount, adjusted_amount, waived, waiver_reason, waived_amount
    )
    VALUES(%s,%s,%s,%s,%s,%s,%s)
"""


# -------- cursor-level helpers (also used by the scholarship grant writes) --------
def lock_unscheduled_structure(cur, structure_id: int) -> dict:
    """Lock the structure row and return it; ConflictError if it is gone or already scheduled.

    Installment generation locks the same row, so the check holds until commit.
    """

    cur.execute(
        "SELECT structure_id, student_id, session_id FROM student_fee_structures WHERE structure_id=%s FOR UPDATE",
        (int(structure_id),),
    )
    row = fetchone(cur)
    if not row:
        raise ConflictError("Fee structure no longer exists")
    cur.execute("SELECT COUNT(*) AS n FROM fee_installments WHERE structure_id=%s", (int(structure_id),))
    r = fetchone(cur)
    if r and int(r["n"]) > 0:
        raise ConflictError("Installments already exist for this fee structure; delete them before changing it")
    return row


def load_line_items(cur, structure_id: int) -> tuple[StudentFeeLineItem, ...]:
    cur.execute(
        """
        SELECT li.component_id, li.original_amount, li.adjusted_amount,
               li.waived, li.waiver_reason, li.waived_amount
        FROM student_fee_line_items li
        JOIN fee_components c ON c.component_id = li.component_id
        WHERE li.structure_id=%s
        ORDER BY c.type ASC, li.line_item_id ASC
        """,
        (int(structure_id),),
    )
    return tuple(
        StudentFeeLineItem(
            component_id=int(li["component_id"]),
            original_amount=int(li["original_amount"]),
            adjusted_amount=int(li["adjusted_amount"]),
            waived=bool(li["waived"]),
            waiver_reason=li.get("waiver_reason"),
            waived_amount=int(li.get("waived_amount") or 0),
        )
        for li in fetchall(cur)
    )


def recompose_locked(
    cur, locked: dict, recompose: Recompose, edit: Optional[StructureEdit] = None
) -> ScholarshipOutcome:
    """Re-price a row taken by `lock_unscheduled_structure` from its line items and current grants."""

    structure_id = int(locked["structure_id"])
    if edit is not None and edit.line_items is not None:
        items = tuple(edit.line_items)
    else:
        items = load_line_items(cur, structure_id)
    grants = select_active_grants(cur, student_id=int(locked["student_id"]), session_id=int(locked["session_id"]))
    outcome = recompose(items, grants)

    cur.execute(
        """
        UPDATE student_fee_structures
        SET gross_amount=%s, scholarship_amount=%s, net_amount=%s
        WHERE structure_id=%s
        """,
        (int(outcome.gross_amount), int(outcome.scholarship_amount), int(outcome.net_amount), structure_id),
    )
    if edit is not None:
        cur.execute(
            "UPDATE student_fee_structures SET source=%s, remarks=COALESCE(%s, remarks) WHERE structure_id=%s",
            (FeeStructureSource.CUSTOM.value, edit.remarks, structure_id),
        )
    cur.execute("DELETE FROM student_fee_line_items WHERE structure_id=%s", (structure_id,))
    if outcome.line_items:
        cur.executemany(_INSERT_LINE_ITEM, _line_item_rows(structure_id, outcome.line_items))
    for d in outcome.discounts:
        cur.execute(
            "UPDATE student_scholarships SET discount_amount=%s WHERE grant_id=%s",
            (int(d.amount), int(d.grant_id)),
        )
    return outcome


class MySQLStudentFeeStructureRepository(StudentFeeStructureRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- helpers (run on an open cursor) --------
    @staticmethod
    def _insert(cur, draft: StudentStructureDraft) -> int:
        cur.execute(
            """
            INSERT INTO student_fee_structures(
                student_id, session_id, source, batch_structure_id,
                gross_amount, scholarship_amount, net_amount, remarks
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                int(draft.student_id),
                int(draft.session_id),
                draft.source.value,
                draft.batch_structure_id,
                int(draft.gross_amount),
                int(draft.scholarship_amount),
                int(draft.net_amount),
                draft.remarks,
            ),
        )
        structure_id = int(cur.lastrowid)
        if draft.line_items:
            cur.executemany(_INSERT_LINE_ITEM, _line_item_rows(structure_id, draft.line_items))
        return structure_id

    @staticmethod
    def _delete_cascade(cur, structure_id: int) -> None:
        # Children before parents: receipts -> payments -> reminders -> payment links -> installments -> items -> structure.
        cur.execute("SELECT installment_id FROM fee_installments WHERE structure_id=%s", (int(structure_id),))
        installment_ids = [int(r["installment_id"]) for r in fetchall(cur)]

        if installment_ids:
            marks = in_clause(installment_ids)
            params = tuple(installment_ids)
            cur.execute(
                f"""
                DELETE r FROM receipts r
                JOIN installment_payments p ON p.payment_id = r.payment_id
                WHERE p.installment_id IN ({marks})
                """,
                params,
            )
            cur.execute(f"DELETE FROM installment_payments WHERE installment_id IN ({marks})", params)
            cur.execute(f"DELETE FROM fee_reminders WHERE installment_id IN ({marks})", params)
            cur.execute(f"UPDATE payment_links SET installment_id=NULL WHERE installment_id IN ({marks})", params)
            cur.execute("DELETE FROM fee_installments WHERE structure_id=%s", (int(structure_id),))

        cur.execute("DELETE FROM student_fee_line_items WHERE structure_id=%s", (int(structure_id),))
        cur.execute("DELETE FROM student_fee_structures WHERE structure_id=%s", (int(structure_id),))

    @staticmethod
    def _load(cur, r: dict) -> StudentFeeStructure:
        return StudentFeeStructure(
            structure_id=int(r["structure_id"]),
            student_id=int(r["student_id"]),
            session_id=int(r["session_id"]),
            source=FeeStructureSource(r["source"]),
            batch_structure_id=int(r["batch_structure_id"]) if r.get("batch_structure_id") is not None else None,
            gross_amount=int(r["gross_amount"]),
            scholarship_amount=int(r["scholarship_amount"]),
            net_amount=int(r["net_amount"]),
            line_items=load_line_items(cur, int(r["structure_id"])),
            remarks=r.get("remarks"),
        )

    # -------- reads --------
    def get(self, *, structure_id: int, org_id: int, branch_id: int) -> Optional[StudentFeeStructure]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM student_fee_structures s
                JOIN students st ON st.student_id = s.student_id
                WHERE s.structure_id=%s AND st.org_id=%s AND st.branch_id=%s
                """,
                (int(structure_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return self._load(cur, r) if r else None

    def get_for_student(self, *, student_id: int, session_id: int) -> Optional[StudentFeeStructure]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM student_fee_structures s WHERE s.student_id=%s AND s.session_id=%s",
                (int(student_id), int(session_id)),
            )
            r = fetchone(cur)
            return self._load(cur, r) if r else None

    def list_for_session(
        self, *, org_id: int, branch_id: int, session_id: int, batch_id: Optional[int] = None
    ) -> Sequence[StudentStructureListing]:
        clauses = ["s.session_id=%s", "st.org_id=%s", "st.branch_id=%s", "st.status='active'"]
        params: list[object] = [int(session_id), int(org_id), int(branch_id)]
        if batch_id is not None:
            clauses.append("st.batch_id=%s")
            params.append(int(batch_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.structure_id, s.student_id, s.session_id, s.source,
                       s.gross_amount, s.scholarship_amount, s.net_amount,
                       st.first_name, st.last_name, st.batch_id, b.name AS batch_name,
                       (SELECT COUNT(*) FROM fee_installments i WHERE i.structure_id = s.structure_id)
                           AS installment_count
                FROM student_fee_structures s
                JOIN students st ON st.student_id = s.student_id
                LEFT JOIN batches b ON b.batch_id = st.batch_id
                WHERE {" AND ".join(clauses)}
                ORDER BY b.name ASC, st.first_name ASC, s.structure_id ASC
                """,
                tuple(params),
            )
            return [
                StudentStructureListing(
                    structure_id=int(r["structure_id"]),
                    student_id=int(r["student_id"]),
                    student_name=f"{r['first_name']} {r.get('last_name') or ''}".strip(),
                    batch_id=int(r["batch_id"]) if r.get("batch_id") is not None else None,
                    batch_name=r.get("batch_name"),
                    session_id=int(r["session_id"]),
                    source=FeeStructureSource(r["source"]),
                    gross_amount=int(r["gross_amount"]),
                    scholarship_amount=int(r["scholarship_amount"]),
                    net_amount=int(r["net_amount"]),
                    installment_count=int(r["installment_count"]),
                )
                for r in fetchall(cur)
            ]

    def find_existing(self, *, student_ids: Sequence[int], session_id: int) -> Dict[int, int]:
        if not student_ids:
            return {}
        ids = [int(s) for s in student_ids]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT student_id, structure_id FROM student_fee_structures
                WHERE session_id=%s AND student_id IN ({in_clause(ids)})
                """,
                tuple([int(session_id)] + ids),
            )
            return {int(r["student_id"]): int(r["structure_id"]) for r in fetchall(cur)}

    def students_with_payments(self, *, structure_ids: Sequence[int]) -> Sequence[int]:
        if not structure_ids:
            return []
        ids = [int(s) for s in structure_ids]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(self._paid_students_sql(len(ids)), tuple(ids))
            return [int(r["student_id"]) for r in fetchall(cur)]

    @staticmethod
    def _paid_students_sql(n: int) -> str:
        return f"""
            SELECT DISTINCT s.student_id
            FROM installment_payments p
            JOIN fee_installments i ON i.installment_id = p.installment_id
            JOIN student_fee_structures s ON s.structure_id = i.structure_id
            WHERE i.structure_id IN ({",".join(["%s"] * n)})
            ORDER BY s.student_id
        """

    # -------- writes --------
    def create(self, *, draft: StudentStructureDraft) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                return self._insert(cur, draft)
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError("Fee structure already exists for this student and session") from e
            raise

    def apply(self, *, writes: Sequence[StudentStructureWrite]) -> Sequence[int]:
        replace_ids = sorted(
            {int(w.replaces_structure_id) for w in writes if w.mode == WriteMode.REPLACE and w.replaces_structure_id}
        )
        created: list[int] = []

        try:
            with db_cursor(self._conn_factory) as (_, cur):
                if replace_ids:
                    marks = in_clause(replace_ids)
                    cur.execute(
                        f"SELECT structure_id FROM student_fee_structures WHERE structure_id IN ({marks}) FOR UPDATE",
                        tuple(replace_ids),
                    )
                    if len(fetchall(cur)) != len(replace_ids):
                        raise ConflictError("Fee structures changed while applying; nothing was written")

                    # Lock installments so a concurrent payment waits for us, then re-check payments.
                    cur.execute(
                        f"SELECT installment_id FROM fee_installments WHERE structure_id IN ({marks}) FOR UPDATE",
                        tuple(replace_ids),
                    )
                    fetchall(cur)
                    cur.execute(self._paid_students_sql(len(replace_ids)), tuple(replace_ids))
                    paid = [int(r["student_id"]) for r in fetchall(cur)]
                    if paid:
                        raise ConflictError(f"Payments were recorded while applying for students {paid}; nothing was written")

                for w in writes:
                    if w.mode == WriteMode.REPLACE:
                        self._delete_cascade(cur, int(w.replaces_structure_id))
                    created.append(self._insert(cur, w.draft))
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError("A student gained a fee structure while applying; nothing was written") from e
            raise

        logger.info("Applied %d student fee structures (%d replaced)", len(created), len(replace_ids))
        return created

    def recompose(
        self, *, structure_id: int, recompose: Recompose, edit: Optional[StructureEdit] = None
    ) -> ScholarshipOutcome:
        with db_cursor(self._conn_factory) as (_, cur):
            locked = lock_unscheduled_structure(cur, structure_id)
            return recompose_locked(cur, locked, recompose, edit)

    def has_installments(self, *, structure_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS x FROM fee_installments WHERE structure_id=%s LIMIT 1", (int(structure_id),))
            return fetchone(cur) is not None
