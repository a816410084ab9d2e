from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import ScholarshipBasis, ScholarshipType
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from ..student_structures.mysql_student_structure_repository import lock_unscheduled_structure, recompose_locked
from ..student_structures.repository import Recompose
from .model import GrantDraft, Scholarship, StudentScholarship
from .mysql_rows import GRANT_SELECT, SCHOLARSHIP_COLUMNS, to_grant, to_scholarship
from .repository import ScholarshipRepository


class MySQLScholarshipRepository(ScholarshipRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Definitions --------
    def create_scholarship(
        self,
        *,
        org_id: int,
        name: str,
        type: ScholarshipType,
        basis: ScholarshipBasis,
        value: Decimal,
        component_id: Optional[int] = None,
        max_amount: Optional[int] = None,
        description: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO scholarships(org_id, name, type, basis, value, component_id, max_amount, description)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (int(org_id), name, type.value, basis.value, value, component_id, max_amount, description),
            )
            return int(cur.lastrowid)

    def update_scholarship(
        self,
        *,
        scholarship_id: int,
        org_id: int,
        name: str,
        value: Decimal,
        max_amount: Optional[int],
        description: Optional[str],
        is_active: bool,
    ) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    UPDATE scholarships
                    SET name=%s, value=%s, max_amount=%s, description=%s, is_active=%s
                    WHERE scholarship_id=%s AND org_id=%s
                    """,
                    (
                        name,
                        value,
                        max_amount,
                        description,
                        1 if is_active else 0,
                        int(scholarship_id),
                        int(org_id),
                    ),
                )
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError(f'A scholarship with name "{name}" already exists') from e
            raise

    def get_scholarship(self, *, scholarship_id: int, org_id: int) -> Optional[Scholarship]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {SCHOLARSHIP_COLUMNS} FROM scholarships s WHERE s.scholarship_id=%s AND s.org_id=%s",
                (int(scholarship_id), int(org_id)),
            )
            r = fetchone(cur)
            return to_scholarship(r) if r else None

    def find_scholarship_by_name(self, *, org_id: int, name: str) -> Optional[Scholarship]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {SCHOLARSHIP_COLUMNS} FROM scholarships s WHERE s.org_id=%s AND s.name=%s",
                (int(org_id), name),
            )
            r = fetchone(cur)
            return to_scholarship(r) if r else None

    def list_scholarships(self, *, org_id: int, is_active: Optional[bool] = True) -> Sequence[Scholarship]:
        clauses = ["s.org_id=%s"]
        params: list[object] = [int(org_id)]
        if is_active is not None:
            clauses.append("s.is_active=%s")
            params.append(1 if is_active else 0)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {SCHOLARSHIP_COLUMNS} FROM scholarships s
                WHERE {" AND ".join(clauses)}
                ORDER BY s.basis ASC, s.name ASC
                """,
                tuple(params),
            )
            return [to_scholarship(r) for r in fetchall(cur)]

    def set_scholarship_active(self, *, scholarship_id: int, org_id: int, is_active: bool) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE scholarships SET is_active=%s WHERE scholarship_id=%s AND org_id=%s",
                (1 if is_active else 0, int(scholarship_id), int(org_id)),
            )

    # -------- Grants --------
    def assign_grant(self, *, draft: GrantDraft, structure_id: Optional[int], recompose: Recompose) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                # Lock first so installments cannot be generated between the insert and the re-price.
                locked = lock_unscheduled_structure(cur, structure_id) if structure_id is not None else None
                cur.execute(
                    """
                    INSERT INTO student_scholarships(
                        student_id, scholarship_id, session_id, discount_amount, approved_by, remarks
                    )
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(draft.student_id),
                        int(draft.scholarship_id),
                        int(draft.session_id),
                        int(draft.discount_amount),
                        int(draft.approved_by),
                        draft.remarks,
                    ),
                )
                grant_id = int(cur.lastrowid)
                if locked is not None:
                    recompose_locked(cur, locked, recompose)
                return grant_id
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError("This scholarship is already assigned to the student for this session") from e
            raise

    def revoke_grant(self, *, grant_id: int, structure_id: Optional[int], recompose: Recompose) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            locked = lock_unscheduled_structure(cur, structure_id) if structure_id is not None else None
            cur.execute("DELETE FROM student_scholarships WHERE grant_id=%s", (int(grant_id),))
            if locked is not None:
                recompose_locked(cur, locked, recompose)

    def find_grant(self, *, student_id: int, scholarship_id: int, session_id: int) -> Optional[StudentScholarship]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                GRANT_SELECT + " WHERE g.student_id=%s AND g.scholarship_id=%s AND g.session_id=%s",
                (int(student_id), int(scholarship_id), int(session_id)),
            )
            r = fetchone(cur)
            return to_grant(r) if r else None

    def get_grant(self, *, grant_id: int, org_id: int, branch_id: int) -> Optional[StudentScholarship]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                GRANT_SELECT
                + """
                JOIN students st ON st.student_id = g.student_id
                WHERE g.grant_id=%s AND st.org_id=%s AND st.branch_id=%s
                """,
                (int(grant_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return to_grant(r) if r else None

    def list_grants(self, *, student_id: int, session_id: Optional[int] = None) -> Sequence[StudentScholarship]:
        clauses = ["g.student_id=%s", "g.is_active=1"]
        params: list[object] = [int(student_id)]
        if session_id is not None:
            clauses.append("g.session_id=%s")
            params.append(int(session_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                GRANT_SELECT + f" WHERE {' AND '.join(clauses)} ORDER BY g.approved_at DESC, g.grant_id DESC",
                tuple(params),
            )
            return [to_grant(r) for r in fetchall(cur)]
