from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import AcademicSession, Batch, Student
from .repository import AcademicsRepository

_STUDENT_COLUMNS = "student_id, org_id, branch_id, batch_id, first_name, last_name"


def _to_student(r: dict) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        org_id=int(r["org_id"]),
        branch_id=int(r["branch_id"]),
        batch_id=int(r["batch_id"]) if r.get("batch_id") is not None else None,
        first_name=r["first_name"],
        last_name=r.get("last_name") or "",
    )


class MySQLAcademicsRepository(AcademicsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_session(self, *, session_id: int, org_id: int) -> Optional[AcademicSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT session_id, org_id, name, start_date, end_date
                FROM academic_sessions
                WHERE session_id=%s AND org_id=%s
                """,
                (int(session_id), int(org_id)),
            )
            r = fetchone(cur)
            if not r:
                return None
            return AcademicSession(
                session_id=int(r["session_id"]),
                org_id=int(r["org_id"]),
                name=r["name"],
                start_date=r["start_date"],
                end_date=r["end_date"],
            )

    def get_batch(self, *, batch_id: int, branch_id: int) -> Optional[Batch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT batch_id, org_id, branch_id, name FROM batches WHERE batch_id=%s AND branch_id=%s",
                (int(batch_id), int(branch_id)),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Batch(
                batch_id=int(r["batch_id"]),
                org_id=int(r["org_id"]),
                branch_id=int(r["branch_id"]),
                name=r["name"],
            )

    def get_student(self, *, student_id: int, org_id: int, branch_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_STUDENT_COLUMNS} FROM students WHERE student_id=%s AND org_id=%s AND branch_id=%s",
                (int(student_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return _to_student(r) if r else None

    def list_active_students(self, *, batch_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_STUDENT_COLUMNS}
                FROM students
                WHERE batch_id=%s AND status='active'
                ORDER BY student_id ASC
                """,
                (int(batch_id),),
            )
            return [_to_student(r) for r in fetchall(cur)]

    def get_students(self, *, student_ids: Sequence[int]) -> Sequence[Student]:
        if not student_ids:
            return []
        ids = [int(s) for s in student_ids]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_STUDENT_COLUMNS} FROM students WHERE student_id IN ({in_clause(ids)}) ORDER BY student_id",
                tuple(ids),
            )
            return [_to_student(r) for r in fetchall(cur)]

    def get_org_name(self, *, org_id: int) -> Optional[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT name FROM organizations WHERE org_id=%s", (int(org_id),))
            r = fetchone(cur)
            return r["name"] if r else None
