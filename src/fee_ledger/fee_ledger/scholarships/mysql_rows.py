"""Row mapping for the scholarship tables, shared by every repository that reads grants."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..core.enums import ScholarshipBasis, ScholarshipType
from ..database.mysql_base import fetchall
from .model import Scholarship, StudentScholarship

SCHOLARSHIP_COLUMNS = (
    "s.scholarship_id, s.org_id, s.name, s.type, s.basis, s.value, "
    "s.component_id, s.max_amount, s.description, s.is_active"
)

GRANT_SELECT = f"""
    SELECT g.grant_id, g.student_id, g.scholarship_id, g.session_id, g.discount_amount,
           g.approved_by, g.approved_at, g.remarks, g.is_active AS grant_active,
           {SCHOLARSHIP_COLUMNS}
    FROM student_scholarships g
    JOIN scholarships s ON s.scholarship_id = g.scholarship_id
"""


def to_scholarship(r: dict) -> Scholarship:
    return Scholarship(
        scholarship_id=int(r["scholarship_id"]),
        org_id=int(r["org_id"]),
        name=r["name"],
        type=ScholarshipType(r["type"]),
        basis=ScholarshipBasis(r["basis"]),
        value=Decimal(str(r["value"])),
        component_id=int(r["component_id"]) if r.get("component_id") is not None else None,
        max_amount=int(r["max_amount"]) if r.get("max_amount") is not None else None,
        description=r.get("description"),
        is_active=bool(r["is_active"]),
    )


def to_grant(r: dict) -> StudentScholarship:
    return StudentScholarship(
        grant_id=int(r["grant_id"]),
        student_id=int(r["student_id"]),
        scholarship_id=int(r["scholarship_id"]),
        session_id=int(r["session_id"]),
        discount_amount=int(r["discount_amount"]),
        approved_by=int(r["approved_by"]),
        approved_at=r["approved_at"],
        scholarship=to_scholarship(r),
        remarks=r.get("remarks"),
        is_active=bool(r["grant_active"]),
    )


def select_active_grants(cur, *, student_id: int, session_id: int) -> Sequence[StudentScholarship]:
    """Active grants of one student for one session, read on the caller's cursor."""

    cur.execute(
        GRANT_SELECT + " WHERE g.student_id=%s AND g.session_id=%s AND g.is_active=1 ORDER BY g.grant_id ASC",
        (int(student_id), int(session_id)),
    )
    return [to_grant(r) for r in fetchall(cur)]
