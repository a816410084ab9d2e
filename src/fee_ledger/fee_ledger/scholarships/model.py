from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import ScholarshipBasis, ScholarshipType


@dataclass(frozen=True)
class Scholarship:
    scholarship_id: int
    org_id: int
    name: str
    type: ScholarshipType
    basis: ScholarshipBasis
    value: Decimal
    component_id: Optional[int] = None
    max_amount: Optional[int] = None
    description: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class StudentScholarship:
    """Học bổng đã cấp cho một học sinh trong một năm học."""

    grant_id: int
    student_id: int
    scholarship_id: int
    session_id: int
    discount_amount: int
    approved_by: int
    approved_at: datetime
    scholarship: Scholarship
    remarks: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class GrantDiscount:
    grant_id: int
    amount: int
    waived_component_id: Optional[int] = None


@dataclass(frozen=True)
class GrantDraft:
    student_id: int
    scholarship_id: int
    session_id: int
    discount_amount: int
    approved_by: int
    remarks: Optional[str] = None
