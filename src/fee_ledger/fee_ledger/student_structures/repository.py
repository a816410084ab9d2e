from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol, Sequence

from ..scholarships.application import ScholarshipOutcome
from ..scholarships.model import StudentScholarship
from .model import (
    StructureEdit,
    StudentFeeLineItem,
    StudentFeeStructure,
    StudentStructureDraft,
    StudentStructureListing,
    StudentStructureWrite,
)

# (line items, active grants) -> re-priced outcome; runs inside the repository transaction.
Recompose = Callable[[Sequence[StudentFeeLineItem], Sequence[StudentScholarship]], ScholarshipOutcome]


class StudentFeeStructureRepository(Protocol):
    def create(self, *, draft: StudentStructureDraft) -> int:
        """Insert one structure with its line items in a single transaction."""

        raise NotImplementedError

    def get(self, *, structure_id: int, org_id: int, branch_id: int) -> Optional[StudentFeeStructure]:
        raise NotImplementedError

    def get_for_student(self, *, student_id: int, session_id: int) -> Optional[StudentFeeStructure]:
        raise NotImplementedError

    def list_for_session(
        self, *, org_id: int, branch_id: int, session_id: int, batch_id: Optional[int] = None
    ) -> Sequence[StudentStructureListing]:
        """Structures of active students, ordered by batch name then first name."""

        raise NotImplementedError

    def find_existing(self, *, student_ids: Sequence[int], session_id: int) -> Dict[int, int]:
        """Map student_id -> structure_id for students that already have a structure."""

        raise NotImplementedError

    def students_with_payments(self, *, structure_ids: Sequence[int]) -> Sequence[int]:
        """Student ids whose structures have at least one recorded installment payment."""

        raise NotImplementedError

    def apply(self, *, writes: Sequence[StudentStructureWrite]) -> Sequence[int]:
        """Run every write in ONE transaction; returns the new structure ids in order.

        REPLACE writes delete the old structure and its children first. If any
        replaced structure has gained a payment since the caller checked, the
        whole batch is rolled back with ConflictError.
        """

        raise NotImplementedError

    def recompose(
        self, *, structure_id: int, recompose: Recompose, edit: Optional[StructureEdit] = None
    ) -> ScholarshipOutcome:
        """Lock the structure, re-price it against the student's active grants and save it.

        With an edit the line items and remarks are replaced first and the
        structure becomes custom. Amounts, line items and grant discounts are
        written atomically. Refuses (ConflictError) once installments exist.
        """

        raise NotImplementedError

    def has_installments(self, *, structure_id: int) -> bool:
        raise NotImplementedError
