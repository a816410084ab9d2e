from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AcademicSession, Batch, Student


class AcademicsRepository(Protocol):
    """Read-only view of the sessions/batches/students owned by other modules."""

    def get_session(self, *, session_id: int, org_id: int) -> Optional[AcademicSession]:
        raise NotImplementedError

    def get_batch(self, *, batch_id: int, branch_id: int) -> Optional[Batch]:
        raise NotImplementedError

    def get_student(self, *, student_id: int, org_id: int, branch_id: int) -> Optional[Student]:
        raise NotImplementedError

    def list_active_students(self, *, batch_id: int) -> Sequence[Student]:
        raise NotImplementedError

    def get_students(self, *, student_ids: Sequence[int]) -> Sequence[Student]:
        raise NotImplementedError

    def get_org_name(self, *, org_id: int) -> Optional[str]:
        raise NotImplementedError
