from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import ScholarshipBasis, ScholarshipType
from ..student_structures.repository import Recompose
from .model import GrantDraft, Scholarship, StudentScholarship


class ScholarshipRepository(Protocol):
    # Definitions
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
        raise NotImplementedError

    def get_scholarship(self, *, scholarship_id: int, org_id: int) -> Optional[Scholarship]:
        raise NotImplementedError

    def find_scholarship_by_name(self, *, org_id: int, name: str) -> Optional[Scholarship]:
        raise NotImplementedError

    def list_scholarships(self, *, org_id: int, is_active: Optional[bool] = True) -> Sequence[Scholarship]:
        raise NotImplementedError

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
        raise NotImplementedError

    def set_scholarship_active(self, *, scholarship_id: int, org_id: int, is_active: bool) -> None:
        raise NotImplementedError

    # Grants
    def assign_grant(self, *, draft: GrantDraft, structure_id: Optional[int], recompose: Recompose) -> int:
        """Insert the grant and, when `structure_id` is given, re-price that structure in the same transaction.

        Refuses (ConflictError) once the structure has installments; nothing is written then.
        """

        raise NotImplementedError

    def revoke_grant(self, *, grant_id: int, structure_id: Optional[int], recompose: Recompose) -> None:
        """Delete the grant and re-price the structure atomically, like `assign_grant`."""

        raise NotImplementedError

    def find_grant(self, *, student_id: int, scholarship_id: int, session_id: int) -> Optional[StudentScholarship]:
        raise NotImplementedError

    def get_grant(self, *, grant_id: int, org_id: int, branch_id: int) -> Optional[StudentScholarship]:
        raise NotImplementedError

    def list_grants(self, *, student_id: int, session_id: Optional[int] = None) -> Sequence[StudentScholarship]:
        """Active grants, newest approval first."""

        raise NotImplementedError
