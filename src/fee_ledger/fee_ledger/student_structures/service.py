from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..academics.repository import AcademicsRepository
from ..batch_structures.model import BatchFeeStructure
from ..common.validators import clean_optional, require_unique_ids
from ..components.service import FeeComponentService
from ..core.enums import FeeStructureSource
from ..core.exceptions import NotFoundError, ValidationError
from ..core.scope import TenantScope
from ..scholarships.application import ScholarshipOutcome, apply_scholarships, net_of
from ..scholarships.factory import DiscountCalculatorFactory
from ..scholarships.model import StudentScholarship
from ..scholarships.repository import ScholarshipRepository
from .model import (
    StructureEdit,
    StudentFeeLineItem,
    StudentFeeStructure,
    StudentStructureDraft,
    StudentStructureListing,
)
from .repository import StudentFeeStructureRepository

logger = logging.getLogger(__name__)


def draft_from_template(*, student_id: int, template: BatchFeeStructure) -> StudentStructureDraft:
    """Copy a batch template for one student: original == adjusted, no scholarship yet."""

    items = tuple(
        StudentFeeLineItem(component_id=li.component_id, original_amount=li.amount, adjusted_amount=li.amount)
        for li in template.line_items
    )
    gross = sum(li.adjusted_amount for li in items)
    scholarship, net = net_of(gross, 0)
    return StudentStructureDraft(
        student_id=int(student_id),
        session_id=template.session_id,
        source=FeeStructureSource.BATCH_DEFAULT,
        batch_structure_id=template.batch_structure_id,
        gross_amount=gross,
        scholarship_amount=scholarship,
        net_amount=net,
        line_items=items,
    )


class StudentFeeStructureService:
    def __init__(
        self,
        structures: StudentFeeStructureRepository,
        academics: AcademicsRepository,
        components: FeeComponentService,
        scholarships: ScholarshipRepository,
        *,
        calculators: Optional[DiscountCalculatorFactory] = None,
    ):
        self._structures = structures
        self._academics = academics
        self._components = components
        self._scholarships = scholarships
        self._calculators = calculators or DiscountCalculatorFactory()

    @staticmethod
    def _check_line_items(line_items: Sequence[StudentFeeLineItem]) -> tuple[StudentFeeLineItem, ...]:
        if not line_items:
            raise ValidationError("At least one line item is required")
        require_unique_ids([li.component_id for li in line_items], "Fee component")
        out = []
        for li in line_items:
            for label, value in (("Original amount", li.original_amount), ("Adjusted amount", li.adjusted_amount)):
                if isinstance(value, bool) or int(value) != value or int(value) < 0:
                    raise ValidationError(f"{label} must be a non-negative whole number")
            out.append(
                StudentFeeLineItem(
                    component_id=int(li.component_id),
                    original_amount=int(li.original_amount),
                    adjusted_amount=int(li.adjusted_amount),
                    waived=bool(li.waived),
                    waiver_reason=clean_optional(li.waiver_reason),
                )
            )
        return tuple(out)

    def create_custom(
        self,
        *,
        scope: TenantScope,
        student_id: int,
        session_id: int,
        line_items: Sequence[StudentFeeLineItem],
        remarks: Optional[str] = None,
    ) -> StudentFeeStructure:
        items = self._check_line_items(line_items)

        student = self._academics.get_student(student_id=int(student_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not student:
            raise NotFoundError("Student")
        if not self._academics.get_session(session_id=int(session_id), org_id=scope.org_id):
            raise NotFoundError("Academic session")
        if self._structures.get_for_student(student_id=student.student_id, session_id=int(session_id)):
            raise ValidationError("Fee structure already exists for this student and session")
        self._components.require_active(scope=scope, component_ids=[li.component_id for li in items])

        grants = self._scholarships.list_grants(student_id=student.student_id, session_id=int(session_id))
        outcome = apply_scholarships(items, grants, factory=self._calculators)

        structure_id = self._structures.create(
            draft=StudentStructureDraft(
                student_id=student.student_id,
                session_id=int(session_id),
                source=FeeStructureSource.CUSTOM,
                batch_structure_id=None,
                gross_amount=outcome.gross_amount,
                scholarship_amount=outcome.scholarship_amount,
                net_amount=outcome.net_amount,
                line_items=outcome.line_items,
                remarks=clean_optional(remarks),
            )
        )
        logger.info(
            "User %s created custom fee structure %s for student %s (net %s)",
            scope.user_id,
            structure_id,
            student.student_id,
            outcome.net_amount,
        )
        return self.get(scope=scope, structure_id=structure_id)

    def get(self, *, scope: TenantScope, structure_id: int) -> StudentFeeStructure:
        structure = self._structures.get(structure_id=int(structure_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not structure:
            raise NotFoundError("Student fee structure")
        return structure

    def get_for_student(self, *, scope: TenantScope, student_id: int, session_id: int) -> StudentFeeStructure:
        self._require_student(scope, student_id)
        structure = self._structures.get_for_student(student_id=int(student_id), session_id=int(session_id))
        if not structure:
            raise NotFoundError("Student fee structure")
        return structure

    def compose(self, line_items: Sequence[StudentFeeLineItem], grants: Sequence[StudentScholarship]) -> ScholarshipOutcome:
        return apply_scholarships(line_items, grants, factory=self._calculators)

    def _require_unscheduled(self, structure: StudentFeeStructure, action: str) -> None:
        if self._structures.has_installments(structure_id=structure.structure_id):
            raise ValidationError(f"Installments already exist for this fee structure; delete them before {action}")

    def recalculate(self, *, scope: TenantScope, student_id: int, session_id: int) -> StudentFeeStructure:
        """Re-apply the student's active grants to an existing structure."""

        structure = self.get_for_student(scope=scope, student_id=student_id, session_id=session_id)
        self._require_unscheduled(structure, "recalculating")

        outcome = self._structures.recompose(structure_id=structure.structure_id, recompose=self.compose)
        logger.info(
            "Recalculated fee structure %s: scholarship %s -> %s",
            structure.structure_id,
            structure.scholarship_amount,
            outcome.scholarship_amount,
        )
        return self.get(scope=scope, structure_id=structure.structure_id)

    def update(
        self,
        *,
        scope: TenantScope,
        structure_id: int,
        line_items: Optional[Sequence[StudentFeeLineItem]] = None,
        remarks: Optional[str] = None,
    ) -> StudentFeeStructure:
        """Replace line items and/or remarks. The structure becomes custom and is re-priced."""

        structure = self.get(scope=scope, structure_id=structure_id)
        if line_items is None and remarks is None:
            raise ValidationError("Nothing to update")

        items = None
        if line_items is not None:
            items = self._check_line_items(line_items)
            self._components.require_active(scope=scope, component_ids=[li.component_id for li in items])
        self._require_unscheduled(structure, "editing it")

        outcome = self._structures.recompose(
            structure_id=structure.structure_id,
            recompose=self.compose,
            edit=StructureEdit(line_items=items, remarks=clean_optional(remarks)),
        )
        logger.info(
            "User %s edited fee structure %s (net %s -> %s)",
            scope.user_id,
            structure.structure_id,
            structure.net_amount,
            outcome.net_amount,
        )
        return self.get(scope=scope, structure_id=structure.structure_id)

    def list(
        self, *, scope: TenantScope, session_id: int, batch_id: Optional[int] = None
    ) -> Sequence[StudentStructureListing]:
        if not self._academics.get_session(session_id=int(session_id), org_id=scope.org_id):
            raise NotFoundError("Academic session")
        return self._structures.list_for_session(
            org_id=scope.org_id,
            branch_id=scope.branch_id,
            session_id=int(session_id),
            batch_id=int(batch_id) if batch_id is not None else None,
        )

    def _require_student(self, scope: TenantScope, student_id: int):
        student = self._academics.get_student(student_id=int(student_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not student:
            raise NotFoundError("Student")
        return student
