from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from ..academics.repository import AcademicsRepository
from ..common.money import as_decimal
from ..common.validators import clean_optional, require_non_empty, require_positive_amount
from ..components.service import FeeComponentService
from ..core.enums import ScholarshipBasis, ScholarshipType
from ..core.exceptions import InvalidReferenceError, NotFoundError, ValidationError
from ..core.scope import TenantScope
from ..student_structures.model import StudentFeeStructure
from ..student_structures.repository import StudentFeeStructureRepository
from ..student_structures.service import StudentFeeStructureService
from .factory import DiscountCalculatorFactory
from .model import GrantDraft, Scholarship, StudentScholarship
from .repository import ScholarshipRepository

logger = logging.getLogger(__name__)


class ScholarshipService:
    def __init__(
        self,
        scholarships: ScholarshipRepository,
        academics: AcademicsRepository,
        components: FeeComponentService,
        structures: StudentFeeStructureRepository,
        composer: StudentFeeStructureService,
        *,
        calculators: Optional[DiscountCalculatorFactory] = None,
    ):
        self._scholarships = scholarships
        self._academics = academics
        self._components = components
        self._structures = structures
        self._composer = composer
        self._calculators = calculators or DiscountCalculatorFactory()

    # -------- Definitions --------
    @staticmethod
    def _check_value(type: ScholarshipType, value) -> Decimal:
        value = as_decimal(value, "Value")
        if value <= 0:
            raise ValidationError("Value must be greater than 0")
        if type == ScholarshipType.PERCENTAGE and value > Decimal(100):
            raise ValidationError("Percentage value must be between 0 and 100")
        if type == ScholarshipType.FIXED_AMOUNT:
            # Fixed values are whole minor units.
            value = Decimal(require_positive_amount(value, "Value"))
        return value

    def create(
        self,
        *,
        scope: TenantScope,
        name: str,
        type: ScholarshipType,
        basis: ScholarshipBasis,
        value,
        component_id: Optional[int] = None,
        max_amount: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Scholarship:
        name = require_non_empty(name, "Name")
        value = self._check_value(type, value)
        if max_amount is not None:
            max_amount = require_positive_amount(max_amount, "Max amount")

        if type == ScholarshipType.COMPONENT_WAIVER:
            if component_id is None:
                raise ValidationError("Component waiver scholarships need a fee component")
            try:
                self._components.require_active(scope=scope, component_ids=[int(component_id)])
            except InvalidReferenceError:
                raise NotFoundError("Fee component")
        else:
            component_id = None

        if self._scholarships.find_scholarship_by_name(org_id=scope.org_id, name=name):
            raise ValidationError(f'A scholarship with name "{name}" already exists')

        scholarship_id = self._scholarships.create_scholarship(
            org_id=scope.org_id,
            name=name,
            type=type,
            basis=basis,
            value=value,
            component_id=int(component_id) if component_id is not None else None,
            max_amount=max_amount,
            description=clean_optional(description),
        )
        logger.info("Created scholarship %s (%s, %s) for org %s", scholarship_id, name, type.value, scope.org_id)
        return self.get(scope=scope, scholarship_id=scholarship_id)

    def get(self, *, scope: TenantScope, scholarship_id: int) -> Scholarship:
        scholarship = self._scholarships.get_scholarship(scholarship_id=int(scholarship_id), org_id=scope.org_id)
        if not scholarship:
            raise NotFoundError("Scholarship")
        return scholarship

    def list(self, *, scope: TenantScope, is_active: Optional[bool] = True) -> Sequence[Scholarship]:
        return self._scholarships.list_scholarships(org_id=scope.org_id, is_active=is_active)

    def update(
        self,
        *,
        scope: TenantScope,
        scholarship_id: int,
        name: Optional[str] = None,
        value=None,
        max_amount: Optional[int] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Scholarship:
        """Edit a definition; None keeps the current value.

        Existing structures keep their amounts until they are recalculated.
        """

        scholarship = self.get(scope=scope, scholarship_id=scholarship_id)

        new_name = scholarship.name
        if name is not None:
            new_name = require_non_empty(name, "Name")
            other = self._scholarships.find_scholarship_by_name(org_id=scope.org_id, name=new_name)
            if other and other.scholarship_id != scholarship.scholarship_id:
                raise ValidationError(f'A scholarship with name "{new_name}" already exists')

        new_value = self._check_value(scholarship.type, value) if value is not None else scholarship.value
        new_max = require_positive_amount(max_amount, "Max amount") if max_amount is not None else scholarship.max_amount

        self._scholarships.update_scholarship(
            scholarship_id=scholarship.scholarship_id,
            org_id=scope.org_id,
            name=new_name,
            value=new_value,
            max_amount=new_max,
            description=clean_optional(description) if description is not None else scholarship.description,
            is_active=scholarship.is_active if is_active is None else bool(is_active),
        )
        logger.info("Updated scholarship %s for org %s", scholarship.scholarship_id, scope.org_id)
        return self.get(scope=scope, scholarship_id=scholarship.scholarship_id)

    def deactivate(self, *, scope: TenantScope, scholarship_id: int) -> Scholarship:
        # Existing grants keep their row; inactive definitions are skipped on the next recalculation.
        scholarship = self.get(scope=scope, scholarship_id=scholarship_id)
        self._scholarships.set_scholarship_active(
            scholarship_id=scholarship.scholarship_id, org_id=scope.org_id, is_active=False
        )
        logger.info("Deactivated scholarship %s for org %s", scholarship.scholarship_id, scope.org_id)
        return self.get(scope=scope, scholarship_id=scholarship.scholarship_id)

    # -------- Grants --------
    def _structure_open_for_change(self, student_id: int, session_id: int) -> Optional[StudentFeeStructure]:
        structure = self._structures.get_for_student(student_id=student_id, session_id=session_id)
        if structure and self._structures.has_installments(structure_id=structure.structure_id):
            raise ValidationError(
                "Installments already exist for this fee structure; delete them before changing scholarships"
            )
        return structure

    def assign(
        self,
        *,
        scope: TenantScope,
        student_id: int,
        scholarship_id: int,
        session_id: int,
        remarks: Optional[str] = None,
    ) -> StudentScholarship:
        student = self._academics.get_student(student_id=int(student_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not student:
            raise NotFoundError("Student")
        scholarship = self._scholarships.get_scholarship(scholarship_id=int(scholarship_id), org_id=scope.org_id)
        if not scholarship or not scholarship.is_active:
            raise NotFoundError("Scholarship")
        if not self._academics.get_session(session_id=int(session_id), org_id=scope.org_id):
            raise NotFoundError("Academic session")
        if self._scholarships.find_grant(
            student_id=student.student_id, scholarship_id=scholarship.scholarship_id, session_id=int(session_id)
        ):
            raise ValidationError("This scholarship is already assigned to the student for this session")

        structure = self._structure_open_for_change(student.student_id, int(session_id))
        if structure:
            discount = self._calculators.for_type(scholarship.type).discount(
                scholarship, gross_amount=structure.gross_amount, line_items=structure.line_items
            )
        else:
            # Placeholder until a structure exists; the composer recomputes on creation.
            discount = int(scholarship.value) if scholarship.type == ScholarshipType.FIXED_AMOUNT else 0

        grant_id = self._scholarships.assign_grant(
            draft=GrantDraft(
                student_id=student.student_id,
                scholarship_id=scholarship.scholarship_id,
                session_id=int(session_id),
                discount_amount=discount,
                approved_by=scope.user_id,
                remarks=clean_optional(remarks),
            ),
            structure_id=structure.structure_id if structure else None,
            recompose=self._composer.compose,
        )
        logger.info(
            "User %s assigned scholarship %s to student %s for session %s",
            scope.user_id,
            scholarship.scholarship_id,
            student.student_id,
            session_id,
        )
        return self._require_grant(scope, grant_id)

    def revoke(self, *, scope: TenantScope, grant_id: int) -> None:
        grant = self._require_grant(scope, grant_id)
        structure = self._structure_open_for_change(grant.student_id, grant.session_id)

        self._scholarships.revoke_grant(
            grant_id=grant.grant_id,
            structure_id=structure.structure_id if structure else None,
            recompose=self._composer.compose,
        )
        logger.info("User %s revoked scholarship grant %s", scope.user_id, grant.grant_id)

    def list_for_student(
        self, *, scope: TenantScope, student_id: int, session_id: Optional[int] = None
    ) -> Sequence[StudentScholarship]:
        if not self._academics.get_student(student_id=int(student_id), org_id=scope.org_id, branch_id=scope.branch_id):
            raise NotFoundError("Student")
        return self._scholarships.list_grants(
            student_id=int(student_id), session_id=int(session_id) if session_id is not None else None
        )

    def _require_grant(self, scope: TenantScope, grant_id: int) -> StudentScholarship:
        grant = self._scholarships.get_grant(grant_id=int(grant_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not grant:
            raise NotFoundError("Student scholarship")
        return grant
