from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from ..academics.repository import AcademicsRepository
from ..common.validators import require_non_empty, require_positive_amount, require_unique_ids
from ..components.service import FeeComponentService
from ..core.enums import WriteMode
from ..core.exceptions import NotFoundError, ValidationError
from ..core.scope import TenantScope
from ..student_structures.model import StudentStructureWrite
from ..student_structures.repository import StudentFeeStructureRepository
from ..student_structures.service import draft_from_template
from .model import ApplyResult, BatchFeeLineItem, BatchFeeStructure, BatchStructureWrite, OverwriteBlocked
from .repository import BatchFeeStructureRepository

logger = logging.getLogger(__name__)


class BatchFeeStructureService:
    def __init__(
        self,
        batch_structures: BatchFeeStructureRepository,
        student_structures: StudentFeeStructureRepository,
        academics: AcademicsRepository,
        components: FeeComponentService,
    ):
        self._batch_structures = batch_structures
        self._student_structures = student_structures
        self._academics = academics
        self._components = components

    def create_or_update(
        self,
        *,
        scope: TenantScope,
        batch_id: int,
        session_id: int,
        name: str,
        line_items: Sequence[BatchFeeLineItem],
    ) -> BatchFeeStructure:
        """Upsert the template for (batch, session). Nothing is written unless every check passes."""

        name = require_non_empty(name, "Name")
        if not line_items:
            raise ValidationError("At least one line item is required")
        require_unique_ids([li.component_id for li in line_items], "Fee component")
        items = tuple(
            BatchFeeLineItem(component_id=int(li.component_id), amount=require_positive_amount(li.amount, "Line item amount"))
            for li in line_items
        )

        batch = self._academics.get_batch(batch_id=int(batch_id), branch_id=scope.branch_id)
        if not batch or batch.org_id != scope.org_id:
            raise NotFoundError("Batch")
        if not self._academics.get_session(session_id=int(session_id), org_id=scope.org_id):
            raise NotFoundError("Academic session")
        self._components.require_active(scope=scope, component_ids=[li.component_id for li in items])

        existing = self._batch_structures.get_by_natural_key(batch_id=batch.batch_id, session_id=int(session_id))
        write = BatchStructureWrite(
            mode=WriteMode.REPLACE if existing else WriteMode.INSERT,
            org_id=scope.org_id,
            branch_id=scope.branch_id,
            batch_id=batch.batch_id,
            session_id=int(session_id),
            name=name,
            total_amount=sum(li.amount for li in items),
            line_items=items,
            batch_structure_id=existing.batch_structure_id if existing else None,
        )
        structure_id = self._batch_structures.save(write=write)
        logger.info(
            "User %s %s batch fee structure %s for batch %s (total %s)",
            scope.user_id,
            "replaced" if existing else "created",
            structure_id,
            batch.batch_id,
            write.total_amount,
        )
        return self.get(scope=scope, batch_structure_id=structure_id)

    def get(self, *, scope: TenantScope, batch_structure_id: int) -> BatchFeeStructure:
        structure = self._batch_structures.get(
            batch_structure_id=int(batch_structure_id), org_id=scope.org_id, branch_id=scope.branch_id
        )
        if not structure:
            raise NotFoundError("Batch fee structure")
        return structure

    def get_for_batch(self, *, scope: TenantScope, batch_id: int, session_id: int) -> BatchFeeStructure:
        batch = self._academics.get_batch(batch_id=int(batch_id), branch_id=scope.branch_id)
        if not batch or batch.org_id != scope.org_id:
            raise NotFoundError("Batch")
        structure = self._batch_structures.get_by_natural_key(batch_id=batch.batch_id, session_id=int(session_id))
        if not structure or not structure.is_active:
            raise NotFoundError("Batch fee structure")
        return structure

    def list(self, *, scope: TenantScope, session_id: Optional[int] = None) -> Sequence[BatchFeeStructure]:
        return self._batch_structures.list(org_id=scope.org_id, branch_id=scope.branch_id, session_id=session_id)

    def deactivate(self, *, scope: TenantScope, batch_structure_id: int) -> BatchFeeStructure:
        structure = self.get(scope=scope, batch_structure_id=batch_structure_id)
        self._batch_structures.set_active(
            batch_structure_id=structure.batch_structure_id, org_id=scope.org_id, is_active=False
        )
        logger.info("Deactivated batch fee structure %s", structure.batch_structure_id)
        return self.get(scope=scope, batch_structure_id=structure.batch_structure_id)

    def apply_to_students(
        self,
        *,
        scope: TenantScope,
        batch_structure_id: int,
        overwrite_existing: bool = False,
    ) -> Union[ApplyResult, OverwriteBlocked]:
        """Copy the template onto every active student of the batch.

        Students without a structure get one. Students with one are skipped,
        or replaced when `overwrite_existing` is set. Replacing never happens
        for a student with recorded payments: the whole call returns
        OverwriteBlocked instead and nothing is touched.
        """

        template = self.get(scope=scope, batch_structure_id=batch_structure_id)
        if not template.is_active:
            raise NotFoundError("Batch fee structure")

        students = self._academics.list_active_students(batch_id=template.batch_id)
        if not students:
            return ApplyResult(applied=0, skipped=0, message="No active students in batch")

        existing = self._student_structures.find_existing(
            student_ids=[s.student_id for s in students], session_id=template.session_id
        )

        if overwrite_existing and existing:
            paid = sorted(set(self._student_structures.students_with_payments(structure_ids=list(existing.values()))))
            if paid:
                names = tuple(s.full_name for s in self._academics.get_students(student_ids=paid))
                listed = ", ".join(n for n in names if n) or ", ".join(str(p) for p in paid)
                logger.warning(
                    "Overwrite of batch fee structure %s blocked: %d student(s) with payments",
                    template.batch_structure_id,
                    len(paid),
                )
                return OverwriteBlocked(
                    affected_student_ids=tuple(paid),
                    affected_student_names=names,
                    message=(
                        "Cannot overwrite fee structure for students who have payments. "
                        f"Remove payments or apply without overwrite. Affected students: {listed}"
                    ),
                )

        writes: list[StudentStructureWrite] = []
        skipped = 0
        for student in students:
            current = existing.get(student.student_id)
            if current is not None and not overwrite_existing:
                skipped += 1
                continue
            writes.append(
                StudentStructureWrite(
                    mode=WriteMode.REPLACE if current is not None else WriteMode.INSERT,
                    draft=draft_from_template(student_id=student.student_id, template=template),
                    replaces_structure_id=current,
                )
            )

        if writes:
            self._student_structures.apply(writes=writes)

        applied = len(writes)
        logger.info(
            "User %s applied batch fee structure %s: applied=%d skipped=%d",
            scope.user_id,
            template.batch_structure_id,
            applied,
            skipped,
        )
        return ApplyResult(
            applied=applied,
            skipped=skipped,
            message=f"Applied to {applied} students, skipped {skipped} (already have fee structure)",
        )
