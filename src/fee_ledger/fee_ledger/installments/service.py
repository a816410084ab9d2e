from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from ..academics.repository import AcademicsRepository
from ..common.validators import require_non_empty
from ..core.exceptions import NotFoundError, ValidationError
from ..core.scope import TenantScope
from ..student_structures.repository import StudentFeeStructureRepository
from .factory import ScheduleStrategyFactory
from .model import EmiPlanTemplate, FeeInstallment, InstallmentPlan, PercentagePlan, SplitEntry, TemplatePlan
from .repository import InstallmentRepository
from .schedules.percentage_schedule import PercentageSchedule

logger = logging.getLogger(__name__)


class InstallmentService:
    def __init__(
        self,
        installments: InstallmentRepository,
        structures: StudentFeeStructureRepository,
        academics: AcademicsRepository,
        *,
        strategies: Optional[ScheduleStrategyFactory] = None,
    ):
        self._installments = installments
        self._structures = structures
        self._academics = academics
        self._strategies = strategies or ScheduleStrategyFactory()

    def generate(
        self,
        *,
        scope: TenantScope,
        structure_id: int,
        plan: InstallmentPlan,
        start_date: Optional[date] = None,
    ) -> Sequence[FeeInstallment]:
        """Split the structure's net amount into a dated schedule.

        Due dates count from the session start unless `start_date` overrides it.
        """

        structure = self._structures.get(structure_id=int(structure_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not structure:
            raise NotFoundError("Student fee structure")
        if self._installments.count_for_structure(structure_id=structure.structure_id) > 0:
            raise ValidationError("Installments already exist for this fee structure. Delete existing installments first.")
        if structure.net_amount <= 0:
            raise ValidationError("Net amount is 0; there is nothing to schedule")

        if isinstance(plan, TemplatePlan):
            template = self._installments.get_plan(plan_id=int(plan.plan_id), org_id=scope.org_id)
            if not template or not template.is_active:
                raise NotFoundError("EMI plan template")
            plan = PercentagePlan(splits=template.splits)

        if start_date is None:
            session = self._academics.get_session(session_id=structure.session_id, org_id=scope.org_id)
            if not session:
                raise NotFoundError("Academic session")
            start_date = session.start_date

        drafts = self._strategies.for_plan(plan).build(plan, net_amount=structure.net_amount, start_date=start_date)
        self._installments.create_many(structure_id=structure.structure_id, drafts=drafts)

        logger.info(
            "User %s generated %d installments for fee structure %s (net %s)",
            scope.user_id,
            len(drafts),
            structure.structure_id,
            structure.net_amount,
        )
        return self._installments.list_for_structure(structure_id=structure.structure_id)

    def list_for_structure(self, *, scope: TenantScope, structure_id: int) -> Sequence[FeeInstallment]:
        structure = self._structures.get(structure_id=int(structure_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not structure:
            raise NotFoundError("Student fee structure")
        return self._installments.list_for_structure(structure_id=structure.structure_id)

    def get(self, *, scope: TenantScope, installment_id: int) -> FeeInstallment:
        installment = self._installments.get(
            installment_id=int(installment_id), org_id=scope.org_id, branch_id=scope.branch_id
        )
        if not installment:
            raise NotFoundError("Installment")
        return installment

    def delete_installments(self, *, scope: TenantScope, structure_id: int) -> int:
        structure = self._structures.get(structure_id=int(structure_id), org_id=scope.org_id, branch_id=scope.branch_id)
        if not structure:
            raise NotFoundError("Student fee structure")
        if self._installments.has_payments(structure_id=structure.structure_id):
            raise ValidationError("Cannot delete installments that have payments recorded")

        deleted = self._installments.delete_for_structure(structure_id=structure.structure_id)
        logger.info("User %s deleted %d installments of fee structure %s", scope.user_id, deleted, structure.structure_id)
        return deleted

    # -------- EMI plan templates --------
    def create_plan(
        self,
        *,
        scope: TenantScope,
        name: str,
        splits: Sequence[SplitEntry],
        is_default: bool = False,
    ) -> EmiPlanTemplate:
        name = require_non_empty(name, "Name")
        splits = tuple(splits)
        PercentageSchedule.validate(splits)

        if self._installments.find_plan_by_name(org_id=scope.org_id, name=name):
            raise ValidationError(f'An EMI plan template with name "{name}" already exists')

        plan_id = self._installments.create_plan(org_id=scope.org_id, name=name, splits=splits, is_default=bool(is_default))
        logger.info("Created EMI plan template %s (%s) for org %s", plan_id, name, scope.org_id)
        return self.get_plan(scope=scope, plan_id=plan_id)

    def get_plan(self, *, scope: TenantScope, plan_id: int) -> EmiPlanTemplate:
        plan = self._installments.get_plan(plan_id=int(plan_id), org_id=scope.org_id)
        if not plan:
            raise NotFoundError("EMI plan template")
        return plan

    def update_plan(
        self,
        *,
        scope: TenantScope,
        plan_id: int,
        name: Optional[str] = None,
        splits: Optional[Sequence[SplitEntry]] = None,
        is_default: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> EmiPlanTemplate:
        """Edit a template; None keeps the current value. Generated schedules are not touched."""

        plan = self.get_plan(scope=scope, plan_id=plan_id)

        new_name = plan.name
        if name is not None:
            new_name = require_non_empty(name, "Name")
            other = self._installments.find_plan_by_name(org_id=scope.org_id, name=new_name)
            if other and other.plan_id != plan.plan_id:
                raise ValidationError(f'An EMI plan template with name "{new_name}" already exists')

        new_splits = plan.splits
        if splits is not None:
            new_splits = tuple(splits)
            PercentageSchedule.validate(new_splits)

        self._installments.update_plan(
            plan_id=plan.plan_id,
            org_id=scope.org_id,
            name=new_name,
            splits=new_splits,
            is_default=plan.is_default if is_default is None else bool(is_default),
            is_active=plan.is_active if is_active is None else bool(is_active),
        )
        logger.info("Updated EMI plan template %s for org %s", plan.plan_id, scope.org_id)
        return self.get_plan(scope=scope, plan_id=plan.plan_id)

    def list_plans(self, *, scope: TenantScope) -> Sequence[EmiPlanTemplate]:
        return self._installments.list_plans(org_id=scope.org_id)
