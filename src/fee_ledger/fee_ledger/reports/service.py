from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..academics.repository import AcademicsRepository
from ..common.datetime_utils import today_local
from ..core.constants import DEFAULT_PENDING_LIMIT
from ..core.enums import InstallmentStatus
from ..core.exceptions import NotFoundError
from ..core.scope import TenantScope
from ..installments.repository import InstallmentRepository
from .model import CollectionReport, PendingInstallment, StructureSummary
from .repository import ReportRepository


class FeeReportService:
    def __init__(self, reports: ReportRepository, installments: InstallmentRepository, academics: AcademicsRepository):
        self._reports = reports
        self._installments = installments
        self._academics = academics

    def collection_by_batch(
        self, *, scope: TenantScope, session_id: int, batch_id: Optional[int] = None
    ) -> CollectionReport:
        if not self._academics.get_session(session_id=int(session_id), org_id=scope.org_id):
            raise NotFoundError("Academic session")

        rows = tuple(
            self._reports.collection_by_batch(
                org_id=scope.org_id, branch_id=scope.branch_id, session_id=int(session_id), batch_id=batch_id
            )
        )
        return CollectionReport(
            session_id=int(session_id),
            rows=rows,
            total_net=sum(r.total_net for r in rows),
            total_paid=sum(r.total_paid for r in rows),
        )

    def student_summary(
        self,
        *,
        scope: TenantScope,
        student_id: int,
        session_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Sequence[StructureSummary]:
        if not self._academics.get_student(student_id=int(student_id), org_id=scope.org_id, branch_id=scope.branch_id):
            raise NotFoundError("Student")
        today = today or today_local()

        out: list[StructureSummary] = []
        for s in self._reports.structures_for_student(student_id=int(student_id), session_id=session_id):
            installments = self._installments.list_for_structure(structure_id=s.structure_id)
            paid = sum(i.paid_amount for i in installments)
            upcoming = [i.due_date for i in installments if i.outstanding > 0]
            out.append(
                StructureSummary(
                    structure_id=s.structure_id,
                    session_id=s.session_id,
                    session_name=s.session_name,
                    net_amount=s.net_amount,
                    total_paid=paid,
                    outstanding=s.net_amount - paid,
                    total_installments=len(installments),
                    paid_installments=sum(1 for i in installments if i.status_on(today) == InstallmentStatus.PAID),
                    overdue_installments=sum(1 for i in installments if i.is_overdue(today)),
                    next_due_date=min(upcoming) if upcoming else None,
                )
            )
        return out

    def pending_installments(
        self,
        *,
        scope: TenantScope,
        batch_id: Optional[int] = None,
        status: Optional[InstallmentStatus] = None,
        limit: int = DEFAULT_PENDING_LIMIT,
        offset: int = 0,
        today: Optional[date] = None,
    ) -> Sequence[PendingInstallment]:
        today = today or today_local()
        if status == InstallmentStatus.PAID:
            return []
        rows = self._reports.unpaid_installments(
            org_id=scope.org_id,
            branch_id=scope.branch_id,
            batch_id=batch_id,
            status=status,
            today=today,
            limit=limit,
            offset=offset,
        )
        return [
            PendingInstallment(row=r, status=r.installment.display_status(today), pending_amount=r.installment.outstanding)
            for r in rows
        ]
