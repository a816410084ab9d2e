from __future__ import annotations

from dataclasses import dataclass

from .academics.mysql_academics_repository import MySQLAcademicsRepository
from .batch_structures.mysql_batch_structure_repository import MySQLBatchFeeStructureRepository
from .batch_structures.service import BatchFeeStructureService
from .components.mysql_component_repository import MySQLFeeComponentRepository
from .components.service import FeeComponentService
from .core.constants import RECEIPT_PREFIX_FALLBACK
from .database.connection import DBConfig, DatabaseConnection
from .installments.events import PaymentEventDispatcher
from .installments.factory import ScheduleStrategyFactory
from .installments.mysql_installment_repository import MySQLInstallmentRepository
from .installments.payment_service import PaymentRecorder
from .installments.service import InstallmentService
from .receipts.mysql_receipt_repository import MySQLReceiptRepository
from .receipts.service import ReceiptAutoIssuer, ReceiptService
from .reports.mysql_report_repository import MySQLReportRepository
from .reports.service import FeeReportService
from .scholarships.factory import DiscountCalculatorFactory
from .scholarships.mysql_scholarship_repository import MySQLScholarshipRepository
from .scholarships.service import ScholarshipService
from .student_structures.mysql_student_structure_repository import MySQLStudentFeeStructureRepository
from .student_structures.service import StudentFeeStructureService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    academics_repo: MySQLAcademicsRepository
    components_repo: MySQLFeeComponentRepository
    batch_structures_repo: MySQLBatchFeeStructureRepository
    student_structures_repo: MySQLStudentFeeStructureRepository
    scholarships_repo: MySQLScholarshipRepository
    installments_repo: MySQLInstallmentRepository
    receipts_repo: MySQLReceiptRepository
    reports_repo: MySQLReportRepository

    payment_events: PaymentEventDispatcher

    component_service: FeeComponentService
    batch_structure_service: BatchFeeStructureService
    student_structure_service: StudentFeeStructureService
    scholarship_service: ScholarshipService
    installment_service: InstallmentService
    payment_recorder: PaymentRecorder
    receipt_service: ReceiptService
    report_service: FeeReportService


def build_container(
    *,
    db_config: dict,
    auto_issue_receipts: bool = True,
    receipt_prefix_fallback: str = RECEIPT_PREFIX_FALLBACK,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    academics_repo = MySQLAcademicsRepository(conn)
    components_repo = MySQLFeeComponentRepository(conn)
    batch_structures_repo = MySQLBatchFeeStructureRepository(conn)
    student_structures_repo = MySQLStudentFeeStructureRepository(conn)
    scholarships_repo = MySQLScholarshipRepository(conn)
    installments_repo = MySQLInstallmentRepository(conn)
    receipts_repo = MySQLReceiptRepository(conn)
    reports_repo = MySQLReportRepository(conn)

    calculators = DiscountCalculatorFactory()
    component_service = FeeComponentService(components_repo)
    student_structure_service = StudentFeeStructureService(
        student_structures_repo,
        academics_repo,
        component_service,
        scholarships_repo,
        calculators=calculators,
    )
    batch_structure_service = BatchFeeStructureService(
        batch_structures_repo,
        student_structures_repo,
        academics_repo,
        component_service,
    )
    scholarship_service = ScholarshipService(
        scholarships_repo,
        academics_repo,
        component_service,
        student_structures_repo,
        student_structure_service,
        calculators=calculators,
    )
    installment_service = InstallmentService(
        installments_repo,
        student_structures_repo,
        academics_repo,
        strategies=ScheduleStrategyFactory(),
    )
    receipt_service = ReceiptService(receipts_repo, academics_repo, prefix_fallback=receipt_prefix_fallback)

    payment_events = PaymentEventDispatcher()
    if auto_issue_receipts:
        payment_events.subscribe(ReceiptAutoIssuer(receipt_service))
    payment_recorder = PaymentRecorder(installments_repo, events=payment_events)

    report_service = FeeReportService(reports_repo, installments_repo, academics_repo)

    return Container(
        conn=conn,
        academics_repo=academics_repo,
        components_repo=components_repo,
        batch_structures_repo=batch_structures_repo,
        student_structures_repo=student_structures_repo,
        scholarships_repo=scholarships_repo,
        installments_repo=installments_repo,
        receipts_repo=receipts_repo,
        reports_repo=reports_repo,
        payment_events=payment_events,
        component_service=component_service,
        batch_structure_service=batch_structure_service,
        student_structure_service=student_structure_service,
        scholarship_service=scholarship_service,
        installment_service=installment_service,
        payment_recorder=payment_recorder,
        receipt_service=receipt_service,
        report_service=report_service,
    )
