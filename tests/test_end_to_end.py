from __future__ import annotations

from datetime import date
from decimal import Decimal

from fee_ledger.core.enums import InstallmentStatus, PaymentMode, ScholarshipBasis, ScholarshipType
from fee_ledger.installments.model import SplitEntry, TemplatePlan
from fee_ledger.receipts.service import ReceiptAutoIssuer


def test_template_to_receipts(ledger):
    ledger.events.subscribe(ReceiptAutoIssuer(ledger.receipts))
    for sid in (1, 2):
        ledger.add_student(sid)
    template = ledger.template(9000, 3000)
    assert template.total_amount == 12000

    result = ledger.batch_structures.apply_to_students(scope=ledger.scope, batch_structure_id=template.batch_structure_id)
    assert result.applied == 2

    plan = ledger.installments.create_plan(
        scope=ledger.scope,
        name="Quarterly",
        splits=[SplitEntry(Decimal(25), d) for d in (0, 90, 180, 270)],
        is_default=True,
    )
    structure = ledger.structure_of(1)
    rows = ledger.installments.generate(
        scope=ledger.scope, structure_id=structure.structure_id, plan=TemplatePlan(plan.plan_id)
    )

    assert [i.amount for i in rows] == [3000, 3000, 3000, 3000]
    assert [i.due_date for i in rows] == [date(2025, 4, 1), date(2025, 6, 30), date(2025, 9, 28), date(2025, 12, 27)]
    assert sum(i.amount for i in rows) == 12000

    first = rows[0]
    ledger.pay(first.installment_id, 1200, PaymentMode.CASH)
    _, settled = ledger.pay(first.installment_id, 1800, PaymentMode.BANK)
    assert settled.status_on(date(2025, 4, 1)) == InstallmentStatus.PAID

    receipts = ledger.receipts.list(scope=ledger.scope, student_id=1)
    assert sorted(r.receipt_number[-6:] for r in receipts) == ["000001", "000002"]
    assert sum(r.amount for r in receipts) == 3000

    [summary] = ledger.reports.student_summary(scope=ledger.scope, student_id=1, today=date(2025, 7, 1))
    assert (summary.total_paid, summary.outstanding) == (3000, 9000)
    assert summary.overdue_installments == 1
    assert summary.next_due_date == date(2025, 6, 30)

    collection = ledger.reports.collection_by_batch(scope=ledger.scope, session_id=ledger.session_id)
    assert (collection.total_net, collection.total_paid) == (24000, 3000)


def test_scholarship_then_schedule(ledger):
    ledger.add_student(1)
    template = ledger.template(10000)
    ledger.batch_structures.apply_to_students(scope=ledger.scope, batch_structure_id=template.batch_structure_id)
    merit = ledger.scholarships.create(
        scope=ledger.scope,
        name="Merit",
        type=ScholarshipType.PERCENTAGE,
        basis=ScholarshipBasis.MERIT,
        value="15",
    )
    ledger.scholarships.assign(
        scope=ledger.scope, student_id=1, scholarship_id=merit.scholarship_id, session_id=ledger.session_id
    )

    structure = ledger.structure_of(1)
    rows = ledger.split_evenly(structure.structure_id, count=3)

    assert structure.net_amount == 8500
    assert sum(i.amount for i in rows) == 8500
    assert [i.amount for i in rows] == [2833, 2833, 2834]
