from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from fee_ledger.academics.model import AcademicSession, Batch, Student
from fee_ledger.batch_structures.model import BatchFeeLineItem
from fee_ledger.core.enums import FeeComponentType, PaymentMode
from fee_ledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from fee_ledger.core.scope import TenantScope
from fee_ledger.installments.model import PercentagePlan, SplitEntry
from fee_ledger.receipts.service import ReceiptAutoIssuer


@pytest.fixture
def payment(ledger):
    ledger.add_student(1)
    template = ledger.template(1000)
    ledger.batch_structures.apply_to_students(scope=ledger.scope, batch_structure_id=template.batch_structure_id)
    [row] = ledger.split_evenly(ledger.structure_of(1).structure_id)
    paid, _ = ledger.pay(row.installment_id, 400)
    return paid


def _sequence(ledger):
    return sum(ledger.store.sequences.values())


def test_receipt_is_issued_once_per_payment(ledger, payment):
    first = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    second = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)

    assert first == second
    assert first.receipt_number.startswith("SUNR-")
    assert first.receipt_number.endswith("-000001")
    assert first.amount == 400
    assert first.student_id == 1
    assert _sequence(ledger) == 1


def test_numbers_are_sequential_per_org(ledger, payment):
    installment_id = ledger.store.payments[payment.payment_id].installment_id
    later, _ = ledger.pay(installment_id, 100)

    a = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    b = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=later.payment_id)

    assert a.receipt_number[-6:] == "000001"
    assert b.receipt_number[-6:] == "000002"


def test_losing_a_race_returns_the_winner_and_burns_no_number(ledger, payment):
    winner = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    repo = ledger.receipts._receipts

    # Second writer got past the "already receipted?" check before the winner committed.
    receipt = repo.issue(
        org_id=ledger.scope.org_id,
        branch_id=ledger.scope.branch_id,
        source=repo.get_source(
            payment_id=payment.payment_id, org_id=ledger.scope.org_id, branch_id=ledger.scope.branch_id
        ),
        year=2025,
        prefix="SUNR",
        received_by=ledger.scope.user_id,
    )

    assert receipt == winner
    assert _sequence(ledger) == 1
    assert len(ledger.store.receipts) == 1


def test_missing_org_name_falls_back(ledger, payment):
    ledger.academics.org_names.clear()
    receipt = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    assert receipt.receipt_number.startswith("REC-")


def test_payment_of_another_tenant_is_not_found(ledger, payment):
    with pytest.raises(NotFoundError):
        ledger.receipts.create_receipt(scope=TenantScope(org_id=9, branch_id=9), payment_id=payment.payment_id)


def test_auto_issuer_cuts_receipt_on_payment(ledger):
    ledger.events.subscribe(ReceiptAutoIssuer(ledger.receipts))
    ledger.add_student(1)
    template = ledger.template(1000)
    ledger.batch_structures.apply_to_students(scope=ledger.scope, batch_structure_id=template.batch_structure_id)
    [row] = ledger.split_evenly(ledger.structure_of(1).structure_id)

    payment, _ = ledger.pay(row.installment_id, 1000)

    [receipt] = ledger.receipts.list(scope=ledger.scope, student_id=1)
    assert receipt.payment_id == payment.payment_id


def test_list_rejects_inverted_range(ledger):
    with pytest.raises(ValidationError):
        ledger.receipts.list(scope=ledger.scope, start_date=date(2025, 5, 1), end_date=date(2025, 4, 1))


def test_get_unknown_receipt(ledger):
    with pytest.raises(NotFoundError):
        ledger.receipts.get(scope=ledger.scope, receipt_id=1)


def _payment_in_second_org(ledger, org_name: str):
    """Org 2 / branch 20 with one student who paid 500 in full."""

    ledger.academics.org_names[2] = org_name
    ledger.academics.sessions[200] = AcademicSession(200, 2, "2025-26", date(2025, 4, 1), date(2026, 3, 31))
    ledger.academics.batches[600] = Batch(600, 2, 20, "Grade 5")
    ledger.academics.students[50] = Student(student_id=50, org_id=2, branch_id=20, batch_id=600, first_name="Asha")
    scope = TenantScope(org_id=2, branch_id=20, user_id=8)

    tuition = ledger.components.create(scope=scope, name="Tuition", type=FeeComponentType.TUITION, base_amount=500)
    template = ledger.batch_structures.create_or_update(
        scope=scope,
        batch_id=600,
        session_id=200,
        name="Grade 5 fees",
        line_items=[BatchFeeLineItem(tuition.component_id, 500)],
    )
    ledger.batch_structures.apply_to_students(scope=scope, batch_structure_id=template.batch_structure_id)
    structure = ledger.student_structures.get_for_student(scope=scope, student_id=50, session_id=200)
    [row] = ledger.installments.generate(
        scope=scope,
        structure_id=structure.structure_id,
        plan=PercentagePlan(splits=(SplitEntry(percent=Decimal(100), due_days_from_start=0),)),
    )
    paid, _ = ledger.payments.record_payment(
        scope=scope, installment_id=row.installment_id, amount=500, mode=PaymentMode.CASH
    )
    return scope, paid


def test_orgs_sharing_a_prefix_keep_separate_sequences(ledger, payment):
    other, their_payment = _payment_in_second_org(ledger, "Sunrise Public School")

    mine = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    theirs = ledger.receipts.create_receipt(scope=other, payment_id=their_payment.payment_id)

    assert mine.receipt_number == theirs.receipt_number
    assert theirs.receipt_number.startswith("SUNR-")
    assert theirs.receipt_number.endswith("-000001")
    assert (mine.org_id, theirs.org_id) == (1, 2)


def test_orgs_without_letters_both_fall_back_to_rec(ledger, payment):
    ledger.academics.org_names[1] = "123"
    other, their_payment = _payment_in_second_org(ledger, "4 5 6")

    mine = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    theirs = ledger.receipts.create_receipt(scope=other, payment_id=their_payment.payment_id)

    assert mine.receipt_number == theirs.receipt_number
    assert theirs.receipt_number.startswith("REC-")


def test_same_number_twice_in_one_org_is_a_conflict(ledger, payment):
    first = ledger.receipts.create_receipt(scope=ledger.scope, payment_id=payment.payment_id)
    installment_id = ledger.store.payments[payment.payment_id].installment_id
    later, _ = ledger.pay(installment_id, 100)
    # Counter reset behind our back: the next number repeats inside the org.
    ledger.store.sequences.clear()
    year = int(first.receipt_number.split("-")[1])

    repo = ledger.receipts._receipts
    with pytest.raises(ConflictError):
        repo.issue(
            org_id=ledger.scope.org_id,
            branch_id=ledger.scope.branch_id,
            source=repo.get_source(
                payment_id=later.payment_id, org_id=ledger.scope.org_id, branch_id=ledger.scope.branch_id
            ),
            year=year,
            prefix="SUNR",
            received_by=ledger.scope.user_id,
        )
    assert len(ledger.store.receipts) == 1
