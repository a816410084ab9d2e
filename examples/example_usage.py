"""Example: drive the ledger through the service layer (no Flask).

Run after scripts/init_db.py and scripts/seed_db.py. Controllers are thin;
all rules live in the services wired by build_container.
"""

import importlib

from dotenv import load_dotenv

from config import get_settings_module
from fee_ledger.batch_structures.model import BatchFeeLineItem, OverwriteBlocked
from fee_ledger.container import build_container
from fee_ledger.core.enums import FeeComponentType, PaymentMode
from fee_ledger.core.scope import TenantScope
from fee_ledger.installments.model import TemplatePlan


def _component_id(container, scope, name, type, amount):
    for c in container.component_service.list(scope=scope, type=type):
        if c.name == name:
            return c.component_id
    return container.component_service.create(scope=scope, name=name, type=type, base_amount=amount).component_id


def main():
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    scope = TenantScope(org_id=1, branch_id=1, user_id=1)

    tuition = _component_id(container, scope, "Tuition", FeeComponentType.TUITION, 900000)
    bus = _component_id(container, scope, "School bus", FeeComponentType.TRANSPORT, 300000)
    template = container.batch_structure_service.create_or_update(
        scope=scope,
        batch_id=1,
        session_id=1,
        name="Class 10 A 2025-26",
        line_items=[BatchFeeLineItem(tuition, 900000), BatchFeeLineItem(bus, 300000)],
    )
    print("template", template.batch_structure_id, "total", template.total_amount)

    result = container.batch_structure_service.apply_to_students(
        scope=scope, batch_structure_id=template.batch_structure_id
    )
    if isinstance(result, OverwriteBlocked):
        print("blocked:", result.message)
        return
    print(result.message)

    structure = container.student_structure_service.get_for_student(scope=scope, student_id=1, session_id=1)
    installments = container.installment_service.list_for_structure(scope=scope, structure_id=structure.structure_id)
    if not installments:
        plans = container.installment_service.list_plans(scope=scope)
        if not plans:
            print("no EMI plan templates; seed the database first")
            return
        installments = container.installment_service.generate(
            scope=scope, structure_id=structure.structure_id, plan=TemplatePlan(plan_id=plans[0].plan_id)
        )
    for installment in installments:
        print(installment.installment_number, installment.amount, installment.due_date, installment.outstanding)

    first = installments[0]
    if first.outstanding > 0:
        payment, updated = container.payment_recorder.record_payment(
            scope=scope, installment_id=first.installment_id, amount=first.outstanding, mode=PaymentMode.UPI
        )
        receipt = container.receipt_service.create_receipt(scope=scope, payment_id=payment.payment_id)
        print("paid", payment.amount, "->", receipt.receipt_number, "outstanding now", updated.outstanding)


if __name__ == "__main__":
    main()
