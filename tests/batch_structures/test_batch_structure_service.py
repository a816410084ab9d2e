from __future__ import annotations

import pytest

from fee_ledger.academics.model import Batch
from fee_ledger.batch_structures.model import BatchFeeLineItem
from fee_ledger.core.exceptions import InvalidReferenceError, NotFoundError, ValidationError


def _save(ledger, items, *, batch_id=None, session_id=None, name="Fees"):
    return ledger.batch_structures.create_or_update(
        scope=ledger.scope,
        batch_id=batch_id or ledger.batch_id,
        session_id=session_id or ledger.session_id,
        name=name,
        line_items=items,
    )


def test_total_is_sum_of_line_items(ledger):
    tuition = ledger.component("Tuition")
    bus = ledger.component("Bus")

    structure = _save(ledger, [BatchFeeLineItem(tuition, 900000), BatchFeeLineItem(bus, 300000)])

    assert structure.total_amount == 1200000
    assert [li.amount for li in structure.line_items] == [900000, 300000]


def test_second_save_replaces_in_place(ledger):
    tuition = ledger.component("Tuition")
    first = _save(ledger, [BatchFeeLineItem(tuition, 1000)])

    second = _save(ledger, [BatchFeeLineItem(tuition, 2500)], name="Revised")

    assert second.batch_structure_id == first.batch_structure_id
    assert second.name == "Revised"
    assert second.total_amount == 2500
    assert len(ledger.batch_structures.list(scope=ledger.scope)) == 1


@pytest.mark.parametrize("amount", [0, -5])
def test_line_item_amount_must_be_positive(ledger, amount):
    tuition = ledger.component("Tuition")
    with pytest.raises(ValidationError):
        _save(ledger, [BatchFeeLineItem(tuition, amount)])


def test_duplicate_component_is_rejected(ledger):
    tuition = ledger.component("Tuition")
    with pytest.raises(ValidationError):
        _save(ledger, [BatchFeeLineItem(tuition, 10), BatchFeeLineItem(tuition, 20)])


def test_empty_line_items_are_rejected(ledger):
    with pytest.raises(ValidationError):
        _save(ledger, [])


def test_inactive_component_rejects_whole_template(ledger):
    tuition = ledger.component("Tuition")
    old = ledger.component("Old fee")
    ledger.components.deactivate(scope=ledger.scope, component_id=old)

    with pytest.raises(InvalidReferenceError) as exc:
        _save(ledger, [BatchFeeLineItem(tuition, 10), BatchFeeLineItem(old, 20)])

    assert exc.value.component_ids == [old]
    assert ledger.batch_structures.list(scope=ledger.scope) == []


def test_batch_of_another_branch_is_not_found(ledger):
    ledger.academics.batches[900] = Batch(900, 1, 99, "Elsewhere")
    tuition = ledger.component("Tuition")

    with pytest.raises(NotFoundError):
        _save(ledger, [BatchFeeLineItem(tuition, 10)], batch_id=900)


def test_unknown_session_is_not_found(ledger):
    tuition = ledger.component("Tuition")
    with pytest.raises(NotFoundError):
        _save(ledger, [BatchFeeLineItem(tuition, 10)], session_id=12345)


def test_deactivated_template_is_hidden(ledger):
    template = ledger.template(1000)

    ledger.batch_structures.deactivate(scope=ledger.scope, batch_structure_id=template.batch_structure_id)

    assert ledger.batch_structures.list(scope=ledger.scope) == []
    with pytest.raises(NotFoundError):
        ledger.batch_structures.get_for_batch(scope=ledger.scope, batch_id=ledger.batch_id, session_id=ledger.session_id)
    with pytest.raises(NotFoundError):
        ledger.batch_structures.apply_to_students(scope=ledger.scope, batch_structure_id=template.batch_structure_id)
