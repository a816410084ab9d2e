from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from fee_ledger.academics.model import AcademicSession, Batch, Student
from fee_ledger.batch_structures.model import BatchFeeLineItem, BatchFeeStructure
from fee_ledger.batch_structures.service import BatchFeeStructureService
from fee_ledger.components.model import FeeComponent
from fee_ledger.components.service import FeeComponentService
from fee_ledger.core.enums import FeeComponentType, FeeStructureSource, PaymentMode, WriteMode
from fee_ledger.core.exceptions import ConflictError, StorageFault, ValidationError
from fee_ledger.core.scope import TenantScope
from fee_ledger.installments.events import PaymentEventDispatcher
from fee_ledger.installments.model import (
    EmiPlanTemplate,
    FeeInstallment,
    InstallmentPayment,
    PercentagePlan,
    SplitEntry,
)
from fee_ledger.installments.payment_service import PaymentRecorder
from fee_ledger.installments.service import InstallmentService
from fee_ledger.receipts.model import Receipt, ReceiptSource
from fee_ledger.receipts.numbering import format_receipt_number
from fee_ledger.receipts.service import ReceiptService
from fee_ledger.reports.model import BatchCollectionRow, PendingRow, StructureRow
from fee_ledger.reports.service import FeeReportService
from fee_ledger.scholarships.model import Scholarship, StudentScholarship
from fee_ledger.scholarships.service import ScholarshipService
from fee_ledger.student_structures.model import StudentFeeStructure, StudentStructureListing
from fee_ledger.student_structures.service import StudentFeeStructureService


# ---------------------------------------------------------------------------
# Academics (read-only collaborator)
# ---------------------------------------------------------------------------
@dataclass
class InMemoryAcademics:
    sessions: dict[int, AcademicSession] = field(default_factory=dict)
    batches: dict[int, Batch] = field(default_factory=dict)
    students: dict[int, Student] = field(default_factory=dict)
    org_names: dict[int, str] = field(default_factory=dict)
    inactive_students: set[int] = field(default_factory=set)

    def get_session(self, *, session_id: int, org_id: int) -> Optional[AcademicSession]:
        s = self.sessions.get(session_id)
        return s if s and s.org_id == org_id else None

    def get_batch(self, *, batch_id: int, branch_id: int) -> Optional[Batch]:
        b = self.batches.get(batch_id)
        return b if b and b.branch_id == branch_id else None

    def get_student(self, *, student_id: int, org_id: int, branch_id: int) -> Optional[Student]:
        s = self.students.get(student_id)
        return s if s and s.org_id == org_id and s.branch_id == branch_id else None

    def list_active_students(self, *, batch_id: int):
        return [
            s
            for s in sorted(self.students.values(), key=lambda s: s.student_id)
            if s.batch_id == batch_id and s.student_id not in self.inactive_students
        ]

    def get_students(self, *, student_ids):
        return [self.students[i] for i in sorted(student_ids) if i in self.students]

    def get_org_name(self, *, org_id: int) -> Optional[str]:
        return self.org_names.get(org_id)

    def in_scope(self, student_id: int, org_id: int, branch_id: int) -> bool:
        return self.get_student(student_id=student_id, org_id=org_id, branch_id=branch_id) is not None


# ---------------------------------------------------------------------------
# Components / scholarships
# ---------------------------------------------------------------------------
class InMemoryComponents:
    def __init__(self):
        self.rows: dict[int, FeeComponent] = {}
        self._id = 0

    def create(self, *, org_id, name, type, base_amount, description=None) -> int:
        self._id += 1
        self.rows[self._id] = FeeComponent(
            component_id=self._id,
            org_id=org_id,
            name=name,
            type=type,
            base_amount=base_amount,
            description=description,
            is_active=True,
        )
        return self._id

    def get(self, *, component_id, org_id):
        c = self.rows.get(component_id)
        return c if c and c.org_id == org_id else None

    def find_by_name(self, *, org_id, type, name):
        for c in self.rows.values():
            if c.org_id == org_id and c.type == type and c.name == name:
                return c
        return None

    def list(self, *, org_id, is_active=True, type=None):
        return [
            c
            for c in self.rows.values()
            if c.org_id == org_id and (is_active is None or c.is_active == is_active) and (type is None or c.type == type)
        ]

    def active_ids(self, *, org_id, component_ids):
        return {i for i in component_ids if i in self.rows and self.rows[i].org_id == org_id and self.rows[i].is_active}

    def update(self, *, component_id, org_id, name, base_amount, description, is_active):
        c = self.get(component_id=component_id, org_id=org_id)
        if not c:
            return False
        self.rows[component_id] = replace(
            c, name=name, base_amount=base_amount, description=description, is_active=is_active
        )
        return True


class InMemoryScholarships:
    def __init__(self, academics: InMemoryAcademics):
        self._academics = academics
        # Wired by build_ledger: grant writes re-price structures in the store transaction.
        self.store: Optional["LedgerStore"] = None
        self.structures: Optional["InMemoryStudentStructures"] = None
        self.definitions: dict[int, Scholarship] = {}
        self.grants: dict[int, dict] = {}
        self._sid = 0
        self._gid = 0

    def create_scholarship(self, *, org_id, name, type, basis, value, component_id=None, max_amount=None, description=None):
        self._sid += 1
        self.definitions[self._sid] = Scholarship(
            scholarship_id=self._sid,
            org_id=org_id,
            name=name,
            type=type,
            basis=basis,
            value=value,
            component_id=component_id,
            max_amount=max_amount,
            description=description,
        )
        return self._sid

    def get_scholarship(self, *, scholarship_id, org_id):
        s = self.definitions.get(scholarship_id)
        return s if s and s.org_id == org_id else None

    def find_scholarship_by_name(self, *, org_id, name):
        return next((s for s in self.definitions.values() if s.org_id == org_id and s.name == name), None)

    def list_scholarships(self, *, org_id, is_active=True):
        return [
            s for s in self.definitions.values() if s.org_id == org_id and (is_active is None or s.is_active == is_active)
        ]

    def set_scholarship_active(self, *, scholarship_id, org_id, is_active):
        s = self.get_scholarship(scholarship_id=scholarship_id, org_id=org_id)
        if s:
            self.definitions[scholarship_id] = replace(s, is_active=is_active)

    def update_scholarship(self, *, scholarship_id, org_id, name, value, max_amount, description, is_active):
        s = self.get_scholarship(scholarship_id=scholarship_id, org_id=org_id)
        if s:
            self.definitions[scholarship_id] = replace(
                s, name=name, value=value, max_amount=max_amount, description=description, is_active=is_active
            )

    def add_grant(self, *, student_id, scholarship_id, session_id, discount_amount=0, approved_by=7, remarks=None):
        """Insert a grant row directly, without re-pricing any structure."""

        for g in self.grants.values():
            if (g["student_id"], g["scholarship_id"], g["session_id"]) == (student_id, scholarship_id, session_id):
                raise ConflictError("duplicate grant")
        self._gid += 1
        self.grants[self._gid] = dict(
            grant_id=self._gid,
            student_id=student_id,
            scholarship_id=scholarship_id,
            session_id=session_id,
            discount_amount=discount_amount,
            approved_by=approved_by,
            approved_at=datetime(2025, 1, 1, 9, 0),
            remarks=remarks,
            is_active=True,
        )
        return self._gid

    def _locked(self, structure_id):
        if structure_id is None:
            return None
        if structure_id not in self.store.structures:
            raise ConflictError("Fee structure no longer exists")
        if self.store.installments_of(structure_id):
            raise ConflictError("Installments already exist for this fee structure")
        return structure_id

    def assign_grant(self, *, draft, structure_id, recompose):
        with self.store.transaction():
            locked = self._locked(structure_id)
            grant_id = self.add_grant(
                student_id=draft.student_id,
                scholarship_id=draft.scholarship_id,
                session_id=draft.session_id,
                discount_amount=draft.discount_amount,
                approved_by=draft.approved_by,
                remarks=draft.remarks,
            )
            if locked is not None:
                self.structures.recompose(structure_id=locked, recompose=recompose)
            return grant_id

    def revoke_grant(self, *, grant_id, structure_id, recompose):
        with self.store.transaction():
            locked = self._locked(structure_id)
            self.grants.pop(grant_id, None)
            if locked is not None:
                self.structures.recompose(structure_id=locked, recompose=recompose)

    def _to_grant(self, g: dict) -> StudentScholarship:
        return StudentScholarship(scholarship=self.definitions[g["scholarship_id"]], **g)

    def find_grant(self, *, student_id, scholarship_id, session_id):
        for g in self.grants.values():
            if (g["student_id"], g["scholarship_id"], g["session_id"]) == (student_id, scholarship_id, session_id):
                return self._to_grant(g)
        return None

    def get_grant(self, *, grant_id, org_id, branch_id):
        g = self.grants.get(grant_id)
        if not g or not self._academics.in_scope(g["student_id"], org_id, branch_id):
            return None
        return self._to_grant(g)

    def list_grants(self, *, student_id, session_id=None):
        rows = [
            self._to_grant(g)
            for g in self.grants.values()
            if g["student_id"] == student_id and g["is_active"] and (session_id is None or g["session_id"] == session_id)
        ]
        return sorted(rows, key=lambda g: g.grant_id, reverse=True)

    def set_discount(self, grant_id: int, amount: int) -> None:
        self.grants[grant_id]["discount_amount"] = amount


# ---------------------------------------------------------------------------
# Ledger store: everything that must change atomically lives here
# ---------------------------------------------------------------------------
class LedgerStore:
    """Shared state for the ledger fakes. `transaction()` restores a snapshot on any error."""

    _STATE = (
        "batch_structures",
        "structures",
        "installments",
        "payments",
        "receipts",
        "sequences",
        "reminders",
        "payment_links",
        "plans",
        "_ids",
    )

    def __init__(self, academics: InMemoryAcademics, scholarships: InMemoryScholarships):
        self.academics = academics
        self.scholarships = scholarships
        self.batch_structures: dict[int, BatchFeeStructure] = {}
        self.structures: dict[int, StudentFeeStructure] = {}
        self.installments: dict[int, FeeInstallment] = {}
        self.payments: dict[int, InstallmentPayment] = {}
        self.receipts: dict[int, Receipt] = {}
        self.sequences: dict[tuple[int, int], int] = {}
        self.reminders: dict[int, int] = {}
        self.payment_links: dict[int, Optional[int]] = {}
        self.plans: dict[int, EmiPlanTemplate] = {}
        self._ids: dict[str, int] = {}
        # Test hooks
        self.fail_on_student: Optional[int] = None
        self.before_apply_commit = None
        self.before_receipt_insert = None

    def next_id(self, kind: str) -> int:
        self._ids[kind] = self._ids.get(kind, 0) + 1
        return self._ids[kind]

    @contextmanager
    def transaction(self):
        snapshot = {k: copy.deepcopy(getattr(self, k)) for k in self._STATE}
        grants = (copy.deepcopy(self.scholarships.grants), self.scholarships._gid)
        try:
            yield
        except BaseException:
            for k, v in snapshot.items():
                setattr(self, k, v)
            self.scholarships.grants, self.scholarships._gid = grants
            raise

    def structure_in_scope(self, structure_id: int, org_id: int, branch_id: int) -> Optional[StudentFeeStructure]:
        s = self.structures.get(structure_id)
        if s and self.academics.in_scope(s.student_id, org_id, branch_id):
            return s
        return None

    def installments_of(self, structure_id: int) -> list[FeeInstallment]:
        return sorted(
            (i for i in self.installments.values() if i.structure_id == structure_id),
            key=lambda i: i.installment_number,
        )

    def has_payments(self, structure_id: int) -> bool:
        ids = {i.installment_id for i in self.installments_of(structure_id)}
        return any(p.installment_id in ids for p in self.payments.values())

    def delete_structure_cascade(self, structure_id: int) -> None:
        inst_ids = {i.installment_id for i in self.installments_of(structure_id)}
        pay_ids = {p.payment_id for p in self.payments.values() if p.installment_id in inst_ids}
        self.receipts = {k: r for k, r in self.receipts.items() if r.payment_id not in pay_ids}
        self.payments = {k: p for k, p in self.payments.items() if k not in pay_ids}
        self.reminders = {k: v for k, v in self.reminders.items() if v not in inst_ids}
        self.payment_links = {k: (None if v in inst_ids else v) for k, v in self.payment_links.items()}
        self.installments = {k: i for k, i in self.installments.items() if k not in inst_ids}
        del self.structures[structure_id]


class InMemoryBatchStructures:
    def __init__(self, store: LedgerStore):
        self._s = store

    def save(self, *, write):
        with self._s.transaction():
            if write.mode == WriteMode.INSERT:
                if self.get_by_natural_key(batch_id=write.batch_id, session_id=write.session_id):
                    raise ConflictError("duplicate template")
                structure_id = self._s.next_id("batch_structure")
            else:
                structure_id = write.batch_structure_id
            self._s.batch_structures[structure_id] = BatchFeeStructure(
                batch_structure_id=structure_id,
                org_id=write.org_id,
                branch_id=write.branch_id,
                batch_id=write.batch_id,
                session_id=write.session_id,
                name=write.name,
                total_amount=write.total_amount,
                is_active=True,
                line_items=tuple(write.line_items),
            )
            return structure_id

    def get(self, *, batch_structure_id, org_id, branch_id):
        b = self._s.batch_structures.get(batch_structure_id)
        return b if b and b.org_id == org_id and b.branch_id == branch_id else None

    def get_by_natural_key(self, *, batch_id, session_id):
        return next(
            (b for b in self._s.batch_structures.values() if b.batch_id == batch_id and b.session_id == session_id),
            None,
        )

    def list(self, *, org_id, branch_id, session_id=None):
        return [
            b
            for b in self._s.batch_structures.values()
            if b.org_id == org_id
            and b.branch_id == branch_id
            and b.is_active
            and (session_id is None or b.session_id == session_id)
        ]

    def set_active(self, *, batch_structure_id, org_id, is_active):
        b = self._s.batch_structures.get(batch_structure_id)
        if b and b.org_id == org_id:
            self._s.batch_structures[batch_structure_id] = replace(b, is_active=is_active)


class InMemoryStudentStructures:
    def __init__(self, store: LedgerStore):
        self._s = store

    def _insert(self, draft) -> int:
        if self._s.fail_on_student == draft.student_id:
            raise StorageFault("Storage transaction failed and was rolled back")
        if any(s.student_id == draft.student_id and s.session_id == draft.session_id for s in self._s.structures.values()):
            raise ConflictError("Fee structure already exists for this student and session")
        structure_id = self._s.next_id("structure")
        self._s.structures[structure_id] = StudentFeeStructure(
            structure_id=structure_id,
            student_id=draft.student_id,
            session_id=draft.session_id,
            source=draft.source,
            batch_structure_id=draft.batch_structure_id,
            gross_amount=draft.gross_amount,
            scholarship_amount=draft.scholarship_amount,
            net_amount=draft.net_amount,
            line_items=tuple(draft.line_items),
            remarks=draft.remarks,
        )
        return structure_id

    def create(self, *, draft):
        with self._s.transaction():
            return self._insert(draft)

    def get(self, *, structure_id, org_id, branch_id):
        return self._s.structure_in_scope(structure_id, org_id, branch_id)

    def get_for_student(self, *, student_id, session_id):
        return next(
            (s for s in self._s.structures.values() if s.student_id == student_id and s.session_id == session_id),
            None,
        )

    def find_existing(self, *, student_ids, session_id):
        return {
            s.student_id: s.structure_id
            for s in self._s.structures.values()
            if s.student_id in set(student_ids) and s.session_id == session_id
        }

    def students_with_payments(self, *, structure_ids):
        return sorted(
            {self._s.structures[i].student_id for i in structure_ids if i in self._s.structures and self._s.has_payments(i)}
        )

    def apply(self, *, writes):
        created = []
        with self._s.transaction():
            replaced = [w.replaces_structure_id for w in writes if w.mode == WriteMode.REPLACE]
            if any(i not in self._s.structures for i in replaced):
                raise ConflictError("Fee structures changed while applying; nothing was written")
            if any(self._s.has_payments(i) for i in replaced):
                raise ConflictError("Payments were recorded while applying; nothing was written")
            for w in writes:
                if w.mode == WriteMode.REPLACE:
                    self._s.delete_structure_cascade(w.replaces_structure_id)
                created.append(self._insert(w.draft))
            if self._s.before_apply_commit:
                self._s.before_apply_commit()
        return created

    def recompose(self, *, structure_id, recompose, edit=None):
        with self._s.transaction():
            if structure_id not in self._s.structures:
                raise ConflictError("Fee structure no longer exists")
            if self._s.installments_of(structure_id):
                raise ConflictError("Installments already exist for this fee structure")
            s = self._s.structures[structure_id]
            items = edit.line_items if edit is not None and edit.line_items is not None else s.line_items
            grants = sorted(
                self._s.scholarships.list_grants(student_id=s.student_id, session_id=s.session_id),
                key=lambda g: g.grant_id,
            )
            outcome = recompose(items, grants)
            changes = dict(
                line_items=tuple(outcome.line_items),
                gross_amount=outcome.gross_amount,
                scholarship_amount=outcome.scholarship_amount,
                net_amount=outcome.net_amount,
            )
            if edit is not None:
                changes.update(source=FeeStructureSource.CUSTOM, remarks=edit.remarks or s.remarks)
            self._s.structures[structure_id] = replace(s, **changes)
            for d in outcome.discounts:
                self._s.scholarships.set_discount(d.grant_id, d.amount)
            return outcome

    def list_for_session(self, *, org_id, branch_id, session_id, batch_id=None):
        rows = []
        for s in self._s.structures.values():
            student = self._s.academics.students[s.student_id]
            if s.session_id != session_id or not self._s.academics.in_scope(s.student_id, org_id, branch_id):
                continue
            if student.student_id in self._s.academics.inactive_students:
                continue
            if batch_id is not None and student.batch_id != batch_id:
                continue
            batch = self._s.academics.batches.get(student.batch_id) if student.batch_id else None
            rows.append(
                StudentStructureListing(
                    structure_id=s.structure_id,
                    student_id=s.student_id,
                    student_name=student.full_name,
                    batch_id=student.batch_id,
                    batch_name=batch.name if batch else None,
                    session_id=s.session_id,
                    source=s.source,
                    gross_amount=s.gross_amount,
                    scholarship_amount=s.scholarship_amount,
                    net_amount=s.net_amount,
                    installment_count=len(self._s.installments_of(s.structure_id)),
                )
            )
        return sorted(rows, key=lambda r: (r.batch_name or "", r.student_name, r.structure_id))

    def has_installments(self, *, structure_id):
        return bool(self._s.installments_of(structure_id))


class InMemoryInstallments:
    def __init__(self, store: LedgerStore):
        self._s = store

    def create_many(self, *, structure_id, drafts):
        with self._s.transaction():
            if self._s.installments_of(structure_id):
                raise ConflictError("Installments already exist for this fee structure")
            ids = []
            for d in drafts:
                i = self._s.next_id("installment")
                self._s.installments[i] = FeeInstallment(
                    installment_id=i,
                    structure_id=structure_id,
                    installment_number=d.installment_number,
                    amount=d.amount,
                    due_date=d.due_date,
                )
                ids.append(i)
            return ids

    def get(self, *, installment_id, org_id, branch_id):
        i = self._s.installments.get(installment_id)
        if i and self._s.structure_in_scope(i.structure_id, org_id, branch_id):
            return i
        return None

    def list_for_structure(self, *, structure_id):
        return self._s.installments_of(structure_id)

    def count_for_structure(self, *, structure_id):
        return len(self._s.installments_of(structure_id))

    def has_payments(self, *, structure_id):
        return self._s.has_payments(structure_id)

    def delete_for_structure(self, *, structure_id):
        with self._s.transaction():
            if self._s.has_payments(structure_id):
                raise ConflictError("A payment was recorded while deleting installments")
            ids = {i.installment_id for i in self._s.installments_of(structure_id)}
            self._s.reminders = {k: v for k, v in self._s.reminders.items() if v not in ids}
            self._s.payment_links = {k: (None if v in ids else v) for k, v in self._s.payment_links.items()}
            self._s.installments = {k: v for k, v in self._s.installments.items() if k not in ids}
            return len(ids)

    def record_payment(self, *, installment_id, amount, mode, received_by, today, transaction_ref=None, remarks=None):
        with self._s.transaction():
            locked = self._s.installments[installment_id]
            if amount > locked.outstanding:
                raise ValidationError(
                    f"Payment amount exceeds pending amount. Maximum allowed: {locked.outstanding}",
                    outstanding=locked.outstanding,
                )
            payment_id = self._s.next_id("payment")
            payment = InstallmentPayment(
                payment_id=payment_id,
                installment_id=installment_id,
                amount=amount,
                mode=mode,
                received_by=received_by,
                received_at=datetime(2025, 4, 2, 10, 0),
                transaction_ref=transaction_ref,
                remarks=remarks,
            )
            self._s.payments[payment_id] = payment
            updated = replace(locked, paid_amount=locked.paid_amount + amount)
            self._s.installments[installment_id] = updated
            return payment, updated

    def get_payment(self, *, payment_id, org_id, branch_id):
        p = self._s.payments.get(payment_id)
        if p and self.get(installment_id=p.installment_id, org_id=org_id, branch_id=branch_id):
            return p
        return None

    def list_payments(self, *, installment_id):
        return [p for p in self._s.payments.values() if p.installment_id == installment_id]

    def create_plan(self, *, org_id, name, splits, is_default):
        with self._s.transaction():
            if is_default:
                for k, p in list(self._s.plans.items()):
                    if p.org_id == org_id and p.is_default:
                        self._s.plans[k] = replace(p, is_default=False)
            plan_id = self._s.next_id("plan")
            self._s.plans[plan_id] = EmiPlanTemplate(
                plan_id=plan_id, org_id=org_id, name=name, splits=tuple(splits), is_default=is_default
            )
            return plan_id

    def update_plan(self, *, plan_id, org_id, name, splits, is_default, is_active):
        with self._s.transaction():
            if is_default:
                for k, p in list(self._s.plans.items()):
                    if p.org_id == org_id and p.is_default and k != plan_id:
                        self._s.plans[k] = replace(p, is_default=False)
            p = self._s.plans[plan_id]
            self._s.plans[plan_id] = replace(
                p, name=name, splits=tuple(splits), is_default=is_default, is_active=is_active
            )

    def get_plan(self, *, plan_id, org_id):
        p = self._s.plans.get(plan_id)
        return p if p and p.org_id == org_id else None

    def find_plan_by_name(self, *, org_id, name):
        return next((p for p in self._s.plans.values() if p.org_id == org_id and p.name == name), None)

    def list_plans(self, *, org_id):
        rows = [p for p in self._s.plans.values() if p.org_id == org_id and p.is_active]
        return sorted(rows, key=lambda p: (not p.is_default, p.name))


class InMemoryReceipts:
    def __init__(self, store: LedgerStore):
        self._s = store

    def get_source(self, *, payment_id, org_id, branch_id):
        p = self._s.payments.get(payment_id)
        if not p:
            return None
        inst = self._s.installments[p.installment_id]
        structure = self._s.structure_in_scope(inst.structure_id, org_id, branch_id)
        if not structure:
            return None
        return ReceiptSource(
            payment_id=p.payment_id,
            installment_id=p.installment_id,
            student_id=structure.student_id,
            amount=p.amount,
            mode=p.mode,
        )

    def get_by_payment(self, *, payment_id):
        return next((r for r in self._s.receipts.values() if r.payment_id == payment_id), None)

    def get(self, *, receipt_id, org_id, branch_id):
        r = self._s.receipts.get(receipt_id)
        return r if r and r.org_id == org_id and r.branch_id == branch_id else None

    def list(self, *, org_id, branch_id, student_id=None, start_date=None, end_date=None, limit=200):
        rows = [
            r
            for r in self._s.receipts.values()
            if r.org_id == org_id
            and r.branch_id == branch_id
            and (student_id is None or r.student_id == student_id)
            and (start_date is None or r.generated_at.date() >= start_date)
            and (end_date is None or r.generated_at.date() <= end_date)
        ]
        return sorted(rows, key=lambda r: r.receipt_id, reverse=True)[:limit]

    def issue(self, *, org_id, branch_id, source, year, prefix, received_by):
        try:
            with self._s.transaction():
                number = self._s.sequences.get((org_id, year), 0) + 1
                self._s.sequences[(org_id, year)] = number
                if self._s.before_receipt_insert:
                    self._s.before_receipt_insert()
                receipt_number = format_receipt_number(prefix, year, number)
                # Same unique keys as the receipts table: (payment_id) and (org_id, receipt_number).
                if self.get_by_payment(payment_id=source.payment_id) or any(
                    r.org_id == org_id and r.receipt_number == receipt_number for r in self._s.receipts.values()
                ):
                    raise ConflictError("duplicate receipt")
                receipt_id = self._s.next_id("receipt")
                receipt = Receipt(
                    receipt_id=receipt_id,
                    org_id=org_id,
                    branch_id=branch_id,
                    receipt_number=receipt_number,
                    payment_id=source.payment_id,
                    student_id=source.student_id,
                    amount=source.amount,
                    mode=source.mode,
                    received_by=received_by,
                    generated_at=datetime(year, 4, 2, 10, 0),
                )
                self._s.receipts[receipt_id] = receipt
                return receipt
        except ConflictError:
            existing = self.get_by_payment(payment_id=source.payment_id)
            if existing is None:
                raise
            return existing


class InMemoryReports:
    def __init__(self, store: LedgerStore):
        self._s = store

    def collection_by_batch(self, *, org_id, branch_id, session_id, batch_id=None):
        acc: dict[int, list[int]] = {}
        for s in self._s.structures.values():
            student = self._s.academics.students.get(s.student_id)
            if not student or student.org_id != org_id or student.branch_id != branch_id or s.session_id != session_id:
                continue
            if batch_id is not None and student.batch_id != batch_id:
                continue
            row = acc.setdefault(student.batch_id, [0, 0, 0])
            row[0] += 1
            row[1] += s.net_amount
            row[2] += sum(i.paid_amount for i in self._s.installments_of(s.structure_id))
        return [
            BatchCollectionRow(
                batch_id=b,
                batch_name=self._s.academics.batches[b].name,
                student_count=v[0],
                total_net=v[1],
                total_paid=v[2],
            )
            for b, v in sorted(acc.items())
        ]

    def structures_for_student(self, *, student_id, session_id=None):
        return [
            StructureRow(
                structure_id=s.structure_id,
                session_id=s.session_id,
                session_name=self._s.academics.sessions[s.session_id].name,
                gross_amount=s.gross_amount,
                scholarship_amount=s.scholarship_amount,
                net_amount=s.net_amount,
            )
            for s in self._s.structures.values()
            if s.student_id == student_id and (session_id is None or s.session_id == session_id)
        ]

    def unpaid_installments(self, *, org_id, branch_id, batch_id=None, status=None, today=None, limit, offset=0):
        rows = []
        for i in sorted(self._s.installments.values(), key=lambda i: (i.due_date, i.installment_number)):
            if i.outstanding <= 0:
                continue
            if status is not None and i.display_status(today) != status:
                continue
            s = self._s.structures[i.structure_id]
            student = self._s.academics.students[s.student_id]
            if student.org_id != org_id or student.branch_id != branch_id:
                continue
            if batch_id is not None and student.batch_id != batch_id:
                continue
            rows.append(
                PendingRow(
                    installment=i,
                    student_id=student.student_id,
                    student_name=student.full_name,
                    batch_id=student.batch_id,
                    batch_name=self._s.academics.batches[student.batch_id].name if student.batch_id else None,
                    session_id=s.session_id,
                )
            )
        return rows[offset : offset + limit]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------
ORG = 1
BRANCH = 10
SESSION = 100
BATCH = 500


@dataclass
class Ledger:
    scope: TenantScope
    academics: InMemoryAcademics
    components_repo: InMemoryComponents
    scholarships_repo: InMemoryScholarships
    store: LedgerStore
    events: PaymentEventDispatcher
    components: FeeComponentService
    batch_structures: BatchFeeStructureService
    student_structures: StudentFeeStructureService
    scholarships: ScholarshipService
    installments: InstallmentService
    payments: PaymentRecorder
    receipts: ReceiptService
    reports: FeeReportService

    def add_student(self, student_id: int, *, batch_id: int = BATCH, first_name: str = "", last_name: str = "") -> Student:
        student = Student(
            student_id=student_id,
            org_id=ORG,
            branch_id=BRANCH,
            batch_id=batch_id,
            first_name=first_name or f"Student{student_id}",
            last_name=last_name,
        )
        self.academics.students[student_id] = student
        return student

    @property
    def session_id(self) -> int:
        return SESSION

    @property
    def batch_id(self) -> int:
        return BATCH

    def component(self, name: str, type: FeeComponentType = FeeComponentType.TUITION, base_amount: int = 0) -> int:
        return self.components.create(scope=self.scope, name=name, type=type, base_amount=base_amount).component_id

    def template(self, *amounts: int, name: str = "Class 10 fees") -> BatchFeeStructure:
        """Batch template with one fresh component per amount."""

        items = [
            BatchFeeLineItem(component_id=self.component(f"{name} #{i}", base_amount=a), amount=a)
            for i, a in enumerate(amounts, start=1)
        ]
        return self.batch_structures.create_or_update(
            scope=self.scope, batch_id=BATCH, session_id=SESSION, name=name, line_items=items
        )

    def structure_of(self, student_id: int) -> StudentFeeStructure:
        return self.student_structures.get_for_student(scope=self.scope, student_id=student_id, session_id=SESSION)

    def split_evenly(self, structure_id: int, count: int = 1, days_apart: int = 30):
        step = Decimal(100) / count
        splits = [SplitEntry(percent=step, due_days_from_start=i * days_apart) for i in range(count - 1)]
        splits.append(SplitEntry(percent=Decimal(100) - step * (count - 1), due_days_from_start=(count - 1) * days_apart))
        return self.installments.generate(
            scope=self.scope, structure_id=structure_id, plan=PercentagePlan(splits=tuple(splits))
        )

    def pay(self, installment_id: int, amount: int, mode: PaymentMode = PaymentMode.CASH):
        return self.payments.record_payment(scope=self.scope, installment_id=installment_id, amount=amount, mode=mode)


def build_ledger() -> Ledger:
    academics = InMemoryAcademics(
        sessions={SESSION: AcademicSession(SESSION, ORG, "2025-26", date(2025, 4, 1), date(2026, 3, 31))},
        batches={BATCH: Batch(BATCH, ORG, BRANCH, "Class 10 A")},
        org_names={ORG: "Sunrise Academy"},
    )
    components_repo = InMemoryComponents()
    scholarships_repo = InMemoryScholarships(academics)
    store = LedgerStore(academics, scholarships_repo)

    structures_repo = InMemoryStudentStructures(store)
    scholarships_repo.store = store
    scholarships_repo.structures = structures_repo
    installments_repo = InMemoryInstallments(store)

    components = FeeComponentService(components_repo)
    student_structures = StudentFeeStructureService(structures_repo, academics, components, scholarships_repo)
    events = PaymentEventDispatcher()
    receipts = ReceiptService(InMemoryReceipts(store), academics)

    return Ledger(
        scope=TenantScope(org_id=ORG, branch_id=BRANCH, user_id=7),
        academics=academics,
        components_repo=components_repo,
        scholarships_repo=scholarships_repo,
        store=store,
        events=events,
        components=components,
        batch_structures=BatchFeeStructureService(InMemoryBatchStructures(store), structures_repo, academics, components),
        student_structures=student_structures,
        scholarships=ScholarshipService(scholarships_repo, academics, components, structures_repo, student_structures),
        installments=InstallmentService(installments_repo, structures_repo, academics),
        payments=PaymentRecorder(installments_repo, events=events),
        receipts=receipts,
        reports=FeeReportService(InMemoryReports(store), installments_repo, academics),
    )


@pytest.fixture
def ledger() -> Ledger:
    return build_ledger()
