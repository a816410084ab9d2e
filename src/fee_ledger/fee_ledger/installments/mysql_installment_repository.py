from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from ..core.enums import PaymentMode
from ..core.exceptions import ConflictError, ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import (
    EmiPlanTemplate,
    FeeInstallment,
    InstallmentDraft,
    InstallmentPayment,
    SplitEntry,
    derive_status,
)
from .repository import InstallmentRepository

logger = logging.getLogger(__name__)

_INSTALLMENT_COLUMNS = "i.installment_id, i.structure_id, i.installment_number, i.amount, i.due_date, i.paid_amount"
_PAYMENT_COLUMNS = (
    "p.payment_id, p.installment_id, p.amount, p.payment_mode, p.received_by, p.received_at, p.transaction_ref, p.remarks"
)
_SCOPED_INSTALLMENTS = """
    FROM fee_installments i
    JOIN student_fee_structures s ON s.structure_id = i.structure_id
    JOIN students st ON st.student_id = s.student_id
"""


def _to_installment(r: dict) -> FeeInstallment:
    return FeeInstallment(
        installment_id=int(r["installment_id"]),
        structure_id=int(r["structure_id"]),
        installment_number=int(r["installment_number"]),
        amount=int(r["amount"]),
        due_date=r["due_date"],
        paid_amount=int(r["paid_amount"]),
    )


def _to_payment(r: dict) -> InstallmentPayment:
    return InstallmentPayment(
        payment_id=int(r["payment_id"]),
        installment_id=int(r["installment_id"]),
        amount=int(r["amount"]),
        mode=PaymentMode(r["payment_mode"]),
        received_by=int(r["received_by"]),
        received_at=r["received_at"],
        transaction_ref=r.get("transaction_ref"),
        remarks=r.get("remarks"),
    )


def _dump_splits(splits: Sequence[SplitEntry]) -> str:
    return json.dumps([{"percent": str(s.percent), "dueDaysFromStart": int(s.due_days_from_start)} for s in splits])


def _load_splits(raw) -> Tuple[SplitEntry, ...]:
    data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    return tuple(
        SplitEntry(percent=Decimal(str(d["percent"])), due_days_from_start=int(d["dueDaysFromStart"])) for d in data or []
    )


def _to_plan(r: dict) -> EmiPlanTemplate:
    return EmiPlanTemplate(
        plan_id=int(r["plan_id"]),
        org_id=int(r["org_id"]),
        name=r["name"],
        splits=_load_splits(r["split_config"]),
        is_default=bool(r["is_default"]),
        is_active=bool(r["is_active"]),
    )


class MySQLInstallmentRepository(InstallmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Schedule --------
    def create_many(self, *, structure_id: int, drafts: Sequence[InstallmentDraft]) -> Sequence[int]:
        ids: list[int] = []
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                # Parent row lock serialises concurrent generate calls for one structure.
                cur.execute(
                    "SELECT structure_id FROM student_fee_structures WHERE structure_id=%s FOR UPDATE",
                    (int(structure_id),),
                )
                if not fetchone(cur):
                    raise ConflictError("Fee structure no longer exists")
                cur.execute("SELECT COUNT(*) AS n FROM fee_installments WHERE structure_id=%s", (int(structure_id),))
                r = fetchone(cur)
                if r and int(r["n"]) > 0:
                    raise ConflictError("Installments already exist for this fee structure")

                for d in drafts:
                    cur.execute(
                        """
                        INSERT INTO fee_installments(structure_id, installment_number, amount, due_date, paid_amount, status)
                        VALUES(%s,%s,%s,%s,0,'upcoming')
                        """,
                        (int(structure_id), int(d.installment_number), int(d.amount), d.due_date),
                    )
                    ids.append(int(cur.lastrowid))
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError("Installments already exist for this fee structure") from e
            raise
        return ids

    def get(self, *, installment_id: int, org_id: int, branch_id: int) -> Optional[FeeInstallment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_INSTALLMENT_COLUMNS} {_SCOPED_INSTALLMENTS} "
                "WHERE i.installment_id=%s AND st.org_id=%s AND st.branch_id=%s",
                (int(installment_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return _to_installment(r) if r else None

    def list_for_structure(self, *, structure_id: int) -> Sequence[FeeInstallment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_INSTALLMENT_COLUMNS} FROM fee_installments i
                WHERE i.structure_id=%s ORDER BY i.installment_number ASC
                """,
                (int(structure_id),),
            )
            return [_to_installment(r) for r in fetchall(cur)]

    def count_for_structure(self, *, structure_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM fee_installments WHERE structure_id=%s", (int(structure_id),))
            r = fetchone(cur)
            return int(r["n"]) if r else 0

    @staticmethod
    def _has_payments(cur, structure_id: int) -> bool:
        cur.execute(
            """
            SELECT 1 AS x FROM installment_payments p
            JOIN fee_installments i ON i.installment_id = p.installment_id
            WHERE i.structure_id=%s LIMIT 1
            """,
            (int(structure_id),),
        )
        return fetchone(cur) is not None

    def has_payments(self, *, structure_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._has_payments(cur, structure_id)

    def delete_for_structure(self, *, structure_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT installment_id FROM fee_installments WHERE structure_id=%s FOR UPDATE",
                (int(structure_id),),
            )
            fetchall(cur)
            if self._has_payments(cur, structure_id):
                raise ConflictError("A payment was recorded while deleting installments; nothing was deleted")
            cur.execute(
                """
                DELETE r FROM fee_reminders r
                JOIN fee_installments i ON i.installment_id = r.installment_id
                WHERE i.structure_id=%s
                """,
                (int(structure_id),),
            )
            cur.execute(
                """
                UPDATE payment_links l
                JOIN fee_installments i ON i.installment_id = l.installment_id
                SET l.installment_id=NULL
                WHERE i.structure_id=%s
                """,
                (int(structure_id),),
            )
            cur.execute("DELETE FROM fee_installments WHERE structure_id=%s", (int(structure_id),))
            return int(cur.rowcount)

    # -------- Payments --------
    def record_payment(
        self,
        *,
        installment_id: int,
        amount: int,
        mode: PaymentMode,
        received_by: int,
        today: date,
        transaction_ref: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Tuple[InstallmentPayment, FeeInstallment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_INSTALLMENT_COLUMNS} FROM fee_installments i WHERE i.installment_id=%s FOR UPDATE",
                (int(installment_id),),
            )
            r = fetchone(cur)
            if not r:
                raise ConflictError("Installment no longer exists")
            locked = _to_installment(r)

            if int(amount) > locked.outstanding:
                raise ValidationError(
                    f"Payment amount exceeds pending amount. Maximum allowed: {locked.outstanding}",
                    outstanding=locked.outstanding,
                )

            cur.execute(
                """
                INSERT INTO installment_payments(installment_id, amount, payment_mode, transaction_ref, received_by, remarks)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (locked.installment_id, int(amount), mode.value, transaction_ref, int(received_by), remarks),
            )
            payment_id = int(cur.lastrowid)

            paid = locked.paid_amount + int(amount)
            status = derive_status(amount=locked.amount, paid_amount=paid, due_date=locked.due_date, today=today)
            cur.execute(
                "UPDATE fee_installments SET paid_amount=%s, status=%s WHERE installment_id=%s",
                (paid, status.value, locked.installment_id),
            )

            cur.execute(f"SELECT {_PAYMENT_COLUMNS} FROM installment_payments p WHERE p.payment_id=%s", (payment_id,))
            payment = _to_payment(fetchone(cur))

        return payment, FeeInstallment(
            installment_id=locked.installment_id,
            structure_id=locked.structure_id,
            installment_number=locked.installment_number,
            amount=locked.amount,
            due_date=locked.due_date,
            paid_amount=paid,
        )

    def get_payment(self, *, payment_id: int, org_id: int, branch_id: int) -> Optional[InstallmentPayment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PAYMENT_COLUMNS} FROM installment_payments p
                JOIN fee_installments i ON i.installment_id = p.installment_id
                JOIN student_fee_structures s ON s.structure_id = i.structure_id
                JOIN students st ON st.student_id = s.student_id
                WHERE p.payment_id=%s AND st.org_id=%s AND st.branch_id=%s
                """,
                (int(payment_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return _to_payment(r) if r else None

    def list_payments(self, *, installment_id: int) -> Sequence[InstallmentPayment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PAYMENT_COLUMNS} FROM installment_payments p
                WHERE p.installment_id=%s ORDER BY p.received_at ASC, p.payment_id ASC
                """,
                (int(installment_id),),
            )
            return [_to_payment(r) for r in fetchall(cur)]

    # -------- EMI plan templates --------
    def create_plan(self, *, org_id: int, name: str, splits: Sequence[SplitEntry], is_default: bool) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                if is_default:
                    cur.execute(
                        "UPDATE emi_plan_templates SET is_default=0 WHERE org_id=%s AND is_default=1",
                        (int(org_id),),
                    )
                cur.execute(
                    """
                    INSERT INTO emi_plan_templates(org_id, name, installment_count, split_config, is_default)
                    VALUES(%s,%s,%s,%s,%s)
                    """,
                    (int(org_id), name, len(splits), _dump_splits(splits), 1 if is_default else 0),
                )
                return int(cur.lastrowid)
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError(f'An EMI plan template with name "{name}" already exists') from e
            raise

    def update_plan(
        self,
        *,
        plan_id: int,
        org_id: int,
        name: str,
        splits: Sequence[SplitEntry],
        is_default: bool,
        is_active: bool,
    ) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                if is_default:
                    cur.execute(
                        "UPDATE emi_plan_templates SET is_default=0 WHERE org_id=%s AND is_default=1 AND plan_id<>%s",
                        (int(org_id), int(plan_id)),
                    )
                cur.execute(
                    """
                    UPDATE emi_plan_templates
                    SET name=%s, installment_count=%s, split_config=%s, is_default=%s, is_active=%s
                    WHERE plan_id=%s AND org_id=%s
                    """,
                    (
                        name,
                        len(splits),
                        _dump_splits(splits),
                        1 if is_default else 0,
                        1 if is_active else 0,
                        int(plan_id),
                        int(org_id),
                    ),
                )
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError(f'An EMI plan template with name "{name}" already exists') from e
            raise

    def get_plan(self, *, plan_id: int, org_id: int) -> Optional[EmiPlanTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT plan_id, org_id, name, split_config, is_default, is_active
                FROM emi_plan_templates WHERE plan_id=%s AND org_id=%s
                """,
                (int(plan_id), int(org_id)),
            )
            r = fetchone(cur)
            return _to_plan(r) if r else None

    def find_plan_by_name(self, *, org_id: int, name: str) -> Optional[EmiPlanTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT plan_id, org_id, name, split_config, is_default, is_active
                FROM emi_plan_templates WHERE org_id=%s AND name=%s
                """,
                (int(org_id), name),
            )
            r = fetchone(cur)
            return _to_plan(r) if r else None

    def list_plans(self, *, org_id: int) -> Sequence[EmiPlanTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT plan_id, org_id, name, split_config, is_default, is_active
                FROM emi_plan_templates
                WHERE org_id=%s AND is_active=1
                ORDER BY is_default DESC, name ASC
                """,
                (int(org_id),),
            )
            return [_to_plan(r) for r in fetchall(cur)]
