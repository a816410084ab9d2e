from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..core.enums import WriteMode
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import BatchFeeLineItem, BatchFeeStructure, BatchStructureWrite
from .repository import BatchFeeStructureRepository

logger = logging.getLogger(__name__)

_COLUMNS = "b.structure_id, b.org_id, b.branch_id, b.batch_id, b.session_id, b.name, b.total_amount, b.is_active"


class MySQLBatchFeeStructureRepository(BatchFeeStructureRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _load(cur, r: dict) -> BatchFeeStructure:
        cur.execute(
            """
            SELECT component_id, amount FROM batch_fee_line_items
            WHERE structure_id=%s ORDER BY line_item_id ASC
            """,
            (int(r["structure_id"]),),
        )
        items = tuple(
            BatchFeeLineItem(component_id=int(li["component_id"]), amount=int(li["amount"])) for li in fetchall(cur)
        )
        return BatchFeeStructure(
            batch_structure_id=int(r["structure_id"]),
            org_id=int(r["org_id"]),
            branch_id=int(r["branch_id"]),
            batch_id=int(r["batch_id"]),
            session_id=int(r["session_id"]),
            name=r["name"],
            total_amount=int(r["total_amount"]),
            is_active=bool(r["is_active"]),
            line_items=items,
        )

    def save(self, *, write: BatchStructureWrite) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                if write.mode == WriteMode.INSERT:
                    cur.execute(
                        """
                        INSERT INTO batch_fee_structures(org_id, branch_id, batch_id, session_id, name, total_amount)
                        VALUES(%s,%s,%s,%s,%s,%s)
                        """,
                        (
                            int(write.org_id),
                            int(write.branch_id),
                            int(write.batch_id),
                            int(write.session_id),
                            write.name,
                            int(write.total_amount),
                        ),
                    )
                    structure_id = int(cur.lastrowid)
                else:
                    structure_id = int(write.batch_structure_id)
                    cur.execute(
                        "SELECT structure_id FROM batch_fee_structures WHERE structure_id=%s AND org_id=%s FOR UPDATE",
                        (structure_id, int(write.org_id)),
                    )
                    if not fetchone(cur):
                        raise ConflictError("Batch fee structure was removed while saving")
                    cur.execute(
                        """
                        UPDATE batch_fee_structures
                        SET name=%s, total_amount=%s, is_active=1
                        WHERE structure_id=%s
                        """,
                        (write.name, int(write.total_amount), structure_id),
                    )
                    cur.execute("DELETE FROM batch_fee_line_items WHERE structure_id=%s", (structure_id,))

                cur.executemany(
                    "INSERT INTO batch_fee_line_items(structure_id, component_id, amount) VALUES(%s,%s,%s)",
                    [(structure_id, int(li.component_id), int(li.amount)) for li in write.line_items],
                )
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError("A fee structure for this batch and session was created concurrently") from e
            raise

        logger.info("Saved batch fee structure %s (%s)", structure_id, write.mode.value)
        return structure_id

    def get(self, *, batch_structure_id: int, org_id: int, branch_id: int) -> Optional[BatchFeeStructure]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM batch_fee_structures b WHERE b.structure_id=%s AND b.org_id=%s AND b.branch_id=%s",
                (int(batch_structure_id), int(org_id), int(branch_id)),
            )
            r = fetchone(cur)
            return self._load(cur, r) if r else None

    def get_by_natural_key(self, *, batch_id: int, session_id: int) -> Optional[BatchFeeStructure]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM batch_fee_structures b WHERE b.batch_id=%s AND b.session_id=%s",
                (int(batch_id), int(session_id)),
            )
            r = fetchone(cur)
            return self._load(cur, r) if r else None

    def list(self, *, org_id: int, branch_id: int, session_id: Optional[int] = None) -> Sequence[BatchFeeStructure]:
        clauses = ["b.org_id=%s", "b.branch_id=%s", "b.is_active=1"]
        params: list[object] = [int(org_id), int(branch_id)]
        if session_id is not None:
            clauses.append("b.session_id=%s")
            params.append(int(session_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM batch_fee_structures b
                JOIN batches bt ON bt.batch_id = b.batch_id
                WHERE {" AND ".join(clauses)}
                ORDER BY b.session_id DESC, bt.name ASC
                """,
                tuple(params),
            )
            rows = fetchall(cur)
            return [self._load(cur, r) for r in rows]

    def set_active(self, *, batch_structure_id: int, org_id: int, is_active: bool) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE batch_fee_structures SET is_active=%s WHERE structure_id=%s AND org_id=%s",
                (1 if is_active else 0, int(batch_structure_id), int(org_id)),
            )
