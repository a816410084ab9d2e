from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import FeeComponentType
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from .model import FeeComponent
from .repository import FeeComponentRepository

_COLUMNS = "component_id, org_id, name, type, base_amount, description, is_active"


def _to_component(r: dict) -> FeeComponent:
    return FeeComponent(
        component_id=int(r["component_id"]),
        org_id=int(r["org_id"]),
        name=r["name"],
        type=FeeComponentType(r["type"]),
        base_amount=int(r["base_amount"]),
        description=r.get("description"),
        is_active=bool(r["is_active"]),
    )


class MySQLFeeComponentRepository(FeeComponentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        org_id: int,
        name: str,
        type: FeeComponentType,
        base_amount: int,
        description: Optional[str] = None,
    ) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO fee_components(org_id, name, type, base_amount, description)
                    VALUES(%s,%s,%s,%s,%s)
                    """,
                    (int(org_id), name, type.value, int(base_amount), description),
                )
                return int(cur.lastrowid)
        except Exception as e:
            if is_duplicate_key(e):
                raise ConflictError(f'A fee component with name "{name}" and type "{type.value}" already exists') from e
            raise

    def get(self, *, component_id: int, org_id: int) -> Optional[FeeComponent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM fee_components WHERE component_id=%s AND org_id=%s",
                (int(component_id), int(org_id)),
            )
            r = fetchone(cur)
            return _to_component(r) if r else None

    def find_by_name(self, *, org_id: int, type: FeeComponentType, name: str) -> Optional[FeeComponent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM fee_components WHERE org_id=%s AND type=%s AND name=%s",
                (int(org_id), type.value, name),
            )
            r = fetchone(cur)
            return _to_component(r) if r else None

    def list(
        self,
        *,
        org_id: int,
        is_active: Optional[bool] = True,
        type: Optional[FeeComponentType] = None,
    ) -> Sequence[FeeComponent]:
        clauses = ["org_id=%s"]
        params: list[object] = [int(org_id)]
        if is_active is not None:
            clauses.append("is_active=%s")
            params.append(1 if is_active else 0)
        if type is not None:
            clauses.append("type=%s")
            params.append(type.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM fee_components WHERE {where} ORDER BY type ASC, name ASC",
                tuple(params),
            )
            return [_to_component(r) for r in fetchall(cur)]

    def active_ids(self, *, org_id: int, component_ids: Sequence[int]) -> set[int]:
        ids = sorted({int(c) for c in component_ids})
        if not ids:
            return set()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT component_id FROM fee_components
                WHERE org_id=%s AND is_active=1 AND component_id IN ({in_clause(ids)})
                """,
                tuple([int(org_id)] + ids),
            )
            return {int(r["component_id"]) for r in fetchall(cur)}

    def update(
        self,
        *,
        component_id: int,
        org_id: int,
        name: str,
        base_amount: int,
        description: Optional[str],
        is_active: bool,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE fee_components
                SET name=%s, base_amount=%s, description=%s, is_active=%s
                WHERE component_id=%s AND org_id=%s
                """,
                (name, int(base_amount), description, 1 if is_active else 0, int(component_id), int(org_id)),
            )
            return cur.rowcount > 0
