from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import FeeComponentType
from .model import FeeComponent


class FeeComponentRepository(Protocol):
    def create(
        self,
        *,
        org_id: int,
        name: str,
        type: FeeComponentType,
        base_amount: int,
        description: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def get(self, *, component_id: int, org_id: int) -> Optional[FeeComponent]:
        raise NotImplementedError

    def find_by_name(self, *, org_id: int, type: FeeComponentType, name: str) -> Optional[FeeComponent]:
        raise NotImplementedError

    def list(
        self,
        *,
        org_id: int,
        is_active: Optional[bool] = True,
        type: Optional[FeeComponentType] = None,
    ) -> Sequence[FeeComponent]:
        raise NotImplementedError

    def active_ids(self, *, org_id: int, component_ids: Sequence[int]) -> set[int]:
        """Return the subset of `component_ids` that are active and owned by the org."""

        raise NotImplementedError

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
        raise NotImplementedError
