from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import BatchFeeStructure, BatchStructureWrite


class BatchFeeStructureRepository(Protocol):
    def save(self, *, write: BatchStructureWrite) -> int:
        """INSERT a new template or REPLACE header + line items of an existing one, atomically."""

        raise NotImplementedError

    def get(self, *, batch_structure_id: int, org_id: int, branch_id: int) -> Optional[BatchFeeStructure]:
        raise NotImplementedError

    def get_by_natural_key(self, *, batch_id: int, session_id: int) -> Optional[BatchFeeStructure]:
        raise NotImplementedError

    def list(self, *, org_id: int, branch_id: int, session_id: Optional[int] = None) -> Sequence[BatchFeeStructure]:
        """Active templates only."""

        raise NotImplementedError

    def set_active(self, *, batch_structure_id: int, org_id: int, is_active: bool) -> None:
        raise NotImplementedError
