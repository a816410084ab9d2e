from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..core.enums import WriteMode


@dataclass(frozen=True)
class BatchFeeLineItem:
    component_id: int
    amount: int


@dataclass(frozen=True)
class BatchFeeStructure:
    """Mẫu học phí cho một lớp (batch) trong một năm học."""

    batch_structure_id: int
    org_id: int
    branch_id: int
    batch_id: int
    session_id: int
    name: str
    total_amount: int
    is_active: bool = True
    line_items: Tuple[BatchFeeLineItem, ...] = ()


@dataclass(frozen=True)
class BatchStructureWrite:
    """Upsert by (batch, session). REPLACE rewrites `batch_structure_id` in place."""

    mode: WriteMode
    org_id: int
    branch_id: int
    batch_id: int
    session_id: int
    name: str
    total_amount: int
    line_items: Tuple[BatchFeeLineItem, ...]
    batch_structure_id: Optional[int] = None


@dataclass(frozen=True)
class ApplyResult:
    applied: int
    skipped: int
    message: str = ""


@dataclass(frozen=True)
class OverwriteBlocked:
    """Returned (not raised) when replacing would destroy payment history."""

    affected_student_ids: Tuple[int, ...]
    affected_student_names: Tuple[str, ...] = ()
    code: str = "OVERWRITE_BLOCKED"
    message: str = field(default="")

    def __post_init__(self):
        if not self.message:
            object.__setattr__(
                self,
                "message",
                f"Cannot overwrite: {len(self.affected_student_ids)} student(s) have recorded payments",
            )
