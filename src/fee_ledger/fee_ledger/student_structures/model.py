from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..core.enums import FeeStructureSource, WriteMode


@dataclass(frozen=True)
class StudentFeeLineItem:
    component_id: int
    original_amount: int
    adjusted_amount: int
    waived: bool = False
    waiver_reason: Optional[str] = None
    # Amount removed by a scholarship waiver; 0 for manual waivers and normal items.
    waived_amount: int = 0

    @property
    def base_amount(self) -> int:
        return self.adjusted_amount + self.waived_amount

    def without_scholarship_waiver(self) -> "StudentFeeLineItem":
        if not self.waived_amount:
            return self
        return replace(self, adjusted_amount=self.base_amount, waived=False, waiver_reason=None, waived_amount=0)


@dataclass(frozen=True)
class StudentFeeStructure:
    structure_id: int
    student_id: int
    session_id: int
    source: FeeStructureSource
    batch_structure_id: Optional[int]
    gross_amount: int
    scholarship_amount: int
    net_amount: int
    line_items: Tuple[StudentFeeLineItem, ...] = ()
    remarks: Optional[str] = None


@dataclass(frozen=True)
class StudentStructureDraft:
    """A structure that is about to be written (no id yet)."""

    student_id: int
    session_id: int
    source: FeeStructureSource
    batch_structure_id: Optional[int]
    gross_amount: int
    scholarship_amount: int
    net_amount: int
    line_items: Tuple[StudentFeeLineItem, ...]
    remarks: Optional[str] = None


@dataclass(frozen=True)
class StudentStructureWrite:
    """One student's part of a batch apply: fresh insert, or replace of `replaces_structure_id`."""

    mode: WriteMode
    draft: StudentStructureDraft
    replaces_structure_id: Optional[int] = None


@dataclass(frozen=True)
class StructureEdit:
    """Manual change to an existing structure. Saving one marks the structure custom.

    None keeps the current value.
    """

    line_items: Optional[Tuple[StudentFeeLineItem, ...]] = None
    remarks: Optional[str] = None


@dataclass(frozen=True)
class StudentStructureListing:
    """One row of the per-session admin list (no line items)."""

    structure_id: int
    student_id: int
    student_name: str
    batch_id: Optional[int]
    batch_name: Optional[str]
    session_id: int
    source: FeeStructureSource
    gross_amount: int
    scholarship_amount: int
    net_amount: int
    installment_count: int
