from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import FeeComponentType


@dataclass(frozen=True)
class FeeComponent:
    """Khoản phí cấp tổ chức (học phí, xe đưa đón, ...).

    Never hard-deleted: line items keep pointing at deactivated components.
    """

    component_id: int
    org_id: int
    name: str
    type: FeeComponentType
    base_amount: int
    description: Optional[str] = None
    is_active: bool = True
