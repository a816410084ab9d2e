"""Combining a student's scholarship grants into one fee outcome.

Rule, applied in grant-id order:

1. Scholarship waivers left over from an earlier calculation are undone, so
   every run starts from the same base amounts.
2. gross = sum of base amounts.
3. Each active grant is computed on its own against that gross: percentage of
   gross (capped at max_amount), fixed value (capped at max_amount), or the
   full adjusted amount of the waived component (a component is waived once).
4. Grant amounts are summed; the sum is capped at gross.
5. net = gross - scholarship, which is therefore never negative.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from ..core.enums import ScholarshipType
from ..student_structures.model import StudentFeeLineItem
from .factory import DiscountCalculatorFactory
from .model import GrantDiscount, StudentScholarship


@dataclass(frozen=True)
class ScholarshipOutcome:
    line_items: Tuple[StudentFeeLineItem, ...]
    gross_amount: int
    scholarship_amount: int
    net_amount: int
    discounts: Tuple[GrantDiscount, ...] = ()


def net_of(gross_amount: int, scholarship_amount: int) -> Tuple[int, int]:
    """Clamp (scholarship, net) so net never goes below zero."""

    scholarship = min(max(int(scholarship_amount), 0), int(gross_amount))
    return scholarship, int(gross_amount) - scholarship


def apply_scholarships(
    line_items: Sequence[StudentFeeLineItem],
    grants: Sequence[StudentScholarship],
    *,
    factory: Optional[DiscountCalculatorFactory] = None,
) -> ScholarshipOutcome:
    factory = factory or DiscountCalculatorFactory()
    items = [li.without_scholarship_waiver() for li in line_items]
    gross = sum(li.adjusted_amount for li in items)

    discounts: list[GrantDiscount] = []
    for grant in sorted(grants, key=lambda g: g.grant_id):
        if not grant.is_active or not grant.scholarship.is_active:
            continue
        sch = grant.scholarship
        amount = factory.for_type(sch.type).discount(sch, gross_amount=gross, line_items=items)

        waived_component_id = None
        if sch.type == ScholarshipType.COMPONENT_WAIVER and amount > 0:
            waived_component_id = sch.component_id
            items = [
                replace(li, adjusted_amount=0, waived=True, waiver_reason=sch.name, waived_amount=li.adjusted_amount)
                if li.component_id == sch.component_id and not li.waived
                else li
                for li in items
            ]

        discounts.append(GrantDiscount(grant_id=grant.grant_id, amount=amount, waived_component_id=waived_component_id))

    scholarship, net = net_of(gross, sum(d.amount for d in discounts))
    return ScholarshipOutcome(
        line_items=tuple(items),
        gross_amount=gross,
        scholarship_amount=scholarship,
        net_amount=net,
        discounts=tuple(discounts),
    )
