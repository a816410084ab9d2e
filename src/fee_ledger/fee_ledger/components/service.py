from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.validators import clean_optional, require_non_empty
from ..core.enums import FeeComponentType
from ..core.exceptions import InvalidReferenceError, NotFoundError, ValidationError
from ..core.scope import TenantScope
from .model import FeeComponent
from .repository import FeeComponentRepository

logger = logging.getLogger(__name__)


class FeeComponentService:
    def __init__(self, components: FeeComponentRepository):
        self._components = components

    @staticmethod
    def _check_base_amount(base_amount: int) -> int:
        if isinstance(base_amount, bool) or int(base_amount) != base_amount or int(base_amount) < 0:
            raise ValidationError("Base amount must be a non-negative whole number")
        return int(base_amount)

    def create(
        self,
        *,
        scope: TenantScope,
        name: str,
        type: FeeComponentType,
        base_amount: int = 0,
        description: Optional[str] = None,
    ) -> FeeComponent:
        name = require_non_empty(name, "Name")
        base_amount = self._check_base_amount(base_amount)

        if self._components.find_by_name(org_id=scope.org_id, type=type, name=name):
            raise ValidationError(f'A fee component with name "{name}" and type "{type.value}" already exists')

        component_id = self._components.create(
            org_id=scope.org_id,
            name=name,
            type=type,
            base_amount=base_amount,
            description=clean_optional(description),
        )
        logger.info("Created fee component %s (%s) for org %s", component_id, name, scope.org_id)
        return self.get(scope=scope, component_id=component_id)

    def get(self, *, scope: TenantScope, component_id: int) -> FeeComponent:
        component = self._components.get(component_id=int(component_id), org_id=scope.org_id)
        if not component:
            raise NotFoundError("Fee component")
        return component

    def list(
        self,
        *,
        scope: TenantScope,
        is_active: Optional[bool] = True,
        type: Optional[FeeComponentType] = None,
    ) -> Sequence[FeeComponent]:
        return self._components.list(org_id=scope.org_id, is_active=is_active, type=type)

    def update(
        self,
        *,
        scope: TenantScope,
        component_id: int,
        name: Optional[str] = None,
        base_amount: Optional[int] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> FeeComponent:
        existing = self.get(scope=scope, component_id=component_id)

        new_name = require_non_empty(name, "Name") if name is not None else existing.name
        if new_name != existing.name:
            duplicate = self._components.find_by_name(org_id=scope.org_id, type=existing.type, name=new_name)
            if duplicate and duplicate.component_id != existing.component_id:
                raise ValidationError(
                    f'A fee component with name "{new_name}" and type "{existing.type.value}" already exists'
                )

        self._components.update(
            component_id=existing.component_id,
            org_id=scope.org_id,
            name=new_name,
            base_amount=self._check_base_amount(base_amount) if base_amount is not None else existing.base_amount,
            description=clean_optional(description) if description is not None else existing.description,
            is_active=existing.is_active if is_active is None else bool(is_active),
        )
        return self.get(scope=scope, component_id=existing.component_id)

    def deactivate(self, *, scope: TenantScope, component_id: int) -> FeeComponent:
        component = self.update(scope=scope, component_id=component_id, is_active=False)
        logger.info("Deactivated fee component %s for org %s", component.component_id, scope.org_id)
        return component

    def require_active(self, *, scope: TenantScope, component_ids: Sequence[int]) -> None:
        """Reject the whole set if any component is inactive or owned by another org."""

        wanted = {int(c) for c in component_ids}
        found = self._components.active_ids(org_id=scope.org_id, component_ids=sorted(wanted))
        missing = wanted - set(found)
        if missing:
            raise InvalidReferenceError(sorted(missing))
