from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, json_body, ok, optional_bool, optional_int
from ..core.enums import FeeComponentType
from ..core.exceptions import ValidationError
from ..container import Container


def _component_type(value) -> FeeComponentType:
    try:
        return FeeComponentType(value)
    except ValueError:
        raise ValidationError(f"Unknown fee component type: {value!r}")


def register(app: Flask, container: Container) -> None:
    service = container.component_service

    @app.route("/api/fee-components", methods=["POST"], endpoint="create_fee_component")
    def create_fee_component():
        data = json_body()
        component = service.create(
            scope=current_scope(),
            name=data.get("name") or "",
            type=_component_type(data.get("type")),
            base_amount=data.get("base_amount", 0),
            description=data.get("description"),
        )
        return ok(component, 201)

    @app.route("/api/fee-components", methods=["GET"], endpoint="list_fee_components")
    def list_fee_components():
        raw_active = request.args.get("is_active")
        raw_type = request.args.get("type")
        return ok(
            service.list(
                scope=current_scope(),
                is_active=True if raw_active is None else optional_bool(raw_active),
                type=_component_type(raw_type) if raw_type else None,
            )
        )

    @app.route("/api/fee-components/<int:component_id>", methods=["GET"], endpoint="get_fee_component")
    def get_fee_component(component_id: int):
        return ok(service.get(scope=current_scope(), component_id=component_id))

    @app.route("/api/fee-components/<int:component_id>", methods=["PATCH"], endpoint="update_fee_component")
    def update_fee_component(component_id: int):
        data = json_body()
        return ok(
            service.update(
                scope=current_scope(),
                component_id=component_id,
                name=data.get("name"),
                base_amount=optional_int(data.get("base_amount"), "base_amount"),
                description=data.get("description"),
                is_active=data.get("is_active"),
            )
        )

    @app.route("/api/fee-components/<int:component_id>", methods=["DELETE"], endpoint="deactivate_fee_component")
    def deactivate_fee_component(component_id: int):
        return ok(service.deactivate(scope=current_scope(), component_id=component_id))
