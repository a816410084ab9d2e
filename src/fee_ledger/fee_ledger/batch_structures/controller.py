from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import current_scope, json_body, ok, optional_int, require_int, to_json
from ..core.exceptions import ValidationError
from ..container import Container
from .model import BatchFeeLineItem, OverwriteBlocked


def _line_items(raw) -> list[BatchFeeLineItem]:
    if not isinstance(raw, list):
        raise ValidationError("line_items must be a list")
    if not all(isinstance(li, dict) for li in raw):
        raise ValidationError("Each line item must be an object")
    return [BatchFeeLineItem(component_id=require_int(li, "component_id"), amount=require_int(li, "amount")) for li in raw]


def register(app: Flask, container: Container) -> None:
    service = container.batch_structure_service

    @app.route("/api/batch-fee-structures", methods=["POST"], endpoint="save_batch_fee_structure")
    def save_batch_fee_structure():
        data = json_body()
        structure = service.create_or_update(
            scope=current_scope(),
            batch_id=require_int(data, "batch_id"),
            session_id=require_int(data, "session_id"),
            name=data.get("name") or "",
            line_items=_line_items(data.get("line_items")),
        )
        return ok(structure)

    @app.route("/api/batch-fee-structures", methods=["GET"], endpoint="list_batch_fee_structures")
    def list_batch_fee_structures():
        return ok(
            service.list(
                scope=current_scope(),
                session_id=optional_int(request.args.get("session_id"), "session_id"),
            )
        )

    @app.route("/api/batch-fee-structures/<int:structure_id>", methods=["GET"], endpoint="get_batch_fee_structure")
    def get_batch_fee_structure(structure_id: int):
        return ok(service.get(scope=current_scope(), batch_structure_id=structure_id))

    @app.route("/api/batches/<int:batch_id>/fee-structure", methods=["GET"], endpoint="get_batch_fee_structure_for_batch")
    def get_batch_fee_structure_for_batch(batch_id: int):
        session_id = optional_int(request.args.get("session_id"), "session_id")
        if session_id is None:
            raise ValidationError("session_id is required")
        return ok(service.get_for_batch(scope=current_scope(), batch_id=batch_id, session_id=session_id))

    @app.route(
        "/api/batch-fee-structures/<int:structure_id>", methods=["DELETE"], endpoint="deactivate_batch_fee_structure"
    )
    def deactivate_batch_fee_structure(structure_id: int):
        return ok(service.deactivate(scope=current_scope(), batch_structure_id=structure_id))

    @app.route("/api/batch-fee-structures/<int:structure_id>/apply", methods=["POST"], endpoint="apply_batch_fee_structure")
    def apply_batch_fee_structure(structure_id: int):
        data = request.get_json(silent=True) or {}
        result = service.apply_to_students(
            scope=current_scope(),
            batch_structure_id=structure_id,
            overwrite_existing=bool(data.get("overwrite_existing", False)),
        )
        if isinstance(result, OverwriteBlocked):
            body = {"success": False, "error": result.code}
            body.update(to_json(result))
            return jsonify(body), 409
        return ok(result)
