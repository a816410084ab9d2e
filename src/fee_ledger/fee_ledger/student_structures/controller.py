from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, json_body, ok, optional_int, require_int
from ..core.exceptions import ValidationError
from ..container import Container
from .model import StudentFeeLineItem


def _line_items(raw) -> list[StudentFeeLineItem]:
    if not isinstance(raw, list):
        raise ValidationError("line_items must be a list")
    items = []
    for li in raw:
        if not isinstance(li, dict):
            raise ValidationError("Each line item must be an object")
        original = require_int(li, "original_amount")
        items.append(
            StudentFeeLineItem(
                component_id=require_int(li, "component_id"),
                original_amount=original,
                adjusted_amount=require_int(li, "adjusted_amount") if "adjusted_amount" in li else original,
                waived=bool(li.get("waived", False)),
                waiver_reason=li.get("waiver_reason"),
            )
        )
    return items


def register(app: Flask, container: Container) -> None:
    service = container.student_structure_service

    def _session_arg() -> int:
        session_id = optional_int(request.args.get("session_id"), "session_id")
        if session_id is None:
            raise ValidationError("session_id is required")
        return session_id

    @app.route("/api/student-fee-structures", methods=["POST"], endpoint="create_student_fee_structure")
    def create_student_fee_structure():
        data = json_body()
        structure = service.create_custom(
            scope=current_scope(),
            student_id=require_int(data, "student_id"),
            session_id=require_int(data, "session_id"),
            line_items=_line_items(data.get("line_items")),
            remarks=data.get("remarks"),
        )
        return ok(structure, 201)

    @app.route("/api/student-fee-structures/<int:structure_id>", methods=["GET"], endpoint="get_student_fee_structure")
    def get_student_fee_structure(structure_id: int):
        return ok(service.get(scope=current_scope(), structure_id=structure_id))

    @app.route("/api/students/<int:student_id>/fee-structure", methods=["GET"], endpoint="get_fee_structure_for_student")
    def get_fee_structure_for_student(student_id: int):
        return ok(service.get_for_student(scope=current_scope(), student_id=student_id, session_id=_session_arg()))

    @app.route(
        "/api/students/<int:student_id>/fee-structure/recalculate",
        methods=["POST"],
        endpoint="recalculate_student_fee_structure",
    )
    def recalculate_student_fee_structure(student_id: int):
        data = json_body()
        return ok(
            service.recalculate(scope=current_scope(), student_id=student_id, session_id=require_int(data, "session_id"))
        )

    @app.route("/api/student-fee-structures", methods=["GET"], endpoint="list_student_fee_structures")
    def list_student_fee_structures():
        return ok(
            service.list(
                scope=current_scope(),
                session_id=_session_arg(),
                batch_id=optional_int(request.args.get("batch_id"), "batch_id"),
            )
        )

    @app.route("/api/student-fee-structures/<int:structure_id>", methods=["PATCH"], endpoint="update_student_fee_structure")
    def update_student_fee_structure(structure_id: int):
        data = json_body()
        return ok(
            service.update(
                scope=current_scope(),
                structure_id=structure_id,
                line_items=_line_items(data["line_items"]) if "line_items" in data else None,
                remarks=data.get("remarks"),
            )
        )
