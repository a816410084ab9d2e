from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, json_body, ok, optional_bool, optional_int, require_int
from ..core.enums import ScholarshipBasis, ScholarshipType
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.scholarship_service

    @app.route("/api/scholarships", methods=["POST"], endpoint="create_scholarship")
    def create_scholarship():
        data = json_body()
        try:
            type_ = ScholarshipType(data.get("type"))
            basis = ScholarshipBasis(data.get("basis"))
        except ValueError:
            raise ValidationError("Unknown scholarship type or basis")
        scholarship = service.create(
            scope=current_scope(),
            name=data.get("name") or "",
            type=type_,
            basis=basis,
            value=data.get("value"),
            component_id=optional_int(data.get("component_id"), "component_id"),
            max_amount=optional_int(data.get("max_amount"), "max_amount"),
            description=data.get("description"),
        )
        return ok(scholarship, 201)

    @app.route("/api/scholarships", methods=["GET"], endpoint="list_scholarships")
    def list_scholarships():
        raw_active = request.args.get("is_active")
        return ok(
            service.list(scope=current_scope(), is_active=True if raw_active is None else optional_bool(raw_active))
        )

    @app.route("/api/scholarships/<int:scholarship_id>", methods=["GET"], endpoint="get_scholarship")
    def get_scholarship(scholarship_id: int):
        return ok(service.get(scope=current_scope(), scholarship_id=scholarship_id))

    @app.route("/api/scholarships/<int:scholarship_id>", methods=["PATCH"], endpoint="update_scholarship")
    def update_scholarship(scholarship_id: int):
        data = json_body()
        return ok(
            service.update(
                scope=current_scope(),
                scholarship_id=scholarship_id,
                name=data.get("name"),
                value=data.get("value"),
                max_amount=optional_int(data.get("max_amount"), "max_amount"),
                description=data.get("description"),
                is_active=data.get("is_active"),
            )
        )

    @app.route("/api/scholarships/<int:scholarship_id>", methods=["DELETE"], endpoint="deactivate_scholarship")
    def deactivate_scholarship(scholarship_id: int):
        return ok(service.deactivate(scope=current_scope(), scholarship_id=scholarship_id))

    @app.route("/api/student-scholarships", methods=["POST"], endpoint="assign_scholarship")
    def assign_scholarship():
        data = json_body()
        grant = service.assign(
            scope=current_scope(),
            student_id=require_int(data, "student_id"),
            scholarship_id=require_int(data, "scholarship_id"),
            session_id=require_int(data, "session_id"),
            remarks=data.get("remarks"),
        )
        return ok(grant, 201)

    @app.route("/api/student-scholarships/<int:grant_id>", methods=["DELETE"], endpoint="revoke_scholarship")
    def revoke_scholarship(grant_id: int):
        service.revoke(scope=current_scope(), grant_id=grant_id)
        return ok({"revoked": grant_id})

    @app.route("/api/students/<int:student_id>/scholarships", methods=["GET"], endpoint="list_student_scholarships")
    def list_student_scholarships(student_id: int):
        return ok(
            service.list_for_student(
                scope=current_scope(),
                student_id=student_id,
                session_id=optional_int(request.args.get("session_id"), "session_id"),
            )
        )
