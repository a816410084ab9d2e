from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, ok, optional_int
from ..core.constants import DEFAULT_PENDING_LIMIT
from ..core.enums import InstallmentStatus
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.report_service

    @app.route("/api/reports/collection", methods=["GET"], endpoint="collection_report")
    def collection_report():
        session_id = optional_int(request.args.get("session_id"), "session_id")
        if session_id is None:
            raise ValidationError("session_id is required")
        report = service.collection_by_batch(
            scope=current_scope(),
            session_id=session_id,
            batch_id=optional_int(request.args.get("batch_id"), "batch_id"),
        )
        return ok(report)

    @app.route("/api/reports/students/<int:student_id>/summary", methods=["GET"], endpoint="student_fee_summary")
    def student_fee_summary(student_id: int):
        return ok(
            service.student_summary(
                scope=current_scope(),
                student_id=student_id,
                session_id=optional_int(request.args.get("session_id"), "session_id"),
            )
        )

    @app.route("/api/reports/pending-installments", methods=["GET"], endpoint="pending_installments")
    def pending_installments():
        raw_status = request.args.get("status")
        try:
            status = InstallmentStatus(raw_status) if raw_status else None
        except ValueError:
            raise ValidationError(f"Unknown installment status: {raw_status!r}")
        limit = optional_int(request.args.get("limit"), "limit") or DEFAULT_PENDING_LIMIT
        return ok(
            service.pending_installments(
                scope=current_scope(),
                batch_id=optional_int(request.args.get("batch_id"), "batch_id"),
                status=status,
                limit=min(limit, DEFAULT_PENDING_LIMIT),
                offset=optional_int(request.args.get("offset"), "offset") or 0,
            )
        )
