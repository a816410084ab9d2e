from __future__ import annotations

from flask import Flask, request

from ..common.http import current_scope, ok, optional_date, optional_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.receipt_service

    @app.route("/api/payments/<int:payment_id>/receipt", methods=["POST"], endpoint="create_receipt")
    def create_receipt(payment_id: int):
        return ok(service.create_receipt(scope=current_scope(), payment_id=payment_id))

    @app.route("/api/receipts/<int:receipt_id>", methods=["GET"], endpoint="get_receipt")
    def get_receipt(receipt_id: int):
        return ok(service.get(scope=current_scope(), receipt_id=receipt_id))

    @app.route("/api/receipts", methods=["GET"], endpoint="list_receipts")
    def list_receipts():
        return ok(
            service.list(
                scope=current_scope(),
                student_id=optional_int(request.args.get("student_id"), "student_id"),
                start_date=optional_date(request.args.get("start_date"), "start_date"),
                end_date=optional_date(request.args.get("end_date"), "end_date"),
            )
        )
