from __future__ import annotations

from datetime import date

from flask import Flask

from ..common.datetime_utils import today_local
from ..common.http import current_scope, json_body, ok, optional_date, require_int, to_json
from ..core.enums import PaymentMode
from ..core.exceptions import ValidationError
from ..container import Container
from .model import (
    ExplicitInstallment,
    ExplicitPlan,
    FeeInstallment,
    InstallmentPlan,
    PercentagePlan,
    SplitEntry,
    TemplatePlan,
)


def installment_json(installment: FeeInstallment, today: date) -> dict:
    data = to_json(installment)
    data.update(
        {
            "outstanding": installment.outstanding,
            "status": installment.status_on(today).value,
            "is_overdue": installment.is_overdue(today),
        }
    )
    return data


def _splits(raw) -> list[SplitEntry]:
    if not isinstance(raw, list) or not all(isinstance(s, dict) for s in raw):
        raise ValidationError("splits must be a list of objects")
    return [
        SplitEntry(percent=s.get("percent"), due_days_from_start=require_int(s, "due_days_from_start")) for s in raw
    ]


def _plan(raw) -> InstallmentPlan:
    if not isinstance(raw, dict):
        raise ValidationError("plan must be an object")
    kind = raw.get("type")
    if kind == "template":
        return TemplatePlan(plan_id=require_int(raw, "plan_id"))
    if kind == "percentage":
        return PercentagePlan(splits=tuple(_splits(raw.get("splits"))))
    if kind == "explicit":
        items = raw.get("installments")
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise ValidationError("installments must be a list of objects")
        return ExplicitPlan(
            installments=tuple(
                ExplicitInstallment(
                    amount=require_int(i, "amount"),
                    due_date=_required_date(i),
                )
                for i in items
            )
        )
    raise ValidationError("plan.type must be one of: template, percentage, explicit")


def _required_date(item: dict) -> date:
    due = optional_date(item.get("due_date"), "due_date")
    if due is None:
        raise ValidationError("due_date is required")
    return due


def register(app: Flask, container: Container) -> None:
    installments = container.installment_service
    payments = container.payment_recorder

    @app.route("/api/installments/generate", methods=["POST"], endpoint="generate_installments")
    def generate_installments():
        data = json_body()
        created = installments.generate(
            scope=current_scope(),
            structure_id=require_int(data, "structure_id"),
            plan=_plan(data.get("plan")),
            start_date=optional_date(data.get("start_date"), "start_date"),
        )
        today = today_local()
        return ok([installment_json(i, today) for i in created], 201)

    @app.route(
        "/api/student-fee-structures/<int:structure_id>/installments", methods=["GET"], endpoint="list_installments"
    )
    def list_installments(structure_id: int):
        today = today_local()
        rows = installments.list_for_structure(scope=current_scope(), structure_id=structure_id)
        return ok([installment_json(i, today) for i in rows])

    @app.route(
        "/api/student-fee-structures/<int:structure_id>/installments", methods=["DELETE"], endpoint="delete_installments"
    )
    def delete_installments(structure_id: int):
        deleted = installments.delete_installments(scope=current_scope(), structure_id=structure_id)
        return ok({"deleted": deleted})

    @app.route("/api/installments/<int:installment_id>", methods=["GET"], endpoint="get_installment")
    def get_installment(installment_id: int):
        installment = installments.get(scope=current_scope(), installment_id=installment_id)
        return ok(installment_json(installment, today_local()))

    @app.route("/api/installments/<int:installment_id>/payments", methods=["POST"], endpoint="record_payment")
    def record_payment(installment_id: int):
        data = json_body()
        try:
            mode = PaymentMode(data.get("mode"))
        except ValueError:
            raise ValidationError("mode must be one of: cash, upi, bank")
        payment, installment = payments.record_payment(
            scope=current_scope(),
            installment_id=installment_id,
            amount=require_int(data, "amount"),
            mode=mode,
            transaction_ref=data.get("transaction_ref"),
            remarks=data.get("remarks"),
        )
        return ok({"payment": payment, "installment": installment_json(installment, today_local())}, 201)

    @app.route("/api/installments/<int:installment_id>/payments", methods=["GET"], endpoint="list_payments")
    def list_payments(installment_id: int):
        return ok(payments.list_payments(scope=current_scope(), installment_id=installment_id))

    @app.route("/api/emi-plans", methods=["POST"], endpoint="create_emi_plan")
    def create_emi_plan():
        data = json_body()
        plan = installments.create_plan(
            scope=current_scope(),
            name=data.get("name") or "",
            splits=_splits(data.get("splits")),
            is_default=bool(data.get("is_default", False)),
        )
        return ok(plan, 201)

    @app.route("/api/emi-plans", methods=["GET"], endpoint="list_emi_plans")
    def list_emi_plans():
        return ok(installments.list_plans(scope=current_scope()))

    @app.route("/api/emi-plans/<int:plan_id>", methods=["GET"], endpoint="get_emi_plan")
    def get_emi_plan(plan_id: int):
        return ok(installments.get_plan(scope=current_scope(), plan_id=plan_id))

    @app.route("/api/emi-plans/<int:plan_id>", methods=["PATCH"], endpoint="update_emi_plan")
    def update_emi_plan(plan_id: int):
        data = json_body()
        return ok(
            installments.update_plan(
                scope=current_scope(),
                plan_id=plan_id,
                name=data.get("name"),
                splits=_splits(data["splits"]) if "splits" in data else None,
                is_default=data.get("is_default"),
                is_active=data.get("is_active"),
            )
        )
