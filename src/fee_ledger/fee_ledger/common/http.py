"""JSON helpers shared by the Flask controllers."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ..core.exceptions import (
    ConflictError,
    DomainError,
    InvalidReferenceError,
    NotFoundError,
    StorageFault,
    ValidationError,
)
from ..core.scope import TenantScope
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)


def to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json(v) for v in value]
    return value


def ok(payload: Any, status: int = 200):
    return jsonify({"success": True, "data": to_json(payload)}), status


def _header_int(name: str) -> int:
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        raise ValidationError(f"Header {name} is required")
    return int(raw)


def current_scope() -> TenantScope:
    """Tenant scope as forwarded by the upstream auth layer."""

    return TenantScope(
        org_id=_header_int("X-Org-Id"),
        branch_id=_header_int("X-Branch-Id"),
        user_id=_header_int("X-User-Id"),
    )


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_int(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def optional_int(value: Any, key: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


def optional_date(value: Optional[str], key: str) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{key} must be a YYYY-MM-DD date")


def optional_bool(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in {"1", "true", "yes"}


def _error(kind: str, err: Exception, status: int, **extra):
    body = {"success": False, "error": kind, "message": str(err)}
    body.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return _error("NOT_FOUND", e, 404)

    @app.errorhandler(InvalidReferenceError)
    def _invalid_reference(e: InvalidReferenceError):
        return _error("INVALID_REFERENCE", e, 400, component_ids=e.component_ids)

    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        return _error("VALIDATION_ERROR", e, 400, outstanding=e.outstanding)

    @app.errorhandler(ConflictError)
    def _conflict(e: ConflictError):
        return _error("CONFLICT", e, 409)

    @app.errorhandler(StorageFault)
    def _storage(e: StorageFault):
        return _error("STORAGE_FAULT", e, 503)

    @app.errorhandler(DomainError)
    def _domain(e: DomainError):
        return _error("DOMAIN_ERROR", e, 400)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}), 500
