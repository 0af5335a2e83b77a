# Overview: Shared JSON error responses for the API routes.

import traceback

from flask import current_app, jsonify, request

from .extensions import db
from .time_utils import parse_iso_datetime
from .validation import ConflictError, NotFoundError, OverpaymentError, ValidationError


def validation_error(exc: ValidationError):
    db.session.rollback()
    return jsonify({"errors": exc.errors}), 400


def not_found(exc: NotFoundError):
    db.session.rollback()
    return jsonify({"message": str(exc)}), 404


def conflict(exc: ConflictError):
    db.session.rollback()
    body = {"message": str(exc)}
    if isinstance(exc, OverpaymentError):
        body["remaining_debt"] = float(exc.remaining)
        body["payment"] = float(exc.payment)
    return jsonify(body), 409


def server_error(log_message: str):
    """Log the active exception and answer 500; the trace is exposed only when configured."""
    db.session.rollback()
    current_app.logger.exception(log_message)
    body = {"message": "Internal server error"}
    if current_app.config.get("EXPOSE_ERROR_TRACES"):
        body["error"] = traceback.format_exc()
    return jsonify(body), 500


def query_datetime(name: str):
    """ISO-8601 query parameter, or None when absent."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime", field=name)


def query_bool(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered not in {"true", "false"}:
        raise ValidationError(f"{name} must be true or false", field=name)
    return lowered == "true"
