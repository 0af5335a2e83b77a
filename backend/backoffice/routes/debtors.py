# Overview: Flask API routes for debtors; parses input and returns JSON responses.

# backend/backoffice/routes/debtors.py
"""
Debtor (accounts receivable) routes

Every mutation here moves Client.debt and, for create and payment,
appends a ledger entry. The services commit each operation atomically.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import debtor_service
from ..validation import ValidationError, NotFoundError, ConflictError
from ..decorators import require_auth, current_user_id
from ..responses import validation_error, not_found, conflict, server_error, query_datetime

debtors_bp = Blueprint("debtors", __name__, url_prefix="/api/debtors")


@debtors_bp.post("")
@require_auth
def create_debtor_route():
    """
    Open a debt for a client.

    Request body:
    {
        "client_id": 1,
        "current_debt": 1000,
        "initial_debt": 1000,  (optional, defaults to current_debt)
        "next_payment": {"amount": 200, "due_date": "2024-07-01"},  (optional)
        "description": "..."  (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        debtor = debtor_service.create_debt(payload, user_id=current_user_id())
        return jsonify(debtor.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to create debtor")


@debtors_bp.get("")
def list_debtors_route():
    """
    List open debtors, newest first.

    Query params: client_id, status, start, end (created_at, end exclusive)
    """
    try:
        debtors = debtor_service.list_debtors(
            client_id=request.args.get("client_id", type=int),
            status=request.args.get("status") or None,
            start=query_datetime("start"),
            end=query_datetime("end"),
        )
        return jsonify({"items": [d.to_dict() for d in debtors], "count": len(debtors)}), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to list debtors")


@debtors_bp.get("/stats/summary")
def debtor_stats_route():
    try:
        return jsonify(debtor_service.debtor_stats(
            start=query_datetime("start"),
            end=query_datetime("end"),
        )), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to load debtor statistics")


@debtors_bp.get("/<int:debtor_id>")
def get_debtor_route(debtor_id: int):
    try:
        return jsonify(debtor_service.get_debtor(debtor_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load debtor")


@debtors_bp.post("/<int:debtor_id>/payment")
@require_auth
def pay_debtor_route(debtor_id: int):
    """
    Record a payment.

    Request body:
    {
        "payment": 400,
        "payment_type": "cash",  (optional: cash, card, debt)
        "next_payment": {"amount": 200, "due_date": "..."},  (optional)
        "description": "..."  (optional)
    }

    Returns:
        200: Updated debtor
        400: payment missing, non-numeric or not > 0
        404: Debtor not found
        409: Payment exceeds remaining debt (reject policy)
    """
    payload = request.get_json(silent=True) or {}
    try:
        debtor = debtor_service.pay_debt(
            debtor_id,
            payload,
            user_id=current_user_id(),
            overpayment_policy=current_app.config["DEBT_OVERPAYMENT_POLICY"],
        )
        return jsonify(debtor.to_dict()), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except ConflictError as e:
        return conflict(e)
    except Exception:
        return server_error("Failed to record debt payment")


@debtors_bp.patch("/<int:debtor_id>")
@require_auth
def update_debtor_route(debtor_id: int):
    """
    Edit current_debt, initial_debt, status, description or next_payment.

    The client's balance is recomputed from all of its open debtors.
    """
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(debtor_service.edit_debt(debtor_id, payload).to_dict()), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to update debtor")


@debtors_bp.delete("/<int:debtor_id>")
@require_auth
def delete_debtor_route(debtor_id: int):
    try:
        return jsonify(debtor_service.delete_debt(debtor_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to delete debtor")
