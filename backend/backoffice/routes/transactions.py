# Overview: Flask API routes for ledger transactions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import transaction_service
from ..validation import ValidationError, NotFoundError, ConflictError
from ..decorators import require_auth, current_user_id
from ..responses import validation_error, not_found, conflict, server_error, query_datetime
from backoffice.time_utils import utcnow

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions_route():
    """
    List non-deleted ledger entries, newest first.

    Query params: type, client_id, start, end (end exclusive), limit (default 100, max 500)
    """
    try:
        entries = transaction_service.list_transactions(
            tx_type=request.args.get("type") or None,
            client_id=request.args.get("client_id", type=int),
            start=query_datetime("start"),
            end=query_datetime("end"),
            limit=request.args.get("limit", default=100, type=int),
        )
        return jsonify({"items": [t.to_dict() for t in entries], "count": len(entries)}), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to list transactions")


@transactions_bp.get("/statistics/monthly-transactions")
def monthly_transactions_route():
    """Per-month cash-in / cash-out totals; year defaults to the current one."""
    year = request.args.get("year", type=int) or utcnow().year
    try:
        return jsonify(transaction_service.monthly_statistics(year)), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to load monthly statistics")


@transactions_bp.get("/<int:tx_id>")
def get_transaction_route(tx_id: int):
    try:
        return jsonify(transaction_service.get_transaction(tx_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load transaction")


@transactions_bp.post("/cash-in")
@require_auth
def cash_in_route():
    """
    Record money received.

    Request body:
    {
        "amount": 500,
        "payment_type": "cash",  (cash, card, debt)
        "client_id": 1,  (optional; lowers the client's balance)
        "description": "..."  (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(transaction_service.cash_in(payload, user_id=current_user_id()).to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to record cash-in")


@transactions_bp.post("/cash-out")
@require_auth
def cash_out_route():
    """Record money handed out. Same body as cash-in; raises the client's balance."""
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(transaction_service.cash_out(payload, user_id=current_user_id()).to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to record cash-out")


@transactions_bp.put("/<int:tx_id>")
@require_auth
def edit_transaction_route(tx_id: int):
    """
    Edit a cash-in / cash-out entry (amount, payment_type, description, client_id).

    Returns:
        200: Updated entry
        404: Entry or target client not found
        409: Entry is owned by an order or debtor
    """
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(transaction_service.edit_transaction(tx_id, payload).to_dict()), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except ConflictError as e:
        return conflict(e)
    except Exception:
        return server_error("Failed to edit transaction")


@transactions_bp.delete("/<int:tx_id>")
@require_auth
def delete_transaction_route(tx_id: int):
    try:
        return jsonify(transaction_service.delete_transaction(tx_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except ConflictError as e:
        return conflict(e)
    except Exception:
        return server_error("Failed to delete transaction")
