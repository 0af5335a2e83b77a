# Overview: Flask API routes for clients; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..models import Client
from ..services import client_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
)
from ..decorators import require_auth
from ..responses import validation_error, not_found, conflict, server_error

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "notes", "birthday"},
    required_on_create={"full_name"},
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
def list_clients_route():
    """
    List active clients.

    Query params:
    - q: substring of full_name or phone
    - page, per_page: pagination (per_page default 20, max 100)
    """
    try:
        return jsonify(client_service.list_clients(
            q=request.args.get("q"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )), 200
    except Exception:
        return server_error("Failed to list clients")


@clients_bp.post("")
@require_auth
def create_client_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
        return jsonify(client_service.create_client(patch=patch)), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to create client")


@clients_bp.get("/<int:client_id>")
def get_client_route(client_id: int):
    """Client with its open (non-deleted) debtors."""
    try:
        return jsonify(client_service.client_detail(client_id)), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load client")


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    """Identity fields only. debt is rejected as a non-writable field."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
        return jsonify(client_service.update_client(client_id=client_id, patch=patch)), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to update client")


@clients_bp.delete("/<int:client_id>")
@require_auth
def delete_client_route(client_id: int):
    try:
        return jsonify(client_service.delete_client(client_id=client_id)), 200
    except NotFoundError as e:
        return not_found(e)
    except ConflictError as e:
        return conflict(e)
    except Exception:
        return server_error("Failed to delete client")


@clients_bp.get("/<int:client_id>/balance")
def client_balance_route(client_id: int):
    """
    Reconciliation view.

    stored_balance (Client.debt) next to the Σ of open debtor balances and
    the fold over the client's ledger entries.
    """
    try:
        return jsonify(client_service.client_balance(client_id)), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load client balance")
