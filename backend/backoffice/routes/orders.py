# Overview: Flask API routes for orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import order_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, current_user_id
from ..responses import validation_error, not_found, server_error, query_datetime

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Request body:
    {
        "client_id": 1,  (optional)
        "products": [{"product_id": 3, "quantity": 2, "price": 150}],  (price optional)
        "paid_amount": 300,  (optional)
        "payment_type": "cash",
        "notes": "...",  (optional)
        "status": "completed"  (optional)
    }

    Broadcasts new_order to Socket.IO listeners after the commit.
    """
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(order_service.create_order(payload, user_id=current_user_id())), 201
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to create order")


@orders_bp.get("")
def list_orders_route():
    """Query params: status, client_id, start, end, page, per_page"""
    try:
        return jsonify(order_service.list_orders(
            status=request.args.get("status") or None,
            client_id=request.args.get("client_id", type=int),
            start=query_datetime("start"),
            end=query_datetime("end"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to list orders")


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load order")


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """Change status or notes; broadcasts order_updated."""
    payload = request.get_json(silent=True) or {}
    try:
        return jsonify(order_service.update_order(order_id, payload)), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to update order")


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        return jsonify(order_service.delete_order(order_id)), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to delete order")
