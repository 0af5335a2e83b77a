# Overview: Socket.IO push for order events; fire-and-forget.

from __future__ import annotations

import logging

from ..extensions import socketio

logger = logging.getLogger(__name__)

NEW_ORDER_EVENT = "new_order"
ORDER_UPDATED_EVENT = "order_updated"


def _order_payload(order: dict) -> dict:
    return {
        "id": order["id"],
        "client": order.get("client"),
        "products": order.get("products", []),
        "total_amount": order.get("total_amount"),
        "paid_amount": order.get("paid_amount"),
        "debt_amount": order.get("debt_amount"),
        "profit_amount": order.get("profit_amount"),
        "payment_type": order.get("payment_type"),
        "status": order.get("status"),
        "notes": order.get("notes"),
        "created_at": order.get("created_at"),
        "updated_at": order.get("updated_at"),
    }


def _broadcast(event: str, order: dict) -> bool:
    """
    Emit to every connected listener.

    Returns False instead of raising: the order is already committed and
    the HTTP response must not depend on the push channel.
    """
    try:
        socketio.emit(event, _order_payload(order))
    except Exception:
        logger.warning("Failed to emit %s for order %s", event, order.get("id"), exc_info=True)
        return False
    return True


def emit_new_order(order: dict) -> bool:
    return _broadcast(NEW_ORDER_EVENT, order)


def emit_order_update(order: dict) -> bool:
    return _broadcast(ORDER_UPDATED_EVENT, order)
