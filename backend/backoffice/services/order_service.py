# Overview: Service-layer operations for orders; builds line snapshots and the order ledger entry.

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Client, Order, OrderLine, Product, Transaction, ORDER_STATUSES, PAYMENT_TYPES
from ..validation import NotFoundError, ValidationError, parse_decimal, parse_money
from . import notification_service
from .concurrency import run_with_retry
from .ledger_service import ZERO, append_transaction

logger = logging.getLogger(__name__)

QTY_QUANT = Decimal("0.001")
ORDER_CREATE_FIELDS = {"client_id", "products", "paid_amount", "payment_type", "notes", "status"}
ORDER_UPDATE_FIELDS = {"status", "notes"}


def _reject_unknown(payload: dict, allowed: set[str]) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        errors = [{"field": k, "message": f"Field not allowed: {k}"} for k in unknown]
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)


def _parse_id(raw, field: str) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValidationError(f"{field} must be an integer", field=field)


def _parse_status(raw) -> str:
    if raw not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}", field="status")
    return raw


def _parse_lines(raw) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("products must be a non-empty list", field="products")

    lines = []
    for i, item in enumerate(raw):
        field = f"products[{i}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{field} must be an object", field=field)
        if "product_id" not in item or "quantity" not in item:
            raise ValidationError(f"{field} requires product_id and quantity", field=field)
        quantity = parse_decimal(item["quantity"], f"{field}.quantity", quant=QTY_QUANT)
        if quantity <= 0:
            raise ValidationError(f"{field}.quantity must be > 0", field=f"{field}.quantity")
        price = None
        if item.get("price") is not None:
            price = parse_money(item["price"], f"{field}.price")
        lines.append({
            "product_id": _parse_id(item["product_id"], f"{field}.product_id"),
            "quantity": quantity,
            "price": price,
        })
    return lines


def create_order(payload: dict, *, user_id: int | None = None) -> dict:
    """
    Create an order and its `order` ledger entry in one transaction.

    - price defaults to the product's sale_price; cost_price is snapshotted
    - profit = (price - cost_price) * quantity per line
    - paid_amount defaults to the total (0 when payment_type is "debt")
    - debt_amount = total_amount - paid_amount
    The ledger entry records paid_amount; Client.debt is not touched.
    new_order is broadcast after the commit.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    _reject_unknown(payload, ORDER_CREATE_FIELDS)

    lines_in = _parse_lines(payload.get("products"))
    payment_type = payload.get("payment_type") or "cash"
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of {', '.join(PAYMENT_TYPES)}", field="payment_type"
        )
    status = _parse_status(payload["status"]) if payload.get("status") is not None else "completed"
    client_id = _parse_id(payload["client_id"], "client_id") if payload.get("client_id") is not None else None
    paid_in = parse_money(payload["paid_amount"], "paid_amount") if payload.get("paid_amount") is not None else None
    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string", field="notes")

    def _op():
        if client_id is not None:
            client = db.session.query(Client).filter_by(id=client_id, is_deleted=False).first()
            if not client:
                raise NotFoundError(f"Client {client_id} not found")

        order = Order(
            client_id=client_id,
            payment_type=payment_type,
            status=status,
            notes=notes,
            created_by_user_id=user_id,
        )

        total = ZERO
        profit = ZERO
        for item in lines_in:
            product = db.session.query(Product).filter_by(id=item["product_id"], is_deleted=False).first()
            if not product:
                raise NotFoundError(f"Product {item['product_id']} not found")

            price = item["price"] if item["price"] is not None else Decimal(product.sale_price)
            cost = Decimal(product.cost_price or 0)
            line_profit = ((price - cost) * item["quantity"]).quantize(ZERO)
            order.lines.append(OrderLine(
                product_id=product.id,
                quantity=item["quantity"],
                price=price,
                cost_price=cost,
                profit=line_profit,
            ))
            total += (price * item["quantity"]).quantize(ZERO)
            profit += line_profit

        if paid_in is None:
            paid = ZERO if payment_type == "debt" else total
        else:
            paid = paid_in
        if paid > total:
            raise ValidationError("paid_amount cannot exceed the order total", field="paid_amount")

        order.total_amount = total
        order.paid_amount = paid
        order.debt_amount = total - paid
        order.profit_amount = profit

        db.session.add(order)
        db.session.flush()

        append_transaction(
            tx_type="order",
            amount=paid,
            payment_type=payment_type,
            client_id=client_id,
            related_model="Order",
            related_id=order.id,
            description=f"Order #{order.id}",
            created_by_user_id=user_id,
        )

        db.session.commit()
        logger.info("Order %s created: total %s, paid %s", order.id, total, paid)
        return order.to_dict()

    created = run_with_retry(_op)
    notification_service.emit_new_order(created)
    return created


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, is_deleted=False).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    status: str | None = None,
    client_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Order).filter(Order.is_deleted.is_(False))
    if status is not None:
        query = query.filter(Order.status == _parse_status(status))
    if client_id is not None:
        query = query.filter(Order.client_id == client_id)
    if start is not None:
        query = query.filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at < end)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    per_page = max(min(per_page or 20, 100), 1)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    orders = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def update_order(order_id: int, payload: dict) -> dict:
    """Change status / notes only; amounts are fixed at creation."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    _reject_unknown(payload, ORDER_UPDATE_FIELDS)

    order = get_order(order_id)
    if "status" in payload:
        order.status = _parse_status(payload["status"])
    if "notes" in payload:
        if payload["notes"] is not None and not isinstance(payload["notes"], str):
            raise ValidationError("notes must be a string", field="notes")
        order.notes = payload["notes"]

    db.session.commit()
    updated = order.to_dict()
    notification_service.emit_order_update(updated)
    return updated


def delete_order(order_id: int) -> dict:
    """Tombstone the order together with its ledger entry."""
    def _op():
        order = get_order(order_id)
        order.soft_delete()
        entries = db.session.query(Transaction).filter_by(
            related_model="Order", related_id=order.id, is_deleted=False
        ).all()
        for tx in entries:
            tx.soft_delete()
        db.session.commit()
        logger.info("Order %s deleted with %d ledger entr(ies)", order.id, len(entries))
        return order.to_dict()

    return run_with_retry(_op)
