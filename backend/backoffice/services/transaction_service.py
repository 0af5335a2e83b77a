# Overview: Service-layer operations for cash-in/cash-out and hand-edited ledger entries.

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Transaction, TRANSACTION_TYPES, PAYMENT_TYPES
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_amount, parse_description
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import (
    append_transaction,
    apply_client_delta,
    balance_effect,
    get_client_for_update,
    lock_owning_client,
    to_decimal,
)
from backoffice.time_utils import year_bounds

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500
# year_bounds needs year + 1 to be a valid datetime year
MIN_STATS_YEAR = 1
MAX_STATS_YEAR = 9998
EDITABLE_FIELDS = {"amount", "payment_type", "description", "client_id"}


def _parse_amount(raw) -> Decimal:
    # Non-numeric input counts as 0; only negatives are refused
    amount = coerce_amount(raw)
    if amount < 0:
        raise ValidationError("amount must be >= 0", field="amount")
    return amount


def _parse_payment_type(raw) -> str:
    payment_type = raw or "cash"
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of {', '.join(PAYMENT_TYPES)}", field="payment_type"
        )
    return payment_type


def _parse_client_id(raw) -> int | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValidationError("client_id must be an integer", field="client_id")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValidationError("client_id must be an integer", field="client_id")


def _record_cash_movement(tx_type: str, payload: dict, user_id: int | None) -> Transaction:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    amount = _parse_amount(payload.get("amount"))
    payment_type = _parse_payment_type(payload.get("payment_type"))
    client_id = _parse_client_id(payload.get("client_id"))
    description = parse_description(payload.get("description"))

    def _op():
        client = get_client_for_update(client_id) if client_id is not None else None

        tx = append_transaction(
            tx_type=tx_type,
            amount=amount,
            payment_type=payment_type,
            client_id=client.id if client else None,
            description=description,
            created_by_user_id=user_id,
        )
        if client is not None:
            apply_client_delta(client, balance_effect(tx_type, amount))

        db.session.commit()
        logger.info("Recorded %s %s (client=%s)", tx_type, amount, client_id)
        return tx

    return run_with_retry(_op)


def cash_in(payload: dict, *, user_id: int | None = None) -> Transaction:
    """Money received. Lowers the client's balance when a client is given."""
    return _record_cash_movement("cash-in", payload, user_id)


def cash_out(payload: dict, *, user_id: int | None = None) -> Transaction:
    """Money handed out. Raises the client's balance when a client is given."""
    return _record_cash_movement("cash-out", payload, user_id)


def _get_transaction_for_update(tx_id: int) -> Transaction:
    tx = lock_for_update(
        db.session.query(Transaction).filter_by(id=tx_id, is_deleted=False)
    ).first()
    if not tx:
        raise NotFoundError(f"Transaction {tx_id} not found")
    if tx.is_managed:
        raise ConflictError(
            f"{tx.type} entries are managed by their {tx.related_model or 'source'} record "
            "and cannot be changed directly"
        )
    return tx


def edit_transaction(tx_id: int, payload: dict) -> Transaction:
    """
    Edit a cash-in / cash-out entry.

    The old effect is reversed on the old client and the new effect applied
    on the target client, so a same-client edit nets to the amount delta.
    Omitting client_id keeps the client; client_id: null detaches it.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - EDITABLE_FIELDS)
    if unknown:
        errors = [{"field": k, "message": f"Field not allowed: {k}"} for k in unknown]
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

    new_amount = _parse_amount(payload["amount"]) if "amount" in payload else None
    new_payment_type = _parse_payment_type(payload["payment_type"]) if "payment_type" in payload else None
    client_changed = "client_id" in payload
    new_client_id = _parse_client_id(payload.get("client_id"))
    new_description = parse_description(payload["description"]) if "description" in payload else None

    def _op():
        tx = _get_transaction_for_update(tx_id)

        old_client_id = tx.client_id
        old_effect = balance_effect(tx.type, tx.amount)
        amount = new_amount if new_amount is not None else to_decimal(tx.amount)
        target_client_id = new_client_id if client_changed else old_client_id

        old_client = lock_owning_client(old_client_id) if old_client_id is not None else None
        if target_client_id == old_client_id:
            target = old_client
        elif target_client_id is not None:
            target = get_client_for_update(target_client_id)
        else:
            target = None

        if old_client is not None:
            apply_client_delta(old_client, -old_effect)
        if target is not None:
            apply_client_delta(target, balance_effect(tx.type, amount))

        tx.amount = amount
        tx.client_id = target.id if target else None
        if new_payment_type is not None:
            tx.payment_type = new_payment_type
        if "description" in payload:
            tx.description = new_description

        db.session.commit()
        logger.info(
            "Transaction %s edited: client %s -> %s, amount %s",
            tx.id, old_client_id, target_client_id, amount,
        )
        return tx

    return run_with_retry(_op)


def delete_transaction(tx_id: int) -> Transaction:
    """Tombstone a cash-in / cash-out entry and reverse its balance effect."""
    def _op():
        tx = _get_transaction_for_update(tx_id)

        if tx.client_id is not None:
            client = lock_owning_client(tx.client_id)
            apply_client_delta(client, -balance_effect(tx.type, tx.amount))

        tx.soft_delete()
        db.session.commit()
        logger.info("Transaction %s deleted", tx.id)
        return tx

    return run_with_retry(_op)


def get_transaction(tx_id: int) -> Transaction:
    tx = db.session.query(Transaction).filter_by(id=tx_id, is_deleted=False).first()
    if not tx:
        raise NotFoundError(f"Transaction {tx_id} not found")
    return tx


def list_transactions(
    *,
    tx_type: str | None = None,
    client_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[Transaction]:
    if tx_type is not None and tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(TRANSACTION_TYPES)}", field="type")
    limit = max(1, min(limit, MAX_LIST_LIMIT))

    query = db.session.query(Transaction).filter(Transaction.is_deleted.is_(False))
    if tx_type is not None:
        query = query.filter(Transaction.type == tx_type)
    if client_id is not None:
        query = query.filter(Transaction.client_id == client_id)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at < end)
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


def monthly_statistics(year: int) -> dict:
    """Per-month cash-in / cash-out totals for a calendar year, zero-filled."""
    if not MIN_STATS_YEAR <= year <= MAX_STATS_YEAR:
        raise ValidationError(
            f"year must be between {MIN_STATS_YEAR} and {MAX_STATS_YEAR}", field="year"
        )
    start, end = year_bounds(year)
    month_expr = db.func.strftime("%m", Transaction.created_at)

    rows = db.session.query(
        Transaction.type,
        month_expr.label("month"),
        db.func.coalesce(db.func.sum(Transaction.amount), 0),
    ).filter(
        Transaction.is_deleted.is_(False),
        Transaction.type.in_(("cash-in", "cash-out")),
        Transaction.created_at >= start,
        Transaction.created_at < end,
    ).group_by(Transaction.type, "month").all()

    series = {"cash-in": [0.0] * 12, "cash-out": [0.0] * 12}
    for tx_type, month, total in rows:
        series[tx_type][int(month) - 1] = float(to_decimal(total))

    return {"year": year, "cash_in": series["cash-in"], "cash_out": series["cash-out"]}
