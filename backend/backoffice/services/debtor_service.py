# Overview: Service-layer operations for debtors; create/pay/edit/delete debts atomically.

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Debtor, DEBTOR_STATUSES, PAYMENT_TYPES
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    OverpaymentError,
    ValidationError,
    enforce_rules_debtor,
    parse_decimal,
    parse_description,
    parse_next_payment,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import (
    ZERO,
    append_transaction,
    apply_client_delta,
    get_client_for_update,
    lock_owning_client,
    resum_client_debt,
    to_decimal,
)
from backoffice.time_utils import utcnow

"""
Debtor operations

Each operation locks the rows it touches, mutates Debtor / Client.debt,
appends its ledger entry and commits once. Any failure rolls the whole
operation back.

Overpayment policies:
- reject: payment > current_debt raises OverpaymentError, nothing changes
- absorb: current_debt clamps at 0 while Client.debt still drops by the
  full payment; the entry description records the absorbed excess
"""

logger = logging.getLogger(__name__)

OVERPAYMENT_REJECT = "reject"
OVERPAYMENT_ABSORB = "absorb"
OVERPAYMENT_POLICIES = (OVERPAYMENT_REJECT, OVERPAYMENT_ABSORB)

DEBTOR_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"client_id", "current_debt", "initial_debt", "description", "status"},
    required_on_create={"client_id", "current_debt"},
)

DEBTOR_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"current_debt", "initial_debt", "description", "status"},
)


def _split_next_payment(payload: dict) -> tuple[dict, dict]:
    """Pull the nested next_payment plan out of a payload before column validation."""
    if payload is None:
        return {}, {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    if "next_payment" not in payload:
        return payload, {}
    raw = payload.pop("next_payment")
    if raw is None:
        return payload, {"next_payment_amount": None, "next_payment_due_date": None}
    return payload, parse_next_payment(raw)


def _get_debtor_for_update(debtor_id: int) -> Debtor:
    debtor = lock_for_update(
        db.session.query(Debtor).filter_by(id=debtor_id, is_deleted=False)
    ).first()
    if not debtor:
        raise NotFoundError(f"Debtor {debtor_id} not found")
    return debtor


def create_debt(payload: dict, *, user_id: int | None = None) -> Debtor:
    """
    Open a new receivable for a client.

    Client.debt grows by current_debt and a debt-created entry of the same
    amount is appended.
    """
    payload, plan = _split_next_payment(payload)
    patch = validate_payload(model=Debtor, payload=payload, policy=DEBTOR_CREATE_POLICY, partial=False)
    enforce_rules_debtor(patch)

    amount = patch["current_debt"]
    if patch.get("initial_debt") is None:
        patch["initial_debt"] = amount

    def _op():
        client = get_client_for_update(patch["client_id"])

        debtor = Debtor(
            client_id=client.id,
            current_debt=amount,
            initial_debt=patch["initial_debt"],
            initial_debt_date=utcnow(),
            total_paid=ZERO,
            description=patch.get("description"),
            status=patch.get("status") or DEBTOR_STATUSES[0],
            **plan,
        )
        db.session.add(debtor)
        db.session.flush()

        append_transaction(
            tx_type="debt-created",
            amount=amount,
            payment_type="debt",
            client_id=client.id,
            related_model="Debtor",
            related_id=debtor.id,
            description=patch.get("description") or f"Debt opened for {client.full_name}",
            created_by_user_id=user_id,
        )
        apply_client_delta(client, amount)

        db.session.commit()
        logger.info("Debtor %s created for client %s: %s", debtor.id, client.id, amount)
        return debtor

    return run_with_retry(_op)


def parse_payment(payload: dict) -> Decimal:
    if not isinstance(payload, dict) or "payment" not in payload:
        raise ValidationError("payment is required", field="payment")
    payment = parse_decimal(payload.get("payment"), "payment")
    if payment <= 0:
        raise ValidationError("payment must be > 0", field="payment")
    return payment


def pay_debt(
    debtor_id: int,
    payload: dict,
    *,
    user_id: int | None = None,
    overpayment_policy: str = OVERPAYMENT_REJECT,
) -> Debtor:
    """
    Record a payment against a debtor.

    current_debt decreases, total_paid and last_payment are updated,
    Client.debt decreases by the payment, and a debt-payment entry is
    appended.
    """
    if overpayment_policy not in OVERPAYMENT_POLICIES:
        raise ValueError(f"Unknown overpayment policy: {overpayment_policy}")

    payment = parse_payment(payload)
    payment_type = payload.get("payment_type") or "cash"
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of {', '.join(PAYMENT_TYPES)}", field="payment_type"
        )
    plan = parse_next_payment(payload["next_payment"]) if payload.get("next_payment") is not None else {}
    note = parse_description(payload.get("description"))

    def _op():
        debtor = _get_debtor_for_update(debtor_id)
        client = lock_owning_client(debtor.client_id)

        remaining = to_decimal(debtor.current_debt)
        description = note or f"Payment from {client.full_name}"

        if payment > remaining:
            if overpayment_policy == OVERPAYMENT_REJECT:
                raise OverpaymentError(payment, remaining)
            excess = payment - remaining
            logger.warning(
                "Absorbing overpayment on debtor %s: payment %s, remaining %s, excess %s",
                debtor.id, payment, remaining, excess,
            )
            description = f"{description} (overpayment: {excess})"

        now = utcnow()
        debtor.current_debt = max(ZERO, remaining - payment)
        debtor.total_paid = to_decimal(debtor.total_paid) + payment
        debtor.last_payment_amount = payment
        debtor.last_payment_date = now
        for key, value in plan.items():
            setattr(debtor, key, value)

        append_transaction(
            tx_type="debt-payment",
            amount=payment,
            payment_type=payment_type,
            client_id=client.id,
            related_model="Debtor",
            related_id=debtor.id,
            description=description,
            created_by_user_id=user_id,
        )
        apply_client_delta(client, -payment)

        db.session.commit()
        logger.info("Debtor %s paid %s, remaining %s", debtor.id, payment, debtor.current_debt)
        return debtor

    return run_with_retry(_op)


def edit_debt(debtor_id: int, payload: dict) -> Debtor:
    """
    Patch debtor fields, then overwrite Client.debt with the Σ of the
    client's non-deleted debtors.

    No ledger entry is appended: edits are corrections, not money movement.
    """
    payload, plan = _split_next_payment(payload)
    patch = validate_payload(model=Debtor, payload=payload, policy=DEBTOR_UPDATE_POLICY, partial=True)
    enforce_rules_debtor(patch)
    patch.update(plan)

    def _op():
        debtor = _get_debtor_for_update(debtor_id)
        client = lock_owning_client(debtor.client_id)

        for key, value in patch.items():
            setattr(debtor, key, value)
        db.session.flush()

        before = to_decimal(client.debt)
        after = resum_client_debt(client)

        db.session.commit()
        logger.info("Debtor %s edited; client %s balance %s -> %s", debtor.id, client.id, before, after)
        return debtor

    return run_with_retry(_op)


def delete_debt(debtor_id: int) -> Debtor:
    """Tombstone a debtor and subtract its current_debt from Client.debt."""
    def _op():
        debtor = _get_debtor_for_update(debtor_id)
        client = lock_owning_client(debtor.client_id)

        remaining = to_decimal(debtor.current_debt)
        apply_client_delta(client, -remaining)
        debtor.soft_delete()

        db.session.commit()
        logger.info("Debtor %s deleted; client %s balance reduced by %s", debtor.id, client.id, remaining)
        return debtor

    return run_with_retry(_op)


def get_debtor(debtor_id: int) -> Debtor:
    debtor = db.session.query(Debtor).filter_by(id=debtor_id, is_deleted=False).first()
    if not debtor:
        raise NotFoundError(f"Debtor {debtor_id} not found")
    return debtor


def list_debtors(
    *,
    client_id: int | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Debtor]:
    """Non-deleted debtors, newest first. start/end bound created_at as [start, end)."""
    if status is not None and status not in DEBTOR_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(DEBTOR_STATUSES)}", field="status")

    query = db.session.query(Debtor).filter(Debtor.is_deleted.is_(False))
    if client_id is not None:
        query = query.filter(Debtor.client_id == client_id)
    if status is not None:
        query = query.filter(Debtor.status == status)
    if start is not None:
        query = query.filter(Debtor.created_at >= start)
    if end is not None:
        query = query.filter(Debtor.created_at < end)
    return query.order_by(Debtor.created_at.desc(), Debtor.id.desc()).all()


def debtor_stats(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    query = db.session.query(
        Debtor.status,
        db.func.count(Debtor.id),
        db.func.coalesce(db.func.sum(Debtor.current_debt), 0),
        db.func.coalesce(db.func.sum(Debtor.total_paid), 0),
    ).filter(Debtor.is_deleted.is_(False))
    if start is not None:
        query = query.filter(Debtor.created_at >= start)
    if end is not None:
        query = query.filter(Debtor.created_at < end)

    status_counts = {status: 0 for status in DEBTOR_STATUSES}
    total_current = ZERO
    total_paid = ZERO
    for status, count, current, paid in query.group_by(Debtor.status).all():
        status_counts[status] = status_counts.get(status, 0) + count
        total_current += to_decimal(current)
        total_paid += to_decimal(paid)

    return {
        "total_current_debt": float(total_current),
        "total_paid": float(total_paid),
        "status_counts": status_counts,
        "total_debtors": sum(status_counts.values()),
    }
