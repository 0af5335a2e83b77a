# Overview: Service-layer operations for the transaction ledger and client balances.

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Client, Debtor, Transaction, TRANSACTION_TYPES, PAYMENT_TYPES
from ..validation import NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
"""
Ledger Invariants (authoritative)

- Every money-moving operation appends exactly one Transaction row, inside
  the same DB transaction as the balance changes it records.
- append_transaction only flushes; the calling operation owns the commit.
- Client.debt moves by balance_effect(type, amount) and nothing else.
- Rows are tombstoned, never deleted.
"""

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Sign of each entry type on what the client owes the business
BALANCE_SIGN = {
    "debt-created": 1,
    "debt-payment": -1,
    "cash-in": -1,
    "cash-out": 1,
    "order": 0,
}


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value.quantize(ZERO)
    return Decimal(str(value)).quantize(ZERO)


def balance_effect(tx_type: str, amount) -> Decimal:
    """Signed change an entry of this type applies to Client.debt."""
    return to_decimal(amount) * BALANCE_SIGN[tx_type]


def append_transaction(
    *,
    tx_type: str,
    amount: Decimal,
    payment_type: str = "cash",
    client_id: int | None = None,
    related_model: str | None = None,
    related_id: int | None = None,
    description: str | None = None,
    created_by_user_id: int | None = None,
) -> Transaction:
    """
    Append-only ledger entry.

    - No balance logic here; callers apply apply_client_delta themselves.
    - Flushes so the caller can read tx.id before committing.
    """
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {tx_type}", field="type")
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of {', '.join(PAYMENT_TYPES)}", field="payment_type"
        )
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError("amount must be >= 0", field="amount")

    tx = Transaction(
        type=tx_type,
        amount=amount,
        payment_type=payment_type,
        client_id=client_id,
        related_model=related_model,
        related_id=related_id,
        description=description,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def get_client_for_update(client_id: int) -> Client:
    """Lock an active client row or raise NotFoundError."""
    client = lock_for_update(
        db.session.query(Client).filter_by(id=client_id, is_deleted=False)
    ).first()
    if not client:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def lock_owning_client(client_id: int) -> Client:
    """
    Lock the client a record already belongs to, tombstoned or not.

    Corrections to existing debtors and entries must still reach a client
    that was soft-deleted after its debts reached zero.
    """
    client = lock_for_update(db.session.query(Client).filter_by(id=client_id)).first()
    if not client:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def apply_client_delta(client: Client, delta: Decimal) -> None:
    client.debt = to_decimal(client.debt) + to_decimal(delta)


def sum_debtor_balances(client_id: int) -> Decimal:
    """Σ current_debt over the client's non-deleted debtors."""
    total = db.session.query(
        db.func.coalesce(db.func.sum(Debtor.current_debt), 0)
    ).filter(
        Debtor.client_id == client_id,
        Debtor.is_deleted.is_(False),
    ).scalar()
    return to_decimal(total)


def derived_ledger_balance(client_id: int) -> Decimal:
    """Fold the client's non-deleted ledger entries through BALANCE_SIGN."""
    rows = db.session.query(
        Transaction.type,
        db.func.coalesce(db.func.sum(Transaction.amount), 0),
    ).filter(
        Transaction.client_id == client_id,
        Transaction.is_deleted.is_(False),
    ).group_by(Transaction.type).all()

    total = ZERO
    for tx_type, amount in rows:
        total += balance_effect(tx_type, amount)
    return total


def resum_client_debt(client: Client) -> Decimal:
    """Overwrite Client.debt with Σ of its debtors. Caller commits."""
    client.debt = sum_debtor_balances(client.id)
    return client.debt


def client_balance_view(client: Client) -> dict:
    """
    Read-only reconciliation view.

    stored_balance is Client.debt; debtor_balance and ledger_balance are
    recomputed from Debtor rows and ledger entries respectively.
    """
    stored = to_decimal(client.debt)
    debtor_balance = sum_debtor_balances(client.id)
    ledger_balance = derived_ledger_balance(client.id)
    return {
        "client_id": client.id,
        "stored_balance": float(stored),
        "debtor_balance": float(debtor_balance),
        "ledger_balance": float(ledger_balance),
        "matches_debtors": stored == debtor_balance,
        "matches_ledger": stored == ledger_balance,
    }


def find_unbalanced_clients() -> list[dict]:
    """Active clients whose stored balance differs from Σ debtor current_debt."""
    clients = db.session.query(Client).filter(Client.is_deleted.is_(False)).order_by(Client.id).all()
    return [view for view in (client_balance_view(c) for c in clients) if not view["matches_debtors"]]


def reconcile_client(client_id: int) -> Decimal:
    """Apply the debtor re-sum to one client and commit."""
    def _op():
        client = get_client_for_update(client_id)
        before = to_decimal(client.debt)
        after = resum_client_debt(client)
        db.session.commit()
        logger.info("Reconciled client %s balance %s -> %s", client_id, before, after)
        return after

    return run_with_retry(_op)
