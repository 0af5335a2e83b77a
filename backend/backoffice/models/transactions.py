from __future__ import annotations

from ..extensions import db
from .base import TimestampedSoftDelete, as_number

TX_CASH_IN = "cash-in"
TX_CASH_OUT = "cash-out"
TX_ORDER = "order"
TX_DEBT_PAYMENT = "debt-payment"
TX_DEBT_CREATED = "debt-created"

TRANSACTION_TYPES = (TX_CASH_IN, TX_CASH_OUT, TX_ORDER, TX_DEBT_PAYMENT, TX_DEBT_CREATED)

# Entries written as a side effect of another record; only cash-in/out are hand-editable
MANAGED_TRANSACTION_TYPES = (TX_ORDER, TX_DEBT_PAYMENT, TX_DEBT_CREATED)

PAYMENT_TYPES = ("cash", "card", "debt")

RELATED_MODELS = ("Order", "Debtor")


class Transaction(TimestampedSoftDelete, db.Model):
    """
    Ledger entry: one money-moving event.

    WHY: Reporting reads only this table. Entries are appended inside the
    same DB transaction as the operation they record; they are never
    physically removed.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_created", "type", "created_at"),
        db.Index("ix_transactions_related", "related_model", "related_id"),
        db.CheckConstraint("amount >= 0", name="ck_transactions_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    payment_type = db.Column(db.String(16), nullable=False, default="cash")
    description = db.Column(db.Text, nullable=True)

    # Polymorphic reference: ("Order", order.id) or ("Debtor", debtor.id)
    related_model = db.Column(db.String(16), nullable=True)
    related_id = db.Column(db.Integer, nullable=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    client = db.relationship("Client")
    created_by = db.relationship("User")

    @property
    def is_managed(self) -> bool:
        return self.type in MANAGED_TRANSACTION_TYPES

    def to_dict(self, include_client: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "amount": as_number(self.amount),
            "payment_type": self.payment_type,
            "description": self.description or "",
            "related_model": self.related_model,
            "related_id": self.related_id,
            "client_id": self.client_id,
            "created_by_user_id": self.created_by_user_id,
            **self._base_dict(),
        }
        if include_client:
            data["client"] = self.client.to_dict() if self.client else None
        return data
