from __future__ import annotations

from ..extensions import db
from .base import TimestampedSoftDelete, as_number
from backoffice.time_utils import to_utc_z

DEBTOR_STATUS_PENDING = "pending"
DEBTOR_STATUS_PARTIAL = "partial"
DEBTOR_STATUS_PAID = "paid"
DEBTOR_STATUS_OVERDUE = "overdue"

DEBTOR_STATUSES = (
    DEBTOR_STATUS_PENDING,
    DEBTOR_STATUS_PARTIAL,
    DEBTOR_STATUS_PAID,
    DEBTOR_STATUS_OVERDUE,
)


class Debtor(TimestampedSoftDelete, db.Model):
    """
    One receivable episode for a client.

    current_debt is what remains, total_paid only grows. status is stored
    as given (default pending); nothing recomputes it.
    """
    __tablename__ = "debtors"
    __table_args__ = (
        db.Index("ix_debtors_client_active", "client_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    current_debt = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    initial_debt = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    initial_debt_date = db.Column(db.DateTime, nullable=True)
    total_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    last_payment_amount = db.Column(db.Numeric(14, 2), nullable=True)
    last_payment_date = db.Column(db.DateTime, nullable=True)

    next_payment_amount = db.Column(db.Numeric(14, 2), nullable=True)
    next_payment_due_date = db.Column(db.DateTime, nullable=True)

    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=DEBTOR_STATUS_PENDING, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("debtors", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_client: bool = True) -> dict:
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "current_debt": as_number(self.current_debt),
            "initial_debt": as_number(self.initial_debt),
            "initial_debt_date": to_utc_z(self.initial_debt_date) if self.initial_debt_date else None,
            "total_paid": as_number(self.total_paid),
            "last_payment": {
                "amount": as_number(self.last_payment_amount),
                "date": to_utc_z(self.last_payment_date) if self.last_payment_date else None,
            },
            "next_payment": {
                "amount": as_number(self.next_payment_amount),
                "due_date": to_utc_z(self.next_payment_due_date) if self.next_payment_due_date else None,
            },
            "description": self.description or "",
            "status": self.status,
            "version_id": self.version_id,
            **self._base_dict(),
        }
        if include_client:
            data["client"] = self.client.to_dict() if self.client else None
        return data
