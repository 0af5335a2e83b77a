from __future__ import annotations

from ..extensions import db
from .base import TimestampedSoftDelete, as_number
from backoffice.time_utils import to_utc_z


class Client(TimestampedSoftDelete, db.Model):
    """
    Customer who can buy on credit.

    `debt` is the denormalized Client Balance: what the client owes the
    business (negative means the business owes the client). It is written
    only by the financial operations in debtor_service / transaction_service,
    never by client edits.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_active_name", "is_deleted", "full_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    birthday = db.Column(db.DateTime, nullable=True)

    debt = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "notes": self.notes,
            "birthday": to_utc_z(self.birthday) if self.birthday else None,
            "debt": as_number(self.debt),
            "version_id": self.version_id,
            **self._base_dict(),
        }
