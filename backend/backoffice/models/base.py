from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from backoffice.time_utils import utcnow, to_utc_z


def as_number(value) -> float | None:
    """Numeric columns come back as Decimal; JSON wants plain numbers."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


class TimestampedSoftDelete:
    """
    created_at / updated_at plus the tombstone pair shared by every document.

    Records are never physically removed: is_deleted hides them from reads,
    deleted_at records when.
    """
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = utcnow()

    def _base_dict(self) -> dict:
        return {
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
