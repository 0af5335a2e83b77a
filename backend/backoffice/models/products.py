from __future__ import annotations

from ..extensions import db
from .base import TimestampedSoftDelete, as_number


class Product(TimestampedSoftDelete, db.Model):
    """
    Catalog item.

    quantity is on-hand stock; cost_price feeds product capital and order
    profit snapshots. discount is an optional tiered price document:
    {"price": n, "children": [{"quantity": n, "value": n}, ...]}
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_deleted", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    cost_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    min_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="UZS")

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    discount = db.Column(db.JSON, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "cost_price": as_number(self.cost_price),
            "sale_price": as_number(self.sale_price),
            "quantity": as_number(self.quantity),
            "min_quantity": as_number(self.min_quantity),
            "unit": self.unit,
            "currency": self.currency,
            "is_available": self.is_available,
            "discount": self.discount,
            "created_by_user_id": self.created_by_user_id,
            **self._base_dict(),
        }
