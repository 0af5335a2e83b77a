from __future__ import annotations

from ..extensions import db
from .base import TimestampedSoftDelete, as_number

ORDER_STATUSES = ("pending", "completed", "cancelled")


class Order(TimestampedSoftDelete, db.Model):
    """
    A sale to a (possibly anonymous) client.

    Totals are derived from the lines at creation time:
    total_amount = Σ price × quantity, profit_amount = Σ line profit,
    debt_amount = total_amount - paid_amount.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    debt_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    profit_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    payment_type = db.Column(db.String(16), nullable=False, default="cash")
    status = db.Column(db.String(16), nullable=False, default="completed")
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    client = db.relationship("Client")
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client": self.client.to_dict() if self.client else None,
            "products": [line.to_dict() for line in self.lines],
            "total_amount": as_number(self.total_amount),
            "paid_amount": as_number(self.paid_amount),
            "debt_amount": as_number(self.debt_amount),
            "profit_amount": as_number(self.profit_amount),
            "payment_type": self.payment_type,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            **self._base_dict(),
        }


class OrderLine(db.Model):
    """Line snapshot: price and cost_price are copied at sale time."""
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    price = db.Column(db.Numeric(14, 2), nullable=False)
    cost_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    profit = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": as_number(self.quantity),
            "price": as_number(self.price),
            "cost_price": as_number(self.cost_price),
            "profit": as_number(self.profit),
        }
