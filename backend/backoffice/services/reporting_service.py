# Overview: Service-layer operations for reporting; read-only projections over the ledger.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from backoffice.extensions import db
from backoffice.models import Client, Debtor, Product, Transaction
from backoffice.services.ledger_service import to_decimal
from backoffice.time_utils import month_bounds, parse_iso_datetime, start_of_day, to_utc_z, trailing_days, utcnow

# Entry types that count as money coming in
INCOME_TYPES = ("cash-in", "order", "debt-payment")

TOP_ORDERS_LIMIT = 10


class ReportError(Exception):
    """Raised when report parameters are unusable."""
    pass


def resolve_range(start: str | None, end: str | None, *, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    [start, end) from ISO strings; both missing means the current calendar month.

    Giving only one bound is an error.
    """
    if not start and not end:
        return month_bounds(now or utcnow())
    if not start or not end:
        raise ReportError("start and end must be given together")
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_iso_datetime(end)
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates")
    if end_dt <= start_dt:
        raise ReportError("end must be after start")
    return start_dt, end_dt


def _income_between(start: datetime, end: datetime) -> float:
    total = db.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.is_deleted.is_(False),
        Transaction.type.in_(INCOME_TYPES),
        Transaction.created_at >= start,
        Transaction.created_at < end,
    ).scalar()
    return float(to_decimal(total))


def weekly_income(today: datetime) -> list[dict]:
    """Daily income for the 7 days ending today, oldest first, zero-filled."""
    days = trailing_days(today.date(), 7)
    day_expr = func.strftime("%Y-%m-%d", Transaction.created_at)

    rows = db.session.query(
        day_expr.label("day"),
        func.coalesce(func.sum(Transaction.amount), 0),
    ).filter(
        Transaction.is_deleted.is_(False),
        Transaction.type.in_(INCOME_TYPES),
        Transaction.created_at >= days[0],
        Transaction.created_at < days[-1] + timedelta(days=1),
    ).group_by("day").all()

    totals = {day: float(to_decimal(amount)) for day, amount in rows}
    return [
        {"date": to_utc_z(day), "total": totals.get(day.strftime("%Y-%m-%d"), 0.0)}
        for day in days
    ]


def _top_orders(start: datetime, end: datetime) -> list[dict]:
    rows = db.session.query(
        Transaction.related_id,
        func.count(Transaction.id).label("count"),
        func.coalesce(func.sum(Transaction.amount), 0).label("total_amount"),
    ).filter(
        Transaction.is_deleted.is_(False),
        Transaction.type == "order",
        Transaction.created_at >= start,
        Transaction.created_at < end,
    ).group_by(Transaction.related_id).order_by(
        func.count(Transaction.id).desc(), Transaction.related_id.asc()
    ).limit(TOP_ORDERS_LIMIT).all()

    return [
        {"order_id": related_id, "count": count, "total_amount": float(to_decimal(total))}
        for related_id, count, total in rows
    ]


def dashboard_summary(
    *,
    start: datetime,
    end: datetime,
    low_stock_threshold: int = 5,
    low_stock_limit: int = 20,
    now: datetime | None = None,
) -> dict:
    """
    Dashboard cards, charts and top orders.

    Pure read: income from the ledger, stock from products, counts from
    clients and debtors. Nothing is cached.
    """
    now = now or utcnow()
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)

    active_products = db.session.query(Product).filter(Product.is_deleted.is_(False))

    stock_count = active_products.filter(Product.quantity > 0).count()
    low_stock = (
        active_products.filter(Product.quantity < low_stock_threshold)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(low_stock_limit)
        .all()
    )
    capital = db.session.query(
        func.coalesce(func.sum(Product.cost_price * Product.quantity), 0)
    ).filter(Product.is_deleted.is_(False)).scalar()

    active_clients = db.session.query(Client).filter(Client.is_deleted.is_(False))
    clients_total = active_clients.count()
    clients_new = active_clients.filter(Client.created_at >= today, Client.created_at < tomorrow).count()

    debtor_count, debtor_amount = db.session.query(
        func.count(Debtor.id),
        func.coalesce(func.sum(Debtor.current_debt), 0),
    ).filter(Debtor.is_deleted.is_(False), Debtor.current_debt > 0).one()

    return {
        "success": True,
        "data": {
            "range": {"start": to_utc_z(start), "end": to_utc_z(end)},
            "top_cards": {
                "today_income": _income_between(today, tomorrow),
                "monthly_income": _income_between(start, end),
                "stock_count": stock_count,
                "low_stock_products": [
                    {"id": p.id, "name": p.name, "quantity": float(p.quantity)} for p in low_stock
                ],
                "product_capital": float(to_decimal(capital)),
                "clients": {"total": clients_total, "new": clients_new},
                "debtors": {"count": debtor_count, "amount": float(to_decimal(debtor_amount))},
            },
            "charts": {"weekly_income": weekly_income(now)},
            "top_products": _top_orders(start, end),
        },
    }
