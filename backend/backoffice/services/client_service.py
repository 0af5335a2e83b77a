# Overview: Service-layer operations for clients; identity CRUD plus balance views.

from __future__ import annotations

from ..extensions import db
from ..models import Client, Debtor
from ..validation import ConflictError, NotFoundError
from .ledger_service import client_balance_view

# No "debt": only financial operations write Client.debt
CLIENT_MUTABLE_FIELDS = {"full_name", "phone", "notes", "birthday"}


def apply_client_patch(c: Client, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CLIENT_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def get_client(client_id: int) -> Client:
    c = db.session.query(Client).filter_by(id=client_id, is_deleted=False).first()
    if not c:
        raise NotFoundError(f"Client {client_id} not found")
    return c


def list_clients(*, q: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    """
    Active clients, newest first.

    q matches full_name or phone (case-insensitive substring).
    """
    query = db.session.query(Client).filter(Client.is_deleted.is_(False))
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(db.or_(Client.full_name.ilike(like), Client.phone.ilike(like)))
    query = query.order_by(Client.created_at.desc(), Client.id.desc())

    per_page = max(min(per_page or 20, 100), 1)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    clients = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [c.to_dict() for c in clients],
        "count": len(clients),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def client_detail(client_id: int) -> dict:
    c = get_client(client_id)
    debtors = (
        db.session.query(Debtor)
        .filter(Debtor.client_id == c.id, Debtor.is_deleted.is_(False))
        .order_by(Debtor.created_at.desc(), Debtor.id.desc())
        .all()
    )
    data = c.to_dict()
    data["debtors"] = [d.to_dict(include_client=False) for d in debtors]
    return data


def create_client(*, patch: dict) -> dict:
    c = Client(debt=0)
    apply_client_patch(c, patch)
    db.session.add(c)
    db.session.commit()
    return c.to_dict()


def update_client(*, client_id: int, patch: dict) -> dict:
    c = get_client(client_id)
    apply_client_patch(c, patch)
    db.session.commit()
    return c.to_dict()


def delete_client(*, client_id: int) -> dict:
    """Soft-delete; refused while the client still has open debt."""
    c = get_client(client_id)
    open_debts = (
        db.session.query(db.func.count(Debtor.id))
        .filter(
            Debtor.client_id == c.id,
            Debtor.is_deleted.is_(False),
            Debtor.current_debt > 0,
        )
        .scalar()
    )
    if open_debts:
        raise ConflictError(f"Client {client_id} has {open_debts} open debt(s)")

    c.soft_delete()
    db.session.commit()
    return c.to_dict()


def client_balance(client_id: int) -> dict:
    return client_balance_view(get_client(client_id))
