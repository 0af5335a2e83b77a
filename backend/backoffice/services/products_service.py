# backend/backoffice/services/products_service.py
"""
Products Service

Catalog CRUD. Products never move money themselves; they feed order line
snapshots and the dashboard stock cards.
"""
from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError, ValidationError

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "cost_price",
    "sale_price",
    "quantity",
    "min_quantity",
    "unit",
    "currency",
    "is_available",
    "discount",
}

SORTABLE_FIELDS = {
    "name": Product.name,
    "cost_price": Product.cost_price,
    "sale_price": Product.sale_price,
    "quantity": Product.quantity,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MAX_SEARCH_RESULTS = 50


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _active_products():
    return db.session.query(Product).filter(Product.is_deleted.is_(False))


def list_products(
    *,
    search: str | None = None,
    min_cost_price: Decimal | None = None,
    max_cost_price: Decimal | None = None,
    min_sale_price: Decimal | None = None,
    max_sale_price: Decimal | None = None,
    is_available: bool | None = None,
    page: int | None = None,
    limit: int | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    """
    Filtered, sorted, paginated product listing.

    Args:
        search: case-insensitive substring match on name
        min_/max_ cost and sale price: inclusive bounds
        page: Page number (1-indexed, default 1)
        limit: Items per page (default 10, max 100)
        sort_by: one of SORTABLE_FIELDS
        sort_order: "asc" or "desc"

    Returns:
        Dict with 'items', 'count', and pagination metadata.
    """
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(
            f"sort_by must be one of {', '.join(sorted(SORTABLE_FIELDS))}", field="sort_by"
        )
    if sort_order not in {"asc", "desc"}:
        raise ValidationError("sort_order must be asc or desc", field="sort_order")

    query = _active_products()
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    if min_cost_price is not None:
        query = query.filter(Product.cost_price >= min_cost_price)
    if max_cost_price is not None:
        query = query.filter(Product.cost_price <= max_cost_price)
    if min_sale_price is not None:
        query = query.filter(Product.sale_price >= min_sale_price)
    if max_sale_price is not None:
        query = query.filter(Product.sale_price <= max_sale_price)
    if is_available is not None:
        query = query.filter(Product.is_available.is_(is_available))

    column = SORTABLE_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, Product.id.asc())

    per_page = min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    per_page = max(per_page, 1)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def search_products(query_text: str, *, limit: int | None = None) -> list[dict]:
    """Name search for pickers; at most MAX_SEARCH_RESULTS rows."""
    limit = max(1, min(limit or 10, MAX_SEARCH_RESULTS))
    products = (
        _active_products()
        .filter(Product.name.ilike(f"%{query_text.strip()}%"))
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [p.to_dict() for p in products]


def get_product(product_id: int) -> Product:
    p = _active_products().filter(Product.id == product_id).first()
    if not p:
        raise NotFoundError(f"Product {product_id} not found")
    return p


def create_product(*, patch: dict, user_id: int | None = None) -> dict:
    """Create product from a validated patch dict."""
    p = Product(created_by_user_id=user_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    p = get_product(product_id)
    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int) -> dict:
    """Soft-delete only: order lines keep referencing the row."""
    p = get_product(product_id)
    p.soft_delete()
    db.session.commit()
    return p.to_dict()
