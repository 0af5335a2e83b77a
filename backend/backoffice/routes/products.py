# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/backoffice/routes/products.py
"""
Product catalog routes.

Reads are public; writes require authentication.
"""
from flask import Blueprint, request, jsonify

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_decimal,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, current_user_id
from ..responses import validation_error, not_found, server_error, query_bool

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _query_decimal(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return parse_decimal(raw, name)


@products_bp.get("")
def list_products_route():
    """
    List products with filters, sorting and pagination.

    Query params:
    - name / search: substring of the product name
    - min_cost_price, max_cost_price, min_sale_price, max_sale_price
    - is_available: true | false
    - page: int (default 1)
    - limit: int (default 10, max 100)
    - sort_by: name, cost_price, sale_price, quantity, created_at, updated_at
    - sort_order: asc | desc
    """
    try:
        result = products_service.list_products(
            search=request.args.get("name") or request.args.get("search"),
            min_cost_price=_query_decimal("min_cost_price"),
            max_cost_price=_query_decimal("max_cost_price"),
            min_sale_price=_query_decimal("min_sale_price"),
            max_sale_price=_query_decimal("max_sale_price"),
            is_available=query_bool("is_available"),
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            sort_by=request.args.get("sort_by", "created_at"),
            sort_order=request.args.get("sort_order", "desc"),
        )
        return jsonify(result), 200
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to list products")


@products_bp.get("/search/<string:query>")
def search_products_route(query: str):
    """Name search, at most 50 results (?limit=)."""
    try:
        items = products_service.search_products(query, limit=request.args.get("limit", type=int))
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception:
        return server_error("Failed to search products")


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to load product")


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a new product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        return jsonify(products_service.create_product(patch=patch, user_id=current_user_id())), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return server_error("Failed to create product")


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        return jsonify(products_service.update_product(product_id=product_id, patch=patch)), 200
    except ValidationError as e:
        return validation_error(e)
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to update product")


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        return jsonify(products_service.delete_product(product_id=product_id)), 200
    except NotFoundError as e:
        return not_found(e)
    except Exception:
        return server_error("Failed to delete product")
