from __future__ import annotations
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from backoffice.time_utils import parse_iso_datetime
from backoffice.models.debtors import DEBTOR_STATUSES

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime, JSON
from sqlalchemy.orm import DeclarativeMeta


# Largest amount accepted anywhere (fits Numeric(14, 2))
MAX_AMOUNT = Decimal("999999999999.99")
MONEY_QUANT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem, carrying field-level messages."""

    def __init__(self, message: str, field: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.field = field
        self.errors = errors if errors is not None else [{"field": field, "message": message}]


class AmountLimitError(ValidationError):
    """A well-formed number above MAX_AMOUNT."""


class NotFoundError(LookupError):
    """404-level: referenced record is absent or soft-deleted."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., editing a managed ledger entry)."""


class OverpaymentError(ConflictError):
    """A debt payment larger than the debtor's remaining debt under the reject policy."""

    def __init__(self, payment: Decimal, remaining: Decimal):
        super().__init__(f"Payment {payment} exceeds remaining debt {remaining}")
        self.payment = payment
        self.remaining = remaining


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - allow_null_fields: extra allowlist for setting null even if you want to special-case later
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    # Optional: keep for future; currently we just honor SQLAlchemy column.nullable
    allow_null_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_decimal(value: Any, field: str, *, quant: Decimal = MONEY_QUANT) -> Decimal:
    """
    Strict numeric parsing for money and quantities.

    Accepts ints, finite floats, Decimals and numeric strings ("12.5", "1e3").
    Rejects booleans, blanks, NaN/Infinity and anything above MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)

    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"{field} must be a finite number", field=field)
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number", field=field)
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if abs(dec) > MAX_AMOUNT:
        raise AmountLimitError(f"{field} cannot exceed {MAX_AMOUNT}", field=field)
    return dec.quantize(quant)


def parse_money(value: Any, field: str) -> Decimal:
    """Non-negative money amount."""
    amount = parse_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0", field=field)
    return amount


def coerce_amount(value: Any) -> Decimal:
    """
    Lenient amount coercion used by cash-in / cash-out / transaction edit.

    Anything that is not a number becomes 0; negatives are returned as-is
    so the caller can reject them. Numbers above MAX_AMOUNT still raise.
    """
    try:
        return parse_decimal(value, "amount")
    except AmountLimitError:
        raise
    except ValidationError:
        return Decimal("0.00")


def parse_description(raw, field: str = "description") -> str | None:
    """Optional free text; blank becomes None."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return raw.strip() or None


def parse_datetime_field(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer", field=col.key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
        raise ValidationError(f"{col.key} must be an integer", field=col.key)

    # Money / quantities
    if isinstance(coltype, Numeric):
        scale = coltype.scale if coltype.scale is not None else 2
        return parse_decimal(value, col.key, quant=Decimal(1).scaleb(-scale))

    # Booleans (form clients send "true"/"false")
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean", field=col.key)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        dt = parse_datetime_field(value, col.key)
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
        return dt

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string", field=col.key)
        return str(value).strip()

    # JSON documents are checked by the per-model rules
    if isinstance(coltype, JSON):
        return value

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    All field problems are collected and raised together.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.append({"field": f, "message": f"{f} is required"})

    cols = _columns_by_key(model)

    patch: dict = {}

    for k, raw in payload.items():
        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            errors.append({"field": k, "message": f"Field not allowed: {k}"})
            continue

        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                errors.append({"field": k, "message": f"{k} cannot be null"})
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            errors.extend(exc.errors)
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.append({"field": k, "message": f"{k} cannot be blank"})
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append({"field": k, "message": f"{k} exceeds max length {col.type.length}"})
                continue

        patch[k] = val

    if errors:
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

    return patch


def parse_next_payment(raw: Any) -> dict:
    """
    Normalize a {"amount", "due_date"} payment plan into Debtor column values.

    A missing or unparseable amount becomes 0; due_date must be ISO-8601 when given.
    """
    if not isinstance(raw, dict):
        raise ValidationError("next_payment must be an object", field="next_payment")

    amount = Decimal("0.00")
    if raw.get("amount") is not None:
        amount = parse_money(raw.get("amount"), "next_payment.amount")

    due_date = parse_datetime_field(raw.get("due_date"), "next_payment.due_date")
    return {"next_payment_amount": amount, "next_payment_due_date": due_date}


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors: list[dict] = []

    if "name" in patch and patch["name"] == "string":
        errors.append({"field": "name", "message": "Product name cannot be 'string'"})

    for field in ("cost_price", "sale_price", "quantity", "min_quantity"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            errors.append({"field": field, "message": f"{field} cannot be negative"})

    if "discount" in patch and patch["discount"] is not None:
        try:
            patch["discount"] = normalize_discount(patch["discount"])
        except ValidationError as exc:
            errors.extend(exc.errors)

    if errors:
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)


def normalize_discount(raw: Any) -> dict:
    """Tiered discount: {"price": n, "children": [{"quantity": n, "value": n}, ...]}"""
    if not isinstance(raw, dict):
        raise ValidationError("discount must be an object", field="discount")

    price = parse_money(raw.get("price", 0), "discount.price")
    children = raw.get("children") or []
    if not isinstance(children, list):
        raise ValidationError("discount.children must be a list", field="discount.children")

    tiers = []
    for i, tier in enumerate(children):
        if not isinstance(tier, dict) or "quantity" not in tier or "value" not in tier:
            raise ValidationError(
                f"discount.children[{i}] requires quantity and value",
                field=f"discount.children[{i}]",
            )
        tiers.append({
            "quantity": float(parse_money(tier["quantity"], f"discount.children[{i}].quantity")),
            "value": float(parse_money(tier["value"], f"discount.children[{i}].value")),
        })

    return {"price": float(price), "children": tiers}


def enforce_rules_debtor(patch: dict) -> None:
    errors: list[dict] = []
    for field in ("current_debt", "initial_debt"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            errors.append({"field": field, "message": f"{field} must be >= 0"})

    if "status" in patch and patch["status"] not in DEBTOR_STATUSES:
        errors.append({
            "field": "status",
            "message": f"status must be one of {', '.join(DEBTOR_STATUSES)}",
        })

    if errors:
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)
