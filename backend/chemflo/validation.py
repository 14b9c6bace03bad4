from __future__ import annotations
import math
import re
from datetime import datetime
from chemflo.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .models import PRODUCT_UNITS, MOVEMENT_TYPES


CAS_NUMBER_RE = re.compile(r"^\d{1,7}-\d{2}-\d$")
HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

MAX_NOTES_LENGTH = 500
DEFAULT_PAGE_SIZE = 10
DEFAULT_MOVEMENT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate CAS number)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: API (camelCase) name -> model column key
    - min_lengths: lower bounds for String columns (upper bound comes from the column)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] = field(default_factory=dict)
    min_lengths: dict[str, int] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_float(key: str, value: Any) -> float:
    """Accept JSON numbers or numeric strings; reject bools, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


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
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Float):
        return coerce_float(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

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
    - a policy allowlist (writable_fields, API names)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model column, with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if policy.aliases.get(k, k) not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        key = policy.aliases.get(k, k)
        col = cols[key]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[key] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            raise ValidationError(str(e).replace(col.key, k, 1))

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Min / max length checks for String(n)
        if isinstance(val, str) and k in policy.min_lengths:
            if len(val) < policy.min_lengths[k]:
                raise ValidationError(f"{k} must be at least {policy.min_lengths[k]} characters")
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[key] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "cas_number" in patch and not CAS_NUMBER_RE.match(patch["cas_number"] or ""):
        raise ValidationError("CAS Number must be in valid format (e.g., 7732-18-5)")

    if "unit" in patch:
        unit = (patch["unit"] or "").upper()
        if unit not in PRODUCT_UNITS:
            raise ValidationError(f"Unit must be one of: {', '.join(PRODUCT_UNITS)}")
        patch["unit"] = unit

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] < 0:
        raise ValidationError("Low stock threshold must be a non-negative integer")


def parse_initial_stock(payload: dict) -> float:
    """Pop initialStock from a product-create payload (default 0)."""
    raw = payload.pop("initialStock", None)
    if raw is None:
        return 0.0
    qty = coerce_float("initialStock", raw)
    if qty < 0:
        raise ValidationError("Initial stock must be a non-negative number")
    return qty


def enforce_rules_category(patch: dict) -> None:
    if "color" in patch and patch["color"] is not None:
        if not HEX_COLOR_RE.match(patch["color"]):
            raise ValidationError("Color must be a valid hex color code (e.g., #6366f1)")


def validate_stock_update(payload: dict) -> dict:
    """
    Validate POST /inventory/<id>/stock bodies.

    Returns {"type", "quantity", "notes"} with quantity as a float > 0.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = set(payload) - {"type", "quantity", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    movement_type = payload.get("type")
    if movement_type in (None, ""):
        raise ValidationError("Movement type is required")
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError("Type must be either IN or OUT")

    if payload.get("quantity") in (None, ""):
        raise ValidationError("Quantity is required")
    quantity = coerce_float("quantity", payload["quantity"])
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip()
        if len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes must not exceed {MAX_NOTES_LENGTH} characters")
        notes = notes or None

    return {"type": movement_type, "quantity": quantity, "notes": notes}


def parse_pagination(args, *, default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    """Read page/limit query args (page >= 1, 1 <= limit <= 100)."""
    page_raw = args.get("page")
    limit_raw = args.get("limit")

    try:
        page = int(page_raw) if page_raw not in (None, "") else 1
    except ValueError:
        raise ValidationError("Page must be a positive integer")
    if page < 1:
        raise ValidationError("Page must be a positive integer")

    try:
        limit = int(limit_raw) if limit_raw not in (None, "") else default_limit
    except ValueError:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

    return page, limit


def parse_optional_id(args, name: str) -> int | None:
    raw = args.get(name)
    if raw in (None, ""):
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name}")
    if value < 1:
        raise ValidationError(f"Invalid {name}")
    return value


def parse_movement_filters(args) -> dict:
    """Query filters for GET /inventory/movements."""
    movement_type = args.get("type") or None
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError("Type must be either IN or OUT")

    try:
        start_date = parse_iso_datetime(args.get("startDate"))
    except ValueError:
        raise ValidationError("Invalid start date format")
    try:
        end_date = parse_iso_datetime(args.get("endDate"))
    except ValueError:
        raise ValidationError("Invalid end date format")

    page, limit = parse_pagination(args, default_limit=DEFAULT_MOVEMENT_PAGE_SIZE)

    return {
        "product_id": parse_optional_id(args, "productId"),
        "movement_type": movement_type,
        "start_date": start_date,
        "end_date": end_date,
        "page": page,
        "limit": limit,
    }


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if total > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
    }
