# backend/chemflo/services/products_service.py
"""
Catalog service for chemicals (products).

LEDGER COUPLING:
- create_product opens the product's stock ledger in the SAME transaction
  (Inventory row + opening IN movement when initial stock > 0).
- update_product never touches stock; stock only moves through StockLedger.
- delete_product removes the ledger row and the movement history with the product.
"""
from __future__ import annotations

from sqlalchemy.orm import Session, joinedload

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ValidationError, pagination_meta
from .concurrency import run_unit_of_work
from .inventory_service import StockLedger

PRODUCT_MUTABLE_FIELDS = {"name", "cas_number", "unit", "description", "category_id", "low_stock_threshold"}

CAS_CONFLICT_MESSAGE = "Product with this CAS Number already exists"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError("Invalid category ID")


def cas_number_exists(cas_number: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.cas_number == cas_number)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return q.first() is not None


def product_exists(product_id: int) -> bool:
    return db.session.query(Product.id).filter(Product.id == product_id).first() is not None


def get_product_unit(product_id: int) -> str | None:
    row = db.session.query(Product.unit).filter(Product.id == product_id).first()
    return row.unit if row else None


def get_low_stock_threshold(product_id: int) -> int | None:
    row = db.session.query(Product.low_stock_threshold).filter(Product.id == product_id).first()
    return row.low_stock_threshold if row else None


def get_product(product_id: int) -> Product | None:
    return (
        db.session.query(Product)
        .options(joinedload(Product.category), joinedload(Product.inventory))
        .filter(Product.id == product_id)
        .first()
    )


def list_products(
    *,
    category_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Product listing, newest first, with optional category filter.

    Returns:
        Dict with 'items' and 'pagination' (page, limit, total, totalPages).
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)

    total = base_query.count()
    products = (
        base_query.options(joinedload(Product.category), joinedload(Product.inventory))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": [p.to_dict(include_inventory=True) for p in products],
        "pagination": pagination_meta(page, limit, total),
    }


def create_product(*, patch: dict, initial_stock: float = 0.0) -> dict:
    """
    Create a product and its stock ledger in one transaction.

    Args:
        patch: validated product fields (name, cas_number, unit, ...)
        initial_stock: opening quantity (>= 0); > 0 also writes an IN movement

    Raises:
        ConflictError: CAS number already used
        ValidationError: unknown category, negative initial stock
        IntegrityError: unique constraint lost a race with a concurrent insert
    """
    cas = patch.get("cas_number")
    if cas is None:
        raise ValidationError("CAS Number is required")
    if cas_number_exists(cas):
        raise ConflictError(CAS_CONFLICT_MESSAGE)
    _require_category(patch.get("category_id"))

    def _op(session: Session) -> Product:
        p = Product()
        apply_product_patch(p, patch)
        session.add(p)
        session.flush()  # ensure p.id exists before opening the ledger

        StockLedger(session).open_ledger(p, initial_stock)
        return p

    product = run_unit_of_work(db.session, _op, attempts=1)
    return product.to_dict(include_inventory=True)


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Update catalog fields of a product.

    Returns:
        Updated product dict, or None if not found

    Raises:
        ConflictError: new CAS number belongs to another product
    """
    p = db.session.get(Product, product_id)
    if not p:
        return None

    # CAS uniqueness enforcement if changing CAS
    if "cas_number" in patch and patch["cas_number"] != p.cas_number:
        if cas_number_exists(patch["cas_number"], exclude_id=p.id):
            raise ConflictError(CAS_CONFLICT_MESSAGE)
    if "category_id" in patch:
        _require_category(patch["category_id"])

    def _op(session: Session) -> Product:
        apply_product_patch(p, patch)
        session.flush()
        return p

    run_unit_of_work(db.session, _op, attempts=1)
    return p.to_dict(include_inventory=True)


def delete_product(*, product_id: int) -> bool:
    """
    Hard-delete a product together with its ledger row and movement history.

    Returns:
        True if deleted, False if not found
    """
    p = db.session.get(Product, product_id)
    if not p:
        return False

    def _op(session: Session) -> None:
        session.delete(p)
        session.flush()

    run_unit_of_work(db.session, _op, attempts=1)
    return True
