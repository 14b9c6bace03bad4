# Overview: Service-layer operations for categories; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Category, Product, DEFAULT_CATEGORY_COLOR
from ..validation import ConflictError
from .concurrency import run_unit_of_work

CATEGORY_MUTABLE_FIELDS = {"name", "description", "color"}

NAME_CONFLICT_MESSAGE = "Category with this name already exists"


def _product_counts(category_ids: list[int]) -> dict[int, int]:
    if not category_ids:
        return {}
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(category_ids))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def _with_count(category: Category, counts: dict[int, int]) -> dict:
    data = category.to_dict()
    data["productCount"] = counts.get(category.id, 0)
    return data


def name_exists(name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Category.id).filter(Category.name == name)
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None


def list_categories() -> list[dict]:
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    counts = _product_counts([c.id for c in categories])
    return [_with_count(c, counts) for c in categories]


def get_category(category_id: int) -> dict | None:
    category = db.session.get(Category, category_id)
    if category is None:
        return None
    return _with_count(category, _product_counts([category.id]))


def create_category(*, patch: dict) -> dict:
    if name_exists(patch["name"]):
        raise ConflictError(NAME_CONFLICT_MESSAGE)

    def _op(session: Session) -> Category:
        category = Category(color=DEFAULT_CATEGORY_COLOR)
        for k, v in patch.items():
            if k in CATEGORY_MUTABLE_FIELDS and v is not None:
                setattr(category, k, v)
        session.add(category)
        session.flush()
        return category

    category = run_unit_of_work(db.session, _op, attempts=1)
    return _with_count(category, {})


def update_category(*, category_id: int, patch: dict) -> dict | None:
    category = db.session.get(Category, category_id)
    if category is None:
        return None

    if "name" in patch and patch["name"] != category.name:
        if name_exists(patch["name"], exclude_id=category.id):
            raise ConflictError(NAME_CONFLICT_MESSAGE)

    def _op(session: Session) -> Category:
        for k, v in patch.items():
            if k in CATEGORY_MUTABLE_FIELDS:
                setattr(category, k, v)
        session.flush()
        return category

    run_unit_of_work(db.session, _op, attempts=1)
    return get_category(category_id)


def delete_category(*, category_id: int) -> bool:
    """Delete a category; its products stay, uncategorized."""
    category = db.session.get(Category, category_id)
    if category is None:
        return False

    def _op(session: Session) -> None:
        session.delete(category)
        session.flush()

    run_unit_of_work(db.session, _op, attempts=1)
    return True
