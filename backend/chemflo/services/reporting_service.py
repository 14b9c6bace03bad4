# Overview: Read-side aggregates over the stock ledger (dashboard, low-stock list).

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..models import Category, Product, Inventory
from .concurrency import read_snapshot
from .movement_service import MovementStore

DEFAULT_RECENT_MOVEMENTS = 10


def _low_stock_filter():
    return Inventory.current_stock <= Product.low_stock_threshold


def get_dashboard_stats(session: Session, *, recent_limit: int = DEFAULT_RECENT_MOVEMENTS) -> dict:
    """
    Dashboard totals, computed fresh on every call.

    The four counters come from ONE SELECT of scalar subqueries, so they are
    read from a single statement snapshot and never straddle a concurrent
    stock update.

    totalStockValue is the raw SUM of current_stock across all products. Units
    are mixed (KG, MT, LITRE); no conversion is applied.
    """
    def _read(s: Session) -> dict:
        totals = select(
            select(func.count(Product.id)).scalar_subquery().label("total_products"),
            select(func.count(Category.id)).scalar_subquery().label("total_categories"),
            select(func.count(Inventory.id))
            .select_from(Inventory)
            .join(Product, Product.id == Inventory.product_id)
            .where(_low_stock_filter())
            .scalar_subquery()
            .label("low_stock_count"),
            select(func.coalesce(func.sum(Inventory.current_stock), 0.0))
            .scalar_subquery()
            .label("total_stock_value"),
        )
        row = s.execute(totals).one()
        recent = MovementStore(s).recent(recent_limit)

        return {
            "totalProducts": int(row.total_products or 0),
            "totalCategories": int(row.total_categories or 0),
            "lowStockCount": int(row.low_stock_count or 0),
            "totalStockValue": float(row.total_stock_value or 0.0),
            "recentMovements": [m.to_dict(include_product=True) for m in recent],
        }

    return read_snapshot(session, _read)


def list_low_stock_products(session: Session) -> list[Product]:
    """Products at or below their low-stock threshold, lowest stock first."""
    return (
        session.query(Product)
        .join(Inventory, Inventory.product_id == Product.id)
        .options(joinedload(Product.category), joinedload(Product.inventory))
        .filter(_low_stock_filter())
        .order_by(Inventory.current_stock.asc(), Product.name.asc())
        .all()
    )
