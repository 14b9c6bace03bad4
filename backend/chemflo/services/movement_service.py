# Overview: Append-only stock movement log (write path + paginated queries).

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from ..models import Product, StockMovement
"""
Movement log invariants (authoritative)

- Append-only: append() inserts; nothing in the application updates or deletes a row.
  (StockMovement has a before_update guard; deletes happen only through product cascade.)
- append() never commits. It runs inside the caller's unit of work so the ledger
  update and its movement land in the same transaction.
- Reads are newest-first: created_at DESC, id DESC (id breaks same-timestamp ties).
- Date filters are inclusive on both ends and each bound is optional.
"""


class MovementStore:
    """Durable, queryable log of stock movements bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    def append(
        self,
        *,
        product_id: int,
        movement_type: str,
        quantity: float,
        notes: str | None = None,
    ) -> StockMovement:
        movement = StockMovement(
            product_id=product_id,
            type=movement_type,
            quantity=quantity,
            notes=notes or None,
        )
        self.session.add(movement)
        self.session.flush()  # ensures movement.id is assigned without committing
        return movement

    def _filtered(
        self,
        *,
        product_id: int | None = None,
        movement_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ):
        q = self.session.query(StockMovement)
        if product_id is not None:
            q = q.filter(StockMovement.product_id == product_id)
        if movement_type is not None:
            q = q.filter(StockMovement.type == movement_type)
        if start_date is not None:
            q = q.filter(StockMovement.created_at >= start_date)
        if end_date is not None:
            q = q.filter(StockMovement.created_at <= end_date)
        return q

    def query(
        self,
        *,
        product_id: int | None = None,
        movement_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[StockMovement], int]:
        """Return (rows for the page, total matching rows)."""
        base = self._filtered(
            product_id=product_id,
            movement_type=movement_type,
            start_date=start_date,
            end_date=end_date,
        )
        total = base.count()
        rows = (
            base.options(joinedload(StockMovement.product).joinedload(Product.category))
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def recent(self, limit: int = 10) -> list[StockMovement]:
        return (
            self.session.query(StockMovement)
            .options(joinedload(StockMovement.product))
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .limit(limit)
            .all()
        )

    def count_for_product(self, product_id: int) -> int:
        return self._filtered(product_id=product_id).count()

    def replay(self, product_id: int) -> float:
        """
        Rebuild a product's balance from zero by applying its movements in
        creation order. Equals Inventory.current_stock when the ledger is sound.
        """
        balance = 0.0
        movements = (
            self.session.query(StockMovement)
            .filter(StockMovement.product_id == product_id)
            .order_by(StockMovement.id.asc())
            .all()
        )
        for movement in movements:
            balance += movement.signed_quantity
        return balance
