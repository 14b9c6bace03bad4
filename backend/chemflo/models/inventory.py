from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from chemflo.time_utils import to_utc_z, utcnow

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)


class Inventory(db.Model):
    """
    Current stock for one product (the stock ledger).

    INVARIANTS:
    - Exactly one row per product, created in the same transaction as the product.
    - current_stock is never negative (CHECK constraint + StockLedger validation).
    - current_stock always equals the replay of the product's StockMovement rows.

    CONCURRENCY:
    version_id is an optimistic lock. A stale read-modify-write raises
    StaleDataError on flush and the unit of work retries from a fresh read.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_stock = db.Column(db.Float, nullable=False, default=0.0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
        index=True,
    )

    product = db.relationship("Product", back_populates="inventory")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Inventory product_id={self.product_id} current_stock={self.current_stock}>"

    def to_dict(self, *, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "productId": self.product_id,
            "currentStock": self.current_stock,
            "version": self.version_id,
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_product:
            data["product"] = self.product.to_dict(include_category=True) if self.product else None
        return data


class StockMovement(db.Model):
    """
    Append-only record of one stock change.

    IMMUTABLE: rows are inserted by MovementStore.append() and never updated.
    They disappear only when their product is deleted (cascade).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_stock_movements_type"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = db.Column(db.String(3), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", back_populates="movements")

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} product_id={self.product_id} {self.type} {self.quantity}>"

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.type == MOVEMENT_IN else -self.quantity

    def to_dict(self, *, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "productId": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_product:
            data["product"] = self.product.to_dict(include_category=True) if self.product else None
        return data


class ImmutableMovementError(Exception):
    """Raised when code tries to modify a persisted stock movement."""


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise ImmutableMovementError(f"Stock movement {target.id} is append-only and cannot be modified")
