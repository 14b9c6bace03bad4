# Overview: Stock ledger engine; the only code path that changes a product's stock.

# backend/chemflo/services/inventory_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session, joinedload

from ..models import Product, Inventory, StockMovement, MOVEMENT_IN, MOVEMENT_TYPES
from ..validation import ValidationError
from chemflo.time_utils import utcnow
from .concurrency import lock_for_update, run_unit_of_work, DEFAULT_ATTEMPTS
from .movement_service import MovementStore
"""
ChemFlo Stock Ledger Invariants (authoritative)

Ledger model:
- Inventory.current_stock is the stored balance; StockMovement is the append-only history.
- Replaying a product's movements from 0 (IN adds, OUT subtracts) equals current_stock.
- current_stock is never negative. An OUT that would go below zero is rejected and
  nothing is written.

Write path:
- apply_movement() is the ONLY way stock changes after a product is created.
- The ledger update and the movement insert are one unit of work: both commit or
  neither does.
- Opening stock is written by open_ledger() inside the product-create transaction
  (synthetic IN movement when initial stock > 0).

Concurrency:
- The ledger row is read with SELECT ... FOR UPDATE (honored by PostgreSQL/MySQL).
- Inventory.version_id is an optimistic lock; a writer that read a stale row fails on
  flush (StaleDataError) and the whole read-compute-write is retried from a fresh read.
- Retries are bounded; exhaustion raises StorageFailure. Different products never
  contend with each other.
"""

INITIAL_STOCK_NOTE = "Initial stock"
REPLAY_TOLERANCE = 1e-9

_log = logging.getLogger(__name__)


def format_quantity(value: float) -> str:
    """25.0 -> '25', 12.5 -> '12.5'."""
    return str(int(value)) if float(value).is_integer() else str(value)


class InventoryError(Exception):
    """Raised for stock ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InventoryNotFoundError(InventoryError):
    """The product has no ledger row (404)."""


class InsufficientStockError(InventoryError):
    """An OUT movement would drive stock below zero (400)."""
    def __init__(self, *, current: float, requested: float, unit: str):
        super().__init__(
            f"Insufficient stock. Current: {format_quantity(current)} {unit}, "
            f"Requested: {format_quantity(requested)} {unit}",
            details={"current": current, "requested": requested, "unit": unit},
        )
        self.current = current
        self.requested = requested
        self.unit = unit


@dataclass(frozen=True)
class StockMutation:
    """Outcome of one committed stock movement."""
    inventory: Inventory
    movement: StockMovement
    previous_stock: float
    new_stock: float


class StockLedger:
    """
    Stock ledger bound to an explicit SQLAlchemy session.

    Routes build one per request with db.session; tests and CLI commands can
    hand in any session.
    """

    def __init__(
        self,
        session: Session,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        logger: logging.Logger | None = None,
    ):
        self.session = session
        self.attempts = attempts
        self.log = logger or _log
        self.movements = MovementStore(session)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def open_ledger(self, product: Product, initial_stock: float = 0.0) -> Inventory:
        """
        Create the product's ledger row (and opening IN movement) without committing.

        Must run inside the unit of work that creates the product.
        """
        if initial_stock < 0:
            raise ValidationError("Initial stock must be a non-negative number")

        inventory = Inventory(product=product, current_stock=initial_stock or 0.0)
        self.session.add(inventory)
        self.session.flush()

        if initial_stock > 0:
            self.movements.append(
                product_id=product.id,
                movement_type=MOVEMENT_IN,
                quantity=initial_stock,
                notes=INITIAL_STOCK_NOTE,
            )
        return inventory

    def apply_movement(
        self,
        product_id: int,
        movement_type: str,
        quantity: float,
        notes: str | None = None,
    ) -> StockMutation:
        """
        Apply one IN/OUT movement to a product's stock.

        Raises:
            ValidationError: bad type or non-positive quantity (nothing read or written)
            InventoryNotFoundError: product has no ledger row
            InsufficientStockError: OUT larger than current stock
            StorageFailure: retries exhausted on concurrent conflicts
        """
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError("Type must be either IN or OUT")
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive number")

        def _op(session: Session) -> StockMutation:
            inventory = (
                lock_for_update(session.query(Inventory).filter_by(product_id=product_id))
                .populate_existing()
                .first()
            )
            if inventory is None:
                raise InventoryNotFoundError("Inventory not found for this product")

            current = inventory.current_stock
            if movement_type == MOVEMENT_IN:
                new_stock = current + quantity
            else:
                new_stock = current - quantity
                if new_stock < 0:
                    self.log.warning(
                        "Rejected OUT movement for product %s: current=%s requested=%s",
                        product_id, current, quantity,
                    )
                    raise InsufficientStockError(
                        current=current,
                        requested=quantity,
                        unit=inventory.product.unit,
                    )

            inventory.current_stock = new_stock
            inventory.updated_at = utcnow()
            session.flush()  # version check: stale readers fail here, before the movement insert

            movement = self.movements.append(
                product_id=product_id,
                movement_type=movement_type,
                quantity=quantity,
                notes=notes,
            )
            return StockMutation(
                inventory=inventory,
                movement=movement,
                previous_stock=current,
                new_stock=new_stock,
            )

        result = run_unit_of_work(self.session, _op, attempts=self.attempts, logger=self.log)
        self.log.info(
            "Stock %s %s for product %s: %s -> %s",
            "increased" if movement_type == MOVEMENT_IN else "decreased",
            format_quantity(quantity), product_id,
            format_quantity(result.previous_stock), format_quantity(result.new_stock),
        )
        return result

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get_by_product_id(self, product_id: int) -> Inventory | None:
        return (
            self.session.query(Inventory)
            .options(joinedload(Inventory.product).joinedload(Product.category))
            .filter(Inventory.product_id == product_id)
            .first()
        )

    def list_inventory(
        self,
        *,
        category_id: int | None = None,
        low_stock_only: bool = False,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Inventory], int]:
        """
        Ledger rows joined with product/category, most recently changed first.

        low_stock_only is applied in SQL so pagination totals count low-stock rows only.
        """
        q = self.session.query(Inventory).join(Product, Inventory.product_id == Product.id)
        if category_id is not None:
            q = q.filter(Product.category_id == category_id)
        if low_stock_only:
            q = q.filter(Inventory.current_stock <= Product.low_stock_threshold)

        total = q.count()
        rows = (
            q.options(joinedload(Inventory.product).joinedload(Product.category))
            .order_by(Inventory.updated_at.desc(), Inventory.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def verify(self, product_id: int | None = None) -> list[dict]:
        """
        Replay movements for each ledger row and report rows that disagree.

        Returns an empty list when the ledger is consistent.
        """
        q = self.session.query(Inventory).order_by(Inventory.product_id.asc())
        if product_id is not None:
            q = q.filter(Inventory.product_id == product_id)

        mismatches = []
        for inventory in q.all():
            replayed = self.movements.replay(inventory.product_id)
            if abs(replayed - inventory.current_stock) > REPLAY_TOLERANCE:
                mismatches.append({
                    "productId": inventory.product_id,
                    "currentStock": inventory.current_stock,
                    "replayedStock": replayed,
                    "difference": inventory.current_stock - replayed,
                })
        return mismatches
