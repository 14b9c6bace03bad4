from __future__ import annotations

from ..extensions import db
from chemflo.time_utils import to_utc_z, utcnow

# Measurement units accepted for a chemical (mass kg, mass metric tons, volume litres)
PRODUCT_UNITS = ("KG", "MT", "LITRE")

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_CATEGORY_COLOR = "#6366f1"


class Category(db.Model):
    """
    Named grouping of chemicals (Acids, Solvents, ...).

    Products reference a category without being owned by it: deleting a
    category leaves its products in place with category_id set to NULL.
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(500), nullable=True)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_CATEGORY_COLOR)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Chemical master data.

    CAS DESIGN DECISION:
    Product.cas_number is the natural key of a chemical and is globally unique.
    Lookups by CAS go through the unique index; the service layer pre-checks
    uniqueness so callers get a 409 instead of a raw IntegrityError.

    STOCK:
    Quantity on hand is NOT a product column. It lives in the 1:1 Inventory row
    and only changes through StockLedger.apply_movement().
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_products_threshold_non_negative"),
        db.CheckConstraint("unit IN ('KG', 'MT', 'LITRE')", name="ck_products_unit"),
        db.Index("ix_products_category_created", "category_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    cas_number = db.Column(db.String(16), nullable=False, unique=True, index=True)
    unit = db.Column(db.String(8), nullable=False)
    description = db.Column(db.String(1000), nullable=True)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    # Deleting a product removes its ledger row and its movement history.
    inventory = db.relationship(
        "Inventory",
        back_populates="product",
        uselist=False,
        cascade="all, delete-orphan",
    )
    movements = db.relationship(
        "StockMovement",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} cas={self.cas_number!r} name={self.name!r}>"

    def to_dict(self, *, include_category: bool = True, include_inventory: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "casNumber": self.cas_number,
            "unit": self.unit,
            "description": self.description,
            "categoryId": self.category_id,
            "lowStockThreshold": self.low_stock_threshold,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_category:
            data["category"] = self.category.to_dict() if self.category else None
        if include_inventory:
            data["inventory"] = self.inventory.to_dict() if self.inventory else None
        return data
