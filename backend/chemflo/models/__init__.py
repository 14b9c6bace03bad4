from .catalog import Category, Product, PRODUCT_UNITS, DEFAULT_LOW_STOCK_THRESHOLD, DEFAULT_CATEGORY_COLOR
from .inventory import (
    Inventory,
    StockMovement,
    ImmutableMovementError,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
)

__all__ = [
    'Category', 'Product', 'PRODUCT_UNITS', 'DEFAULT_LOW_STOCK_THRESHOLD', 'DEFAULT_CATEGORY_COLOR',
    'Inventory', 'StockMovement', 'ImmutableMovementError',
    'MOVEMENT_IN', 'MOVEMENT_OUT', 'MOVEMENT_TYPES',
]
