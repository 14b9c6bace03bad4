# Overview: Low-stock predicate and three-tier stock status classification.

from __future__ import annotations

import math

STATUS_CRITICAL = "CRITICAL"
STATUS_LOW = "LOW"
STATUS_IN_STOCK = "IN_STOCK"

CRITICAL_PERCENT = 50
LOW_PERCENT = 100


def is_low_stock(current_stock: float, low_stock_threshold: int) -> bool:
    """A product is low on stock when it is at or below its threshold (inclusive)."""
    return current_stock <= low_stock_threshold


def stock_percentage(current_stock: float, low_stock_threshold: int) -> float:
    """Stock as a percentage of the threshold; a zero threshold is +infinity."""
    if low_stock_threshold <= 0:
        return math.inf
    return current_stock / low_stock_threshold * 100


def classify_stock_status(current_stock: float, low_stock_threshold: int) -> str:
    """
    <= 50% of threshold  -> CRITICAL
    <= 100% of threshold -> LOW
    otherwise            -> IN_STOCK
    """
    pct = stock_percentage(current_stock, low_stock_threshold)
    if pct <= CRITICAL_PERCENT:
        return STATUS_CRITICAL
    if pct <= LOW_PERCENT:
        return STATUS_LOW
    return STATUS_IN_STOCK


def stock_status_dict(current_stock: float, low_stock_threshold: int) -> dict:
    """Display fields attached to inventory rows."""
    pct = stock_percentage(current_stock, low_stock_threshold)
    return {
        "status": classify_stock_status(current_stock, low_stock_threshold),
        "isLowStock": is_low_stock(current_stock, low_stock_threshold),
        "stockPercentage": None if math.isinf(pct) else round(pct, 2),
    }


def inventory_with_status(inventory) -> dict:
    """Inventory.to_dict(include_product=True) plus status fields."""
    data = inventory.to_dict(include_product=True)
    data.update(stock_status_dict(inventory.current_stock, inventory.product.low_stock_threshold))
    return data
