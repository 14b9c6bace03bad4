# backend/chemflo/routes/inventory.py
"""
Stock ledger routes.

- POST /<product_id>/stock is the only write endpoint; it runs one
  StockLedger.apply_movement() unit of work.
- Error mapping: ValidationError / InsufficientStockError -> 400,
  InventoryNotFoundError -> 404, StorageFailure -> 500 (logged).

Time semantics:
- startDate/endDate accept ISO-8601 with Z/offsets; backend normalizes to UTC-naive.
- Both bounds are inclusive.
"""
from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..validation import (
    ValidationError,
    pagination_meta,
    parse_movement_filters,
    parse_optional_id,
    parse_pagination,
    validate_stock_update,
)
from ..services.concurrency import StorageFailure
from ..services.inventory_service import (
    StockLedger,
    InventoryNotFoundError,
    InsufficientStockError,
    format_quantity,
)
from ..services.products_service import product_exists
from ..services.reporting_service import get_dashboard_stats
from ..services.stock_status import inventory_with_status


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _ledger() -> StockLedger:
    return StockLedger(
        db.session,
        attempts=current_app.config["STOCK_UPDATE_ATTEMPTS"],
        logger=current_app.logger,
    )


@inventory_bp.get("")
def list_inventory_route():
    """
    List ledger rows with product and category.

    Query params:
    - categoryId: int (optional)
    - lowStockOnly: "true" to keep only rows at or below their threshold
    - page, limit: pagination (limit 1-100, default 10)
    """
    try:
        category_id = parse_optional_id(request.args, "categoryId")
        page, limit = parse_pagination(request.args)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    low_stock_only = request.args.get("lowStockOnly", "false").lower() == "true"

    rows, total = _ledger().list_inventory(
        category_id=category_id,
        low_stock_only=low_stock_only,
        page=page,
        limit=limit,
    )
    return jsonify({
        "items": [inventory_with_status(r) for r in rows],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@inventory_bp.get("/stats")
def inventory_stats_route():
    """Dashboard aggregate (totals, low-stock count, recent movements)."""
    stats = get_dashboard_stats(
        db.session,
        recent_limit=current_app.config["DASHBOARD_RECENT_MOVEMENTS"],
    )
    return jsonify(stats), 200


@inventory_bp.get("/movements")
def list_movements_route():
    """
    Movement history, newest first.

    Query params: productId, type (IN|OUT), startDate, endDate, page, limit (1-100, default 20)
    """
    try:
        filters = parse_movement_filters(request.args)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    rows, total = _ledger().movements.query(**filters)
    return jsonify({
        "items": [m.to_dict(include_product=True) for m in rows],
        "pagination": pagination_meta(filters["page"], filters["limit"], total),
    }), 200


@inventory_bp.get("/<int:product_id>")
def get_inventory_route(product_id: int):
    inventory = _ledger().get_by_product_id(product_id)
    if inventory is None:
        if not product_exists(product_id):
            return jsonify({"error": "Product not found"}), 404
        return jsonify({"error": "Inventory not found for this product"}), 404
    return jsonify(inventory_with_status(inventory)), 200


@inventory_bp.post("/<int:product_id>/stock")
def update_stock_route(product_id: int):
    """
    Apply an IN or OUT movement.

    Body: {"type": "IN"|"OUT", "quantity": number > 0, "notes": optional string <= 500}
    Returns: {"inventory": ..., "movement": ..., "message": ...}
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}

    try:
        data = validate_stock_update(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = _ledger().apply_movement(
            product_id,
            data["type"],
            data["quantity"],
            data["notes"],
        )
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except InventoryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageFailure:
        current_app.logger.exception("Stock update failed for product %s", product_id)
        return jsonify({"error": "Stock update failed, please retry"}), 500

    verb = "increased" if data["type"] == "IN" else "decreased"
    return jsonify({
        "inventory": inventory_with_status(result.inventory),
        "movement": result.movement.to_dict(),
        "message": f"Stock {verb} by {format_quantity(data['quantity'])}",
    }), 200
