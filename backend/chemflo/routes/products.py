# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/chemflo/routes/products.py
"""
Chemical catalog routes.

Stock is read-only here: creation accepts an optional initialStock that opens
the ledger, every later change goes through POST /api/inventory/<id>/stock.
"""
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..services.concurrency import StorageFailure
from ..services.reporting_service import list_low_stock_products
from ..services.stock_status import stock_status_dict
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_initial_stock,
    parse_optional_id,
    parse_pagination,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "casNumber", "unit", "description", "categoryId", "lowStockThreshold"},
    required_on_create={"name", "casNumber", "unit"},
    aliases={
        "casNumber": "cas_number",
        "categoryId": "category_id",
        "lowStockThreshold": "low_stock_threshold",
    },
    min_lengths={"name": 2},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products, newest first.

    Query params:
    - categoryId: int (optional)
    - page, limit: pagination (limit 1-100, default 10)
    """
    try:
        category_id = parse_optional_id(request.args, "categoryId")
        page, limit = parse_pagination(request.args)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    from ..services.products_service import list_products as list_products_service

    return jsonify(list_products_service(category_id=category_id, page=page, limit=limit)), 200


@products_bp.get("/low-stock")
def low_stock_products():
    """Products at or below their low-stock threshold."""
    items = []
    for p in list_low_stock_products(db.session):
        data = p.to_dict(include_inventory=True)
        data.update(stock_status_dict(p.inventory.current_stock, p.low_stock_threshold))
        items.append(data)
    return jsonify(items), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    from ..services.products_service import get_product

    product = get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict(include_inventory=True)), 200


@products_bp.post("")
def create_product_route():
    """
    Create a new product with its stock ledger.

    Body: name, casNumber, unit (KG|MT|LITRE), description?, categoryId?,
    lowStockThreshold? (default 10), initialStock? (default 0)
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    payload = dict(payload)

    try:
        initial_stock = parse_initial_stock(payload)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    from ..services.products_service import create_product

    try:
        created = create_product(patch=patch, initial_stock=initial_stock)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except IntegrityError:
        return jsonify({"error": "A record with this unique value already exists"}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageFailure:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Update catalog fields (partial). Stock cannot be changed here."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    from ..services.products_service import update_product

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except IntegrityError:
        return jsonify({"error": "A record with this unique value already exists"}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageFailure:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    if not updated:
        return jsonify({"error": "Product not found"}), 404

    return jsonify(updated), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product, its stock ledger row and its movement history."""
    from ..services.products_service import delete_product

    try:
        deleted = delete_product(product_id=product_id)
    except StorageFailure:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    if not deleted:
        return jsonify({"error": "Product not found"}), 404

    return jsonify({"ok": True}), 200
