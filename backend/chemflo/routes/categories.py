# Overview: Flask API routes for categories operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify
from flask import request
from sqlalchemy.exc import IntegrityError

from ..models import Category
from ..services import category_service
from ..services.concurrency import StorageFailure
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    ValidationError,
    ConflictError,
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "color"},
    required_on_create={"name"},
    min_lengths={"name": 2},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    """All categories ordered by name, each with its productCount."""
    return jsonify(category_service.list_categories()), 200


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    category = category_service.get_category(category_id)
    if category is None:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(category), 200


@categories_bp.post("")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        enforce_rules_category(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        created = category_service.create_category(patch=patch)
    except (ConflictError, IntegrityError):
        return jsonify({"error": category_service.NAME_CONFLICT_MESSAGE}), 409
    except StorageFailure:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created), 201


@categories_bp.put("/<int:category_id>")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        enforce_rules_category(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = category_service.update_category(category_id=category_id, patch=patch)
    except (ConflictError, IntegrityError):
        return jsonify({"error": category_service.NAME_CONFLICT_MESSAGE}), 409
    except StorageFailure:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(updated), 200


@categories_bp.delete("/<int:category_id>")
def delete_category_route(category_id: int):
    """Delete a category. Its products remain, with categoryId cleared."""
    try:
        deleted = category_service.delete_category(category_id=category_id)
    except StorageFailure:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500

    if not deleted:
        return jsonify({"error": "Category not found"}), 404
    return jsonify({"ok": True}), 200
