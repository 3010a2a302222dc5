# Overview: Flask API routes for cached categories.

from flask import Blueprint, request, g

from ..container import get_components
from ..models import Category
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..decorators import require_actor

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"id", "name"},
    required_on_create={"name"},
)


@categories_bp.get("")
def list_categories():
    """All cached categories, ordered by name."""
    categories = get_components().cache.categories.list_active()
    return {"categories": [c.to_dict() for c in categories]}


@categories_bp.post("")
@require_actor
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = get_components().inventory.add_category(
            actor=g.actor,
            name=patch["name"],
            category_id=patch.get("id"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created, 201
