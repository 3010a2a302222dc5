# Overview: Flask API routes for cached inventory items; parses input and returns JSON responses.

# backend/stocksync/routes/items.py
"""
Inventory item routes.

Every mutating route is one gesture: it updates the local cache, queues an
outbox action for the remote and appends an activity entry, atomically.
Nothing here waits for the network; the reconciler delivers later.

ACTOR: mutating routes require X-Actor-Id (see @require_actor).

Reads:
- GET /api/items hides tombstoned items; GET /api/items/<id> does not.
"""
from flask import Blueprint, request, g

from ..container import get_components
from ..errors import NotFound
from ..models import Item
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_item,
    enforce_rules_quantity,
    ValidationError,
    ConflictError,
)
from ..decorators import require_actor

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "id", "name", "category", "category_id", "details", "photo_url",
        "buying_price", "selling_price", "quantity", "low_stock_threshold",
    },
    required_on_create={"name"},
)

ITEM_PATCH_POLICY = ModelValidationPolicy(
    writable_fields=ITEM_POLICY.writable_fields - {"id"},
)

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


def _truthy(value) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@items_bp.get("")
def list_items():
    """
    List active (non-deleted) items, newest first.

    Query params:
    - q: str (optional) - case-insensitive match on name or category
    - low_stock: bool (optional) - only items at or below their threshold
    """
    cache = get_components().cache
    q = request.args.get("q")
    if _truthy(request.args.get("low_stock")):
        items = cache.items.list_low_stock()
    elif q:
        items = cache.items.search(q)
    else:
        items = cache.items.list_active()
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@items_bp.get("/summary")
def items_summary():
    """Stock totals over active items (units, cost value, retail value, low stock count)."""
    return get_components().cache.items.summary()


@items_bp.get("/<item_id>")
def get_item(item_id: str):
    """Single item by id, including tombstoned items, with its recent history."""
    components = get_components()
    try:
        item = components.cache.items.require(item_id)
    except NotFound:
        return {"error": "Item not found"}, 404

    result = item.to_dict()
    result["history"] = [e.to_dict() for e in components.activity.for_entity(item_id, limit=20)]
    return result


@items_bp.post("")
@require_actor
def create_item_route():
    """Create an item. The id is generated unless the client supplies one."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
        enforce_rules_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = get_components().inventory.add_item(actor=g.actor, data=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return created, 201


@items_bp.patch("/<item_id>")
@require_actor
def update_item_route(item_id: str):
    """Edit item fields. Tombstone and audit fields are not writable here."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Item, payload=payload, policy=ITEM_PATCH_POLICY, partial=True)
        enforce_rules_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    if not patch:
        return {"error": "No fields to update"}, 400

    try:
        updated = get_components().inventory.update_item(actor=g.actor, item_id=item_id, changes=patch)
    except NotFound:
        return {"error": "Item not found"}, 404
    except ValueError as e:
        return {"error": str(e)}, 400

    return updated, 200


@items_bp.post("/<item_id>/quantity")
@require_actor
def change_quantity_route(item_id: str):
    """
    Stock count gesture.

    Body: {"quantity": N} for an absolute count, or {"delta": +/-N} for a
    restock or sale. Results below zero clamp to zero.
    """
    payload = request.get_json(silent=True)

    try:
        value = enforce_rules_quantity(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    inventory = get_components().inventory
    try:
        if "quantity" in payload:
            result = inventory.set_quantity(actor=g.actor, item_id=item_id, quantity=value)
        else:
            result = inventory.change_quantity(actor=g.actor, item_id=item_id, delta=value)
    except NotFound:
        return {"error": "Item not found"}, 404

    return result, 200


@items_bp.delete("/<item_id>")
@require_actor
def delete_item_route(item_id: str):
    """Soft delete. Repeating the call keeps the first deletion's timestamp and actor."""
    try:
        deleted = get_components().inventory.delete_item(actor=g.actor, item_id=item_id)
    except NotFound:
        return {"error": "Item not found"}, 404

    return deleted, 200


@items_bp.post("/<item_id>/restore")
@require_actor
def restore_item_route(item_id: str):
    try:
        restored = get_components().inventory.restore_item(actor=g.actor, item_id=item_id)
    except NotFound:
        return {"error": "Item not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return restored, 200
