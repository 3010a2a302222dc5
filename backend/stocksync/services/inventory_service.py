# Overview: Business-layer gestures; each one mutates the cache, queues an outbox action and logs activity atomically.
"""
Inventory gestures

Every public method here is one user gesture and commits as one transaction:

    entity cache mutation + outbox enqueue + activity log append

so a crash or a store failure never leaves a cached edit without its pending
action (or the reverse). The payload serialized into the outbox is JSON with
the remote's snake_case column names.
"""
from __future__ import annotations

import json
import uuid

from ..models import ActionType, Category, Item
from ..time_utils import to_utc_z, utcnow
from ..validation import ConflictError, ValidationError
from . import activity_service as activity_actions
from .activity_service import Actor, ActivityLogService
from .entity_cache import EntityCache
from .outbox_service import OutboxQueue
from .table_store import TableStore

UNKNOWN_NAME = "Unknown"

# Fields a local edit may change; audit and tombstone fields are managed here
ITEM_EDITABLE_FIELDS = {
    "name", "category", "category_id", "details", "photo_url",
    "buying_price", "selling_price", "quantity", "low_stock_threshold",
}


def _json(data: dict) -> str:
    return json.dumps(data, sort_keys=True, default=str)


class InventoryService:
    def __init__(
        self,
        *,
        store: TableStore,
        cache: EntityCache,
        outbox: OutboxQueue,
        activity: ActivityLogService,
    ):
        self._store = store
        self._cache = cache
        self._outbox = outbox
        self._activity = activity

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------

    def actor_for(self, user_id: str, display_name: str | None = None) -> Actor:
        """Display name: explicit, else cached profile username, else email, else Unknown."""
        if display_name:
            return Actor(user_id=user_id, display_name=display_name)
        profile = self._cache.profiles.get_by_id(user_id)
        if profile is not None and profile.display_name:
            return Actor(user_id=user_id, display_name=profile.display_name)
        return Actor(user_id=user_id, display_name=UNKNOWN_NAME)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, *, actor: Actor, data: dict) -> dict:
        now = to_utc_z(utcnow())
        row = {k: v for k, v in data.items() if k in ITEM_EDITABLE_FIELDS or k == "id"}
        row.setdefault("id", str(uuid.uuid4()))
        row["quantity"] = max(0, int(row.get("quantity") or 0))
        row.update({
            "is_deleted": False,
            "created_by": actor.user_id,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
            "deleted_by": None,
        })
        try:
            item = Item.from_dict(row)
        except ValueError as e:
            raise ValidationError(str(e))

        with self._store.transaction():
            if self._cache.items.get_by_id(item.id) is not None:
                raise ConflictError(f"Item {item.id} already exists")
            saved = self._cache.items.upsert(item)
            payload = saved.to_dict()
            self._outbox.enqueue(ActionType.ADD_ITEM, saved.id, _json(payload))
            self._activity.append(
                actor=actor,
                action=activity_actions.CREATE,
                entity_id=saved.id,
                entity_name=saved.name,
                details=f"Added new item: {saved.name}",
            )
        return payload

    def update_item(self, *, actor: Actor, item_id: str, changes: dict) -> dict:
        unknown = set(changes) - ITEM_EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

        with self._store.transaction():
            current = self._cache.items.require(item_id)
            row = current.to_dict()
            row.update(changes)
            row["updated_at"] = to_utc_z(utcnow())
            if "quantity" in changes:
                row["quantity"] = max(0, int(row["quantity"] or 0))
            try:
                replacement = Item.from_dict(row)
            except ValueError as e:
                raise ValidationError(str(e))

            saved = self._cache.items.upsert(replacement)
            payload = saved.to_dict()
            self._outbox.enqueue(ActionType.UPDATE_ITEM, saved.id, _json(payload))
            self._activity.append(
                actor=actor,
                action=activity_actions.UPDATE,
                entity_id=saved.id,
                entity_name=saved.name,
                details=f"Updated item: {saved.name}",
            )
        return payload

    def set_quantity(self, *, actor: Actor, item_id: str, quantity: int) -> dict:
        """Absolute stock count; negative results from racing decrements clamp to zero."""
        quantity = max(0, int(quantity))
        with self._store.transaction():
            item = self._cache.items.require(item_id)
            old_quantity = item.quantity
            name = item.name
            self._cache.items.adjust_quantity(item_id, quantity)
            self._outbox.enqueue(ActionType.UPDATE_QUANTITY, item_id, _json({"quantity": quantity}))

            if quantity >= old_quantity:
                change_text = f"Added {quantity - old_quantity} units"
            else:
                change_text = f"Removed {old_quantity - quantity} units"
            self._activity.append(
                actor=actor,
                action=activity_actions.UPDATE_QUANTITY,
                entity_id=item_id,
                entity_name=name,
                details=f"{change_text} (quantity changed from {old_quantity} to {quantity})",
            )
        return {"id": item_id, "quantity": quantity, "previous_quantity": old_quantity}

    def change_quantity(self, *, actor: Actor, item_id: str, delta: int) -> dict:
        """Relative stock change (restock or sale), read and written in one transaction."""
        with self._store.transaction():
            item = self._cache.items.require(item_id)
            return self.set_quantity(actor=actor, item_id=item_id, quantity=item.quantity + int(delta))

    def delete_item(self, *, actor: Actor, item_id: str) -> dict:
        """Tombstone an item. Deleting an already-deleted item changes nothing and queues nothing."""
        deleted_at = utcnow()
        with self._store.transaction():
            item = self._cache.items.require(item_id)
            name = item.name
            if not self._cache.items.soft_delete(item_id, deleted_at, actor.user_id):
                return self._cache.items.require(item_id).to_dict()

            self._outbox.enqueue(
                ActionType.DELETE_ITEM,
                item_id,
                _json({"is_deleted": True, "deleted_at": to_utc_z(deleted_at), "deleted_by": actor.user_id}),
            )
            self._activity.append(
                actor=actor,
                action=activity_actions.DELETE,
                entity_id=item_id,
                entity_name=name,
                details=f"Deleted item: {name}",
            )
            return self._cache.items.require(item_id).to_dict()

    def restore_item(self, *, actor: Actor, item_id: str) -> dict:
        """Undo a soft delete; queued as an item update clearing the tombstone."""
        with self._store.transaction():
            item = self._cache.items.require(item_id)
            name = item.name
            if not self._cache.items.restore(item_id):
                raise ConflictError(f"Item {item_id} is not deleted")

            self._outbox.enqueue(
                ActionType.UPDATE_ITEM,
                item_id,
                _json({"is_deleted": False, "deleted_at": None, "deleted_by": None}),
            )
            self._activity.append(
                actor=actor,
                action=activity_actions.RESTORE,
                entity_id=item_id,
                entity_name=name,
                details=f"Restored item: {name}",
            )
            return self._cache.items.require(item_id).to_dict()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def add_category(self, *, actor: Actor, name: str, category_id: str | None = None) -> dict:
        if name is not None and not isinstance(name, str):
            raise ValidationError("name must be a string")
        name = (name or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")

        category = Category(
            id=category_id or str(uuid.uuid4()),
            name=name,
            created_by=actor.user_id,
            created_at=utcnow(),
        )
        with self._store.transaction():
            if self._cache.categories.get_by_id(category.id) is not None:
                raise ConflictError(f"Category {category.id} already exists")
            saved = self._cache.categories.upsert(category)
            payload = saved.to_dict()
            self._outbox.enqueue(ActionType.ADD_CATEGORY, saved.id, _json(payload))
            self._activity.append(
                actor=actor,
                action=activity_actions.CREATE,
                entity_type="category",
                entity_id=saved.id,
                entity_name=saved.name,
                details=f"Added new category: {saved.name}",
            )
        return payload

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset_local_state(self, *, reconciler=None) -> dict:
        """
        Full local reset (logout): cached entities, outbox, activity log and pull
        cursors are hard-deleted in one transaction. Unsynced actions are lost.
        """
        with self._store.transaction():
            counts = self._cache.wipe_all()
            counts["pending_actions"] = self._outbox.wipe_all()
            counts["activity_logs"] = self._activity.wipe_all()
            if reconciler is not None:
                counts["sync_cursors"] = reconciler.reset_cursors()
        return counts
