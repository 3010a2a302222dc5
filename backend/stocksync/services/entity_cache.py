# Overview: Service-layer operations for the local entity cache; authoritative local copies with tombstones.
"""
Entity Cache

Local copies of items, categories and profiles. Rows come from two writers:
local gestures (through InventoryService) and remote pulls (through the
Reconciler). Both use whole-row insert-or-replace, so the last writer for an
id wins; there is no partial-field merge here.

Invariants:
- Every mutating call runs in one atomic transaction (or joins the caller's).
- list_active() never returns a tombstoned item.
- get_by_id() does not filter tombstones.
- Items are never hard-deleted except by wipe_all().
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Iterable

from sqlalchemy import func, or_

from ..errors import NotFound
from ..models import Category, Item, Profile
from .table_store import Subscription, TableStore


class CachedTable:
    """Insert-or-replace cache over one table."""

    model: Any = None
    entity_name = "entity"

    def __init__(self, store: TableStore):
        self._store = store

    def coerce(self, row):
        """Row dict (or model instance) as a model instance; raises ValueError or TypeError on bad rows."""
        if isinstance(row, self.model):
            return row
        if not isinstance(row, dict):
            raise TypeError(f"{self.entity_name} rows must be dicts or {self.model.__name__} instances")
        return self.model.from_dict(row)

    def _active_criteria(self) -> tuple:
        return ()

    def _active_order(self) -> tuple:
        return ()

    def upsert(self, row):
        """Insert or wholly replace one row by primary key."""
        entity = self.coerce(row)
        return self._store.atomic(lambda _s: self._store.merge_all([entity])[0])

    def upsert_batch(self, rows: Iterable) -> int:
        entities = [self.coerce(r) for r in rows]
        if not entities:
            return 0
        self._store.atomic(lambda _s: self._store.merge_all(entities))
        return len(entities)

    def get_by_id(self, entity_id: str):
        """Row for entity_id or None. Tombstoned rows are returned as-is."""
        return self._store.get(self.model, entity_id)

    def require(self, entity_id: str):
        entity = self.get_by_id(entity_id)
        if entity is None:
            raise NotFound(self.entity_name, entity_id)
        return entity

    def list_active(self) -> list:
        return self._store.select(self.model, *self._active_criteria(), order_by=self._active_order())

    def observe_active(self, callback: Callable[[list], None], *, emit_initial: bool = True) -> Subscription:
        """Live view of list_active(); callback gets a fresh list after each committed change."""
        return self._store.subscribe(self.model, self.list_active, callback, emit_initial=emit_initial)

    def count(self) -> int:
        return self._store.count(self.model)

    def wipe_all(self) -> int:
        return self._store.atomic(lambda _s: self._store.delete_where(self.model))


class ItemCache(CachedTable):
    model = Item
    entity_name = "item"

    def _active_criteria(self) -> tuple:
        return (Item.is_deleted == False,)

    def _active_order(self) -> tuple:
        return (Item.created_at.desc(), Item.id.desc())

    def adjust_quantity(self, item_id: str, quantity: int) -> None:
        """Single-column quantity write; other fields are neither read nor written."""
        def _op(_session):
            updated = self._store.update_columns(Item, Item.id == item_id, values={Item.quantity: int(quantity)})
            if not updated:
                raise NotFound(self.entity_name, item_id)

        self._store.atomic(_op)

    def soft_delete(self, item_id: str, deleted_at, deleted_by: str | None) -> bool:
        """
        Tombstone an item.

        Idempotent: an already-deleted row keeps its first deleted_at/deleted_by.
        Returns True when this call set the tombstone, False when it was a no-op.
        Raises NotFound when the id is not cached.
        """
        def _op(_session):
            updated = self._store.update_columns(
                Item,
                Item.id == item_id,
                Item.is_deleted == False,
                values={
                    Item.is_deleted: True,
                    Item.deleted_at: deleted_at,
                    Item.deleted_by: deleted_by,
                },
            )
            if updated:
                return True
            if self._store.get(Item, item_id) is None:
                raise NotFound(self.entity_name, item_id)
            return False

        return self._store.atomic(_op)

    def restore(self, item_id: str) -> bool:
        """Clear the tombstone (undo). Returns False when the item was not deleted."""
        def _op(_session):
            updated = self._store.update_columns(
                Item,
                Item.id == item_id,
                Item.is_deleted == True,
                values={Item.is_deleted: False, Item.deleted_at: None, Item.deleted_by: None},
            )
            if updated:
                return True
            if self._store.get(Item, item_id) is None:
                raise NotFound(self.entity_name, item_id)
            return False

        return self._store.atomic(_op)

    def search(self, query: str) -> list[Item]:
        needle = (query or "").strip().lower()
        if not needle:
            return self.list_active()
        pattern = f"%{needle}%"
        return self._store.select(
            Item,
            Item.is_deleted == False,
            or_(func.lower(Item.name).like(pattern), func.lower(Item.category).like(pattern)),
            order_by=self._active_order(),
        )

    def list_low_stock(self) -> list[Item]:
        return self._store.select(
            Item,
            Item.is_deleted == False,
            Item.quantity <= Item.low_stock_threshold,
            order_by=(Item.quantity.asc(), Item.name.asc()),
        )

    def summary(self) -> dict:
        items = self.list_active()
        stock_value = sum((Decimal(i.buying_price or 0) * i.quantity for i in items), Decimal("0"))
        retail_value = sum((Decimal(i.selling_price or 0) * i.quantity for i in items), Decimal("0"))
        return {
            "item_count": len(items),
            "total_units": sum(i.quantity for i in items),
            "stock_value": float(stock_value),
            "retail_value": float(retail_value),
            "low_stock_count": sum(1 for i in items if i.is_low_stock),
        }


class CategoryCache(CachedTable):
    model = Category
    entity_name = "category"

    def _active_order(self) -> tuple:
        return (Category.name.asc(),)


class ProfileCache(CachedTable):
    model = Profile
    entity_name = "profile"


class EntityCache:
    """The three cached tables behind one store handle."""

    ENTITY_TYPES = ("items", "categories", "profiles")

    def __init__(self, store: TableStore):
        self._store = store
        self.items = ItemCache(store)
        self.categories = CategoryCache(store)
        self.profiles = ProfileCache(store)

    def table(self, entity_type: str) -> CachedTable:
        tables = {
            "items": self.items,
            "categories": self.categories,
            "profiles": self.profiles,
        }
        try:
            return tables[entity_type]
        except KeyError:
            raise ValueError(f"Unknown entity type: {entity_type}")

    def wipe_all(self) -> dict:
        """Hard-delete every cached row in one transaction. Full local reset only."""
        def _op(_session):
            return {name: self.table(name).wipe_all() for name in self.ENTITY_TYPES}

        return self._store.atomic(_op)
