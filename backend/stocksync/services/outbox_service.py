# Overview: Service-layer operations for the outbox queue of pending mutation actions.
"""
Outbox Queue

Append-only durable log of local mutations awaiting delivery to the remote.

Delivery contract:
- list_pending() returns unsynced entries ordered by (timestamp ASC, id ASC).
  The Reconciler delivers in exactly that order, one at a time.
- mark_synced() is the only mutation of an existing entry; it is idempotent
  and ignores unknown ids.
- prune_synced() only ever removes entries already marked synced.

The queue does not interpret payloads, deduplicate by entity, or coalesce
actions against the same entity.
"""
from __future__ import annotations

from typing import Callable

from ..models import ActionType, PendingAction, QueuedAction
from ..time_utils import epoch_millis
from ..validation import ValidationError
from .table_store import Subscription, TableStore

DELIVERY_ORDER = (PendingAction.timestamp.asc(), PendingAction.id.asc())


class OutboxQueue:
    def __init__(self, store: TableStore, *, clock: Callable[[], int] = epoch_millis):
        self._store = store
        self._clock = clock

    def enqueue(self, action_type, entity_id: str, payload: str, *, timestamp: int | None = None) -> QueuedAction:
        """Append a new unsynced action. The id is assigned by the store."""
        try:
            action_type = ActionType(action_type)
        except ValueError:
            raise ValidationError(f"Unknown action type: {action_type}")
        if not entity_id:
            raise ValidationError("entity_id is required")
        if not isinstance(payload, str):
            raise ValidationError("payload must be a serialized string")

        row = PendingAction(
            action_type=action_type.value,
            entity_id=str(entity_id),
            payload=payload,
            timestamp=self._clock() if timestamp is None else int(timestamp),
            synced=False,
        )
        return self._store.atomic(lambda _s: self._store.insert(row).snapshot())

    def list_pending(self, limit: int | None = None) -> list[QueuedAction]:
        rows = self._store.select(
            PendingAction,
            PendingAction.synced == False,
            order_by=DELIVERY_ORDER,
            limit=limit,
        )
        return [row.snapshot() for row in rows]

    def count_pending(self) -> int:
        return self._store.count(PendingAction, PendingAction.synced == False)

    def get(self, action_id: int) -> QueuedAction | None:
        row = self._store.get(PendingAction, action_id)
        return row.snapshot() if row is not None else None

    def pending_entity_ids(self) -> set[str]:
        return {a.entity_id for a in self.list_pending()}

    def mark_synced(self, action_id: int) -> bool:
        """Returns True if this call flipped the flag; repeats and unknown ids are no-ops."""
        return bool(self._store.atomic(
            lambda _s: self._store.update_columns(
                PendingAction,
                PendingAction.id == action_id,
                PendingAction.synced == False,
                values={PendingAction.synced: True},
            )
        ))

    def prune_synced(self) -> int:
        return self._store.atomic(
            lambda _s: self._store.delete_where(PendingAction, PendingAction.synced == True)
        )

    def wipe_all(self) -> int:
        """Drop every entry, synced or not. Full local reset only."""
        return self._store.atomic(lambda _s: self._store.delete_where(PendingAction))

    def observe_pending(self, callback: Callable[[list[QueuedAction]], None], *, emit_initial: bool = True) -> Subscription:
        return self._store.subscribe(PendingAction, self.list_pending, callback, emit_initial=emit_initial)
