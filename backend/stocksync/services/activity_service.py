# Overview: Service-layer operations for the activity log audit trail.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable

from ..models import ActivityLog
from ..time_utils import epoch_millis
from ..validation import ValidationError
from .table_store import Subscription, TableStore

# Action labels written by the business layer and the reconciler
CREATE = "CREATE"
UPDATE = "UPDATE"
UPDATE_QUANTITY = "UPDATE_QUANTITY"
DELETE = "DELETE"
RESTORE = "RESTORE"
SYNC_REJECTED = "SYNC_REJECTED"


@dataclass(frozen=True)
class Actor:
    user_id: str
    display_name: str


SYNC_ACTOR = Actor(user_id="system:sync", display_name="Sync")


class ActivityLogService:
    """
    Append-only audit trail for the history UI.

    Not tied to sync state: entries are never queued for the remote and stay
    visible whether or not the action they describe has been delivered.
    """

    def __init__(self, store: TableStore, *, clock: Callable[[], int] = epoch_millis, max_limit: int = 500):
        self._store = store
        self._clock = clock
        self._max_limit = max_limit

    def append(
        self,
        *,
        actor: Actor,
        action: str,
        entity_id: str,
        entity_name: str,
        entity_type: str = "item",
        details: str | None = None,
        entry_id: str | None = None,
        timestamp: int | None = None,
    ) -> ActivityLog:
        required = {
            "user_id": getattr(actor, "user_id", None),
            "username": getattr(actor, "display_name", None),
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_name": entity_name,
        }
        missing = [k for k, v in required.items() if v is None or str(v).strip() == ""]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        entry = ActivityLog(
            id=entry_id or str(uuid.uuid4()),
            user_id=str(actor.user_id),
            username=str(actor.display_name),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            entity_name=str(entity_name),
            timestamp=self._clock() if timestamp is None else int(timestamp),
            details=details,
        )

        def _insert(_s):
            entry.seq = self._store.max_of(ActivityLog.seq) + 1
            return self._store.insert(entry)

        return self._store.atomic(_insert)

    def _clamp(self, limit: int) -> int:
        return max(0, min(int(limit), self._max_limit))

    def recent(self, limit: int = 50) -> list[ActivityLog]:
        """Up to `limit` entries, newest first."""
        limit = self._clamp(limit)
        if limit == 0:
            return []
        return self._store.select(
            ActivityLog,
            order_by=(ActivityLog.timestamp.desc(), ActivityLog.seq.desc()),
            limit=limit,
        )

    def for_entity(self, entity_id: str, limit: int = 50, *, entity_type: str = "item") -> list[ActivityLog]:
        limit = self._clamp(limit)
        if limit == 0:
            return []
        return self._store.select(
            ActivityLog,
            ActivityLog.entity_type == entity_type,
            ActivityLog.entity_id == entity_id,
            order_by=(ActivityLog.timestamp.desc(), ActivityLog.seq.desc()),
            limit=limit,
        )

    def observe_recent(self, limit: int, callback: Callable[[list[ActivityLog]], None], *, emit_initial: bool = True) -> Subscription:
        return self._store.subscribe(ActivityLog, lambda: self.recent(limit), callback, emit_initial=emit_initial)

    def wipe_all(self) -> int:
        return self._store.atomic(lambda _s: self._store.delete_where(ActivityLog))
