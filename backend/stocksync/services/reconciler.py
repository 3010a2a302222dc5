# Overview: Push/pull reconciliation between the local store and the remote source of truth.
"""
Reconciler

One sync cycle:

    Idle -> Pushing -> Pulling -> Idle
               |          |
               +----------+--> BackoffWait -> (retry whole cycle)

Pushing
    Reads list_pending() once, before any network I/O, and delivers each
    action in order. An ack marks the action synced immediately. A transient
    failure on action k leaves k..n pending and moves to BackoffWait; 1..k-1
    stay synced. A rejection is resolved by the reject policy and halts the
    push for this cycle; the cycle then continues to Pulling.

Pulling
    For each entity type, fetches rows since the stored cursor and upserts
    them into the entity cache. Rows whose id still has an unsynced outbox
    action are skipped: the local copy stays authoritative until its pending
    actions are delivered. Rows that do not coerce to a cache entity are
    logged, counted in rows_invalid and skipped; the cursor still advances.

Concurrency
    At most one cycle runs at a time. A trigger that arrives while a cycle is
    in flight returns immediately with coalesced=True. cancel() stops a cycle
    between actions or during BackoffWait.

Failures
    Remote TransientIO is absorbed: the cycle ends unsuccessful and the next
    trigger retries. Local TransientIO that outlasts the attempt budget is
    raised as Fatal. Fatal from the store propagates immediately.
"""
from __future__ import annotations

import json
import logging
import random
import threading
from dataclasses import dataclass, field
from decimal import InvalidOperation
from enum import Enum
from typing import Any

from ..errors import Fatal, RemoteRejected, TransientIO
from ..models import QueuedAction, SyncCursor
from ..time_utils import utcnow
from .activity_service import SYNC_ACTOR, SYNC_REJECTED, ActivityLogService
from .entity_cache import EntityCache
from .outbox_service import OutboxQueue
from .remote_client import PushOutcome, PushResult, RemoteBackend
from .table_store import TableStore

logger = logging.getLogger(__name__)

REJECT_DROP = "drop"
REJECT_HOLD = "hold"


class SyncState(str, Enum):
    IDLE = "idle"
    PUSHING = "pushing"
    PULLING = "pulling"
    BACKOFF_WAIT = "backoff_wait"


@dataclass(frozen=True)
class SyncPolicy:
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 60.0
    reject_policy: str = REJECT_DROP
    prune_after_push: bool = True
    entity_types: tuple[str, ...] = ("items", "categories", "profiles")

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.reject_policy not in (REJECT_DROP, REJECT_HOLD):
            raise ValueError(f"reject_policy must be '{REJECT_DROP}' or '{REJECT_HOLD}'")

    @classmethod
    def from_config(cls, config) -> "SyncPolicy":
        return cls(
            max_attempts=int(config.get("SYNC_MAX_ATTEMPTS", 3)),
            backoff_base=float(config.get("SYNC_BACKOFF_BASE", 1.0)),
            backoff_max=float(config.get("SYNC_BACKOFF_MAX", 60.0)),
            reject_policy=config.get("SYNC_REJECT_POLICY", REJECT_DROP),
            prune_after_push=bool(config.get("SYNC_PRUNE_AFTER_PUSH", True)),
        )


@dataclass
class SyncResult:
    trigger: str
    success: bool = False
    coalesced: bool = False
    cancelled: bool = False
    attempts: int = 0
    actions_synced: int = 0
    rows_pulled: int = 0
    rows_invalid: int = 0
    pruned: int = 0
    rejected: list[dict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    started_at: Any = None
    finished_at: Any = None

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "success": self.success,
            "coalesced": self.coalesced,
            "cancelled": self.cancelled,
            "attempts": self.attempts,
            "actions_synced": self.actions_synced,
            "rows_pulled": self.rows_pulled,
            "rows_invalid": self.rows_invalid,
            "pruned": self.pruned,
            "rejected": list(self.rejected),
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat() + "Z" if self.started_at else None,
            "finished_at": self.finished_at.isoformat() + "Z" if self.finished_at else None,
        }


class PullCursors:
    """Per-entity-type pull positions."""

    def __init__(self, store: TableStore):
        self._store = store

    def get(self, entity_type: str) -> str | None:
        row = self._store.get(SyncCursor, entity_type)
        return row.cursor if row is not None else None

    def save(self, entity_type: str, cursor: str | None) -> None:
        row = SyncCursor(entity_type=entity_type, cursor=cursor, pulled_at=utcnow())
        self._store.atomic(lambda _s: self._store.merge_all([row]))

    def all(self) -> list[SyncCursor]:
        return self._store.select(SyncCursor, order_by=(SyncCursor.entity_type.asc(),))

    def reset(self) -> int:
        return self._store.atomic(lambda _s: self._store.delete_where(SyncCursor))


class Reconciler:
    def __init__(
        self,
        *,
        store: TableStore,
        cache: EntityCache,
        outbox: OutboxQueue,
        activity: ActivityLogService,
        remote: RemoteBackend,
        policy: SyncPolicy | None = None,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._cache = cache
        self._outbox = outbox
        self._activity = activity
        self._remote = remote
        self._policy = policy or SyncPolicy()
        self._rng = rng or random.Random()
        self._cursors = PullCursors(store)

        self._cycle_lock = threading.Lock()
        self._cancel = threading.Event()
        self._state = SyncState.IDLE
        self.last_result: SyncResult | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def policy(self) -> SyncPolicy:
        return self._policy

    @property
    def cursors(self) -> PullCursors:
        return self._cursors

    @property
    def busy(self) -> bool:
        return self._cycle_lock.locked()

    def cancel(self) -> None:
        """Stop the in-flight cycle at the next action boundary or backoff wait."""
        self._cancel.set()

    def reset_cursors(self) -> int:
        return self._cursors.reset()

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with equal jitter, bounded by backoff_max."""
        ceiling = min(self._policy.backoff_max, self._policy.backoff_base * (2 ** attempt))
        half = ceiling / 2.0
        return half + self._rng.uniform(0, half)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self, trigger: str = "manual", *, stop_event: threading.Event | None = None) -> SyncResult:
        """
        Run one cycle. stop_event is an owner's shutdown flag: if it is set
        when the cycle starts, the cycle is cancelled before any network I/O.
        """
        result = SyncResult(trigger=trigger, started_at=utcnow())
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("sync trigger %r coalesced into the cycle in flight", trigger)
            result.coalesced = True
            result.finished_at = utcnow()
            return result

        self._cancel.clear()
        if stop_event is not None and stop_event.is_set():
            self._cancel.set()
        logger.info("sync cycle started (trigger=%s)", trigger)
        try:
            self._run(result)
        finally:
            result.finished_at = utcnow()
            self._state = SyncState.IDLE
            self.last_result = result
            self._cycle_lock.release()

        logger.info(
            "sync cycle finished (trigger=%s success=%s pushed=%d pulled=%d rejected=%d attempts=%d)",
            trigger, result.success, result.actions_synced, result.rows_pulled,
            len(result.rejected), result.attempts,
        )
        return result

    def _run(self, result: SyncResult) -> None:
        last_error: TransientIO | None = None
        for attempt in range(self._policy.max_attempts):
            if self._cancel.is_set():
                result.cancelled = True
                return
            result.attempts = attempt + 1
            try:
                self._state = SyncState.PUSHING
                pushed_all = self._push(result)
                if result.cancelled:
                    return

                self._state = SyncState.PULLING
                self._pull(result)

                if self._policy.prune_after_push:
                    result.pruned = self._outbox.prune_synced()

                result.success = pushed_all
                return
            except TransientIO as exc:
                last_error = exc
                result.errors.append(str(exc))
                if attempt + 1 >= self._policy.max_attempts:
                    break
                delay = self.backoff_delay(attempt)
                logger.warning("sync attempt %d failed (%s); backing off %.2fs", attempt + 1, exc, delay)
                self._state = SyncState.BACKOFF_WAIT
                if self._cancel.wait(delay):
                    result.cancelled = True
                    return

        if last_error is not None and last_error.source == "local":
            raise Fatal("local store unavailable beyond the retry budget") from last_error
        logger.warning("sync cycle gave up for this trigger after %d attempts", result.attempts)

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def _deliver(self, action: QueuedAction) -> PushResult:
        try:
            outcome = self._remote.push_action(action)
        except RemoteRejected as exc:
            return PushResult.reject(exc.reason)
        if outcome.outcome is PushOutcome.UNREACHABLE:
            raise TransientIO(outcome.reason or f"remote unreachable while pushing action {action.id}", source="remote")
        return outcome

    def _push(self, result: SyncResult) -> bool:
        """Deliver pending actions in order. Returns False if the push halted early."""
        pending = self._outbox.list_pending()
        for action in pending:
            if self._cancel.is_set():
                result.cancelled = True
                return False

            outcome = self._deliver(action)
            if outcome.outcome is PushOutcome.ACK:
                self._outbox.mark_synced(action.id)
                result.actions_synced += 1
                continue

            self._handle_rejection(action, outcome.reason, result)
            return False
        return True

    def _handle_rejection(self, action: QueuedAction, reason: str | None, result: SyncResult) -> None:
        rejection = RemoteRejected(action.id, reason)
        result.rejected.append({
            "action_id": action.id,
            "type": action.action_type.value,
            "entity_id": action.entity_id,
            "reason": reason,
            "policy": self._policy.reject_policy,
        })
        result.errors.append(str(rejection))

        if self._policy.reject_policy == REJECT_HOLD:
            logger.warning("%s; holding it pending (queue blocked)", rejection)
            return

        logger.warning("%s; marking it synced and surfacing to the activity log", rejection)
        with self._store.transaction():
            self._outbox.mark_synced(action.id)
            self._activity.append(
                actor=SYNC_ACTOR,
                action=SYNC_REJECTED,
                entity_type=_entity_type_for(action),
                entity_id=action.entity_id,
                entity_name=self._entity_name_for(action),
                details=f"{action.action_type.value} was rejected by the server: {reason or 'no reason given'}",
            )

    def _entity_name_for(self, action: QueuedAction) -> str:
        try:
            data = json.loads(action.payload)
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("name"):
            return str(data["name"])
        table = self._cache.categories if _entity_type_for(action) == "category" else self._cache.items
        cached = table.get_by_id(action.entity_id)
        if cached is not None:
            return cached.name
        return action.entity_id

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def _pull(self, result: SyncResult) -> None:
        for entity_type in self._policy.entity_types:
            cursor = self._cursors.get(entity_type)
            rows, new_cursor = self._remote.pull_snapshot(entity_type, cursor)

            table = self._cache.table(entity_type)
            # re-read per entity type: gestures may have queued new actions meanwhile
            pending_ids = self._outbox.pending_entity_ids()
            fresh = []
            kept = 0
            for row in rows:
                row_id = _row_id(row)
                if row_id is not None and row_id in pending_ids:
                    kept += 1
                    continue
                try:
                    fresh.append(table.coerce(row))
                except (TypeError, ValueError, InvalidOperation) as exc:
                    logger.warning("pull %s: skipping invalid row %s: %s", entity_type, row_id, exc)
                    result.errors.append(f"pull {entity_type}: invalid row {row_id}: {exc}")
                    result.rows_invalid += 1
            if kept:
                logger.debug("pull %s: kept %d locally pending rows", entity_type, kept)

            with self._store.transaction():
                table.upsert_batch(fresh)
                self._cursors.save(entity_type, new_cursor)
            result.rows_pulled += len(fresh)


def _row_id(row) -> str | None:
    if isinstance(row, dict) and row.get("id") is not None:
        return str(row["id"])
    return None


def _entity_type_for(action: QueuedAction) -> str:
    return "category" if action.action_type.value.endswith("CATEGORY") else "item"
