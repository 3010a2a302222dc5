# Overview: Error taxonomy shared by the cache, outbox and reconciler.
"""
Failure classes surfaced by the local sync core.

- NotFound: targeted update on an id that is not cached.
- TransientIO: store or network temporarily unavailable; safe to retry.
  `source` is "local" (embedded store) or "remote" (sync backend).
- RemoteRejected: the remote refused an action on business rules; never retried.
- Fatal: the local store is unusable beyond the retry budget; always propagated.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for sync core failures."""


class NotFound(SyncError, LookupError):
    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id!r} not found")
        self.entity = entity
        self.entity_id = entity_id


class TransientIO(SyncError):
    def __init__(self, message: str, *, source: str = "remote"):
        super().__init__(message)
        self.source = source


class RemoteRejected(SyncError):
    def __init__(self, action_id: int, reason: str | None = None):
        super().__init__(f"remote rejected action {action_id}: {reason or 'no reason given'}")
        self.action_id = action_id
        self.reason = reason


class Fatal(SyncError):
    """Local store corruption or unavailability that retries cannot fix."""
