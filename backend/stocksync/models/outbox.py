from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z


class ActionType(str, Enum):
    """Closed set of mutations a device can queue for the remote."""
    ADD_ITEM = "ADD_ITEM"
    UPDATE_ITEM = "UPDATE_ITEM"
    DELETE_ITEM = "DELETE_ITEM"
    UPDATE_QUANTITY = "UPDATE_QUANTITY"
    ADD_CATEGORY = "ADD_CATEGORY"


class PendingAction(db.Model):
    """
    Outbox entry: a durable, ordered record of a local mutation awaiting delivery.

    IMMUTABLE: only `synced` ever changes after insert.
    ORDERING: delivery order is (timestamp ASC, id ASC).
    IDS: AUTOINCREMENT, so ids are never reused after pruning or a wipe.
    entity_id is a weak reference (no foreign key) to the cached entity.
    """
    __tablename__ = "pending_actions"
    __table_args__ = (
        db.Index("ix_pending_actions_delivery", "synced", "timestamp", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    action_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False, index=True)

    # Serialized by the business layer; never interpreted here
    payload = db.Column(db.Text, nullable=False)

    # Epoch milliseconds on the device clock
    timestamp = db.Column(db.BigInteger, nullable=False)
    synced = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<PendingAction id={self.id} type={self.action_type} entity={self.entity_id!r} synced={self.synced}>"

    def snapshot(self) -> "QueuedAction":
        return QueuedAction(
            id=self.id,
            action_type=ActionType(self.action_type),
            entity_id=self.entity_id,
            payload=self.payload,
            timestamp=self.timestamp,
            synced=self.synced,
        )


@dataclass(frozen=True)
class QueuedAction:
    """Detached, read-only view of a PendingAction, safe to hold across network calls."""
    id: int
    action_type: ActionType
    entity_id: str
    payload: str
    timestamp: int
    synced: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.action_type.value,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "synced": self.synced,
        }


class SyncCursor(db.Model):
    """Last pull position per entity type, as handed back by the remote."""
    __tablename__ = "sync_cursors"

    entity_type = db.Column(db.String(32), primary_key=True)
    cursor = db.Column(db.String(255), nullable=True)
    pulled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "cursor": self.cursor,
            "pulled_at": to_utc_z(self.pulled_at),
        }
