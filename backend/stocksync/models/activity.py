from __future__ import annotations

from ..extensions import db


class ActivityLog(db.Model):
    """
    User-visible audit trail entry.

    IMMUTABLE: append-only, never updated. Independent of sync state: entries
    are local-only and are not queued for the remote.
    Ids are client-generated uuid4 strings so they stay unique across devices.
    ORDERING: newest first by (timestamp, seq). seq is a local, increasing
    insertion counter that orders entries written in the same millisecond.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_timestamp", "timestamp"),
        db.Index("ix_activity_logs_timestamp_seq", "timestamp", "seq"),
        db.Index("ix_activity_logs_entity", "entity_type", "entity_id"),
    )

    id = db.Column(db.String(36), primary_key=True)

    user_id = db.Column(db.String(64), nullable=False, index=True)
    username = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(32), nullable=False)  # CREATE, UPDATE, DELETE, UPDATE_QUANTITY, ...

    entity_type = db.Column(db.String(32), nullable=False, default="item")
    entity_id = db.Column(db.String(64), nullable=False)
    entity_name = db.Column(db.String(255), nullable=False)

    # Epoch milliseconds
    timestamp = db.Column(db.BigInteger, nullable=False)
    seq = db.Column(db.BigInteger, nullable=False, default=0)
    details = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ActivityLog id={self.id!r} action={self.action} entity={self.entity_type}:{self.entity_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "timestamp": self.timestamp,
            "details": self.details,
        }
