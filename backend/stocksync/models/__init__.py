from .catalog import Item, Category, Profile
from .outbox import ActionType, PendingAction, QueuedAction, SyncCursor
from .activity import ActivityLog

__all__ = [
    'Item', 'Category', 'Profile',
    'ActionType', 'PendingAction', 'QueuedAction', 'SyncCursor',
    'ActivityLog',
]
