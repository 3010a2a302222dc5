"""
Pytest fixtures for stocksync backend tests.

Provides the test app on in-memory SQLite, a per-test table wipe, freshly
wired sync core components with deterministic clocks, and a scriptable
fake remote backend.
"""

import itertools
import random

import pytest

from stocksync import create_app
from stocksync.container import get_components
from stocksync.extensions import db
from stocksync.services.activity_service import ActivityLogService, Actor
from stocksync.services.entity_cache import EntityCache
from stocksync.services.inventory_service import InventoryService
from stocksync.services.outbox_service import OutboxQueue
from stocksync.services.reconciler import Reconciler, SyncPolicy
from stocksync.services.remote_client import PushResult
from stocksync.services.table_store import TableStore


class FakeRemote:
    """
    In-memory RemoteBackend.

    push_action() consumes `script` in order; each entry is a PushResult to
    return or an exception to raise. An empty script acks. pull_snapshot()
    serves `snapshots[entity_type]` and hands back `cursors[entity_type]`.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.script = []
        self.calls = []
        self.delivered = []
        self.snapshots = {}
        self.cursors = {}
        self.pull_calls = []
        self.pull_error = None
        self.on_push = None

    def push_action(self, action):
        self.calls.append(action)
        if self.on_push is not None:
            self.on_push(action)
        outcome = self.script.pop(0) if self.script else PushResult.ack()
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome.outcome.value == "ack":
            self.delivered.append(action)
        return outcome

    def pull_snapshot(self, entity_type, cursor):
        self.pull_calls.append((entity_type, cursor))
        if self.pull_error is not None:
            raise self.pull_error
        rows = [dict(r) if isinstance(r, dict) else r for r in self.snapshots.get(entity_type, [])]
        return rows, self.cursors.get(entity_type, cursor)


class StepClock:
    """Strictly increasing epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self._counter = itertools.count(start, step)

    def __call__(self) -> int:
        return next(self._counter)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_REMOTE_BACKEND': FakeRemote(),
        'SYNC_MAX_ATTEMPTS': 2,
        'SYNC_BACKOFF_BASE': 0.0,
        'SYNC_BACKOFF_MAX': 0.0,
        'STORE_RETRY_BACKOFF': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def app_remote(app, db_session):
    """The FakeRemote wired into the app's own components, reset per test."""
    remote = get_components(app).remote
    remote.reset()
    return remote


@pytest.fixture(scope='function')
def store(db_session):
    return TableStore(db_session, retry_attempts=3, retry_backoff=0.0)


@pytest.fixture(scope='function')
def cache(store):
    return EntityCache(store)


@pytest.fixture(scope='function')
def outbox(store):
    return OutboxQueue(store, clock=StepClock())


@pytest.fixture(scope='function')
def activity(store):
    return ActivityLogService(store, clock=StepClock(), max_limit=500)


@pytest.fixture(scope='function')
def inventory(store, cache, outbox, activity):
    return InventoryService(store=store, cache=cache, outbox=outbox, activity=activity)


@pytest.fixture(scope='function')
def remote():
    return FakeRemote()


@pytest.fixture(scope='function')
def make_reconciler(store, cache, outbox, activity, remote):
    """Factory so a test can pick its own SyncPolicy."""
    def _make(**policy_overrides):
        policy_args = {"max_attempts": 1, "backoff_base": 0.0, "backoff_max": 0.0}
        policy_args.update(policy_overrides)
        return Reconciler(
            store=store,
            cache=cache,
            outbox=outbox,
            activity=activity,
            remote=remote,
            policy=SyncPolicy(**policy_args),
            rng=random.Random(7),
        )
    return _make


@pytest.fixture(scope='function')
def reconciler(make_reconciler):
    return make_reconciler()


@pytest.fixture
def alice():
    return Actor(user_id="user-alice", display_name="alice")


def item_row(item_id: str, name: str, **overrides) -> dict:
    """A remote-shaped item row with every column present."""
    row = {
        "id": item_id,
        "name": name,
        "category": "General",
        "category_id": None,
        "details": None,
        "photo_url": None,
        "buying_price": 1.5,
        "selling_price": 2.5,
        "quantity": 10,
        "low_stock_threshold": 5,
        "is_deleted": False,
        "created_by": "user-alice",
        "created_at": "2026-01-01T10:00:00Z",
        "updated_at": "2026-01-01T10:00:00Z",
        "deleted_at": None,
        "deleted_by": None,
    }
    row.update(overrides)
    return row


def actor_headers(user_id: str = "user-alice", name: str | None = "alice") -> dict:
    """Helper to create actor headers for mutating routes."""
    headers = {"X-Actor-Id": user_id}
    if name:
        headers["X-Actor-Name"] = name
    return headers
