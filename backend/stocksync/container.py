# Overview: Wires the sync core components once per app and exposes them to routes and CLI.
"""
Component container

One TableStore over the Flask-SQLAlchemy scoped session is shared by the
entity cache, outbox, activity log and reconciler, so a gesture that touches
all of them commits as one transaction and live queries see every change.

Usage:
    components = get_components()
    components.inventory.add_item(actor=..., data=...)
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .extensions import db
from .services.activity_service import ActivityLogService
from .services.entity_cache import EntityCache
from .services.inventory_service import InventoryService
from .services.outbox_service import OutboxQueue
from .services.reconciler import Reconciler, SyncPolicy
from .services.remote_client import RemoteBackend, build_remote_backend
from .services.scheduler import SyncScheduler
from .services.table_store import TableStore

EXTENSION_KEY = "stocksync"


@dataclass
class Components:
    store: TableStore
    cache: EntityCache
    outbox: OutboxQueue
    activity: ActivityLogService
    remote: RemoteBackend
    reconciler: Reconciler
    inventory: InventoryService
    scheduler: SyncScheduler


def build_components(app, *, remote: RemoteBackend | None = None) -> Components:
    config = app.config
    store = TableStore(
        db.session,
        retry_attempts=int(config.get("STORE_RETRY_ATTEMPTS", 3)),
        retry_backoff=float(config.get("STORE_RETRY_BACKOFF", 0.1)),
    )
    cache = EntityCache(store)
    outbox = OutboxQueue(store)
    activity = ActivityLogService(store, max_limit=int(config.get("ACTIVITY_MAX_LIMIT", 500)))
    remote = remote if remote is not None else build_remote_backend(config)
    reconciler = Reconciler(
        store=store,
        cache=cache,
        outbox=outbox,
        activity=activity,
        remote=remote,
        policy=SyncPolicy.from_config(config),
    )
    inventory = InventoryService(store=store, cache=cache, outbox=outbox, activity=activity)
    scheduler = SyncScheduler(app, reconciler, interval=float(config.get("SYNC_INTERVAL_SECONDS", 300)))
    return Components(
        store=store,
        cache=cache,
        outbox=outbox,
        activity=activity,
        remote=remote,
        reconciler=reconciler,
        inventory=inventory,
        scheduler=scheduler,
    )


def get_components(app=None) -> Components:
    app = app or current_app
    return app.extensions[EXTENSION_KEY]
