# Overview: Flask API routes for inspecting and triggering reconciliation.

# backend/stocksync/routes/sync.py
"""
Sync routes.

POST /api/sync/run runs one cycle in the request thread and returns its
result. A run that lands while another cycle is in flight is coalesced and
answered with 409; the in-flight cycle covers it.

POST /api/sync/connectivity is the hook for the host's network monitor: it
wakes the background scheduler when running, otherwise it runs a cycle inline.
"""
from flask import Blueprint, current_app

from ..container import get_components
from ..errors import Fatal

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


def _run_cycle(trigger: str):
    try:
        result = get_components().reconciler.run_cycle(trigger=trigger)
    except Fatal:
        current_app.logger.exception("Sync cycle aborted")
        return {"error": "Local store failure"}, 503

    if result.coalesced:
        return {"error": "Sync already in progress", "result": result.to_dict()}, 409
    return result.to_dict(), 200


@sync_bp.get("/status")
def sync_status():
    components = get_components()
    reconciler = components.reconciler
    last = reconciler.last_result
    return {
        "state": reconciler.state.value,
        "busy": reconciler.busy,
        "pending": components.outbox.count_pending(),
        "reject_policy": reconciler.policy.reject_policy,
        "scheduler_running": components.scheduler.running,
        "cursors": {c.entity_type: c.cursor for c in reconciler.cursors.all()},
        "last_result": last.to_dict() if last is not None else None,
    }


@sync_bp.get("/pending")
def list_pending():
    """Unsynced outbox actions in delivery order."""
    pending = get_components().outbox.list_pending()
    return {"actions": [a.to_dict() for a in pending], "count": len(pending)}


@sync_bp.post("/run")
def run_sync():
    return _run_cycle("manual")


@sync_bp.post("/connectivity")
def connectivity_regained():
    scheduler = get_components().scheduler
    if scheduler.running:
        scheduler.notify_connectivity_regained()
        return {"ok": True, "scheduled": True}, 202
    return _run_cycle("connectivity")
