# backend/stocksync/routes/system.py
"""
System health endpoint and store-failure error handlers.

Health reports local store reachability plus the sync queue depth so an
operator can tell "offline with a backlog" apart from "broken".
"""

import time
from flask import Blueprint, current_app

from ..container import get_components
from ..errors import Fatal, TransientIO
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check local store connectivity with one count per cached table.

    Returns dict with status and details.
    """
    start_time = time.time()
    components = get_components()
    try:
        details = {
            "items": components.cache.items.count(),
            "categories": components.cache.categories.count(),
            "profiles": components.cache.profiles.count(),
            "pending_actions": components.outbox.count_pending(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except (TransientIO, Fatal):
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_sync_health() -> dict:
    """Reconciler state and the outcome of the last finished cycle."""
    reconciler = get_components().reconciler
    last = reconciler.last_result
    status = "healthy"
    if last is not None and not last.success and not last.coalesced:
        # Offline is an expected state; the queue keeps the edits
        status = "degraded"
    return {
        "status": status,
        "state": reconciler.state.value,
        "last_success": last.success if last is not None else None,
        "last_finished_at": last.finished_at.isoformat() + "Z" if last is not None and last.finished_at else None,
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: local store reachable (sync may be degraded while offline)
    - 503: local store unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    sync_health = check_sync_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif sync_health["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "sync": sync_health,
        },
    }

    return response, http_status


@system_bp.app_errorhandler(TransientIO)
def handle_transient_io(e):
    current_app.logger.warning("Local store temporarily unavailable: %s", e)
    return {"error": "Local store busy, try again"}, 503


@system_bp.app_errorhandler(Fatal)
def handle_fatal(e):
    current_app.logger.exception("Local store failure")
    return {"error": "Local store failure"}, 503
