# Overview: Flask API route for the activity history feed.

from flask import Blueprint, request, current_app

from ..container import get_components

activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.get("")
def recent_activity():
    """
    Most recent activity entries, newest first.

    Query params:
    - limit: int (optional) - defaults to ACTIVITY_DEFAULT_LIMIT, capped at ACTIVITY_MAX_LIMIT
    """
    limit = request.args.get("limit", type=int)
    if limit is None:
        limit = current_app.config.get("ACTIVITY_DEFAULT_LIMIT", 50)
    if limit < 0:
        return {"error": "limit must be >= 0"}, 400

    entries = get_components().activity.recent(limit)
    return {"entries": [e.to_dict() for e in entries], "count": len(entries)}
