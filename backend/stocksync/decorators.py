# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .container import get_components

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_NAME_HEADER = "X-Actor-Name"


def require_actor(f):
    """
    Resolve the acting user for a mutating route.

    Sign-in happens outside this service; the caller forwards the signed-in
    user's id (and optionally a display name) in headers. Sets:
    - g.actor: Actor(user_id, display_name) recorded in the activity log

    The display name falls back to the cached profile, then "Unknown".
    Returns 401 when the actor id header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        if not user_id:
            return jsonify({"error": "Actor required"}), 401

        display_name = (request.headers.get(ACTOR_NAME_HEADER) or "").strip() or None
        g.actor = get_components().inventory.actor_for(user_id, display_name)

        return f(*args, **kwargs)

    return decorated_function
