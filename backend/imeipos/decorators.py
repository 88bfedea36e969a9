# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor-Id"
ACTOR_NAME_HEADER = "X-Actor-Name"


def require_actor(f):
    """
    Require an actor identity on the request.

    Authentication lives in front of this service; the gateway forwards the
    authenticated operator as an opaque id. Sets:
    - g.actor_id: stamped on every movement, order and return it produces
    - g.actor_name: optional display name (staff name on sales orders)

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor_id:
            return jsonify({"error": "Actor identity required", "code": "ACTOR_REQUIRED"}), 401

        g.actor_id = actor_id
        g.actor_name = (request.headers.get(ACTOR_NAME_HEADER) or "").strip() or None

        return f(*args, **kwargs)

    return decorated_function
