# Overview: Request context decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

STORE_HEADER = "X-Store-Id"
USER_HEADER = "X-User-Id"


def _header_int(name: str) -> int | None:
    raw = (request.headers.get(name) or "").strip()
    # ASCII digits only
    if not (raw.isascii() and raw.isdigit()) or int(raw) < 1:
        return None
    return int(raw)


def require_store_context(f):
    """
    Establish tenant context from the upstream auth layer.

    Authentication happens before requests reach this service; the gateway
    forwards the resolved identity as headers. Sets:
    - g.store_id: the store (tenant) every query is scoped to - REQUIRED
    - g.user_id: the acting user (cashier) - REQUIRED

    Returns 401 when either header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        store_id = _header_int(STORE_HEADER)
        user_id = _header_int(USER_HEADER)

        if store_id is None or user_id is None:
            return jsonify({"error": "Missing tenant context"}), 401

        g.store_id = store_id
        g.user_id = user_id

        return f(*args, **kwargs)

    return decorated_function
