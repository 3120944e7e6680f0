# Overview: Request decorators for API routes.

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify, g


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as forwarded by the upstream auth layer."""
    id: int
    role: str | None = None


def _read_principal() -> Principal | None:
    raw_id = request.headers.get("X-User-Id", "").strip()
    if not raw_id.isdigit():
        return None
    role = request.headers.get("X-User-Role", "").strip() or None
    return Principal(id=int(raw_id), role=role)


def require_principal(f):
    """
    Require an authenticated principal.

    Authentication happens upstream (gateway/session layer), which forwards
    the caller as X-User-Id / X-User-Role headers. Sets g.principal.
    Role gating is the upstream layer's job; the id is only used for
    created_by / approved_by / performed_by.

    Returns 401 if the principal header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = _read_principal()
        if principal is None:
            return jsonify({"error": "Authentication required"}), 401
        g.principal = principal
        return f(*args, **kwargs)

    return decorated_function
