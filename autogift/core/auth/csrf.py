"""CSRF guard for mutating JSON routes.

Tokens are minted per browser session and echoed back in ``X-CSRF-Token``.
The check is skipped when ``WTF_CSRF_ENABLED`` is off (testing).
"""

from __future__ import annotations

import secrets
from functools import wraps
from typing import Callable, TypeVar

from flask import current_app, jsonify, request, session

CSRF_TOKEN_SESSION_KEY = "_csrf_token"
CSRF_HEADER = "X-CSRF-Token"

F = TypeVar("F", bound=Callable)


def issue_csrf_token() -> str:
    token = session.get(CSRF_TOKEN_SESSION_KEY)
    if not token:
        token = secrets.token_hex(32)
        session[CSRF_TOKEN_SESSION_KEY] = token
    return token


def csrf_protected(fn: F) -> F:
    """Reject the request with 403 unless the header matches the session token."""

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[misc]
        if not current_app.config.get("WTF_CSRF_ENABLED", True):
            return fn(*args, **kwargs)
        supplied = request.headers.get(CSRF_HEADER) or ""
        expected = session.get(CSRF_TOKEN_SESSION_KEY) or ""
        if not supplied or not secrets.compare_digest(supplied, expected):
            return jsonify({"ok": False, "error": "csrf_failed"}), 403
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
