"""
Token issuing and verification for the stand-in target.

Tokens are HS256 JWTs signed with the app's ``SECRET_KEY``; the harness
only needs "obtain a bearer token, send it back", so a symmetric key is
enough here.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import Response, current_app, g, jsonify, request

ALGORITHM = "HS256"
REQUIRED_TOKEN_CLAIMS = ["operator_id", "login", "iat", "exp"]


def create_token(operator_id: int, login: str, secret_key: str, expiry_hours: int) -> str:
    """
    Create a signed JWT for an operator.

    Raises:
        ValueError: If *operator_id* is not positive or *login* is blank.
    """
    if int(operator_id) <= 0:
        raise ValueError("operator_id must be a positive integer")
    if not isinstance(login, str) or not login.strip():
        raise ValueError("login must be a non-empty string")

    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "operator_id": int(operator_id),
        "login": login,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=int(expiry_hours))).timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def verify_token(token: str, secret_key: str) -> dict[str, Any] | None:
    """Decode and validate a JWT, returning ``None`` when it is not acceptable."""
    try:
        decoded = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_TOKEN_CLAIMS},
        )
    except jwt.InvalidTokenError:
        return None

    operator_id = decoded.get("operator_id")
    if not isinstance(operator_id, int) or operator_id <= 0:
        return None
    return decoded


def require_auth(view_func: Callable[..., tuple[Response, int] | Response]):
    """
    Decorator that enforces Bearer-token authentication.

    On success the operator identity is stored on ``flask.g`` as
    ``g.operator_id`` and ``g.login``.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return jsonify({"error": "Missing or invalid Authorization header"}), 401

        token = auth_header[7:].strip()
        payload = verify_token(token, current_app.config["SECRET_KEY"]) if token else None
        if payload is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.operator_id = payload["operator_id"]
        g.login = payload["login"]
        return view_func(*args, **kwargs)

    return wrapper
