"""
JSON endpoints of the stand-in target.

Endpoints:
    GET  /api/health        - Health check
    POST /api/auth/login    - Exchange login/password for an access token
    GET  /api/auth/profile  - Profile of the authenticated operator
    GET  /api/calls         - Paginated call log
    GET  /api/orders        - Paginated orders
    GET  /api/employees     - Paginated operators
    GET  /api/stats/my      - Call/order counts of the caller for a date range

Every endpoint except health and login requires a bearer token. When
``TARGET_LATENCY_MS`` is set, each protected endpoint sleeps that long
before answering, which gives load runs a predictable service time.
"""

import logging
import os
import time
from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import func, select

from target_app import db
from target_app.auth import create_token, require_auth
from target_app.models import Call, Operator, Order

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

MAX_PAGE_SIZE = 100


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _simulate_latency() -> None:
    latency_ms = float(current_app.config.get("TARGET_LATENCY_MS", 0) or 0)
    if latency_ms > 0:
        time.sleep(latency_ms / 1000)


def _pagination() -> tuple[int, int]:
    """Read ``page``/``limit`` query args, clamped to sane bounds."""
    page = max(request.args.get("page", 1, type=int) or 1, 1)
    limit = request.args.get("limit", 20, type=int) or 20
    return page, min(max(limit, 1), MAX_PAGE_SIZE)


def _parse_date(value: str | None) -> datetime | None:
    """Parse an ISO date, returning ``None`` for absent or invalid input."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _paginated(model, order_column) -> tuple[Response, int]:
    _simulate_latency()
    page, limit = _pagination()
    total = db.session.scalar(select(func.count()).select_from(model))
    rows = db.session.scalars(
        select(model).order_by(order_column.desc()).limit(limit).offset((page - 1) * limit)
    ).all()
    return jsonify({
        "data": [row.to_dict() for row in rows],
        "pagination": {"page": page, "limit": limit, "total": total},
    }), 200


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@api_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return jsonify({
        "status": "healthy",
        "service": "target",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
    }), 200


@api_bp.route("/auth/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Authenticate an operator.

    Request Body (JSON):
        login: Operator login (required)
        password: Operator password (required)

    Returns:
        200 with ``accessToken`` and the operator profile, 400 when fields
        are missing, 401 on bad credentials.
    """
    data = request.get_json(silent=True) or {}
    login_name = data.get("login")
    password = data.get("password")
    if not isinstance(login_name, str) or not login_name.strip() or not isinstance(password, str):
        return jsonify({"error": "'login' and 'password' are required"}), 400

    operator = db.session.scalar(select(Operator).where(Operator.login == login_name.strip()))
    if operator is None or not operator.check_password(password):
        logger.warning("Rejected login for %s", login_name)
        return jsonify({"error": "Invalid credentials"}), 401

    token = create_token(
        operator.id,
        operator.login,
        current_app.config["SECRET_KEY"],
        current_app.config["TARGET_TOKEN_EXPIRY_HOURS"],
    )
    return jsonify({"accessToken": token, "user": operator.to_dict()}), 200


@api_bp.route("/auth/profile", methods=["GET"])
@require_auth
def profile() -> tuple[Response, int]:
    """Return the authenticated operator."""
    _simulate_latency()
    operator = db.session.get(Operator, g.operator_id)
    if operator is None:
        return jsonify({"error": "Operator not found"}), 404
    return jsonify(operator.to_dict()), 200


@api_bp.route("/calls", methods=["GET"])
@require_auth
def list_calls() -> tuple[Response, int]:
    """Paginated call log, newest first."""
    return _paginated(Call, Call.date_create)


@api_bp.route("/orders", methods=["GET"])
@require_auth
def list_orders() -> tuple[Response, int]:
    """Paginated orders, newest first."""
    return _paginated(Order, Order.create_date)


@api_bp.route("/employees", methods=["GET"])
@require_auth
def list_employees() -> tuple[Response, int]:
    """Paginated operators."""
    return _paginated(Operator, Operator.id)


@api_bp.route("/stats/my", methods=["GET"])
@require_auth
def my_stats() -> tuple[Response, int]:
    """
    Call counts per status and the order count of the caller.

    Query Parameters:
        startDate: Inclusive lower bound (ISO date, optional)
        endDate: Inclusive upper bound (ISO date, optional)
    """
    _simulate_latency()
    start = _parse_date(request.args.get("startDate"))
    end = _parse_date(request.args.get("endDate"))

    calls_stmt = (
        select(Call.status, func.count(Call.id))
        .where(Call.operator_id == g.operator_id)
        .group_by(Call.status)
    )
    orders_stmt = select(func.count(Order.id)).where(Order.operator_id == g.operator_id)
    if start is not None:
        calls_stmt = calls_stmt.where(Call.date_create >= start)
        orders_stmt = orders_stmt.where(Order.create_date >= start)
    if end is not None:
        calls_stmt = calls_stmt.where(Call.date_create <= end)
        orders_stmt = orders_stmt.where(Order.create_date <= end)

    calls_by_status = {status: count for status, count in db.session.execute(calls_stmt)}
    return jsonify({
        "operatorId": g.operator_id,
        "calls": calls_by_status,
        "totalCalls": sum(calls_by_status.values()),
        "totalOrders": db.session.scalar(orders_stmt),
    }), 200


# -----------------------------------------------------------------------------
# Error Handlers
# -----------------------------------------------------------------------------

@api_bp.errorhandler(404)
def not_found(error: Exception) -> tuple[Response, int]:
    """Handle 404 Not Found errors."""
    return jsonify({"error": "Resource not found"}), 404


@api_bp.errorhandler(500)
def internal_error(error: Exception) -> tuple[Response, int]:
    """Handle 500 Internal Server errors."""
    logger.error("Internal server error: %s", error)
    return jsonify({"error": "Internal server error"}), 500
