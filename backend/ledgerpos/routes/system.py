# backend/ledgerpos/routes/system.py
"""
System health and archive endpoints.
"""

import time
from flask import Blueprint, current_app, jsonify, request, g
from sqlalchemy import text

from ..decorators import require_actor
from ..extensions import db
from ..services import archive_service, authorization_service

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({"status": database["status"], "database": database}), status_code


@system_bp.get("/api/archive")
@require_actor
def list_archive_route():
    authorization_service.require_allowed(g.actor, "view_reports", resource=request.path)
    records = archive_service.list_archive(
        item_type=request.args.get("item_type"),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"archive": [r.to_dict() for r in records]}), 200
