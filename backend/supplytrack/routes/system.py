# backend/supplytrack/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "error": "database unavailable"}


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    ok = database["status"] == "healthy"
    return {
        "status": "ok" if ok else "degraded",
        "checked_at": to_utc_z(utcnow()),
        "database": database,
    }, 200 if ok else 503
