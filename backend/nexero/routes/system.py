# Overview: Flask API routes for system health checks.

import time

from flask import Blueprint, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


@system_bp.get("/health")
def health_route():
    """Liveness plus a database round trip."""
    start_time = time.time()
    try:
        db.session.execute(db.text("SELECT 1"))
        database = {"status": "healthy", "response_time_ms": round((time.time() - start_time) * 1000, 2)}
        status_code = 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Health check database probe failed")
        database = {"status": "unhealthy", "error": str(exc)}
        status_code = 503

    return jsonify({
        "status": "ok" if status_code == 200 else "degraded",
        "database": database,
        "timestamp": to_utc_z(utcnow()),
    }), status_code
