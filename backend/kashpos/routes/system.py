# backend/kashpos/routes/system.py
"""
Health check and the lookup catalog the register screen needs.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Product, SaleLine
from ..services import settings_service
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with two cheap counts."""
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        line_count = db.session.query(SaleLine).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "sale_lines": line_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "time": to_utc_z(utcnow()),
        "timezone": current_app.config["BUSINESS_TIMEZONE"],
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503


@system_bp.get("/api/catalog")
def catalog():
    """Payment methods, customer types and whether order type is asked."""
    try:
        return jsonify(settings_service.catalog_payload()), 200
    except Exception:
        current_app.logger.exception("Failed to load catalog")
        return jsonify({"error": "Internal server error"}), 500
