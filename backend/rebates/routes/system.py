# backend/rebates/routes/system.py
"""
Health and version endpoints (unauthenticated).

/health answers 503 only when the database is unreachable. The settings check
is informational: unseeded keys fall back to catalog defaults.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Order, SystemSetting, User
from ..settings_catalog import CATALOG_BY_KEY
from rebates.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def check_database_health() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "users": db.session.query(User).count(),
            "orders": db.session.query(Order).count(),
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}
    return {"status": "healthy", "latency_ms": _elapsed_ms(started), "details": details}


def check_settings_health() -> dict:
    """Which catalog keys have a stored row; missing ones run on their defaults."""
    try:
        stored = {key for (key,) in db.session.query(SystemSetting.key)}
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Settings health check failed")
        return {"status": "unknown"}
    missing = sorted(set(CATALOG_BY_KEY) - stored)
    return {"status": "defaults" if missing else "stored", "missing_keys": missing}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    checks = {"database": database}
    if healthy:
        checks["settings"] = check_settings_health()

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    return {
        "name": "rebates",
        "version": current_app.config.get("APP_VERSION", "unknown"),
    }, 200
