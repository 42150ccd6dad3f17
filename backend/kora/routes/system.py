# Overview: Flask API route for the system health check.
"""
System health endpoint.

Checks database connectivity and the mail sender configuration so a
deployment can be smoke-tested without a session.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Boss, Company
from kora.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        company_count = db.session.query(Company).count()
        boss_count = db.session.query(Boss).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "companies": company_count,
                "bosses": boss_count,
            },
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_mail_health() -> dict:
    backend = current_app.config.get("MAIL_BACKEND", "log")
    if "kora_mail" not in current_app.extensions:
        return {"status": "unhealthy", "error": "Mail sender not initialised"}
    if backend == "smtp" and not current_app.config.get("MAIL_SERVER"):
        return {"status": "degraded", "warning": "MAIL_SERVER is not set", "backend": backend}
    return {"status": "healthy", "backend": backend}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable or mail sender missing
    """
    start_time = time.time()

    database_health = check_database_health()
    mail_health = check_mail_health()

    all_checks = [database_health, mail_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "mail": mail_health,
        },
    }
    return response, http_status
