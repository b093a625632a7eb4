# backend/phoneshop/routes/system.py
"""
System health and version endpoints.

Both are public (see ROUTE_REQUIREMENTS) so load balancers and deployment
scripts can call them without a token.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, SessionToken
from phoneshop.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a couple of cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= utcnow(),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        }
    }

    return response, 200 if healthy else 503


@system_bp.get("/api/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": current_app.config.get("APP_VERSION", "0.1.0"),
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
