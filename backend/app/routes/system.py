# backend/app/routes/system.py
"""
System health and version endpoints.

Health checks cover the database, the session table and the invoice
sequence so a deployment can be smoke-tested without credentials.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import DocumentSequence, Product, SessionToken, User
from ..services.document_service import INVOICE_DOCUMENT_TYPE
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _timed(check):
    """Run check() and wrap its details with status and latency."""
    start_time = time.time()
    try:
        details = check()
        status = "healthy"
        error = None
    except Exception:
        current_app.logger.exception("Health check %s failed", check.__name__)
        details = None
        status = "unhealthy"
        error = "Check failed"

    result = {"status": status, "latency_ms": round((time.time() - start_time) * 1000, 2)}
    if details is not None:
        result["details"] = details
    if error:
        result["error"] = error
    return result


def check_database_health() -> dict:
    return {
        "users": db.session.query(User).count(),
        "products": db.session.query(Product).count(),
    }


def check_session_service_health() -> dict:
    now = utcnow()
    return {
        "active_sessions": db.session.query(SessionToken).filter_by(is_revoked=False).count(),
        "expired_pending_cleanup": db.session.query(SessionToken).filter(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(False),
        ).count(),
    }


def check_invoice_sequence_health() -> dict:
    next_number = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=INVOICE_DOCUMENT_TYPE)
        .scalar()
    )
    return {"next_invoice_number": next_number or 1}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    checks = {
        "database": _timed(check_database_health),
        "session_service": _timed(check_session_service_health),
        "invoice_sequence": _timed(check_invoice_sequence_health),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }
    return response, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
