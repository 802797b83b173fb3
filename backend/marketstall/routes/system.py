# backend/marketstall/routes/system.py
"""
Liveness endpoint for the stall backend.

Probes the ledger database and reports how many completed sales are
still waiting for a settlement run.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import SaleRecord, SessionToken, User
from ..services.ledger_service import live_sales
from marketstall.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_ledger() -> dict:
    started = time.perf_counter()
    try:
        details = {
            "active_users": db.session.query(User).filter(User.is_active.is_(True)).count(),
            "open_sessions": db.session.query(SessionToken).filter(
                SessionToken.is_revoked.is_(False),
                SessionToken.expires_at > utcnow(),
            ).count(),
            "pending_purchases": live_sales().filter(SaleRecord.sold_at.is_(None)).count(),
            "unprocessed_sales": live_sales().filter(
                SaleRecord.processed.is_(False),
                SaleRecord.sold_at.isnot(None),
            ).count(),
        }
        status = "healthy"
    except Exception:
        current_app.logger.exception("Ledger database check failed")
        db.session.rollback()
        details, status = None, "unhealthy"

    result = {"status": status, "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
    if details is None:
        result["error"] = "Database error"
    else:
        result["details"] = details
    return result


@system_bp.get("/health")
def health():
    """200 while the database answers, 503 otherwise."""
    database = check_ledger()
    body = {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, 200 if database["status"] == "healthy" else 503
