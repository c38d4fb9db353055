# backend/erp/routes/system.py
"""
System health endpoint.

Reports database connectivity plus a ledger snapshot: open receivables and
payables, transfers in transit, and any stock row that went negative.
"""

import time
from flask import Blueprint, jsonify, current_app
from sqlalchemy import func, text

from ..extensions import db
from ..models import Branch, CreditAccount, Stock, Transfer, User
from ..models.credit import ACCOUNT_TYPE_CPP, ACCOUNT_TYPE_CXC, STATUS_PAID
from ..models.documents import TRANSFER_STATUS_IN_TRANSIT
from erp.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        branch_count = db.session.query(Branch).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "branches": branch_count,
                "users": user_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def _open_balance(account_type: str) -> int:
    return db.session.query(func.coalesce(func.sum(CreditAccount.balance_amount), 0)).filter(
        CreditAccount.type == account_type,
        CreditAccount.status != STATUS_PAID,
    ).scalar()


def check_ledger_health() -> dict:
    """Ledger snapshot; a negative stock row marks the check degraded."""
    try:
        negative_rows = db.session.query(Stock).filter(Stock.quantity < 0).count()
        return {
            "status": "healthy" if negative_rows == 0 else "degraded",
            "details": {
                "open_receivables": _open_balance(ACCOUNT_TYPE_CXC),
                "open_payables": _open_balance(ACCOUNT_TYPE_CPP),
                "transfers_in_transit": db.session.query(Transfer).filter_by(
                    status=TRANSFER_STATUS_IN_TRANSIT
                ).count(),
                "negative_stock_rows": negative_rows,
            }
        }
    except Exception:
        current_app.logger.exception("Ledger health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Ledger query failed"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    checks = {"database": database}
    if database["status"] == "healthy":
        checks["ledger"] = check_ledger_health()

    healthy = all(check["status"] != "unhealthy" for check in checks.values())
    if not healthy:
        overall = "unhealthy"
    elif any(check["status"] == "degraded" for check in checks.values()):
        overall = "degraded"
    else:
        overall = "healthy"

    return jsonify({
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "business_timezone": current_app.config["BUSINESS_TIMEZONE"],
        "checks": checks,
    }), 200 if healthy else 503
