# Overview: Flask API routes for the branch cash journal.

from datetime import date

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..models.cash import VALID_MOVEMENT_TYPES, VALID_CATEGORIES, VALID_PAYMENT_METHODS
from ..services import cash_service
from ..services.access_service import effective_branch_id, single_branch_id
from ..decorators import require_actor, require_role
from ..errors import LedgerError, ValidationError
from ..validation import (
    parse_amount,
    parse_choice,
    parse_optional_datetime,
    parse_optional_str,
    require_fields,
)


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


def _range_args():
    return (
        parse_optional_datetime(request.args.get("start"), "start"),
        parse_optional_datetime(request.args.get("end"), "end"),
    )


@cash_bp.get("/movements")
@require_actor
def list_movements_route():
    """
    Movements in [start, end).

    Query params: branch_id (admins; "all" for every branch), start, end (ISO-8601)
    """
    try:
        branch_id = effective_branch_id(g.actor, request.args.get("branch_id"))
        start, end = _range_args()
        movements = cash_service.find_by_branch(branch_id, start, end)
        return jsonify({"movements": [m.to_dict() for m in movements], "count": len(movements)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list cash movements")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@cash_bp.post("/movements")
@require_actor
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_movement_route():
    """
    Register a manual movement (operating expense, cash adjustment).

    Request body:
    {
        "type": "INCOME" | "EXPENSE",
        "category": str,
        "amount": int (minor units, > 0),
        "description": str,
        "payment_method": str (optional),
        "reference": str (optional),
        "notes": str (optional),
        "branch_id": str (admins only, optional)
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "type", "category", "amount", "description")
        movement = cash_service.register_manual_movement(
            branch_id=single_branch_id(g.actor, data.get("branch_id")),
            type=parse_choice(data["type"], "type", VALID_MOVEMENT_TYPES),
            category=parse_choice(data["category"], "category", VALID_CATEGORIES),
            amount=parse_amount(data["amount"], "amount", allow_zero=False),
            description=str(data["description"]),
            payment_method=parse_choice(data.get("payment_method"), "payment_method", VALID_PAYMENT_METHODS),
            reference=parse_optional_str(data.get("reference")),
            notes=parse_optional_str(data.get("notes"), max_length=2000),
            actor=g.actor,
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register cash movement")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@cash_bp.get("/balance")
@require_actor
def balance_route():
    try:
        branch_id = effective_branch_id(g.actor, request.args.get("branch_id"))
        start, end = _range_args()
        income, expenses = cash_service.get_totals(branch_id, start, end)
        return jsonify({
            "branch_id": branch_id,
            "income": income,
            "expenses": expenses,
            "balance": income - expenses,
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute cash balance")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@cash_bp.get("/daily")
@require_actor
def daily_balance_route():
    """Query params: branch_id, date (YYYY-MM-DD, business calendar; default today)."""
    try:
        branch_id = effective_branch_id(g.actor, request.args.get("branch_id"))
        raw_date = request.args.get("date")
        try:
            day = date.fromisoformat(raw_date) if raw_date else None
        except ValueError:
            raise ValidationError("date must be formatted as YYYY-MM-DD")
        return jsonify(cash_service.get_daily_balance(branch_id, day)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute daily balance")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@cash_bp.get("/summary")
@require_actor
def summary_route():
    try:
        branch_id = effective_branch_id(g.actor, request.args.get("branch_id"))
        start, end = _range_args()
        return jsonify({
            "branch_id": branch_id,
            "categories": cash_service.get_summary_by_category(branch_id, start, end),
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to summarize cash movements")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500
