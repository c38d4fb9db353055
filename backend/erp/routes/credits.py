# Overview: Flask API routes for receivable/payable accounts and their payments.

from flask import Blueprint, request, jsonify, g, current_app

from ..models import CreditAccount
from ..models.cash import VALID_PAYMENT_METHODS, PAYMENT_CASH
from ..models.credit import VALID_ACCOUNT_TYPES, VALID_ACCOUNT_STATUSES
from ..services import credit_service
from ..services.access_service import effective_branch_id, require_branch_access
from ..decorators import require_actor
from ..errors import LedgerError, ValidationError
from ..validation import (
    parse_amount,
    parse_choice,
    parse_optional_datetime,
    parse_optional_str,
    require_fields,
)


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


def _visible_account(account_id: str) -> CreditAccount:
    account = credit_service.get_account(account_id)
    require_branch_access(g.actor, account.branch_id, "Credit account", account_id)
    return account


@credits_bp.get("")
@require_actor
def list_accounts_route():
    """Query params: branch_id, type (CXC|CPP), status."""
    try:
        accounts = credit_service.find_by_branch(
            effective_branch_id(g.actor, request.args.get("branch_id")),
            type=parse_choice(request.args.get("type"), "type", VALID_ACCOUNT_TYPES),
            status=parse_choice(request.args.get("status"), "status", VALID_ACCOUNT_STATUSES),
        )
        return jsonify({"accounts": [a.to_dict() for a in accounts], "count": len(accounts)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list credit accounts")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@credits_bp.get("/<account_id>")
@require_actor
def get_account_route(account_id: str):
    try:
        return jsonify({"account": _visible_account(account_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load credit account")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@credits_bp.patch("/<account_id>")
@require_actor
def update_account_route(account_id: str):
    """Only due_date and invoice_number can change."""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        _visible_account(account_id)

        changes = {}
        for field in data:
            if field == "due_date":
                due_date = parse_optional_datetime(data[field], "due_date")
                if due_date is None:
                    raise ValidationError("due_date cannot be empty")
                changes["due_date"] = due_date
            elif field == "invoice_number":
                changes["invoice_number"] = parse_optional_str(data[field], max_length=64)
            else:
                changes[field] = data[field]

        account = credit_service.update_account(account_id, **changes)
        return jsonify({"account": account.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update credit account")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@credits_bp.delete("/<account_id>")
@require_actor
def cancel_account_route(account_id: str):
    try:
        _visible_account(account_id)
        credit_service.cancel_account(account_id, g.actor)
        return jsonify({"deleted": True, "id": account_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel credit account")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@credits_bp.post("/<account_id>/payments")
@require_actor
def register_payment_route(account_id: str):
    """
    Register a payment.

    Request body:
    {
        "amount": int (minor units, > 0),
        "payment_method": "CASH" | "TRANSFER" | "CHECK" (optional),
        "reference": str (optional),
        "notes": str (optional)
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "amount")
        _visible_account(account_id)
        payment = credit_service.register_payment(
            account_id,
            amount=parse_amount(data["amount"], "amount", allow_zero=False),
            payment_method=parse_choice(data.get("payment_method"), "payment_method", VALID_PAYMENT_METHODS, PAYMENT_CASH),
            reference=parse_optional_str(data.get("reference")),
            notes=parse_optional_str(data.get("notes"), max_length=2000),
            actor=g.actor,
        )
        account = credit_service.get_account(account_id)
        return jsonify({"payment": payment.to_dict(), "account": account.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register credit payment")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@credits_bp.get("/<account_id>/payments")
@require_actor
def payment_history_route(account_id: str):
    try:
        _visible_account(account_id)
        payments = credit_service.get_payment_history(account_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment history")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500
