# Overview: Flask API routes for purchases; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..models.cash import VALID_PAYMENT_METHODS
from ..models.purchases import (
    PURCHASE_TYPE_CASH,
    PURCHASE_TYPE_CREDIT,
    PURCHASE_STATUS_COMPLETED,
    PURCHASE_STATUS_CANCELLED,
)
from ..services import purchase_service
from ..services.access_service import effective_branch_id, require_branch_access, single_branch_id
from ..decorators import require_actor
from ..errors import LedgerError, ValidationError
from ..validation import (
    parse_amount,
    parse_choice,
    parse_items,
    parse_optional_datetime,
    parse_optional_str,
    require_fields,
)


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_actor
def create_purchase_route():
    """
    Record a purchase.

    Request body:
    {
        "supplier_id": str,
        "type": "CASH" | "CREDIT",
        "items": [{"product_id": str, "quantity": number, "unit_cost": int}],
        "invoice_number": str (optional, generated when blank),
        "payment_method", "tax", "discount", "notes" (optional),
        "branch_id": str (admins only, optional)
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "supplier_id", "items")
        purchase = purchase_service.create_purchase(
            branch_id=single_branch_id(g.actor, data.get("branch_id")),
            supplier_id=str(data["supplier_id"]),
            items=parse_items(data["items"], price_field="unit_cost"),
            type=parse_choice(data.get("type"), "type", [PURCHASE_TYPE_CASH, PURCHASE_TYPE_CREDIT], PURCHASE_TYPE_CASH),
            payment_method=parse_choice(data.get("payment_method"), "payment_method", VALID_PAYMENT_METHODS),
            invoice_number=parse_optional_str(data.get("invoice_number"), max_length=64),
            tax=parse_amount(data.get("tax", 0), "tax"),
            discount=parse_amount(data.get("discount", 0), "discount"),
            notes=parse_optional_str(data.get("notes"), max_length=2000),
            actor=g.actor,
        )
        return jsonify({"purchase": purchase.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@purchases_bp.get("")
@require_actor
def list_purchases_route():
    """Query params: branch_id, start, end, supplier_id, status."""
    try:
        purchases = purchase_service.list_purchases_by_branch(
            effective_branch_id(g.actor, request.args.get("branch_id")),
            start=parse_optional_datetime(request.args.get("start"), "start"),
            end=parse_optional_datetime(request.args.get("end"), "end"),
            supplier_id=request.args.get("supplier_id") or None,
            status=parse_choice(
                request.args.get("status"), "status", [PURCHASE_STATUS_COMPLETED, PURCHASE_STATUS_CANCELLED],
            ),
        )
        return jsonify({"purchases": [p.to_dict(include_items=False) for p in purchases], "count": len(purchases)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@purchases_bp.get("/<purchase_id>")
@require_actor
def get_purchase_route(purchase_id: str):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        require_branch_access(g.actor, purchase.branch_id, "Purchase", purchase_id)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load purchase")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@purchases_bp.patch("/<purchase_id>")
@require_actor
def update_purchase_route(purchase_id: str):
    """Edit notes and/or invoice_number (first 7 days only)."""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            raise ValidationError("Request body must be a non-empty JSON object")
        purchase = purchase_service.get_purchase(purchase_id)
        require_branch_access(g.actor, purchase.branch_id, "Purchase", purchase_id)

        changes = dict(data)
        if "notes" in changes:
            changes["notes"] = parse_optional_str(changes["notes"], max_length=2000)
        if "invoice_number" in changes:
            changes["invoice_number"] = parse_optional_str(changes["invoice_number"], max_length=64)

        purchase = purchase_service.update_purchase(purchase_id, g.actor, **changes)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@purchases_bp.post("/<purchase_id>/cancel")
@require_actor
def cancel_purchase_route(purchase_id: str):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        require_branch_access(g.actor, purchase.branch_id, "Purchase", purchase_id)
        purchase = purchase_service.cancel_purchase(purchase_id, g.actor)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel purchase")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500
