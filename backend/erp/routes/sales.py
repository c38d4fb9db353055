# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..models.cash import VALID_PAYMENT_METHODS
from ..models.sales import SALE_TYPE_CASH, SALE_TYPE_CREDIT, SALE_STATUS_ACTIVE, SALE_STATUS_CANCELLED
from ..services import sales_service
from ..services.access_service import effective_branch_id, require_branch_access, single_branch_id
from ..decorators import require_actor
from ..errors import LedgerError
from ..validation import (
    parse_amount,
    parse_choice,
    parse_items,
    parse_optional_datetime,
    parse_optional_str,
    require_fields,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "type": "CASH" | "CREDIT",
        "customer_id": str (required for CREDIT),
        "payment_method": str (optional, CASH by default),
        "items": [{"product_id": str, "quantity": number, "unit_price": int,
                   "unit_conversion_id": str (optional)}],
        "tax": int (optional), "discount": int (optional), "notes": str (optional),
        "branch_id": str (admins only, optional)
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "items")
        sale = sales_service.create_sale(
            branch_id=single_branch_id(g.actor, data.get("branch_id")),
            items=parse_items(data["items"], price_field="unit_price"),
            type=parse_choice(data.get("type"), "type", [SALE_TYPE_CASH, SALE_TYPE_CREDIT], SALE_TYPE_CASH),
            customer_id=parse_optional_str(data.get("customer_id")),
            payment_method=parse_choice(data.get("payment_method"), "payment_method", VALID_PAYMENT_METHODS),
            tax=parse_amount(data.get("tax", 0), "tax"),
            discount=parse_amount(data.get("discount", 0), "discount"),
            notes=parse_optional_str(data.get("notes"), max_length=2000),
            actor=g.actor,
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@sales_bp.get("")
@require_actor
def list_sales_route():
    """Query params: branch_id, start, end, customer_id, status."""
    try:
        sales = sales_service.list_sales_by_branch(
            effective_branch_id(g.actor, request.args.get("branch_id")),
            start=parse_optional_datetime(request.args.get("start"), "start"),
            end=parse_optional_datetime(request.args.get("end"), "end"),
            customer_id=request.args.get("customer_id") or None,
            status=parse_choice(request.args.get("status"), "status", [SALE_STATUS_ACTIVE, SALE_STATUS_CANCELLED]),
        )
        return jsonify({"sales": [s.to_dict(include_items=False) for s in sales], "count": len(sales)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@sales_bp.get("/<sale_id>")
@require_actor
def get_sale_route(sale_id: str):
    try:
        sale = sales_service.get_sale(sale_id)
        require_branch_access(g.actor, sale.branch_id, "Sale", sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@sales_bp.post("/<sale_id>/cancel")
@require_actor
def cancel_sale_route(sale_id: str):
    """Cancel a sale made today; stock, cash and customer debt are restored."""
    try:
        sale = sales_service.get_sale(sale_id)
        require_branch_access(g.actor, sale.branch_id, "Sale", sale_id)
        sale = sales_service.cancel_sale(sale_id, g.actor)
        return jsonify({"sale": sale.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500
