# Overview: Flask API routes for per-branch stock; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import Stock
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import stock_service
from ..services.access_service import require_branch_access, single_branch_id
from ..decorators import require_actor, require_role
from ..errors import LedgerError, NotFoundError
from ..validation import parse_stock_level, require_fields


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _load_stock(stock_id: str) -> Stock:
    stock = db.session.get(Stock, stock_id)
    if not stock:
        raise NotFoundError(f"Stock {stock_id} not found")
    require_branch_access(g.actor, stock.branch_id, "Stock", stock_id)
    return stock


@stock_bp.get("")
@require_actor
def list_stock_route():
    """Stock rows of one branch with their product."""
    try:
        branch_id = single_branch_id(g.actor, request.args.get("branch_id"))
        return jsonify({"branch_id": branch_id, "stock": stock_service.list_by_branch(branch_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@stock_bp.get("/alerts")
@require_actor
def low_stock_route():
    try:
        branch_id = single_branch_id(g.actor, request.args.get("branch_id"))
        alerts = stock_service.low_stock_alerts(branch_id)
        return jsonify({"branch_id": branch_id, "alerts": alerts, "count": len(alerts)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load low stock alerts")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@stock_bp.get("/summary")
@require_actor
def stock_summary_route():
    try:
        branch_id = single_branch_id(g.actor, request.args.get("branch_id"))
        return jsonify({
            "branch_id": branch_id,
            "total_units": stock_service.total_units(branch_id),
            "inventory_value": stock_service.inventory_value(branch_id),
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build stock summary")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@stock_bp.get("/product/<product_id>")
@require_actor
def product_stock_route(product_id: str):
    """Stock of one product; admins see every branch."""
    try:
        rows = stock_service.list_by_product(product_id)
        if not g.actor.is_admin:
            rows = [row for row in rows if row.branch_id == g.actor.branch_id]
        return jsonify({"product_id": product_id, "stock": [row.to_dict() for row in rows]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product stock")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@stock_bp.post("/<stock_id>/adjust")
@require_actor
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def adjust_stock_route(stock_id: str):
    """
    Set an absolute quantity.

    Request body:
    {
        "quantity": number (>= 0),
        "reason": str
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "reason")
        quantity = parse_stock_level(data.get("quantity"))
        _load_stock(stock_id)
        stock = stock_service.adjust_stock(stock_id, quantity, str(data["reason"]), g.actor)
        return jsonify({"stock": stock.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@stock_bp.get("/<stock_id>/adjustments")
@require_actor
def stock_adjustments_route(stock_id: str):
    try:
        _load_stock(stock_id)
        adjustments = stock_service.list_adjustments(stock_id)
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock adjustments")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500
