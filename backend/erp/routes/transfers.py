# backend/erp/routes/transfers.py
"""
Inter-branch transfer API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..models.documents import VALID_TRANSFER_STATUSES
from ..services import transfer_service
from ..services.access_service import effective_branch_id, require_branch_access
from ..decorators import require_actor
from ..errors import LedgerError
from ..validation import parse_choice, parse_items, parse_optional_str, require_fields


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


def _visible_transfer(transfer_id: str):
    transfer = transfer_service.get_transfer(transfer_id)
    if g.actor.belongs_to(transfer.to_branch_id):
        return transfer
    require_branch_access(g.actor, transfer.from_branch_id, "Transfer", transfer_id)
    return transfer


@transfers_bp.post("")
@require_actor
def create_transfer_route():
    """
    Create a transfer.

    Request body:
    {
        "from_branch_id": str,
        "to_branch_id": str,
        "items": [{"product_id": str, "quantity": number}],
        "notes": str (optional)
    }

    Returns:
        201: Transfer created (REQUESTED when the caller is the destination,
             PENDING otherwise)
        400: Invalid request
        403: Caller belongs to neither branch
        409: Not enough stock at the source
    """
    try:
        data = require_fields(request.get_json(silent=True), "from_branch_id", "to_branch_id", "items")
        transfer = transfer_service.create_transfer(
            from_branch_id=str(data["from_branch_id"]),
            to_branch_id=str(data["to_branch_id"]),
            items=parse_items(data["items"], price_field=None),
            notes=parse_optional_str(data.get("notes"), max_length=2000),
            actor=g.actor,
        )
        return jsonify({"transfer": transfer.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@transfers_bp.get("")
@require_actor
def list_transfers_route():
    """Query params: branch_id, status, direction (FROM|TO)."""
    try:
        transfers = transfer_service.list_transfers_by_branch(
            effective_branch_id(g.actor, request.args.get("branch_id")),
            status=parse_choice(request.args.get("status"), "status", VALID_TRANSFER_STATUSES),
            direction=parse_choice(
                request.args.get("direction"), "direction",
                [transfer_service.DIRECTION_FROM, transfer_service.DIRECTION_TO],
            ),
        )
        return jsonify({"transfers": [t.to_dict() for t in transfers], "count": len(transfers)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transfers")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@transfers_bp.get("/<transfer_id>")
@require_actor
def get_transfer_route(transfer_id: str):
    try:
        return jsonify({"transfer": _visible_transfer(transfer_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load transfer")
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


def _transition(transfer_id: str, action):
    try:
        _visible_transfer(transfer_id)
        transfer = action(transfer_id, g.actor)
        return jsonify({"transfer": transfer.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update transfer %s", transfer_id)
        return jsonify({"kind": "InternalError", "message": "Internal server error", "details": {}}), 500


@transfers_bp.post("/<transfer_id>/accept")
@require_actor
def accept_transfer_route(transfer_id: str):
    return _transition(transfer_id, transfer_service.accept_transfer)


@transfers_bp.post("/<transfer_id>/ship")
@require_actor
def ship_transfer_route(transfer_id: str):
    return _transition(transfer_id, transfer_service.ship_transfer)


@transfers_bp.post("/<transfer_id>/receive")
@require_actor
def receive_transfer_route(transfer_id: str):
    return _transition(transfer_id, transfer_service.receive_transfer)


@transfers_bp.post("/<transfer_id>/cancel")
@require_actor
def cancel_transfer_route(transfer_id: str):
    """Request body (optional): {"reason": str}"""
    data = request.get_json(silent=True) or {}
    reason = data.get("reason") if isinstance(data, dict) else None

    def _cancel(tid, actor):
        return transfer_service.cancel_transfer(tid, actor, reason=parse_optional_str(reason, max_length=2000))

    return _transition(transfer_id, _cancel)
