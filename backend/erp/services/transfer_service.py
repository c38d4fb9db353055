# Overview: Inter-branch stock transfer workflow.

"""
Transfer Service

WHY: Move stock between branches with an explicit hand-off, so each branch
signs for its own side of the movement.

LIFECYCLE:
1. REQUESTED: Destination branch asked for stock (REQUEST type)
2. PENDING: Accepted by the source, or created there directly (SEND type)
3. IN_TRANSIT: Shipped; stock decremented at the source
4. COMPLETED: Received; stock incremented at the destination
5. CANCELLED: From REQUESTED, PENDING or IN_TRANSIT

A transfer cancelled while IN_TRANSIT does not put the shipped stock back
anywhere.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Branch, Product, Transfer, TransferItem
from ..models.documents import (
    TRANSFER_TYPE_SEND,
    TRANSFER_TYPE_REQUEST,
    TRANSFER_STATUS_REQUESTED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_CANCELLED,
    VALID_TRANSFER_STATUSES,
)
from erp.errors import (
    InvalidTransferStateError,
    NotAuthorizedForTransferError,
    NotFoundError,
    ValidationError,
)
from erp.time_utils import utcnow
from erp.validation import require_quantity
from . import stock_service
from .access_service import Actor, can_access_branch
from .concurrency import locked_get, run_in_transaction


DIRECTION_FROM = "FROM"
DIRECTION_TO = "TO"


def _load_branch(branch_id: str) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch:
        raise NotFoundError(f"Branch {branch_id} not found")
    return branch


def _locked_transfer(transfer_id: str) -> Transfer:
    transfer = locked_get(Transfer, transfer_id)
    if not transfer:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def _require_status(transfer: Transfer, expected: str, action: str) -> None:
    if transfer.status != expected:
        raise InvalidTransferStateError(
            f"Cannot {action} a transfer in status {transfer.status}",
            details={"transfer_id": transfer.id, "status": transfer.status, "expected": expected},
        )


def _require_branch(actor: Actor, branch_id: str, action: str) -> None:
    if not can_access_branch(actor, branch_id):
        raise NotAuthorizedForTransferError(
            f"Only the {'source' if action != 'receive' else 'destination'} branch can {action} this transfer",
            details={"branch_id": branch_id, "actor_branch_id": actor.branch_id},
        )


def _validate_source_stock(transfer: Transfer) -> None:
    requirements = {item.product_id: item.quantity for item in transfer.items}
    branch = db.session.get(Branch, transfer.from_branch_id)
    stock_service.require_available(
        requirements, transfer.from_branch_id,
        location_label=branch.name if branch else transfer.from_branch_id,
    )


def create_transfer(
    *,
    from_branch_id: str,
    to_branch_id: str,
    items: list[dict],
    actor: Actor,
    notes: str | None = None,
) -> Transfer:
    """
    Create a transfer document.

    An actor in the destination branch creates a REQUEST (no stock check);
    anyone else with access to the source creates a SEND in PENDING with the
    source stock validated but not yet decremented.

    Raises:
        ValidationError: same branch on both ends, no items, duplicate products
        NotFoundError: unknown branch or product
        NotAuthorizedForTransferError: actor belongs to neither branch
        InsufficientStockError: SEND without enough stock at the source
    """
    def _op():
        if from_branch_id == to_branch_id:
            raise ValidationError("Source and destination branches must be different")
        _load_branch(from_branch_id)
        _load_branch(to_branch_id)

        if not items:
            raise ValidationError("A transfer needs at least one item")

        if not (actor.is_admin or actor.belongs_to(from_branch_id) or actor.belongs_to(to_branch_id)):
            raise NotAuthorizedForTransferError(
                "You can only create transfers involving your own branch",
                details={"actor_branch_id": actor.branch_id},
            )

        is_request = actor.belongs_to(to_branch_id)

        seen = set()
        transfer = Transfer(
            from_branch_id=from_branch_id,
            to_branch_id=to_branch_id,
            type=TRANSFER_TYPE_REQUEST if is_request else TRANSFER_TYPE_SEND,
            status=TRANSFER_STATUS_REQUESTED if is_request else TRANSFER_STATUS_PENDING,
            notes=notes,
            created_by=actor.user_id,
        )
        for index, item in enumerate(items):
            quantity = require_quantity(item["quantity"], f"items[{index}].quantity")
            product = db.session.get(Product, item["product_id"])
            if not product:
                raise NotFoundError(f"Product {item['product_id']} not found")
            if product.id in seen:
                raise ValidationError(f"Product {product.name} appears more than once")
            seen.add(product.id)
            transfer.items.append(TransferItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
            ))

        if not is_request:
            _validate_source_stock(transfer)

        db.session.add(transfer)
        db.session.flush()

        current_app.logger.info(
            "Transfer %s created by %s: %s %s -> %s (%s)",
            transfer.id, actor.user_id, transfer.type, from_branch_id, to_branch_id, transfer.status,
        )
        return transfer

    return run_in_transaction(_op)


def accept_transfer(transfer_id: str, actor: Actor) -> Transfer:
    """Source branch accepts a REQUEST: REQUESTED -> PENDING."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        if transfer.type != TRANSFER_TYPE_REQUEST:
            raise InvalidTransferStateError("Only requested transfers can be accepted")
        _require_status(transfer, TRANSFER_STATUS_REQUESTED, "accept")
        _require_branch(actor, transfer.from_branch_id, "accept")
        _validate_source_stock(transfer)

        transfer.status = TRANSFER_STATUS_PENDING
        transfer.approved_by = actor.user_id
        transfer.approved_at = utcnow()
        db.session.flush()

        current_app.logger.info("Transfer %s accepted by %s", transfer.id, actor.user_id)
        return transfer

    return run_in_transaction(_op)


def ship_transfer(transfer_id: str, actor: Actor) -> Transfer:
    """PENDING -> IN_TRANSIT; stock leaves the source branch."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        _require_status(transfer, TRANSFER_STATUS_PENDING, "ship")
        _require_branch(actor, transfer.from_branch_id, "ship")
        _validate_source_stock(transfer)

        for item in transfer.items:
            stock_service.remove_stock(
                item.product_id, transfer.from_branch_id, item.quantity,
                product_label=item.product_name,
            )

        transfer.status = TRANSFER_STATUS_IN_TRANSIT
        transfer.shipped_by = actor.user_id
        transfer.shipped_at = utcnow()
        db.session.flush()

        current_app.logger.info("Transfer %s shipped by %s", transfer.id, actor.user_id)
        return transfer

    return run_in_transaction(_op)


def receive_transfer(transfer_id: str, actor: Actor) -> Transfer:
    """IN_TRANSIT -> COMPLETED; stock enters the destination branch."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        _require_status(transfer, TRANSFER_STATUS_IN_TRANSIT, "receive")
        _require_branch(actor, transfer.to_branch_id, "receive")

        for item in transfer.items:
            stock_service.add_stock(item.product_id, transfer.to_branch_id, item.quantity)

        transfer.status = TRANSFER_STATUS_COMPLETED
        transfer.completed_by = actor.user_id
        transfer.completed_at = utcnow()
        db.session.flush()

        current_app.logger.info("Transfer %s received by %s", transfer.id, actor.user_id)
        return transfer

    return run_in_transaction(_op)


def cancel_transfer(transfer_id: str, actor: Actor, reason: str | None = None) -> Transfer:
    """Cancel from REQUESTED, PENDING or IN_TRANSIT (source branch or admin)."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        if transfer.status in (TRANSFER_STATUS_COMPLETED, TRANSFER_STATUS_CANCELLED):
            raise InvalidTransferStateError(
                f"Cannot cancel a transfer in status {transfer.status}",
                details={"transfer_id": transfer.id, "status": transfer.status},
            )
        _require_branch(actor, transfer.from_branch_id, "cancel")

        if transfer.status == TRANSFER_STATUS_IN_TRANSIT:
            current_app.logger.warning(
                "Transfer %s cancelled while in transit; shipped stock is not restored", transfer.id,
            )

        transfer.status = TRANSFER_STATUS_CANCELLED
        transfer.cancelled_by = actor.user_id
        transfer.cancelled_at = utcnow()
        transfer.cancellation_reason = reason
        db.session.flush()

        current_app.logger.info("Transfer %s cancelled by %s", transfer.id, actor.user_id)
        return transfer

    return run_in_transaction(_op)


def get_transfer(transfer_id: str) -> Transfer:
    transfer = db.session.get(Transfer, transfer_id)
    if not transfer:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def list_transfers_by_branch(
    branch_id: str | None,
    *,
    status: str | None = None,
    direction: str | None = None,
) -> list[Transfer]:
    """
    Transfers touching a branch.

    direction FROM limits to outgoing, TO to incoming; None returns both.
    """
    query = db.session.query(Transfer)
    if branch_id is not None:
        if direction == DIRECTION_FROM:
            query = query.filter(Transfer.from_branch_id == branch_id)
        elif direction == DIRECTION_TO:
            query = query.filter(Transfer.to_branch_id == branch_id)
        elif direction is None:
            query = query.filter(
                (Transfer.from_branch_id == branch_id) | (Transfer.to_branch_id == branch_id)
            )
        else:
            raise ValidationError(f"Invalid direction: {direction}")
    if status is not None:
        if status not in VALID_TRANSFER_STATUSES:
            raise ValidationError(f"Invalid transfer status: {status}")
        query = query.filter(Transfer.status == status)
    return query.order_by(Transfer.created_at.desc()).all()
