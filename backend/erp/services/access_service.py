# Overview: Actor identity and branch-scoped authorization helpers.

from __future__ import annotations

from dataclasses import dataclass

from ..models import User
from ..models.auth import ROLE_ADMIN
from erp.errors import NotFoundError


@dataclass(frozen=True)
class Actor:
    """
    Who is performing a workflow call.

    ADMIN reaches every branch; every other role is limited to branch_id.
    """
    user_id: str
    role: str
    branch_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def belongs_to(self, branch_id: str) -> bool:
        return self.branch_id == branch_id


def actor_from_user(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, branch_id=user.branch_id)


def can_access_branch(actor: Actor, branch_id: str) -> bool:
    return actor.is_admin or actor.belongs_to(branch_id)


def effective_branch_id(actor: Actor, requested_branch_id: str | None) -> str | None:
    """
    Branch a read query should be scoped to.

    Admins may pick any branch (None or "all" means every branch); other roles
    are always pinned to their own branch regardless of what they ask for.
    """
    if actor.is_admin:
        if not requested_branch_id or requested_branch_id == "all":
            return None
        return requested_branch_id
    return actor.branch_id


def single_branch_id(actor: Actor, requested_branch_id: str | None) -> str:
    """
    Branch a write (or a single-branch read) applies to.

    Admins act on the requested branch, falling back to their own; other roles
    always act on their own branch.
    """
    if actor.is_admin and requested_branch_id:
        return requested_branch_id
    return actor.branch_id


def require_branch_access(actor: Actor, branch_id: str, entity: str, entity_id: str) -> None:
    """Records of other branches are reported as missing to non-admin actors."""
    if not can_access_branch(actor, branch_id):
        raise NotFoundError(f"{entity} {entity_id} not found")
