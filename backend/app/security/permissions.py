"""Role and compound helpers for explicit authorization checks."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, status


class ActorRole(str, enum.Enum):
    """Roles carried in access tokens from the identity service."""

    RESIDENT = "resident"
    SECURITY_GUARD = "security_guard"
    COMPOUND_MANAGER = "compound_manager"
    ADMIN = "admin"


STAFF_ROLES = {ActorRole.COMPOUND_MANAGER, ActorRole.ADMIN}
GATE_ROLES = {ActorRole.SECURITY_GUARD, ActorRole.COMPOUND_MANAGER, ActorRole.ADMIN}


@dataclass(slots=True, frozen=True)
class Actor:
    """Authenticated caller resolved from a bearer token."""

    user_id: uuid.UUID
    role: ActorRole
    unit_id: uuid.UUID | None = None
    compound_id: uuid.UUID | None = None
    email: str | None = None


def require_roles(actor: Actor, allowed: set[ActorRole]) -> None:
    """Raise HTTP 403 if an actor is not a member of the allowed role set."""

    if actor.role not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )


def compound_scope(actor: Actor) -> uuid.UUID | None:
    """Return the compound a staff actor works in; ``None`` means every compound.

    Guards and managers without a compound claim are refused outright.
    """
    if actor.role is ActorRole.ADMIN:
        return None
    if actor.compound_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this compound",
        )
    return actor.compound_id


def require_compound_access(actor: Actor, compound_id: uuid.UUID) -> None:
    """Raise HTTP 403 unless a staff actor may act inside ``compound_id``."""
    scope = compound_scope(actor)
    if scope is not None and scope != compound_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this compound",
        )


__all__ = [
    "Actor",
    "ActorRole",
    "GATE_ROLES",
    "STAFF_ROLES",
    "compound_scope",
    "require_compound_access",
    "require_roles",
]
