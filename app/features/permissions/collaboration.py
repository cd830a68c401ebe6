"""
Collaboration fallback filter.

Roles below org admin only see records they created or were invited onto as an
active collaborator, even inside their own organization. Admin roles are never
narrowed: organizational scope alone is enough for them.
"""
import dataclasses
import enum
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

from app.features.users.models import UserRole
from app.features.permissions.actor import Actor

if TYPE_CHECKING:
    from app.features.permissions.scope import VisibilityScope


class CollaboratorStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclasses.dataclass(frozen=True)
class CollaborationClause:
    """createdBy == user_id OR user_id is an active collaborator."""
    user_id: str


class Collaborator(Protocol):
    user_id: str
    status: Any


UNRESTRICTED_ROLES = frozenset({UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN})


def is_active_collaborator(collaborators: Iterable[Collaborator] | None, user_id: str) -> bool:
    for collaborator in collaborators or ():
        if collaborator.user_id != user_id:
            continue
        try:
            if CollaboratorStatus(collaborator.status) == CollaboratorStatus.ACTIVE:
                return True
        except ValueError:
            continue
    return False


def satisfies(clause: CollaborationClause, record: Any) -> bool:
    """Evaluate the clause against a loaded record."""
    if getattr(record, "created_by", None) == clause.user_id:
        return True
    return is_active_collaborator(getattr(record, "collaborators", None), clause.user_id)


def restrict(scope: "VisibilityScope", actor: Actor) -> "VisibilityScope":
    """
    Narrow `scope` to the actor's own and collaborated records.
    
    Returns the scope unchanged for system and org admins.
    """
    if actor.role in UNRESTRICTED_ROLES:
        return scope
    return dataclasses.replace(scope, collaboration=CollaborationClause(user_id=actor.user_id))
