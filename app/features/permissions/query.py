"""
Rendering a VisibilityScope as a SQLAlchemy filter.

Each scoped model describes where its organization, creator and collaborator
information lives with a ScopeColumns value; apply_scope then adds the
matching WHERE clause to a select.
"""
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import Select, and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from app.features.permissions.scope import VisibilityScope


@dataclass(frozen=True)
class ScopeColumns:
    """
    organization_id: column holding the owning organization
    created_by: column holding the creator's user id, if the model has one
    collaborating: builds "user is an active collaborator on this row" for a user id
    """
    organization_id: ColumnElement
    created_by: ColumnElement | None = None
    collaborating: Callable[[str], ColumnElement[bool]] | None = None


def scope_condition(scope: VisibilityScope, columns: ScopeColumns) -> ColumnElement[bool]:
    """Boolean SQL expression equivalent to VisibilityScope.permits."""
    if scope.is_empty:
        return false()
    
    if scope.unrestricted:
        condition = true()
    else:
        condition = columns.organization_id.in_(sorted(scope.organization_ids))
    
    if scope.collaboration is not None:
        user_id = scope.collaboration.user_id
        clauses = []
        if columns.created_by is not None:
            clauses.append(columns.created_by == user_id)
        if columns.collaborating is not None:
            clauses.append(columns.collaborating(user_id))
        # Nothing to match the clause against: fail safe
        condition = and_(condition, or_(*clauses) if clauses else false())
    
    return condition


def apply_scope(stmt: Select, scope: VisibilityScope, columns: ScopeColumns) -> Select:
    """
    Usage:
        stmt = apply_scope(select(Inspection), scope, INSPECTION_SCOPE)
        result = await db.execute(stmt)
    """
    if scope.unrestricted and scope.collaboration is None:
        return stmt
    return stmt.where(scope_condition(scope, columns))
