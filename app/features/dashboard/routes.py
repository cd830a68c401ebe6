"""
Dashboard routes.

Counters are computed through the same visibility scope as the inspection
listings, so a user never sees totals for records they could not list.
"""
from typing import Annotated
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.dashboard.schemas import DashboardStats
from app.features.inspections.models import (
    Inspection,
    InspectionStatus,
    ActionItem,
    ActionStatus,
    INSPECTION_SCOPE
)
from app.features.organizations.dependencies import require_organization_filter
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import Action
from app.features.permissions.dependencies import Scopes, require_action
from app.features.permissions.query import apply_scope
from app.features.permissions.scope import ResourceType


router = APIRouter(tags=["dashboard"])

OPEN_ACTION_STATUSES = (ActionStatus.PENDING, ActionStatus.IN_PROGRESS, ActionStatus.OVERDUE)


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    actor: Annotated[Actor, Depends(require_action(Action.VIEW_DASHBOARD))],
    scopes: Scopes,
    organization_id: Annotated[str | None, Depends(require_organization_filter)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Inspection and action item counters for the current user.
    
    Optionally narrowed to one accessible organization with `organization_id`.
    """
    scope = await scopes.resolve_scope(actor, ResourceType.INSPECTION, organization_id)
    
    result = await db.execute(
        apply_scope(
            select(Inspection.status, func.count(Inspection.id)).group_by(Inspection.status),
            scope,
            INSPECTION_SCOPE
        )
    )
    by_status = {row[0]: row[1] for row in result.all()}
    
    items = select(func.count(ActionItem.id)).join(Inspection, ActionItem.inspection_id == Inspection.id)
    total_action_items = await db.scalar(apply_scope(items, scope, INSPECTION_SCOPE))
    open_items = items.where(ActionItem.status.in_(OPEN_ACTION_STATUSES))
    open_action_items = await db.scalar(apply_scope(open_items, scope, INSPECTION_SCOPE))
    overdue_action_items = await db.scalar(
        apply_scope(open_items.where(ActionItem.due_date < datetime.utcnow()), scope, INSPECTION_SCOPE)
    )
    
    return DashboardStats(
        total_inspections=sum(by_status.values()),
        pending_inspections=by_status.get(InspectionStatus.DRAFT, 0),
        in_progress_inspections=by_status.get(InspectionStatus.IN_PROGRESS, 0),
        completed_inspections=by_status.get(InspectionStatus.COMPLETED, 0) + by_status.get(InspectionStatus.APPROVED, 0),
        total_action_items=total_action_items or 0,
        open_action_items=open_action_items or 0,
        overdue_action_items=overdue_action_items or 0,
        scope=scope.describe()
    )
