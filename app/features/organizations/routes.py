"""
Organization feature routes.
"""
from typing import Annotated
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.organizations.models import Organization
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationUpdate,
    OrganizationResponse,
    OrganizationStats
)
from app.features.organizations.dependencies import (
    get_organization_by_id,
    get_accessible_organization
)
from app.features.inspections.models import (
    Inspection,
    InspectionStatus,
    ActionItem,
    ActionStatus,
    INSPECTION_SCOPE
)
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import Action
from app.features.permissions.dependencies import (
    CurrentActor,
    Scopes,
    require_action,
    create_audit_log
)
from app.features.permissions.query import apply_scope
from app.features.permissions.scope import ResourceType
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["organizations"])


@router.post("/", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    request: Request,
    actor: Annotated[Actor, Depends(require_action(Action.CREATE_ORGANIZATION))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create an organization.

    System admins may create roots anywhere. Everyone else must name a parent
    they can access; the new organization sits one level below it.
    """
    level = 0
    if org_data.parent_organization_id is not None:
        parent = await db.get(Organization, org_data.parent_organization_id)
        if parent is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Parent organization not found"
            )
        if not await scopes.can_access_organization(actor, parent.id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to the parent organization"
            )
        if not parent.is_active or not await scopes.hierarchy.ancestors_active(parent.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create an organization under an inactive organization"
            )
        level = parent.level + 1
    elif not actor.is_system_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only system administrators can create root organizations"
        )

    new_org = Organization(**org_data.model_dump(), level=level)
    db.add(new_org)
    await db.commit()
    await db.refresh(new_org)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="create_organization",
        resource_type="organization",
        resource_id=new_org.id,
        organization_id=new_org.parent_organization_id,
        details={"name": new_org.name, "level": new_org.level},
        request=request
    )

    return new_org


@router.get("/", response_model=list[OrganizationResponse])
async def list_organizations(
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100
):
    """
    List organizations visible to the current user.

    System admins see every organization, inactive ones included.
    Org admins see their managed organization and its active subsidiaries.
    Everyone else sees their own organization.
    """
    scope = await scopes.resolve_scope(actor, ResourceType.ORGANIZATION)
    query = select(Organization)
    if not scope.unrestricted:
        query = query.where(Organization.id.in_(sorted(scope.organization_ids)))
    if not actor.is_system_admin:
        query = query.where(Organization.is_active == True)

    query = query.order_by(Organization.level, Organization.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization: Annotated[Organization, Depends(get_accessible_organization)]
):
    """Get organization details."""
    return organization


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    update_data: OrganizationUpdate,
    request: Request,
    organization: Annotated[Organization, Depends(get_organization_by_id)],
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_ORGANIZATION))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update organization details (requires manage_organization within reach)."""
    if not await scopes.can_access_organization(actor, organization.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )

    changes = update_data.model_dump(exclude_unset=True)
    if "is_active" in changes and not actor.is_system_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only system administrators can activate or deactivate organizations"
        )

    for field, value in changes.items():
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="update_organization",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details={key: str(value) for key, value in changes.items()},
        request=request
    )

    return organization


@router.get("/{organization_id}/subsidiaries", response_model=list[OrganizationResponse])
async def list_subsidiaries(
    organization: Annotated[Organization, Depends(get_accessible_organization)],
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    recursive: bool = False
):
    """
    List the direct children of an organization.

    With `recursive` (system admins only) the whole subtree below it is returned.
    """
    if recursive:
        if not actor.is_system_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only system administrators can list a full subtree"
            )
        subtree = await scopes.hierarchy.descendants(organization.id)
        subtree.discard(organization.id)
        query = select(Organization).where(Organization.id.in_(sorted(subtree)))
    else:
        query = select(Organization).where(Organization.parent_organization_id == organization.id)
    if not actor.is_system_admin:
        query = query.where(Organization.is_active == True)

    result = await db.execute(query.order_by(Organization.name))
    return result.scalars().all()


@router.get("/{organization_id}/stats", response_model=OrganizationStats)
async def get_organization_stats(
    organization: Annotated[Organization, Depends(get_accessible_organization)],
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Counters for a single organization.

    Inspection and action item counts only include what the current user
    could list themselves.
    """
    active_users = await db.scalar(
        select(func.count(User.id)).where(
            User.organization_id == organization.id,
            User.is_active == True
        )
    )
    subsidiaries = await db.scalar(
        select(func.count(Organization.id)).where(
            Organization.parent_organization_id == organization.id,
            Organization.is_active == True
        )
    )

    scope = await scopes.resolve_scope(actor, ResourceType.INSPECTION, organization.id)

    result = await db.execute(
        apply_scope(
            select(Inspection.status, func.count(Inspection.id)).group_by(Inspection.status),
            scope,
            INSPECTION_SCOPE
        )
    )
    by_status = {row[0]: row[1] for row in result.all()}

    open_statuses = (ActionStatus.PENDING, ActionStatus.IN_PROGRESS, ActionStatus.OVERDUE)
    action_query = select(func.count(ActionItem.id)).join(Inspection, ActionItem.inspection_id == Inspection.id)
    open_action_items = await db.scalar(
        apply_scope(action_query.where(ActionItem.status.in_(open_statuses)), scope, INSPECTION_SCOPE)
    )
    overdue_action_items = await db.scalar(
        apply_scope(
            action_query.where(
                ActionItem.status.in_(open_statuses),
                ActionItem.due_date < datetime.utcnow()
            ),
            scope,
            INSPECTION_SCOPE
        )
    )

    return OrganizationStats(
        organization_id=organization.id,
        active_users=active_users or 0,
        subsidiaries=subsidiaries or 0,
        inspections=sum(by_status.values()),
        pending_inspections=by_status.get(InspectionStatus.DRAFT, 0) + by_status.get(InspectionStatus.IN_PROGRESS, 0),
        completed_inspections=by_status.get(InspectionStatus.COMPLETED, 0) + by_status.get(InspectionStatus.APPROVED, 0),
        open_action_items=open_action_items or 0,
        overdue_action_items=overdue_action_items or 0
    )
