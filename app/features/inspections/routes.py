"""
Inspection feature routes.

Every listing goes through the visibility scope of the current user, and
every single-record read or write checks the record against that scope
first. Action items are visible exactly when their inspection is.
"""
from typing import Annotated
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.inspections.models import (
    Inspection,
    InspectionStatus,
    InspectionCollaborator,
    ActionItem,
    INSPECTION_SCOPE
)
from app.features.inspections.schemas import (
    InspectionCreate,
    InspectionUpdate,
    InspectionResponse,
    CollaboratorAdd,
    CollaboratorUpdate,
    CollaboratorResponse,
    ActionItemCreate,
    ActionItemUpdate,
    ActionItemResponse
)
from app.features.inspections.dependencies import get_visible_inspection, get_visible_action_item
from app.features.organizations.dependencies import get_organization_by_id
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import Action, CapabilityTable, can_perform_on
from app.features.permissions.collaboration import CollaboratorStatus
from app.features.permissions.dependencies import (
    CurrentActor,
    Scopes,
    get_capability_table,
    require_action,
    create_audit_log
)
from app.features.permissions.query import apply_scope
from app.features.permissions.scope import ResourceType
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["inspections"])

Capabilities = Annotated[CapabilityTable, Depends(get_capability_table)]


def _require_edit(actor: Actor, inspection: Inspection, table: CapabilityTable) -> None:
    if not can_perform_on(actor, Action.EDIT_INSPECTION, inspection, table):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {Action.EDIT_INSPECTION.value}"
        )


# ============================================================================
# Action items (declared first so "/action-items" is not read as an inspection id)
# ============================================================================

@router.get("/action-items", response_model=list[ActionItemResponse])
async def list_action_items(
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None,
    skip: int = 0,
    limit: int = 100
):
    """List action items of every inspection visible to the current user."""
    scope = await scopes.resolve_scope(actor, ResourceType.ACTION_ITEM, organization_id)
    query = apply_scope(
        select(ActionItem).join(Inspection, ActionItem.inspection_id == Inspection.id),
        scope,
        INSPECTION_SCOPE
    )
    result = await db.execute(
        query.order_by(ActionItem.due_date, ActionItem.created_at).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.patch("/action-items/{item_id}", response_model=ActionItemResponse)
async def update_action_item(
    update_data: ActionItemUpdate,
    item: Annotated[ActionItem, Depends(get_visible_action_item)],
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_ACTION_PLANS))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update an action item (requires manage_action_plans)."""
    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item)
    log.info(f"Action item {item.id} updated by {actor.user_id}")
    return item


# ============================================================================
# Inspections
# ============================================================================

@router.get("/", response_model=list[InspectionResponse])
async def list_inspections(
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None,
    inspection_status: InspectionStatus | None = None,
    skip: int = 0,
    limit: int = 100
):
    """
    List inspections visible to the current user.

    An `organization_id` filter the user may not access yields an empty list.
    """
    scope = await scopes.resolve_scope(actor, ResourceType.INSPECTION, organization_id)
    query = apply_scope(select(Inspection), scope, INSPECTION_SCOPE)
    if inspection_status is not None:
        query = query.where(Inspection.status == inspection_status)

    result = await db.execute(query.order_by(Inspection.created_at.desc()).offset(skip).limit(limit))
    return result.scalars().all()


@router.post("/", response_model=InspectionResponse, status_code=status.HTTP_201_CREATED)
async def create_inspection(
    inspection_data: InspectionCreate,
    request: Request,
    actor: Annotated[Actor, Depends(require_action(Action.CREATE_INSPECTION))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create an inspection.

    Without an explicit organization it lands in the creator's managed
    organization (org admins) or home organization.
    """
    organization_id = (
        inspection_data.organization_id
        or actor.managed_organization_id
        or actor.home_organization_id
    )
    if organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No organization to create the inspection in"
        )
    await get_organization_by_id(organization_id, db)
    if not await scopes.can_access_organization(actor, organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )

    inspection = Inspection(
        **inspection_data.model_dump(exclude={"organization_id"}),
        organization_id=organization_id,
        created_by=actor.user_id,
        collaborators=[]
    )
    db.add(inspection)
    await db.commit()
    await db.refresh(inspection)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="create_inspection",
        resource_type="inspection",
        resource_id=inspection.id,
        organization_id=organization_id,
        request=request
    )

    return inspection


@router.get("/{inspection_id}", response_model=InspectionResponse)
async def get_inspection(
    inspection: Annotated[Inspection, Depends(get_visible_inspection)]
):
    """Get a single inspection."""
    return inspection


@router.patch("/{inspection_id}", response_model=InspectionResponse)
async def update_inspection(
    update_data: InspectionUpdate,
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    actor: CurrentActor,
    table: Capabilities,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update an inspection (edit_inspection, or the inspection's creator)."""
    _require_edit(actor, inspection, table)

    changes = update_data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(inspection, field, value)

    if changes.get("status") == InspectionStatus.COMPLETED and inspection.completed_at is None:
        inspection.completed_at = datetime.utcnow()

    await db.commit()
    await db.refresh(inspection)
    return inspection


@router.delete("/{inspection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inspection(
    request: Request,
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    actor: Annotated[Actor, Depends(require_action(Action.DELETE_INSPECTION))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete an inspection with its collaborators and action items."""
    inspection_id, organization_id = inspection.id, inspection.organization_id
    await db.execute(delete(ActionItem).where(ActionItem.inspection_id == inspection_id))
    await db.delete(inspection)
    await db.commit()

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="delete_inspection",
        resource_type="inspection",
        resource_id=inspection_id,
        organization_id=organization_id,
        request=request
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Collaborators
# ============================================================================

@router.get("/{inspection_id}/collaborators", response_model=list[CollaboratorResponse])
async def list_collaborators(
    inspection: Annotated[Inspection, Depends(get_visible_inspection)]
):
    """List everyone invited onto the inspection, inactive ones included."""
    return inspection.collaborators


@router.post(
    "/{inspection_id}/collaborators",
    response_model=CollaboratorResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_collaborator(
    collaborator_data: CollaboratorAdd,
    request: Request,
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    actor: CurrentActor,
    table: Capabilities,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Invite a user onto the inspection.

    The user must belong to the inspection's organization. Re-inviting an
    inactive collaborator reactivates them.
    """
    _require_edit(actor, inspection, table)

    user = await db.get(User, collaborator_data.user_id)
    if user is None or not user.is_active or user.organization_id != inspection.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not an active member of the inspection's organization"
        )

    result = await db.execute(
        select(InspectionCollaborator).where(
            InspectionCollaborator.inspection_id == inspection.id,
            InspectionCollaborator.user_id == user.id
        )
    )
    collaborator = result.scalar_one_or_none()

    if collaborator is None:
        collaborator = InspectionCollaborator(
            inspection_id=inspection.id,
            user_id=user.id,
            status=CollaboratorStatus.ACTIVE,
            invited_by_id=actor.user_id
        )
        db.add(collaborator)
    else:
        collaborator.status = CollaboratorStatus.ACTIVE

    await db.commit()
    await db.refresh(collaborator)
    log.info(f"User {user.id} collaborating on inspection {inspection.id} (invited by {actor.user_id})")

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="add_collaborator",
        resource_type="inspection",
        resource_id=inspection.id,
        organization_id=inspection.organization_id,
        details={"collaborator": user.id},
        request=request
    )
    return collaborator


@router.patch("/{inspection_id}/collaborators/{user_id}", response_model=CollaboratorResponse)
async def update_collaborator(
    user_id: str,
    update_data: CollaboratorUpdate,
    request: Request,
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    actor: CurrentActor,
    table: Capabilities,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Activate or deactivate a collaborator."""
    _require_edit(actor, inspection, table)

    result = await db.execute(
        select(InspectionCollaborator).where(
            InspectionCollaborator.inspection_id == inspection.id,
            InspectionCollaborator.user_id == user_id
        )
    )
    collaborator = result.scalar_one_or_none()

    if collaborator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Collaborator not found"
        )

    collaborator.status = update_data.status
    await db.commit()
    await db.refresh(collaborator)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="update_collaborator",
        resource_type="inspection",
        resource_id=inspection.id,
        organization_id=inspection.organization_id,
        details={"collaborator": user_id, "status": collaborator.status.value},
        request=request
    )
    return collaborator


# ============================================================================
# Action items of one inspection
# ============================================================================

@router.get("/{inspection_id}/action-items", response_model=list[ActionItemResponse])
async def list_inspection_action_items(
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    result = await db.execute(
        select(ActionItem)
        .where(ActionItem.inspection_id == inspection.id)
        .order_by(ActionItem.due_date, ActionItem.created_at)
    )
    return result.scalars().all()


@router.post(
    "/{inspection_id}/action-items",
    response_model=ActionItemResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_action_item(
    item_data: ActionItemCreate,
    inspection: Annotated[Inspection, Depends(get_visible_inspection)],
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_ACTION_PLANS))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Raise a 5W2H action item on an inspection (requires manage_action_plans)."""
    item = ActionItem(
        **item_data.model_dump(),
        inspection_id=inspection.id,
        organization_id=inspection.organization_id,
        created_by=actor.user_id
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item
