"""
Checklist template routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.checklists.models import ChecklistTemplate, CHECKLIST_SCOPE
from app.features.checklists.schemas import (
    ChecklistTemplateCreate,
    ChecklistTemplateUpdate,
    ChecklistTemplateResponse
)
from app.features.organizations.dependencies import get_organization_by_id
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


router = APIRouter(tags=["checklists"])


async def get_visible_template(
    template_id: str,
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> ChecklistTemplate:
    """
    Raises:
        HTTPException: 404 if the template does not exist or is not visible
    """
    template = await db.get(ChecklistTemplate, template_id)

    if template is None or not await scopes.can_access_record(actor, template, ResourceType.CHECKLIST_TEMPLATE):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checklist template not found"
        )

    return template


@router.get("/templates", response_model=list[ChecklistTemplateResponse])
async def list_templates(
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None,
    category: str | None = None,
    include_inactive: bool = False
):
    """List checklist templates visible to the current user."""
    scope = await scopes.resolve_scope(actor, ResourceType.CHECKLIST_TEMPLATE, organization_id)
    query = apply_scope(select(ChecklistTemplate), scope, CHECKLIST_SCOPE)
    if category is not None:
        query = query.where(ChecklistTemplate.category == category)
    if not include_inactive:
        query = query.where(ChecklistTemplate.is_active == True)

    result = await db.execute(query.order_by(ChecklistTemplate.category, ChecklistTemplate.name))
    return result.scalars().all()


@router.post("/templates", response_model=ChecklistTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: ChecklistTemplateCreate,
    request: Request,
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_TEMPLATES))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a checklist template (requires manage_templates)."""
    organization_id = (
        template_data.organization_id
        or actor.managed_organization_id
        or actor.home_organization_id
    )
    if organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No organization to create the template in"
        )
    await get_organization_by_id(organization_id, db)
    if not await scopes.can_access_organization(actor, organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )

    template = ChecklistTemplate(
        **template_data.model_dump(exclude={"organization_id"}),
        organization_id=organization_id,
        created_by=actor.user_id
    )
    db.add(template)
    await db.commit()
    await db.refresh(template)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="create_checklist_template",
        resource_type="checklist_template",
        resource_id=template.id,
        organization_id=organization_id,
        request=request
    )

    return template


@router.get("/templates/{template_id}", response_model=ChecklistTemplateResponse)
async def get_template(
    template: Annotated[ChecklistTemplate, Depends(get_visible_template)]
):
    return template


@router.patch("/templates/{template_id}", response_model=ChecklistTemplateResponse)
async def update_template(
    update_data: ChecklistTemplateUpdate,
    template: Annotated[ChecklistTemplate, Depends(get_visible_template)],
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_TEMPLATES))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update a checklist template (requires manage_templates)."""
    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(template, field, value)

    await db.commit()
    await db.refresh(template)
    return template


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    request: Request,
    template: Annotated[ChecklistTemplate, Depends(get_visible_template)],
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_TEMPLATES))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a checklist template (requires manage_templates)."""
    template_id, organization_id = template.id, template.organization_id
    await db.delete(template)
    await db.commit()

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="delete_checklist_template",
        resource_type="checklist_template",
        resource_id=template_id,
        organization_id=organization_id,
        request=request
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
