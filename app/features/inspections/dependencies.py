"""
Inspection-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.inspections.models import Inspection, ActionItem
from app.features.permissions.dependencies import CurrentActor, Scopes
from app.features.permissions.scope import ResourceType


async def get_visible_inspection(
    inspection_id: str,
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Inspection:
    """
    Get an inspection the current user can see.
    
    Inspections outside the user's scope are reported as missing so their
    existence is not revealed.
    
    Raises:
        HTTPException: 404 if not found or not visible
    """
    inspection = await db.get(Inspection, inspection_id)
    
    if inspection is None or not await scopes.can_access_record(actor, inspection, ResourceType.INSPECTION):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inspection not found"
        )
    
    return inspection


async def get_visible_action_item(
    item_id: str,
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> ActionItem:
    """
    Get an action item whose inspection the current user can see.
    
    Raises:
        HTTPException: 404 if not found or not visible
    """
    item = await db.get(ActionItem, item_id)
    
    if item is None or not await scopes.can_access_record(actor, item.inspection, ResourceType.ACTION_ITEM):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Action item not found"
        )
    
    return item
