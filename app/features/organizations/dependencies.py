"""
Organization-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.organizations.models import Organization
from app.features.permissions.dependencies import CurrentActor, Scopes


async def get_organization_by_id(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Organization:
    """
    Get organization by ID or raise 404.
    
    Args:
        organization_id: Organization ULID
        db: Database session
        
    Returns:
        Organization model
        
    Raises:
        HTTPException: 404 if organization not found
    """
    result = await db.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    organization = result.scalar_one_or_none()
    
    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )
    
    return organization


async def get_accessible_organization(
    organization: Annotated[Organization, Depends(get_organization_by_id)],
    actor: CurrentActor,
    scopes: Scopes
) -> Organization:
    """
    Get organization and verify the current user may act within it.
    
    Raises:
        HTTPException: 404 if org not found or 403 if outside the user's reach
    """
    if not await scopes.can_access_organization(actor, organization.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )
    
    return organization


async def require_organization_filter(
    actor: CurrentActor,
    scopes: Scopes,
    organization_id: str | None = None
) -> str | None:
    """
    Validate an optional `organization_id` query filter.
    
    Raises:
        HTTPException: 403 if the filter names an organization the user cannot access
    """
    if organization_id is not None and not await scopes.can_access_organization(actor, organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )
    return organization_id
