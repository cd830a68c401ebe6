"""
FastAPI dependencies for the authorization layer.

Implements:
- Actor resolution for the current request (with the bootstrap promotion write)
- Scope resolver and hierarchy wiring
- Capability guards for route protection
- Audit logging helpers
"""
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.organizations.hierarchy import OrganizationHierarchy
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.actor import Actor, promote_bootstrap_identity, resolve_actor
from app.features.permissions.capabilities import Action, CapabilityTable, can_perform
from app.features.permissions.models import RolePermission, AuditLog
from app.features.permissions.scope import ScopeResolver
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Actor & Scope
# ============================================================================

async def get_current_actor(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Actor:
    """
    Resolve the Actor for the current request.
    
    If the bootstrap identity is stored with a lower role, the stored role is
    corrected before the request continues.
    
    Raises:
        ActorNotFound: if the profile vanished after authentication
    """
    resolution = await resolve_actor(db, user.appwrite_id, config.BOOTSTRAP_ADMIN_EMAIL)
    if resolution.promotion is not None:
        await promote_bootstrap_identity(db, resolution.promotion)
        # The UPDATE expires onupdate columns on the loaded profile
        await db.refresh(user)
    return resolution.actor


async def get_hierarchy(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> OrganizationHierarchy:
    return OrganizationHierarchy(db)


async def get_scope_resolver(
    hierarchy: Annotated[OrganizationHierarchy, Depends(get_hierarchy)]
) -> ScopeResolver:
    return ScopeResolver(hierarchy)


async def load_capability_table(db: AsyncSession) -> CapabilityTable:
    """Default table adjusted by the stored role permission overrides."""
    result = await db.execute(select(RolePermission))
    return CapabilityTable.from_overrides(
        (row.role, row.action, row.is_allowed) for row in result.scalars().all()
    )


async def get_capability_table(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> CapabilityTable:
    return await load_capability_table(db)


def require_action(action: Action):
    """
    FastAPI dependency to require a capability.
    
    Usage:
        @router.post("/organizations")
        async def create_organization(
            actor: Actor = Depends(require_action(Action.CREATE_ORGANIZATION))
        ):
            # Actor's role may create organizations
            pass
    
    Raises:
        HTTPException: 403 if the actor's role may not perform the action
    """
    async def action_dependency(
        actor: Annotated[Actor, Depends(get_current_actor)],
        table: Annotated[CapabilityTable, Depends(get_capability_table)]
    ) -> Actor:
        if not can_perform(actor, action, table):
            log.debug(f"Actor {actor.user_id} ({actor.role.value}) denied {action.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action.value}"
            )
        return actor
    
    return action_dependency


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Scopes = Annotated[ScopeResolver, Depends(get_scope_resolver)]


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
) -> AuditLog:
    """
    Create an audit log entry.
    
    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "create_organization", "invite_user")
        resource_type: Type of resource (e.g., "organization", "inspection")
        resource_id: ID of the resource
        organization_id: Organization context
        details: Additional details
        request: Incoming request, for client IP and user agent
    
    Returns:
        Created AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        organization_id=organization_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None
    )
    
    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)
    
    log.info(
        f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} org={organization_id}"
    )
    
    return audit_log
