"""
Authorization API routes.

Role permission overrides (system admins only) plus introspection of the
caller's own capabilities and visibility scope.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import UserRole
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import (
    Action,
    CapabilityTable,
    LOCKED_ACTIONS,
    can_perform,
)
from app.features.permissions.models import RolePermission, AuditLog
from app.features.permissions.schemas import (
    RolePermissionResponse,
    RolePermissionBatchUpdate,
    RolePermissionBatchResponse,
    CapabilityCheckRequest,
    CapabilityCheckResponse,
    ScopeResponse,
    AuditLogResponse,
)
from app.features.permissions.dependencies import (
    CurrentActor,
    Scopes,
    get_capability_table,
    require_action,
    create_audit_log,
)
from app.features.permissions.scope import ResourceType
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Role Permission Routes
# ============================================================================

@router.get("/role-permissions", response_model=list[RolePermissionResponse])
async def list_role_permissions(
    _admin: Annotated[Actor, Depends(require_action(Action.MANAGE_ROLE_PERMISSIONS))],
    table: Annotated[CapabilityTable, Depends(get_capability_table)]
):
    """Effective role x action table, overrides included (system admin only)."""
    rows = []
    for role in UserRole:
        for action in Action:
            rows.append(RolePermissionResponse(
                role=role,
                action=action,
                is_allowed=table.allows(role, action),
                is_override=(role, action) in table.overrides,
                is_locked=role == UserRole.SYSTEM_ADMIN or action in LOCKED_ACTIONS,
            ))
    return rows


@router.post("/role-permissions", response_model=RolePermissionBatchResponse)
async def update_role_permissions(
    batch: RolePermissionBatchUpdate,
    request: Request,
    admin: Annotated[Actor, Depends(require_action(Action.MANAGE_ROLE_PERMISSIONS))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Upsert role permission overrides (system admin only)."""
    updated = 0
    skipped = []
    
    for update in batch.updates:
        if update.role == UserRole.SYSTEM_ADMIN or update.action in LOCKED_ACTIONS:
            skipped.append(update)
            continue
        
        result = await db.execute(
            select(RolePermission).where(
                RolePermission.role == update.role,
                RolePermission.action == update.action,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            existing.is_allowed = update.is_allowed
        else:
            db.add(RolePermission(role=update.role, action=update.action, is_allowed=update.is_allowed))
        updated += 1
    
    await db.commit()
    
    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="role_permissions_updated",
        resource_type="role_permissions",
        details={"updated": updated, "skipped": len(skipped)},
        request=request,
    )
    
    return RolePermissionBatchResponse(
        message="Role permissions updated successfully",
        updated_count=updated,
        skipped=skipped,
    )


# ============================================================================
# Introspection Routes
# ============================================================================

@router.post("/check", response_model=CapabilityCheckResponse)
async def check_capabilities(
    check: CapabilityCheckRequest,
    actor: CurrentActor,
    table: Annotated[CapabilityTable, Depends(get_capability_table)]
):
    """Which of the given actions the current user's role may perform."""
    return CapabilityCheckResponse(
        role=actor.role,
        results={action: can_perform(actor, action, table) for action in check.actions},
    )


@router.get("/scope", response_model=ScopeResponse)
async def get_scope(
    actor: CurrentActor,
    scopes: Scopes,
    resource_type: ResourceType = ResourceType.INSPECTION,
    organization_id: str | None = Query(None, description="Explicit organization filter")
):
    """Resolved visibility scope of the current user for a resource type."""
    scope = await scopes.resolve_scope(actor, resource_type, organization_id)
    return ScopeResponse(resource_type=resource_type, role=actor.role, **scope.describe())


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=list[AuditLogResponse])
async def list_audit_logs(
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_USERS))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = Query(None, description="Explicit organization filter"),
    skip: int = 0,
    limit: int = 100
):
    """
    Recent audit log entries.
    
    System admins see every entry. Other admins see entries recorded against
    the organizations in their scope.
    """
    scope = await scopes.resolve_scope(actor, ResourceType.ORGANIZATION, organization_id)
    if scope.is_empty:
        return []
    
    query = select(AuditLog)
    if not scope.unrestricted:
        query = query.where(AuditLog.organization_id.in_(sorted(scope.organization_ids)))
    
    result = await db.execute(query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit))
    return result.scalars().all()
