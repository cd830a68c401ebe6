"""
Pydantic schemas for the authorization API.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.users.models import UserRole
from app.features.permissions.capabilities import Action
from app.features.permissions.scope import ResourceType


class RolePermissionResponse(BaseModel):
    """Effective permission for one (role, action) pair."""
    role: UserRole
    action: Action
    is_allowed: bool
    is_override: bool = Field(False, description="True if a stored override decides this pair")
    is_locked: bool = Field(False, description="True if overrides cannot change this pair")


class RolePermissionUpdate(BaseModel):
    role: UserRole
    action: Action
    is_allowed: bool


class RolePermissionBatchUpdate(BaseModel):
    updates: list[RolePermissionUpdate] = Field(..., min_length=1)


class RolePermissionBatchResponse(BaseModel):
    message: str
    updated_count: int
    skipped: list[RolePermissionUpdate] = Field(default_factory=list, description="Locked pairs left untouched")


class CapabilityCheckRequest(BaseModel):
    actions: list[Action] = Field(..., min_length=1)


class CapabilityCheckResponse(BaseModel):
    role: UserRole
    results: dict[Action, bool]


class ScopeResponse(BaseModel):
    """Resolved visibility scope, for clients and debugging."""
    resource_type: ResourceType
    role: UserRole
    unrestricted: bool
    organization_ids: list[str]
    created_by_or_collaborator: str | None = None


class AuditLogResponse(BaseModel):
    id: str
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    organization_id: str | None = None
    details: dict | None = None
    ip_address: str | None = None
    created_at: datetime
    
    model_config = {"from_attributes": True}
