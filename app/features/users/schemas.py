"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.features.users.models import UserRole
from app.features.organizations.schemas import OrganizationPublic


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserUpdate(BaseModel):
    """Schema for updating the current user's own profile."""
    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=20)
    
    @field_validator('name')
    @classmethod
    def name_not_null(cls, v):
        if v is None:
            raise ValueError('Name cannot be null')
        return v


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    phone: str | None = None
    role: UserRole
    organization_id: str | None = None
    managed_organization_id: str | None = None
    can_manage_users: bool
    can_create_organizations: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    
    organization: OrganizationPublic | None = None
    
    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    email: EmailStr
    role: UserRole
    organization_id: str | None = None
    is_active: bool
    
    model_config = {"from_attributes": True}


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.INSPECTOR
    organization_id: str


class InvitationResponse(BaseModel):
    id: str
    email: EmailStr
    role: UserRole
    organization_id: str
    invited_by_id: str
    token: str
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime
    
    model_config = {"from_attributes": True}
