"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr, field_validator

from app.features.organizations.models import OrganizationType, SubscriptionPlan


class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=255)
    type: OrganizationType = OrganizationType.ENTERPRISE
    document_number: str | None = Field(None, max_length=32, description="Company registration number (CNPJ)")
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization (system admin only)."""
    parent_organization_id: str | None = Field(None, description="Parent organization; omit for a root")
    plan: SubscriptionPlan = SubscriptionPlan.BASIC
    max_users: int = Field(50, ge=1)
    max_subsidiaries: int = Field(0, ge=0)


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)
    is_active: bool | None = None
    
    @field_validator('name', 'is_active')
    @classmethod
    def not_null(cls, v):
        """Name and activation can be changed but not cleared."""
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: str
    parent_organization_id: str | None = None
    level: int
    plan: SubscriptionPlan
    max_users: int
    max_subsidiaries: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}


class OrganizationPublic(BaseModel):
    """Public organization information (limited fields)."""
    id: str
    name: str
    type: OrganizationType
    
    model_config = {"from_attributes": True}


class OrganizationStats(BaseModel):
    organization_id: str
    active_users: int
    subsidiaries: int
    inspections: int
    pending_inspections: int
    completed_inspections: int
    open_action_items: int
    overdue_action_items: int
