"""
Pydantic schemas for inspections, collaborators and action items.
"""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.features.inspections.models import InspectionStatus, ActionStatus, Priority
from app.features.permissions.collaboration import CollaboratorStatus


class InspectionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    location: str = Field(..., min_length=1, max_length=255)
    organization_id: str | None = Field(None, description="Defaults to the creator's organization")
    scheduled_at: datetime | None = None


class InspectionUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(None, min_length=1, max_length=255)
    status: InspectionStatus | None = None
    scheduled_at: datetime | None = None
    
    @field_validator('title', 'location', 'status')
    @classmethod
    def not_null(cls, v):
        """Omit a field to keep it; null is not a value for it."""
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class CollaboratorResponse(BaseModel):
    id: str
    inspection_id: str
    user_id: str
    status: CollaboratorStatus
    invited_by_id: str | None = None
    created_at: datetime
    
    model_config = {"from_attributes": True}


class InspectionResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    location: str
    status: InspectionStatus
    organization_id: str
    created_by: str
    scheduled_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    collaborators: list[CollaboratorResponse] = []
    
    model_config = {"from_attributes": True}


class CollaboratorAdd(BaseModel):
    user_id: str


class CollaboratorUpdate(BaseModel):
    status: CollaboratorStatus


class ActionItemCreate(BaseModel):
    """5W2H action plan entry."""
    title: str = Field(..., min_length=1, max_length=255)
    what_description: str | None = None
    why_reason: str | None = None
    where_location: str | None = Field(None, max_length=255)
    how_method: str | None = None
    who_responsible: str | None = Field(None, max_length=255)
    how_much_cost: str | None = Field(None, max_length=100)
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM


class ActionItemResponse(BaseModel):
    id: str
    inspection_id: str
    organization_id: str
    title: str
    what_description: str | None = None
    why_reason: str | None = None
    where_location: str | None = None
    how_method: str | None = None
    who_responsible: str | None = None
    how_much_cost: str | None = None
    due_date: datetime | None = None
    status: ActionStatus
    priority: Priority
    created_by: str
    created_at: datetime
    
    model_config = {"from_attributes": True}


class ActionItemUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    who_responsible: str | None = Field(None, max_length=255)
    due_date: datetime | None = None
    status: ActionStatus | None = None
    priority: Priority | None = None
    
    @field_validator('title', 'status', 'priority')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError('Field cannot be null')
        return v
