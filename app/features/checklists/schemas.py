"""
Pydantic schemas for checklist templates.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, field_validator


class ChecklistItem(BaseModel):
    question: str = Field(..., min_length=1)
    field_type: str = Field("boolean", description="boolean, text, number, rating, multiple_choice")
    required: bool = False
    options: list[str] | None = None


class ChecklistTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str = Field("geral", max_length=50)
    items: list[ChecklistItem] = []
    organization_id: str | None = Field(None, description="Defaults to the creator's organization")
    is_default: bool = False


class ChecklistTemplateUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=50)
    items: list[ChecklistItem] | None = None
    is_active: bool | None = None
    is_default: bool | None = None
    
    @field_validator('name', 'category', 'items', 'is_active', 'is_default')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class ChecklistTemplateResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str
    items: list[dict[str, Any]]
    organization_id: str
    created_by: str
    is_active: bool
    is_default: bool
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}
