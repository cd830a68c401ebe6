"""
Checklist template model.
"""
from sqlalchemy import String, Text, Boolean, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.query import ScopeColumns


class ChecklistTemplate(Base, TimestampMixin):
    __tablename__ = "checklist_templates"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="geral")  # e.g. "nr-10", "nr-12"
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )
    created_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    def __repr__(self) -> str:
        return f"<ChecklistTemplate(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


# Templates have no collaborators: below org admin only the creator sees them
CHECKLIST_SCOPE = ScopeColumns(
    organization_id=ChecklistTemplate.organization_id,
    created_by=ChecklistTemplate.created_by,
)
