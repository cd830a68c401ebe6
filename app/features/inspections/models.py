"""
Inspection, collaborator and action item models.

An inspection belongs to one organization and one creator. Collaborators are
users invited onto a single inspection; only `active` collaborators see it.
Action items follow the visibility of their inspection.
"""
from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime, UniqueConstraint, Enum as SQLEnum, select
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.collaboration import CollaboratorStatus
from app.features.permissions.query import ScopeColumns


class InspectionStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActionStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Inspection(Base, TimestampMixin):
    __tablename__ = "inspections"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[InspectionStatus] = mapped_column(
        SQLEnum(InspectionStatus),
        default=InspectionStatus.DRAFT,
        nullable=False,
        index=True
    )
    
    # Ownership, fixed at creation
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )
    created_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    
    collaborators: Mapped[list["InspectionCollaborator"]] = relationship(
        "InspectionCollaborator",
        back_populates="inspection",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    
    action_items: Mapped[list["ActionItem"]] = relationship(
        "ActionItem",
        back_populates="inspection",
        cascade="all, delete-orphan",
        lazy="noload"
    )
    
    def __repr__(self) -> str:
        return f"<Inspection(id={self.id}, title={self.title!r}, org_id={self.organization_id})>"


class InspectionCollaborator(Base, TimestampMixin):
    __tablename__ = "inspection_collaborators"
    __table_args__ = (UniqueConstraint("inspection_id", "user_id", name="uq_inspection_collaborator"),)
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    inspection_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[CollaboratorStatus] = mapped_column(
        SQLEnum(CollaboratorStatus),
        default=CollaboratorStatus.ACTIVE,
        nullable=False
    )
    invited_by_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)
    
    inspection: Mapped["Inspection"] = relationship("Inspection", back_populates="collaborators", lazy="noload")
    
    def __repr__(self) -> str:
        return f"<InspectionCollaborator(inspection_id={self.inspection_id}, user_id={self.user_id}, status={self.status})>"


class ActionItem(Base, TimestampMixin):
    """5W2H corrective action raised from an inspection."""
    __tablename__ = "action_items"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    inspection_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )
    
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    what_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    why_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    where_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    how_method: Mapped[str | None] = mapped_column(Text, nullable=True)
    who_responsible: Mapped[str | None] = mapped_column(String(255), nullable=True)
    how_much_cost: Mapped[str | None] = mapped_column(String(100), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    
    status: Mapped[ActionStatus] = mapped_column(
        SQLEnum(ActionStatus),
        default=ActionStatus.PENDING,
        nullable=False,
        index=True
    )
    priority: Mapped[Priority] = mapped_column(SQLEnum(Priority), default=Priority.MEDIUM, nullable=False)
    created_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    
    inspection: Mapped["Inspection"] = relationship("Inspection", back_populates="action_items", lazy="selectin")
    
    def __repr__(self) -> str:
        return f"<ActionItem(id={self.id}, inspection_id={self.inspection_id}, status={self.status})>"


def _collaborating_on_inspection(user_id: str):
    return Inspection.id.in_(
        select(InspectionCollaborator.inspection_id).where(
            InspectionCollaborator.user_id == user_id,
            InspectionCollaborator.status == CollaboratorStatus.ACTIVE,
        )
    )


# Inspections, and action items joined to their inspection, are scoped on the inspection
INSPECTION_SCOPE = ScopeColumns(
    organization_id=Inspection.organization_id,
    created_by=Inspection.created_by,
    collaborating=_collaborating_on_inspection,
)
