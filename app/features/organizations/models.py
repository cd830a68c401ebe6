"""
Organization models for the inspection backend.

Organizations form a tree: a master organization holds enterprises, which hold
subsidiaries. `level` is the denormalized depth used for ordering listings.
"""
from sqlalchemy import String, ForeignKey, Boolean, Integer, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid


class OrganizationType(str, enum.Enum):
    """Position of an organization in the group structure."""
    MASTER = "master"
    ENTERPRISE = "enterprise"
    SUBSIDIARY = "subsidiary"


class SubscriptionPlan(str, enum.Enum):
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Organization(Base, TimestampMixin):
    """
    Organization model.
    
    The parent relation must stay acyclic. Deactivated organizations are kept
    (never cascade-deleted) so records that reference them stay valid.
    """
    __tablename__ = "organizations"
    
    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[OrganizationType] = mapped_column(
        SQLEnum(OrganizationType),
        default=OrganizationType.ENTERPRISE,
        nullable=False
    )
    
    # Hierarchy
    parent_organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=True,
        index=True
    )
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    # Optional organization details
    document_number: Mapped[str | None] = mapped_column(String(32), nullable=True)  # CNPJ
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    
    # Subscription
    plan: Mapped[SubscriptionPlan] = mapped_column(
        SQLEnum(SubscriptionPlan),
        default=SubscriptionPlan.BASIC,
        nullable=False
    )
    max_users: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    max_subsidiaries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    parent: Mapped["Organization"] = relationship(
        "Organization",
        remote_side=[id],
        lazy="noload"
    )
    
    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r}, parent={self.parent_organization_id})>"
