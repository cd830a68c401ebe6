"""
Persistence for the authorization layer.

- RolePermission: administrator overrides of the role x action table
- AuditLog: who did what, when and from where
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Boolean, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.users.models import UserRole
from app.features.permissions.capabilities import Action


class RolePermission(Base, TimestampMixin):
    """
    Override for one (role, action) pair.
    
    Read into a CapabilityTable per request; rows for system_admin or for
    locked actions are ignored there.
    """
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role", "action", name="uq_role_permissions_role_action"),)
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), nullable=False, index=True)
    action: Mapped[Action] = mapped_column(SQLEnum(Action), nullable=False)
    is_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    
    def __repr__(self) -> str:
        return f"<RolePermission(role={self.role}, action={self.action}, allowed={self.is_allowed})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for tracking privileged actions.
    
    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"
    
    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    
    # Context
    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    
    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
