"""
User and invitation models.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid


class UserRole(str, enum.Enum):
    """
    Closed set of roles, most privileged first.
    
    CLIENT is the most restricted role: read-only access to its organization.
    """
    SYSTEM_ADMIN = "system_admin"
    ORG_ADMIN = "org_admin"
    MANAGER = "manager"
    INSPECTOR = "inspector"
    CLIENT = "client"
    
    @property
    def is_admin(self) -> bool:
        return self in (UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN)


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.
    
    Every user has one home organization. Org admins additionally carry the
    root of the subsidiary tree they administer in managed_organization_id.
    """
    __tablename__ = "users"
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Appwrite user ID (the authenticated principal)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    
    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.INSPECTOR,
        nullable=False,
        index=True
    )
    
    # Home organization (only empty while onboarding)
    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    # Root of the administered subtree, org admins only
    managed_organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    # Derived from role, see sync_role_flags
    can_manage_users: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_create_organizations: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    
    organization: Mapped["Organization"] = relationship(  # type: ignore
        "Organization",
        foreign_keys=[organization_id],
        lazy="selectin"
    )
    
    def sync_role_flags(self) -> None:
        """Re-derive the redundant capability flags from the role."""
        self.can_manage_users = self.role.is_admin
        self.can_create_organizations = self.role.is_admin
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"


class Invitation(Base, TimestampMixin):
    """
    Pending invitation for an email address to join an organization with a role.
    
    Consumed on the invitee's first login, see users.dependencies.provision_user.
    """
    __tablename__ = "invitations"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )
    invited_by_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    
    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email={self.email!r}, org_id={self.organization_id}, role={self.role})>"
