"""
Identity & role resolution.

An Actor is the per-request snapshot of who is asking: user id, role and
organizational position. It is rebuilt for every request and never cached,
because roles and organizations change between requests.
"""
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.users.models import User, UserRole
from app.features.permissions.exceptions import ActorNotFound
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: UserRole
    home_organization_id: str | None = None
    managed_organization_id: str | None = None
    email: str | None = None
    is_active: bool = True
    
    @property
    def is_system_admin(self) -> bool:
        return self.role == UserRole.SYSTEM_ADMIN
    
    @property
    def is_org_admin(self) -> bool:
        return self.role == UserRole.ORG_ADMIN


@dataclass(frozen=True)
class PromotionSignal:
    """Request to persist role = system_admin for a user whose stored role disagrees."""
    user_id: str


@dataclass(frozen=True)
class ActorResolution:
    actor: Actor
    promotion: PromotionSignal | None = None


def is_bootstrap_identity(email: str | None, bootstrap_email: str | None) -> bool:
    """Case-insensitive match against the configured bootstrap identity."""
    if not email or not bootstrap_email:
        return False
    return email.strip().lower() == bootstrap_email.strip().lower()


def actor_from_user(user: User, bootstrap_email: str | None = None) -> ActorResolution:
    """
    Build the Actor for a loaded user profile.
    
    The bootstrap identity always resolves as SYSTEM_ADMIN. When its stored
    role disagrees, the resolution carries a PromotionSignal; executing it is
    up to the caller (see promote_bootstrap_identity).
    """
    role = user.role
    promotion = None
    
    if is_bootstrap_identity(user.email, bootstrap_email) and role != UserRole.SYSTEM_ADMIN:
        log.warning(f"Bootstrap identity {user.email} stored as {role.value}, resolving as system_admin")
        role = UserRole.SYSTEM_ADMIN
        promotion = PromotionSignal(user_id=user.id)
    
    actor = Actor(
        user_id=user.id,
        role=role,
        home_organization_id=user.organization_id,
        managed_organization_id=user.managed_organization_id if role == UserRole.ORG_ADMIN else None,
        email=user.email,
        is_active=user.is_active,
    )
    return ActorResolution(actor=actor, promotion=promotion)


async def resolve_actor(
    db: AsyncSession,
    principal_id: str,
    bootstrap_email: str | None = None
) -> ActorResolution:
    """
    Resolve the Actor for an authenticated principal (Appwrite user id).
    
    Args:
        db: Database session
        principal_id: Authenticated principal
        bootstrap_email: Bootstrap identity, defaults to config.BOOTSTRAP_ADMIN_EMAIL
    
    Raises:
        ActorNotFound: if no user profile matches; provisioning one is the caller's call
    """
    result = await db.execute(select(User).where(User.appwrite_id == principal_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise ActorNotFound(principal_id)
    
    if bootstrap_email is None:
        bootstrap_email = config.BOOTSTRAP_ADMIN_EMAIL
    return actor_from_user(user, bootstrap_email)


async def promote_bootstrap_identity(db: AsyncSession, signal: PromotionSignal) -> bool:
    """
    Persist the bootstrap promotion. Idempotent: a user that already is
    system admin is left untouched.
    
    Returns:
        True if a row was changed
    """
    result = await db.execute(
        update(User)
        .where(User.id == signal.user_id, User.role != UserRole.SYSTEM_ADMIN)
        .values(role=UserRole.SYSTEM_ADMIN, can_manage_users=True, can_create_organizations=True)
    )
    await db.commit()
    changed = result.rowcount > 0
    if changed:
        log.warning(f"Promoted bootstrap identity {signal.user_id} to system_admin")
    return changed
