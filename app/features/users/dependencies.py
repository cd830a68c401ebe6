"""
FastAPI dependencies for authentication and user profile provisioning.
"""
from typing import Annotated
from datetime import datetime
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.users.models import User, UserRole, Invitation
from app.features.users.auth import verify_jwt_token, get_appwrite_user
from app.features.permissions.actor import is_bootstrap_identity
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer()


async def find_pending_invitation(db: AsyncSession, email: str) -> Invitation | None:
    """Most recent unaccepted, unexpired invitation for `email`."""
    result = await db.execute(
        select(Invitation)
        .where(
            func.lower(Invitation.email) == email.strip().lower(),
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > datetime.utcnow(),
        )
        .order_by(Invitation.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def provision_user(
    db: AsyncSession,
    appwrite_id: str,
    email: str,
    name: str,
    bootstrap_email: str | None = None
) -> User:
    """
    Create the local profile for a principal seen for the first time.
    
    A pending invitation decides role and organization (org admins also get
    the invited organization as their managed organization). Without one, the
    bootstrap identity and the very first user become system admins and
    everyone else starts as an inspector with no organization.
    """
    is_bootstrap = is_bootstrap_identity(email, bootstrap_email)
    invitation = None if is_bootstrap else await find_pending_invitation(db, email)
    
    user = User(
        appwrite_id=appwrite_id,
        email=email.strip().lower(),
        name=name,
        last_login_at=datetime.utcnow(),
    )
    
    if invitation is not None:
        user.role = invitation.role
        user.organization_id = invitation.organization_id
        if invitation.role == UserRole.ORG_ADMIN:
            user.managed_organization_id = invitation.organization_id
        invitation.accepted_at = datetime.utcnow()
        log.info(f"Provisioning {email} from invitation {invitation.id} as {invitation.role.value}")
    else:
        user_count = (await db.execute(select(func.count(User.id)))).scalar_one()
        user.role = UserRole.SYSTEM_ADMIN if is_bootstrap or user_count == 0 else UserRole.INSPECTOR
        log.info(f"Provisioning {email} without invitation as {user.role.value}")
    
    user.sync_role_flags()
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from JWT token.
    
    This dependency:
    1. Extracts JWT from Authorization header
    2. Verifies JWT with Appwrite
    3. Looks up or provisions the user in local database
    4. Updates last_login_at timestamp
    
    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    token = credentials.credentials
    
    # Verify JWT and get payload
    payload = verify_jwt_token(token)
    appwrite_user_id = payload.get("userId")
    
    if not appwrite_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    
    # Get user from database
    result = await db.execute(
        select(User).where(User.appwrite_id == appwrite_user_id)
    )
    user = result.scalar_one_or_none()
    
    # If user doesn't exist locally, fetch from Appwrite and provision
    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_user_id)
        email = appwrite_user.get("email", "")
        user = await provision_user(
            db,
            appwrite_id=appwrite_user_id,
            email=email,
            name=appwrite_user.get("name") or email,
            bootstrap_email=config.BOOTSTRAP_ADMIN_EMAIL,
        )
    else:
        # Update last login time
        user.last_login_at = datetime.utcnow()
        await db.commit()
        await db.refresh(user)
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
