"""
User feature routes.
"""
import secrets
from typing import Annotated
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.users.models import User, UserRole, Invitation
from app.features.users.schemas import (
    UserResponse,
    UserPublic,
    UserUpdate,
    InvitationCreate,
    InvitationResponse
)
from app.features.users.dependencies import get_current_user
from app.features.organizations.dependencies import get_organization_by_id, require_organization_filter
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import Action
from app.features.permissions.dependencies import (
    CurrentActor,
    Scopes,
    require_action,
    create_audit_log
)
from app.features.permissions.scope import ResourceType


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)],
    actor: CurrentActor
):
    """Get current authenticated user's profile, with the role in effect for this request."""
    response = UserResponse.model_validate(user)
    response.role = actor.role
    return response


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    # Update only provided fields
    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    actor: CurrentActor,
    scopes: Scopes,
    organization_id: Annotated[str | None, Depends(require_organization_filter)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """
    List users in the organizations visible to the current user.

    An `organization_id` query parameter narrows the listing to one
    organization, which must itself be accessible.
    """
    scope = await scopes.resolve_scope(actor, ResourceType.USER, organization_id)
    if scope.is_empty:
        return []

    query = select(User)
    if not scope.unrestricted:
        query = query.where(User.organization_id.in_(sorted(scope.organization_ids)))

    result = await db.execute(query.order_by(User.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    actor: CurrentActor,
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user profile visible to the current user."""
    user = await db.get(User, user_id)

    if user is None or not (
        user.id == actor.user_id
        or (await scopes.resolve_scope(actor, ResourceType.USER)).includes_organization(user.organization_id)
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


@router.post("/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def invite_user(
    invitation_data: InvitationCreate,
    request: Request,
    actor: Annotated[Actor, Depends(require_action(Action.INVITE_USER))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Invite someone into an organization with a given role.

    The invitation is consumed the first time that email signs in.
    """
    await get_organization_by_id(invitation_data.organization_id, db)
    if not await scopes.can_access_organization(actor, invitation_data.organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this organization"
        )

    if invitation_data.role == UserRole.SYSTEM_ADMIN and not actor.is_system_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only system administrators can invite system administrators"
        )

    email = invitation_data.email.strip().lower()
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with this email already exists"
        )

    invitation = Invitation(
        email=email,
        role=invitation_data.role,
        organization_id=invitation_data.organization_id,
        invited_by_id=actor.user_id,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.utcnow() + timedelta(days=config.INVITATION_TTL_DAYS)
    )
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="invite_user",
        resource_type="invitation",
        resource_id=invitation.id,
        organization_id=invitation.organization_id,
        details={"email": email, "role": invitation.role.value},
        request=request
    )

    return invitation


@router.patch("/{user_id}/deactivate", response_model=UserPublic)
async def deactivate_user(
    user_id: str,
    request: Request,
    actor: Annotated[Actor, Depends(require_action(Action.MANAGE_USERS))],
    scopes: Scopes,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a user account inside the current user's organizations."""
    user = await db.get(User, user_id)

    if user is None or not (
        actor.is_system_admin
        or user.organization_id is not None
        and await scopes.can_access_organization(actor, user.organization_id)
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    # Prevent self-deactivation
    if user.id == actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    if user.role == UserRole.SYSTEM_ADMIN and not actor.is_system_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only system administrators can deactivate system administrators"
        )

    user.is_active = False
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db,
        user_id=actor.user_id,
        action="deactivate_user",
        resource_type="user",
        resource_id=user.id,
        organization_id=user.organization_id,
        request=request
    )

    return user
