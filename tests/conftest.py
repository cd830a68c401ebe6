"""
Shared fixtures.

Every test gets its own SQLite file with all tables created, so tests never
share state. Route tests talk to the app through httpx with authentication
replaced by an `X-Test-User` header carrying a local user id.
"""
from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi import Depends, HTTPException, Request, status
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database.engine import get_db, init_db
from app.features.organizations.hierarchy import OrganizationHierarchy
from app.features.organizations.models import Organization, OrganizationType
from app.features.users.dependencies import get_current_user
from app.features.users.models import User, UserRole, Invitation
from app.features.inspections.models import Inspection, InspectionCollaborator
from app.features.permissions.actor import actor_from_user
from app.features.permissions.collaboration import CollaboratorStatus
from app.features.permissions.scope import ScopeResolver


_sequence = count(1)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def resolver(db):
    return ScopeResolver(OrganizationHierarchy(db))


@pytest.fixture
def make_org(db):
    async def factory(name=None, parent=None, is_active=True, id=None, **fields):
        organization = Organization(
            name=name or f"Org {next(_sequence)}",
            type=OrganizationType.SUBSIDIARY if parent else OrganizationType.ENTERPRISE,
            parent_organization_id=parent.id if parent else None,
            level=parent.level + 1 if parent else 0,
            is_active=is_active,
            **fields
        )
        if id is not None:
            organization.id = id
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        return organization
    
    return factory


@pytest.fixture
def make_user(db):
    async def factory(role=UserRole.INSPECTOR, organization=None, managed=None, email=None, is_active=True):
        n = next(_sequence)
        user = User(
            appwrite_id=f"appwrite-{n}",
            email=email or f"user{n}@example.com",
            name=f"User {n}",
            role=role,
            organization_id=organization.id if organization else None,
            managed_organization_id=managed.id if managed else None,
            is_active=is_active
        )
        user.sync_role_flags()
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    
    return factory


@pytest.fixture
def make_inspection(db):
    async def factory(organization, creator, collaborators=(), **fields):
        inspection = Inspection(
            title=fields.pop("title", f"Inspection {next(_sequence)}"),
            location=fields.pop("location", "Warehouse"),
            organization_id=organization.id,
            created_by=creator.id,
            collaborators=[
                InspectionCollaborator(user_id=user.id, status=collaborator_status)
                for user, collaborator_status in collaborators
            ],
            **fields
        )
        db.add(inspection)
        await db.commit()
        await db.refresh(inspection)
        return inspection
    
    return factory


@pytest.fixture
def make_invitation(db):
    async def factory(email, role, organization, invited_by, expires_in=timedelta(days=7)):
        invitation = Invitation(
            email=email,
            role=role,
            organization_id=organization.id,
            invited_by_id=invited_by.id,
            token=f"token-{next(_sequence)}",
            expires_at=datetime.utcnow() + expires_in
        )
        db.add(invitation)
        await db.commit()
        await db.refresh(invitation)
        return invitation
    
    return factory


@pytest.fixture
def actor_for():
    def build(user, bootstrap_email=None):
        return actor_from_user(user, bootstrap_email).actor
    
    return build


@pytest.fixture
async def tree(make_org):
    """
    P ─┬─ C1 ── G1
       └─ C2
    O (unrelated root)
    """
    parent = await make_org("Holding P")
    child_1 = await make_org("Child C1", parent=parent)
    child_2 = await make_org("Child C2", parent=parent)
    grandchild = await make_org("Grandchild G1", parent=child_1)
    other = await make_org("Other O")
    return {"P": parent, "C1": child_1, "C2": child_2, "G1": grandchild, "O": other}


@pytest.fixture
async def client(session_factory):
    from app.main import app
    
    async def override_get_db():
        async with session_factory() as session:
            yield session
    
    async def override_get_current_user(
        request: Request,
        db: AsyncSession = Depends(get_db)
    ) -> User:
        user = await db.get(User, request.headers.get("X-Test-User", ""))
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")
        return user
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    def headers(user):
        return {"X-Test-User": user.id}
    
    return headers
