"""
Seed script to populate a demo organization tree.

Run this script after database initialization to create:
- One master organization
- Two enterprises under it
- Subsidiaries under each enterprise

Existing organizations (matched by name and parent) are left alone, so the
script can be run repeatedly.

Usage:
    uv run python -m scripts.seed_organizations
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.organizations.models import Organization, OrganizationType, SubscriptionPlan
from app.utils import get_logger


log = get_logger(__name__)


DEMO_TREE = {
    "name": "Compia Master",
    "type": OrganizationType.MASTER,
    "plan": SubscriptionPlan.ENTERPRISE,
    "children": [
        {
            "name": "Acme Industrial",
            "type": OrganizationType.ENTERPRISE,
            "plan": SubscriptionPlan.PRO,
            "children": [
                {"name": "Acme Plant North", "type": OrganizationType.SUBSIDIARY},
                {"name": "Acme Plant South", "type": OrganizationType.SUBSIDIARY},
            ]
        },
        {
            "name": "Beta Construction",
            "type": OrganizationType.ENTERPRISE,
            "plan": SubscriptionPlan.BASIC,
            "children": [
                {"name": "Beta Site Alpha", "type": OrganizationType.SUBSIDIARY},
            ]
        },
    ]
}


async def seed_organization(
    db: AsyncSession,
    node: dict,
    parent: Organization | None = None
) -> int:
    """
    Create `node` and its children below `parent`.
    
    Returns:
        Number of organizations created
    """
    parent_id = parent.id if parent else None
    result = await db.execute(
        select(Organization).where(
            Organization.name == node["name"],
            Organization.parent_organization_id == parent_id if parent_id else Organization.parent_organization_id.is_(None)
        )
    )
    organization = result.scalars().first()
    created = 0
    
    if organization:
        log.debug(f"Organization '{node['name']}' already exists, skipping")
    else:
        children = node.get("children", [])
        organization = Organization(
            name=node["name"],
            type=node["type"],
            plan=node.get("plan", SubscriptionPlan.BASIC),
            parent_organization_id=parent_id,
            level=parent.level + 1 if parent else 0,
            max_subsidiaries=len(children)
        )
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        created += 1
        log.info(f"Created organization: {organization.name} (level {organization.level})")
    
    for child in node.get("children", []):
        created += await seed_organization(db, child, organization)
    
    return created


async def main():
    """Main seed function."""
    log.info("Starting organization seed...")
    
    # Initialize database
    await init_db()
    
    async with AsyncSessionLocal() as db:
        created = await seed_organization(db, DEMO_TREE)
    
    log.info(f"Organization seed completed: {created} created")


if __name__ == "__main__":
    asyncio.run(main())
