"""
Organization Hierarchy Index.

Answers structural questions about the organization tree straight from the
database. Nothing is cached: one index lives for one request, so organizations
created or deactivated by other requests are always visible.

Two traversal depths are exposed on purpose and callers pick one explicitly:
- direct_children: one level (org admin subsidiary rule)
- descendants: the full subtree (transitive closure)
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import Organization
from app.features.permissions.exceptions import HierarchyCorruption
from app.utils import get_logger


log = get_logger(__name__)


class OrganizationHierarchy:
    """
    Read-only view of the organization tree.
    
    Usage:
        hierarchy = OrganizationHierarchy(db)
        children = await hierarchy.direct_children(org_id)
        subtree = await hierarchy.descendants(org_id)
    """
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def direct_children(self, organization_id: str, *, active_only: bool = False) -> set[str]:
        """Ids of organizations whose parent is `organization_id` (never includes itself)."""
        stmt = select(Organization.id).where(Organization.parent_organization_id == organization_id)
        if active_only:
            stmt = stmt.where(Organization.is_active == True)  # noqa: E712
        result = await self.db.execute(stmt)
        return set(result.scalars().all())
    
    async def descendants(self, organization_id: str) -> set[str]:
        """
        Full subtree rooted at `organization_id`, inclusive of the root.
        
        Raises:
            HierarchyCorruption: if an organization is reached twice, which in a
                tree can only happen through a parent cycle
        """
        visited: set[str] = {organization_id}
        frontier = [organization_id]
        
        while frontier:
            result = await self.db.execute(
                select(Organization.id, Organization.parent_organization_id)
                .where(Organization.parent_organization_id.in_(frontier))
            )
            next_frontier = []
            for child_id, parent_id in result.all():
                if child_id in visited:
                    log.error(
                        "Organization cycle detected below %s: %s revisited via parent %s",
                        organization_id, child_id, parent_id
                    )
                    raise HierarchyCorruption(child_id, [organization_id, parent_id, child_id])
                visited.add(child_id)
                next_frontier.append(child_id)
            frontier = next_frontier
        
        return visited
    
    async def is_direct_child(self, organization_id: str, parent_id: str) -> bool:
        """True if `organization_id` exists and its parent is `parent_id`."""
        result = await self.db.execute(
            select(Organization.id).where(
                Organization.id == organization_id,
                Organization.parent_organization_id == parent_id,
            )
        )
        return result.scalar_one_or_none() is not None
    
    async def ancestors(self, organization_id: str) -> list[str]:
        """
        Parent chain of `organization_id`, nearest first, excluding itself.
        
        Raises:
            HierarchyCorruption: if the parent chain loops
        """
        chain: list[str] = []
        seen = {organization_id}
        current = await self._parent_of(organization_id)
        
        while current is not None:
            if current in seen:
                log.error("Organization cycle detected above %s at %s", organization_id, current)
                raise HierarchyCorruption(current, [organization_id, *chain, current])
            seen.add(current)
            chain.append(current)
            current = await self._parent_of(current)
        
        return chain
    
    async def is_ancestor(self, ancestor_id: str, organization_id: str) -> bool:
        """True if `ancestor_id` appears anywhere above `organization_id`."""
        return ancestor_id in await self.ancestors(organization_id)
    
    async def ancestors_active(self, organization_id: str) -> bool:
        """True if every organization above `organization_id` is active."""
        chain = await self.ancestors(organization_id)
        if not chain:
            return True
        result = await self.db.execute(
            select(Organization.id).where(
                Organization.id.in_(chain),
                Organization.is_active == False,  # noqa: E712
            )
        )
        return result.first() is None
    
    async def _parent_of(self, organization_id: str) -> str | None:
        result = await self.db.execute(
            select(Organization.parent_organization_id).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()
