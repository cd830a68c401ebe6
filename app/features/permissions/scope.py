"""
Visibility Scope Resolver.

Turns an Actor and a resource type into a VisibilityScope: the set of
organizations whose records are visible, plus an optional creator/collaborator
clause. The same scope filters listings (see permissions.query) and
authorizes single records (can_access_record).

Resolution order:
1. explicit organization filter, verified with can_access_organization
2. system admin: unrestricted
3. org admin with a managed organization: managed org + its direct children
4. any actor with a home organization: that organization
5. nobody else sees anything
Roles below org admin are then narrowed by the collaboration filter on
record-level resource types.
"""
import enum
from dataclasses import dataclass
from typing import Any, Iterable

from app.features.organizations.hierarchy import OrganizationHierarchy
from app.features.users.models import UserRole
from app.features.permissions.actor import Actor
from app.features.permissions.collaboration import CollaborationClause, restrict, satisfies
from app.utils import get_logger


log = get_logger(__name__)


class ResourceType(str, enum.Enum):
    INSPECTION = "inspection"
    ACTION_ITEM = "action_item"
    CHECKLIST_TEMPLATE = "checklist_template"
    ORGANIZATION = "organization"
    USER = "user"
    
    @property
    def has_creator(self) -> bool:
        """Record-level types carry a creator and take the collaboration filter."""
        return self in (ResourceType.INSPECTION, ResourceType.ACTION_ITEM, ResourceType.CHECKLIST_TEMPLATE)


@dataclass(frozen=True)
class VisibilityScope:
    """
    One of:
    - Unrestricted
    - OrganizationIn(organization_ids)
    - OrganizationIn(organization_ids) AND (CreatedBy(u) OR CollaboratorActive(u))
    
    An OrganizationIn over no organizations is the empty scope: nothing visible.
    """
    unrestricted: bool = False
    organization_ids: frozenset[str] = frozenset()
    collaboration: CollaborationClause | None = None
    
    @classmethod
    def everything(cls) -> "VisibilityScope":
        return cls(unrestricted=True)
    
    @classmethod
    def organization_in(cls, organization_ids: Iterable[str]) -> "VisibilityScope":
        return cls(organization_ids=frozenset(organization_ids))
    
    @classmethod
    def empty(cls) -> "VisibilityScope":
        return cls()
    
    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.organization_ids
    
    def includes_organization(self, organization_id: str | None) -> bool:
        if self.unrestricted:
            return True
        return organization_id is not None and organization_id in self.organization_ids
    
    def permits(self, record: Any) -> bool:
        """Test a loaded record (anything with organization_id, created_by, collaborators)."""
        if not self.includes_organization(getattr(record, "organization_id", None)):
            return False
        if self.collaboration is not None:
            return satisfies(self.collaboration, record)
        return True
    
    def describe(self) -> dict:
        return {
            "unrestricted": self.unrestricted,
            "organization_ids": sorted(self.organization_ids),
            "created_by_or_collaborator": self.collaboration.user_id if self.collaboration else None,
        }


class ScopeResolver:
    """
    Usage:
        resolver = ScopeResolver(OrganizationHierarchy(db))
        scope = await resolver.resolve_scope(actor, ResourceType.INSPECTION)
        stmt = apply_scope(select(Inspection), scope, INSPECTION_SCOPE)
    """
    
    def __init__(self, hierarchy: OrganizationHierarchy):
        self.hierarchy = hierarchy
    
    async def resolve_scope(
        self,
        actor: Actor,
        resource_type: ResourceType,
        explicit_organization_id: str | None = None,
        *,
        verify_filter: bool = True
    ) -> VisibilityScope:
        """
        Compute what `actor` may see of `resource_type`.
        
        Args:
            actor: Resolved actor
            resource_type: Kind of record being listed or checked
            explicit_organization_id: Caller-supplied organization filter
            verify_filter: Reject an explicit filter the actor may not access.
                With False the filter is trusted as given, callers must then
                authorize it themselves.
        """
        if not actor.is_active:
            log.debug(f"Actor {actor.user_id} is inactive - empty scope")
            return VisibilityScope.empty()
        
        if explicit_organization_id is not None:
            if verify_filter and not await self.can_access_organization(actor, explicit_organization_id):
                log.warning(
                    f"Rejected organization filter {explicit_organization_id} for actor "
                    f"{actor.user_id} ({actor.role.value})"
                )
                return VisibilityScope.empty()
            scope = VisibilityScope.organization_in({explicit_organization_id})
            log.debug(f"Actor {actor.user_id} - explicit organization filter {explicit_organization_id}")
        elif actor.role == UserRole.SYSTEM_ADMIN:
            log.debug(f"Actor {actor.user_id} is system admin - unrestricted {resource_type.value} scope")
            return VisibilityScope.everything()
        elif actor.role == UserRole.ORG_ADMIN and actor.managed_organization_id:
            managed = actor.managed_organization_id
            children = await self.hierarchy.direct_children(
                managed,
                active_only=resource_type == ResourceType.ORGANIZATION
            )
            scope = VisibilityScope.organization_in({managed, *children})
            log.debug(f"Actor {actor.user_id} is org admin of {managed} - {len(children)} subsidiaries")
        elif actor.home_organization_id:
            scope = VisibilityScope.organization_in({actor.home_organization_id})
            log.debug(f"Actor {actor.user_id} - home organization {actor.home_organization_id}")
        else:
            log.debug(f"Actor {actor.user_id} has no organization - empty scope")
            return VisibilityScope.empty()
        
        if resource_type.has_creator:
            scope = restrict(scope, actor)
        return scope
    
    async def can_access_organization(self, actor: Actor, organization_id: str) -> bool:
        """
        True if the actor may act within `organization_id`:
        system admins anywhere, org admins in their managed organization and
        its direct children, everyone else in their home organization.
        """
        if not actor.is_active:
            return False
        if actor.role == UserRole.SYSTEM_ADMIN:
            return True
        if actor.role == UserRole.ORG_ADMIN and actor.managed_organization_id:
            if organization_id == actor.managed_organization_id:
                return True
            return await self.hierarchy.is_direct_child(organization_id, actor.managed_organization_id)
        return actor.home_organization_id is not None and organization_id == actor.home_organization_id
    
    async def can_access_record(
        self,
        actor: Actor,
        record: Any,
        resource_type: ResourceType = ResourceType.INSPECTION
    ) -> bool:
        """
        True if `record` falls inside the actor's scope for `resource_type`.
        Must pass before any single-record mutation.
        """
        scope = await self.resolve_scope(actor, resource_type)
        allowed = scope.permits(record)
        if not allowed:
            log.debug(
                f"Actor {actor.user_id} denied {resource_type.value} "
                f"{getattr(record, 'id', None)} in org {getattr(record, 'organization_id', None)}"
            )
        return allowed
