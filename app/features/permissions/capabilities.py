"""
Permission Capability Checker.

Answers "is this kind of action ever permitted for this role", with no I/O and
without looking at any particular record or organization. Per-record checks
belong to the scope resolver.
"""
import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from app.features.users.models import UserRole
from app.features.permissions.actor import Actor


class Action(str, enum.Enum):
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_REPORTS = "view_reports"
    CREATE_ORGANIZATION = "create_organization"
    MANAGE_ORGANIZATION = "manage_organization"
    INVITE_USER = "invite_user"
    MANAGE_USERS = "manage_users"
    CREATE_INSPECTION = "create_inspection"
    EDIT_INSPECTION = "edit_inspection"
    DELETE_INSPECTION = "delete_inspection"
    MANAGE_ACTION_PLANS = "manage_action_plans"
    EXPORT_DATA = "export_data"
    MANAGE_TEMPLATES = "manage_templates"
    MANAGE_ROLE_PERMISSIONS = "manage_role_permissions"


ALL_ROLES = frozenset(UserRole)
ADMIN_ROLES = frozenset({UserRole.SYSTEM_ADMIN, UserRole.ORG_ADMIN})
# Everyone but the most restricted role
WORKING_ROLES = ALL_ROLES - {UserRole.CLIENT}


DEFAULT_CAPABILITIES: dict[Action, frozenset[UserRole]] = {
    Action.VIEW_DASHBOARD: ALL_ROLES,
    Action.VIEW_REPORTS: ALL_ROLES,
    Action.CREATE_ORGANIZATION: frozenset({UserRole.SYSTEM_ADMIN}),
    Action.MANAGE_ORGANIZATION: ADMIN_ROLES,
    Action.INVITE_USER: ADMIN_ROLES,
    Action.MANAGE_USERS: ADMIN_ROLES,
    Action.CREATE_INSPECTION: WORKING_ROLES,
    Action.EDIT_INSPECTION: ADMIN_ROLES,
    Action.DELETE_INSPECTION: ADMIN_ROLES,
    Action.MANAGE_ACTION_PLANS: WORKING_ROLES,
    Action.EXPORT_DATA: WORKING_ROLES,
    Action.MANAGE_TEMPLATES: ADMIN_ROLES,
    Action.MANAGE_ROLE_PERMISSIONS: frozenset({UserRole.SYSTEM_ADMIN}),
}

# Granted to the record's creator on top of the role table
CREATOR_ACTIONS = frozenset({Action.EDIT_INSPECTION})

# Overrides never apply to these
LOCKED_ACTIONS = frozenset({Action.MANAGE_ROLE_PERMISSIONS})


class OwnedRecord(Protocol):
    created_by: str | None


@dataclass(frozen=True)
class CapabilityTable:
    """
    The role x action table, optionally adjusted by stored overrides.
    
    Overrides map (role, action) to allowed/denied. They never touch
    SYSTEM_ADMIN and never touch LOCKED_ACTIONS.
    """
    defaults: Mapping[Action, frozenset[UserRole]] = field(default_factory=lambda: DEFAULT_CAPABILITIES)
    overrides: Mapping[tuple[UserRole, Action], bool] = field(default_factory=dict)
    
    @classmethod
    def from_overrides(cls, rows: Iterable[tuple[UserRole, Action, bool]]) -> "CapabilityTable":
        overrides = {}
        for role, action, is_allowed in rows:
            if role == UserRole.SYSTEM_ADMIN or action in LOCKED_ACTIONS:
                continue
            overrides[(role, action)] = bool(is_allowed)
        return cls(overrides=overrides)
    
    def allows(self, role: UserRole, action: Action) -> bool:
        if role == UserRole.SYSTEM_ADMIN:
            return True
        key = (role, action)
        if key in self.overrides:
            return self.overrides[key]
        return role in self.defaults.get(action, frozenset())


DEFAULT_TABLE = CapabilityTable()


def can_perform(actor: Actor, action: Action, table: CapabilityTable = DEFAULT_TABLE) -> bool:
    """
    True if the actor's role may ever perform `action`.
    
    Inactive actors may not perform anything. Unknown actions are denied.
    """
    if not actor.is_active:
        return False
    return table.allows(actor.role, action)


def can_perform_on(
    actor: Actor,
    action: Action,
    record: OwnedRecord,
    table: CapabilityTable = DEFAULT_TABLE
) -> bool:
    """
    Like can_perform, but creator-bound actions are also granted to the
    record's creator. Visibility of the record is checked separately.
    """
    if can_perform(actor, action, table):
        return True
    return (
        actor.is_active
        and action in CREATOR_ACTIONS
        and record.created_by is not None
        and record.created_by == actor.user_id
    )
