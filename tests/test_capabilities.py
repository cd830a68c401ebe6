from types import SimpleNamespace

import pytest

from app.features.users.models import UserRole
from app.features.permissions.actor import Actor
from app.features.permissions.capabilities import (
    Action,
    CapabilityTable,
    DEFAULT_CAPABILITIES,
    can_perform,
    can_perform_on,
)


def actor(role, user_id="u1", is_active=True):
    return Actor(user_id=user_id, role=role, home_organization_id="org", is_active=is_active)


def test_every_action_has_a_default():
    assert set(DEFAULT_CAPABILITIES) == set(Action)


@pytest.mark.parametrize("action", list(Action))
def test_system_admin_can_do_everything(action):
    assert can_perform(actor(UserRole.SYSTEM_ADMIN), action)


@pytest.mark.parametrize("role, action, allowed", [
    (UserRole.ORG_ADMIN, Action.CREATE_ORGANIZATION, False),
    (UserRole.ORG_ADMIN, Action.INVITE_USER, True),
    (UserRole.ORG_ADMIN, Action.MANAGE_TEMPLATES, True),
    (UserRole.ORG_ADMIN, Action.MANAGE_ROLE_PERMISSIONS, False),
    (UserRole.MANAGER, Action.INVITE_USER, False),
    (UserRole.INSPECTOR, Action.CREATE_INSPECTION, True),
    (UserRole.INSPECTOR, Action.DELETE_INSPECTION, False),
    (UserRole.CLIENT, Action.VIEW_DASHBOARD, True),
    (UserRole.CLIENT, Action.CREATE_INSPECTION, False),
])
def test_default_table(role, action, allowed):
    assert can_perform(actor(role), action) is allowed


def test_can_perform_has_no_side_effects():
    table = CapabilityTable.from_overrides([(UserRole.MANAGER, Action.INVITE_USER, True)])
    subject = actor(UserRole.MANAGER)
    
    first = can_perform(subject, Action.INVITE_USER, table)
    second = can_perform(subject, Action.INVITE_USER, table)
    
    assert first is second is True
    assert table.overrides == {(UserRole.MANAGER, Action.INVITE_USER): True}


def test_inactive_actor_can_do_nothing():
    assert not can_perform(actor(UserRole.SYSTEM_ADMIN, is_active=False), Action.VIEW_DASHBOARD)


def test_overrides_grant_and_revoke():
    table = CapabilityTable.from_overrides([
        (UserRole.INSPECTOR, Action.DELETE_INSPECTION, True),
        (UserRole.ORG_ADMIN, Action.INVITE_USER, False),
    ])
    
    assert can_perform(actor(UserRole.INSPECTOR), Action.DELETE_INSPECTION, table)
    assert not can_perform(actor(UserRole.ORG_ADMIN), Action.INVITE_USER, table)
    # Untouched pairs keep their default
    assert can_perform(actor(UserRole.ORG_ADMIN), Action.MANAGE_USERS, table)


def test_overrides_never_touch_system_admin_or_locked_actions():
    table = CapabilityTable.from_overrides([
        (UserRole.SYSTEM_ADMIN, Action.CREATE_ORGANIZATION, False),
        (UserRole.ORG_ADMIN, Action.MANAGE_ROLE_PERMISSIONS, True),
    ])
    
    assert table.overrides == {}
    assert can_perform(actor(UserRole.SYSTEM_ADMIN), Action.CREATE_ORGANIZATION, table)
    assert not can_perform(actor(UserRole.ORG_ADMIN), Action.MANAGE_ROLE_PERMISSIONS, table)


def test_creator_may_edit_own_inspection():
    inspector = actor(UserRole.INSPECTOR, user_id="creator")
    
    assert not can_perform(inspector, Action.EDIT_INSPECTION)
    assert can_perform_on(inspector, Action.EDIT_INSPECTION, SimpleNamespace(created_by="creator"))
    assert not can_perform_on(inspector, Action.EDIT_INSPECTION, SimpleNamespace(created_by="someone-else"))


def test_creator_grant_is_limited_to_editing():
    inspector = actor(UserRole.INSPECTOR, user_id="creator")
    
    assert not can_perform_on(inspector, Action.DELETE_INSPECTION, SimpleNamespace(created_by="creator"))


def test_inactive_creator_gets_no_grant():
    inspector = actor(UserRole.INSPECTOR, user_id="creator", is_active=False)
    
    assert not can_perform_on(inspector, Action.EDIT_INSPECTION, SimpleNamespace(created_by="creator"))
