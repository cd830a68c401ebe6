from sqlalchemy import select

from app.features.users.models import User, UserRole, Invitation
from app.features.permissions.models import AuditLog


async def test_me_reports_profile_and_role(client, as_user, make_user, tree):
    user = await make_user(UserRole.MANAGER, organization=tree["C1"])
    
    response = await client.get("/users/me", headers=as_user(user))
    
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "manager"
    assert body["organization"]["id"] == tree["C1"].id


async def test_me_reports_bootstrap_role(client, as_user, make_user, monkeypatch):
    from app.core import config
    monkeypatch.setattr(config, "BOOTSTRAP_ADMIN_EMAIL", "owner@example.com")
    user = await make_user(UserRole.INSPECTOR, email="owner@example.com")
    
    response = await client.get("/users/me", headers=as_user(user))

    assert response.status_code == 200
    assert response.json()["role"] == "system_admin"
    assert response.json()["updated_at"] is not None

    # Already promoted: the second request takes the plain path
    again = await client.get("/users/me", headers=as_user(user))
    assert again.status_code == 200
    assert again.json()["role"] == "system_admin"


async def test_unauthenticated_request_is_rejected(client):
    assert (await client.get("/users/me")).status_code == 401


async def test_list_users_scoped_to_organizations(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    in_child = await make_user(UserRole.INSPECTOR, organization=tree["C1"])
    await make_user(UserRole.INSPECTOR, organization=tree["G1"])
    await make_user(UserRole.INSPECTOR, organization=tree["O"])
    
    response = await client.get("/users/", headers=as_user(admin))
    
    assert {user["id"] for user in response.json()} == {admin.id, in_child.id}


async def test_list_users_with_foreign_filter_is_forbidden(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    response = await client.get("/users/", params={"organization_id": tree["O"].id}, headers=as_user(admin))
    
    assert response.status_code == 403


async def test_org_admin_invites_into_subsidiary(client, as_user, db, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    response = await client.post(
        "/users/invitations",
        json={"email": "New.Hire@Example.com", "role": "inspector", "organization_id": tree["C2"].id},
        headers=as_user(admin)
    )
    
    assert response.status_code == 201
    assert response.json()["email"] == "new.hire@example.com"
    invitation = (await db.execute(select(Invitation))).scalar_one()
    assert invitation.invited_by_id == admin.id
    audit = (await db.execute(select(AuditLog).where(AuditLog.action == "invite_user"))).scalar_one()
    assert audit.resource_id == invitation.id


async def test_org_admin_cannot_invite_outside_subtree_or_system_admins(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    outside = await client.post(
        "/users/invitations",
        json={"email": "a@example.com", "role": "inspector", "organization_id": tree["G1"].id},
        headers=as_user(admin)
    )
    escalation = await client.post(
        "/users/invitations",
        json={"email": "b@example.com", "role": "system_admin", "organization_id": tree["C1"].id},
        headers=as_user(admin)
    )
    
    assert outside.status_code == 403
    assert escalation.status_code == 403


async def test_inspector_cannot_invite(client, as_user, make_user, tree):
    inspector = await make_user(UserRole.INSPECTOR, organization=tree["C1"])
    
    response = await client.post(
        "/users/invitations",
        json={"email": "c@example.com", "role": "inspector", "organization_id": tree["C1"].id},
        headers=as_user(inspector)
    )
    
    assert response.status_code == 403


async def test_deactivate_user(client, as_user, db, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    target = await make_user(UserRole.INSPECTOR, organization=tree["C1"])
    stranger = await make_user(UserRole.INSPECTOR, organization=tree["O"])
    
    assert (await client.patch(f"/users/{target.id}/deactivate", headers=as_user(admin))).status_code == 200
    assert (await client.patch(f"/users/{stranger.id}/deactivate", headers=as_user(admin))).status_code == 404
    assert (await client.patch(f"/users/{admin.id}/deactivate", headers=as_user(admin))).status_code == 400
    
    await db.refresh(target)
    assert target.is_active is False
    assert (await client.get("/users/me", headers=as_user(target))).status_code == 403


async def test_system_admin_cannot_invite_into_unknown_organization(client, as_user, db, make_user):
    root = await make_user(UserRole.SYSTEM_ADMIN)

    response = await client.post(
        "/users/invitations",
        json={"email": "someone@example.com", "role": "inspector", "organization_id": "does-not-exist"},
        headers=as_user(root)
    )

    assert response.status_code == 404
    assert (await db.execute(select(Invitation))).scalars().all() == []


async def test_profile_name_cannot_be_cleared(client, as_user, make_user, tree):
    user = await make_user(UserRole.INSPECTOR, organization=tree["C1"])

    refused = await client.patch("/users/me", json={"name": None}, headers=as_user(user))
    cleared = await client.patch("/users/me", json={"phone": None}, headers=as_user(user))

    assert refused.status_code == 400
    assert cleared.status_code == 200
    assert cleared.json()["name"] == user.name
