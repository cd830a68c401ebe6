import pytest

from app.features.users.models import UserRole
from app.features.permissions.collaboration import CollaboratorStatus


@pytest.fixture
async def team(make_user, tree):
    return {
        "author": await make_user(UserRole.INSPECTOR, organization=tree["C1"]),
        "colleague": await make_user(UserRole.INSPECTOR, organization=tree["C1"]),
        "outsider": await make_user(UserRole.INSPECTOR, organization=tree["O"]),
        "admin": await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"]),
        "client": await make_user(UserRole.CLIENT, organization=tree["C1"]),
    }


async def test_create_in_home_organization(client, as_user, team, tree):
    response = await client.post(
        "/inspections/",
        json={"title": "Fire exits", "location": "Building A"},
        headers=as_user(team["author"])
    )
    
    assert response.status_code == 201
    body = response.json()
    assert body["organization_id"] == tree["C1"].id
    assert body["created_by"] == team["author"].id
    assert body["status"] == "draft"
    assert body["collaborators"] == []


async def test_create_in_foreign_organization_is_forbidden(client, as_user, team, tree):
    response = await client.post(
        "/inspections/",
        json={"title": "Fire exits", "location": "Building A", "organization_id": tree["O"].id},
        headers=as_user(team["author"])
    )
    
    assert response.status_code == 403


async def test_client_role_cannot_create(client, as_user, team):
    response = await client.post(
        "/inspections/",
        json={"title": "Fire exits", "location": "Building A"},
        headers=as_user(team["client"])
    )
    
    assert response.status_code == 403


async def test_colleague_cannot_see_until_invited(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    url = f"/inspections/{inspection.id}"
    
    assert (await client.get(url, headers=as_user(team["colleague"]))).status_code == 404
    assert (await client.get("/inspections/", headers=as_user(team["colleague"]))).json() == []
    
    invited = await client.post(
        f"{url}/collaborators", json={"user_id": team["colleague"].id}, headers=as_user(team["author"])
    )
    assert invited.status_code == 201
    
    assert (await client.get(url, headers=as_user(team["colleague"]))).status_code == 200
    listed = (await client.get("/inspections/", headers=as_user(team["colleague"]))).json()
    assert [item["id"] for item in listed] == [inspection.id]


async def test_deactivating_collaborator_revokes_access(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(
        tree["C1"], team["author"], collaborators=[(team["colleague"], CollaboratorStatus.ACTIVE)]
    )
    url = f"/inspections/{inspection.id}"
    assert (await client.get(url, headers=as_user(team["colleague"]))).status_code == 200
    
    response = await client.patch(
        f"{url}/collaborators/{team['colleague'].id}", json={"status": "inactive"}, headers=as_user(team["author"])
    )
    
    assert response.status_code == 200
    assert (await client.get(url, headers=as_user(team["colleague"]))).status_code == 404


async def test_cannot_invite_users_from_other_organizations(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    
    response = await client.post(
        f"/inspections/{inspection.id}/collaborators",
        json={"user_id": team["outsider"].id},
        headers=as_user(team["author"])
    )
    
    assert response.status_code == 400


async def test_creator_may_edit_but_collaborator_may_not(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(
        tree["C1"], team["author"], collaborators=[(team["colleague"], CollaboratorStatus.ACTIVE)]
    )
    url = f"/inspections/{inspection.id}"
    
    edited = await client.patch(url, json={"status": "completed"}, headers=as_user(team["author"]))
    refused = await client.patch(url, json={"title": "Hijacked"}, headers=as_user(team["colleague"]))
    
    assert edited.status_code == 200
    assert edited.json()["status"] == "completed"
    assert edited.json()["completed_at"] is not None
    assert refused.status_code == 403


async def test_foreign_inspection_is_not_found_for_edits(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    
    response = await client.patch(
        f"/inspections/{inspection.id}", json={"title": "x"}, headers=as_user(team["outsider"])
    )
    
    assert response.status_code == 404


async def test_delete_requires_capability(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    url = f"/inspections/{inspection.id}"
    
    assert (await client.delete(url, headers=as_user(team["author"]))).status_code == 403
    assert (await client.delete(url, headers=as_user(team["admin"]))).status_code == 204
    assert (await client.get(url, headers=as_user(team["admin"]))).status_code == 404


async def test_org_admin_lists_subtree_one_level_deep(client, as_user, make_inspection, team, tree):
    in_parent = await make_inspection(tree["P"], team["admin"])
    in_child = await make_inspection(tree["C1"], team["author"])
    await make_inspection(tree["G1"], team["author"])
    await make_inspection(tree["O"], team["outsider"])
    
    response = await client.get("/inspections/", headers=as_user(team["admin"]))
    
    assert {item["id"] for item in response.json()} == {in_parent.id, in_child.id}


async def test_rejected_organization_filter_returns_nothing(client, as_user, make_inspection, team, tree):
    await make_inspection(tree["O"], team["outsider"])
    
    response = await client.get(
        "/inspections/", params={"organization_id": tree["O"].id}, headers=as_user(team["author"])
    )
    
    assert response.status_code == 200
    assert response.json() == []


async def test_action_items_follow_inspection_visibility(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(
        tree["C1"], team["author"], collaborators=[(team["colleague"], CollaboratorStatus.ACTIVE)]
    )
    
    created = await client.post(
        f"/inspections/{inspection.id}/action-items",
        json={"title": "Replace extinguisher", "who_responsible": "Maintenance", "priority": "high"},
        headers=as_user(team["colleague"])
    )
    assert created.status_code == 201
    assert created.json()["organization_id"] == tree["C1"].id
    
    author_items = (await client.get("/inspections/action-items", headers=as_user(team["author"]))).json()
    outsider_items = (await client.get("/inspections/action-items", headers=as_user(team["outsider"]))).json()
    assert [item["id"] for item in author_items] == [created.json()["id"]]
    assert outsider_items == []
    
    item_url = f"/inspections/action-items/{created.json()['id']}"
    assert (await client.patch(item_url, json={"status": "completed"}, headers=as_user(team["author"]))).status_code == 200
    assert (await client.patch(item_url, json={"status": "pending"}, headers=as_user(team["outsider"]))).status_code == 404


async def test_client_role_cannot_manage_action_items(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(
        tree["C1"], team["author"], collaborators=[(team["client"], CollaboratorStatus.ACTIVE)]
    )
    
    response = await client.post(
        f"/inspections/{inspection.id}/action-items",
        json={"title": "Fix railing"},
        headers=as_user(team["client"])
    )
    
    assert response.status_code == 403


async def test_system_admin_cannot_create_in_unknown_organization(client, as_user, make_user):
    root = await make_user(UserRole.SYSTEM_ADMIN)

    response = await client.post(
        "/inspections/",
        json={"title": "Fire exits", "location": "Building A", "organization_id": "does-not-exist"},
        headers=as_user(root)
    )

    assert response.status_code == 404


async def test_required_fields_cannot_be_cleared(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    url = f"/inspections/{inspection.id}"

    for field in ("title", "location", "status"):
        response = await client.patch(url, json={field: None}, headers=as_user(team["author"]))
        assert response.status_code == 400, field

    unchanged = await client.get(url, headers=as_user(team["author"]))
    assert unchanged.json()["title"] == inspection.title
    assert unchanged.json()["status"] == "draft"


async def test_action_item_required_fields_cannot_be_cleared(client, as_user, make_inspection, team, tree):
    inspection = await make_inspection(tree["C1"], team["author"])
    created = await client.post(
        f"/inspections/{inspection.id}/action-items",
        json={"title": "Replace extinguisher"},
        headers=as_user(team["author"])
    )
    item_url = f"/inspections/action-items/{created.json()['id']}"

    for field in ("title", "status", "priority"):
        response = await client.patch(item_url, json={field: None}, headers=as_user(team["author"]))
        assert response.status_code == 400, field

    # Nullable fields may still be cleared
    cleared = await client.patch(item_url, json={"who_responsible": None}, headers=as_user(team["author"]))
    assert cleared.status_code == 200
    assert cleared.json()["who_responsible"] is None
