from app.features.users.models import UserRole


async def test_org_admin_lists_managed_org_and_children(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    response = await client.get("/organizations/", headers=as_user(admin))
    
    assert response.status_code == 200
    assert [org["name"] for org in response.json()] == ["Holding P", "Child C1", "Child C2"]


async def test_system_admin_lists_everything_including_inactive(client, as_user, make_user, make_org, tree):
    await make_org("Closed", is_active=False)
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    
    response = await client.get("/organizations/", headers=as_user(admin))
    
    names = {org["name"] for org in response.json()}
    assert names == {"Holding P", "Child C1", "Child C2", "Grandchild G1", "Other O", "Closed"}


async def test_member_lists_only_home_org(client, as_user, make_user, tree):
    inspector = await make_user(UserRole.INSPECTOR, organization=tree["C2"])
    
    response = await client.get("/organizations/", headers=as_user(inspector))
    
    assert [org["id"] for org in response.json()] == [tree["C2"].id]


async def test_get_organization_outside_reach_is_forbidden(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    assert (await client.get(f"/organizations/{tree['C1'].id}", headers=as_user(admin))).status_code == 200
    assert (await client.get(f"/organizations/{tree['G1'].id}", headers=as_user(admin))).status_code == 403
    assert (await client.get("/organizations/missing", headers=as_user(admin))).status_code == 404


async def test_subsidiaries(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    response = await client.get(f"/organizations/{tree['P'].id}/subsidiaries", headers=as_user(admin))
    
    assert {org["id"] for org in response.json()} == {tree["C1"].id, tree["C2"].id}


async def test_create_organization_requires_capability(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    response = await client.post(
        "/organizations/",
        json={"name": "New plant", "parent_organization_id": tree["P"].id},
        headers=as_user(admin)
    )
    
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied: create_organization"


async def test_system_admin_creates_root_and_child(client, as_user, make_user):
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    
    root = await client.post("/organizations/", json={"name": "Root", "type": "master"}, headers=as_user(admin))
    assert root.status_code == 201
    assert root.json()["level"] == 0
    
    child = await client.post(
        "/organizations/",
        json={"name": "Child", "type": "subsidiary", "parent_organization_id": root.json()["id"]},
        headers=as_user(admin)
    )
    assert child.status_code == 201
    assert child.json()["level"] == 1
    assert child.json()["parent_organization_id"] == root.json()["id"]


async def test_create_with_missing_parent(client, as_user, make_user):
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    
    response = await client.post(
        "/organizations/",
        json={"name": "Orphan", "parent_organization_id": "missing"},
        headers=as_user(admin)
    )
    
    assert response.status_code == 404


async def test_org_admin_updates_child_but_not_activation(client, as_user, make_user, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    
    renamed = await client.patch(
        f"/organizations/{tree['C1'].id}", json={"name": "Renamed"}, headers=as_user(admin)
    )
    deactivated = await client.patch(
        f"/organizations/{tree['C1'].id}", json={"is_active": False}, headers=as_user(admin)
    )
    
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Renamed"
    assert deactivated.status_code == 403


async def test_member_cannot_update_organization(client, as_user, make_user, tree):
    manager = await make_user(UserRole.MANAGER, organization=tree["C1"])
    
    response = await client.patch(f"/organizations/{tree['C1'].id}", json={"name": "Mine"}, headers=as_user(manager))
    
    assert response.status_code == 403


async def test_organization_stats(client, as_user, make_user, make_inspection, tree):
    admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    inspector = await make_user(UserRole.INSPECTOR, organization=tree["C1"])
    await make_inspection(tree["C1"], inspector)
    await make_inspection(tree["C1"], admin)
    
    admin_view = await client.get(f"/organizations/{tree['C1'].id}/stats", headers=as_user(admin))
    inspector_view = await client.get(f"/organizations/{tree['C1'].id}/stats", headers=as_user(inspector))
    
    assert admin_view.json()["inspections"] == 2
    assert admin_view.json()["active_users"] == 1
    assert admin_view.json()["subsidiaries"] == 1
    assert inspector_view.json()["inspections"] == 1


async def test_cannot_create_below_inactive_branch(client, as_user, db, make_user, tree):
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    tree["C1"].is_active = False
    await db.commit()
    
    response = await client.post(
        "/organizations/",
        json={"name": "Deep", "parent_organization_id": tree["G1"].id},
        headers=as_user(admin)
    )
    
    assert response.status_code == 400


async def test_recursive_subsidiaries_for_system_admin(client, as_user, make_user, tree):
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    org_admin = await make_user(UserRole.ORG_ADMIN, organization=tree["P"], managed=tree["P"])
    url = f"/organizations/{tree['P'].id}/subsidiaries"
    
    subtree = await client.get(url, params={"recursive": True}, headers=as_user(admin))
    refused = await client.get(url, params={"recursive": True}, headers=as_user(org_admin))
    
    assert {org["id"] for org in subtree.json()} == {tree["C1"].id, tree["C2"].id, tree["G1"].id}
    assert refused.status_code == 403


async def test_hierarchy_cycle_is_reported_as_server_error(client, as_user, db, make_user, make_org):
    admin = await make_user(UserRole.SYSTEM_ADMIN)
    a = await make_org("A")
    b = await make_org("B", parent=a)
    a.parent_organization_id = b.id
    await db.commit()
    
    response = await client.get(
        f"/organizations/{a.id}/subsidiaries", params={"recursive": True}, headers=as_user(admin)
    )
    
    assert response.status_code == 500
    assert response.json() == {"error": "Organization hierarchy is corrupted"}


async def test_missing_profile_is_unauthorized(client):
    from app.main import app
    from app.features.users.dependencies import get_current_user
    from app.features.users.models import User
    
    app.dependency_overrides[get_current_user] = lambda: User(id="ghost", appwrite_id="ghost", email="ghost@example.com")
    
    response = await client.get("/organizations/")
    
    assert response.status_code == 401


async def test_name_and_activation_cannot_be_cleared(client, as_user, make_user, tree):
    root = await make_user(UserRole.SYSTEM_ADMIN)
    url = f"/organizations/{tree['C1'].id}"

    for field in ("name", "is_active"):
        response = await client.patch(url, json={field: None}, headers=as_user(root))
        assert response.status_code == 400, field

    unchanged = await client.get(url, headers=as_user(root))
    assert unchanged.json()["name"] == tree["C1"].name
    assert unchanged.json()["is_active"] is True
