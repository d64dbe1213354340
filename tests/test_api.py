from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

ACTOR_HEADERS = {"X-Actor-Id": "ops-admin"}


def _permission_id(client: TestClient, name: str) -> str:
    response = client.get("/api/v1/permissions")
    response.raise_for_status()
    return next(permission["id"] for permission in response.json() if permission["name"] == name)


def _create_role(client: TestClient, name: str, permissions: list[str]) -> str:
    response = client.post(
        "/api/v1/roles",
        json={"name": name, "display_name": name.title(), "permissions": permissions},
        headers=ACTOR_HEADERS,
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_health_check(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_startup_seeds_baseline_permissions(client: TestClient) -> None:
    response = client.get("/api/v1/permissions")
    response.raise_for_status()
    permissions = {permission["name"]: permission for permission in response.json()}

    assert "admin:rbac" in permissions
    assert permissions["cases:create"]["is_system"] is True

    grouped = client.get("/api/v1/permissions/grouped")
    grouped.raise_for_status()
    assert {item["name"] for item in grouped.json()["groups"]["ungrouped"]} == set(permissions)


def test_role_crud_round_trip(client: TestClient) -> None:
    role_id = _create_role(client, "patron", ["cases:view_public"])

    listing = client.get("/api/v1/roles")
    listing.raise_for_status()
    donor = next(role for role in listing.json() if role["name"] == "patron")
    assert donor["permissions"] == ["cases:view_public"]

    update = client.patch(f"/api/v1/roles/{role_id}", json={"display_name": "Generous Donor"}, headers=ACTOR_HEADERS)
    update.raise_for_status()
    assert update.json()["display_name"] == "Generous Donor"

    grant = client.post(
        f"/api/v1/roles/{role_id}/permissions",
        json={"permission_id": _permission_id(client, "cases:create")},
        headers=ACTOR_HEADERS,
    )
    grant.raise_for_status()
    assert grant.json() == {"status": "assigned", "changed": True}
    assert client.get(f"/api/v1/roles/{role_id}").json()["permissions"] == ["cases:create", "cases:view_public"]

    delete = client.delete(f"/api/v1/roles/{role_id}", headers=ACTOR_HEADERS)
    assert delete.status_code == 204
    assert client.get(f"/api/v1/roles/{role_id}").status_code == 404


def test_error_responses_carry_codes(client: TestClient) -> None:
    _create_role(client, "volunteer", [])

    duplicate = client.post("/api/v1/roles", json={"name": "volunteer", "display_name": "Again"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DUPLICATE_NAME"

    missing = client.get(f"/api/v1/roles/{uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"

    unknown_permission = client.post(
        "/api/v1/roles",
        json={"name": "ghost", "display_name": "Ghost", "permissions": ["nothing:here"]},
    )
    assert unknown_permission.status_code == 422
    assert unknown_permission.json()["code"] == "VALIDATION_ERROR"

    system_permission = _permission_id(client, "admin:rbac")
    protected = client.delete(f"/api/v1/permissions/{system_permission}")
    assert protected.status_code == 403
    assert protected.json()["code"] == "PROTECTED_ENTITY"


def test_assignment_changes_authorization(client: TestClient) -> None:
    role_id = _create_role(client, "case_manager", ["cases:create", "cases:update"])
    user_id = str(uuid4())
    check = {"user_id": user_id, "permissions": ["cases:create", "cases:update"], "mode": "all"}

    assert client.post("/api/v1/authorize", json=check).json() == {"authorized": False}

    assignment = client.post(
        "/api/v1/assignments",
        json={"user_id": user_id, "role_id": role_id},
        headers=ACTOR_HEADERS,
    )
    assert assignment.status_code == 201
    assert assignment.json()["assigned_by"] == "ops-admin"

    assert client.post("/api/v1/authorize", json=check).json() == {"authorized": True}
    action = client.post("/api/v1/authorize/action", json={"user_id": user_id, "resource": "cases", "action": "update"})
    assert action.json() == {"authorized": True}

    access = client.get(f"/api/v1/users/{user_id}/access")
    access.raise_for_status()
    assert [role["name"] for role in access.json()["roles"]] == ["case_manager"]
    assert [permission["name"] for permission in access.json()["permissions"]] == ["cases:create", "cases:update"]

    blocked = client.delete(f"/api/v1/roles/{role_id}")
    assert blocked.status_code == 422

    revoke = client.post("/api/v1/assignments/revoke", json={"user_id": user_id, "role_id": role_id})
    revoke.raise_for_status()
    assert revoke.json()["is_active"] is False
    assert client.post("/api/v1/authorize", json={**check, "mode": "any"}).json() == {"authorized": False}
    assert client.get("/api/v1/assignments", params={"user_id": user_id}).json() == []


def test_anonymous_checks_are_denied(client: TestClient) -> None:
    response = client.post("/api/v1/authorize", json={"permissions": ["cases:view_public"]})
    assert response.json() == {"authorized": False}

    empty = client.post("/api/v1/authorize", json={"user_id": str(uuid4()), "permissions": []})
    assert empty.status_code == 422


def test_menu_visibility_follows_permissions(client: TestClient) -> None:
    guard = _permission_id(client, "admin:dashboard")
    client.post("/api/v1/menu/items", json={"label": "Home", "href": "/"}).raise_for_status()
    admin_item = client.post("/api/v1/menu/items", json={"label": "Admin", "href": "/admin", "permission_id": guard})
    admin_item.raise_for_status()
    client.post(
        "/api/v1/menu/items",
        json={"label": "Reports", "href": "/admin/reports", "parent_id": admin_item.json()["id"]},
    ).raise_for_status()

    anonymous = client.get("/api/v1/menu")
    anonymous.raise_for_status()
    assert [node["label"] for node in anonymous.json()] == ["Home", "Reports"]

    role_id = _create_role(client, "staff", ["admin:dashboard"])
    user_id = str(uuid4())
    client.post("/api/v1/assignments", json={"user_id": user_id, "role_id": role_id}).raise_for_status()

    staff = client.get("/api/v1/menu", params={"user_id": user_id}).json()
    assert [node["label"] for node in staff] == ["Home", "Admin"]
    assert [child["label"] for child in staff[1]["children"]] == ["Reports"]


def test_audit_log_lists_admin_commands(client: TestClient) -> None:
    role_id = _create_role(client, "reviewer", ["cases:update"])
    client.post(
        "/api/v1/assignments",
        json={"user_id": str(uuid4()), "role_id": role_id},
        headers=ACTOR_HEADERS,
    ).raise_for_status()

    response = client.get("/api/v1/audit-log", params={"actor": "ops-admin", "limit": 2})
    response.raise_for_status()
    page = response.json()

    assert page["total"] == 3
    assert [item["action"] for item in page["items"]] == ["assign_role", "assign_permission"]

    inverted = client.get(
        "/api/v1/audit-log",
        params={"start": "2026-02-01T00:00:00Z", "end": "2026-01-01T00:00:00Z"},
    )
    assert inverted.status_code == 422


def test_legacy_summary(client: TestClient) -> None:
    role_id = _create_role(client, "case_editor", ["cases:create", "cases:update"])
    user_id = str(uuid4())
    client.post("/api/v1/assignments", json={"user_id": user_id, "role_id": role_id}).raise_for_status()

    summary = client.get("/api/v1/legacy/permissions", params={"user_id": user_id}).json()
    assert summary["user_role"] == "case_editor"
    assert summary["can_create_case"] is True
    assert summary["can_edit_case"] is True
    assert summary["can_manage_rbac"] is False

    anonymous = client.get("/api/v1/legacy/permissions").json()
    assert anonymous["user_role"] is None
    assert not any(value for key, value in anonymous.items() if key.startswith("can_"))


def test_readiness_check_reaches_store(client: TestClient) -> None:
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_startup_provisions_protected_system_roles(client: TestClient) -> None:
    response = client.get("/api/v1/roles")
    response.raise_for_status()
    roles = {role["name"]: role for role in response.json()}

    assert {"admin", "moderator", "donor"} <= set(roles)
    assert roles["donor"]["is_system"] is True
    assert roles["donor"]["permissions"] == ["cases:view_public"]

    protected = client.delete(f"/api/v1/roles/{roles['admin']['id']}")
    assert protected.status_code == 403
    assert protected.json()["code"] == "PROTECTED_ENTITY"
