"""
API tests for RBAC administration endpoints.

The caller holds no role, so route enforcement lets every request through.
"""

import pytest
from httpx import AsyncClient

from app.features.rbac.assignments import role_assignments
from tests.factories import PermissionFactory, RoleFactory, assign, pending_grant, user_id

BASE = "/api/v1/admin/rbac"


@pytest.fixture
def admin(auth_headers):
    return auth_headers(user_id())


@pytest.mark.api
class TestPermissionEndpoints:
    """Test catalog endpoints."""

    async def test_list_permissions(self, client: AsyncClient, db_session, admin):
        await PermissionFactory.create(db_session, resource="/admin/orders", category="Orders")
        await PermissionFactory.create(db_session, action="write", resource="/admin/orders", category="Orders")
        await PermissionFactory.create(db_session, resource="/admin/products", category="Products")

        response = await client.get(f"{BASE}/permissions", headers=admin)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert set(data["by_category"]) == {"Orders", "Products"}
        assert len(data["by_category"]["Orders"]) == 2

    async def test_list_permissions_filtered(self, client: AsyncClient, db_session, admin):
        await PermissionFactory.create(db_session, resource="/admin/orders")
        await PermissionFactory.create(db_session, action="write", resource="/admin/orders")

        response = await client.get(f"{BASE}/permissions", params={"action": "write"}, headers=admin)

        assert response.status_code == 200
        assert [p["action"] for p in response.json()["permissions"]] == ["write"]

    async def test_create_permission(self, client: AsyncClient, admin):
        response = await client.post(
            f"{BASE}/permissions",
            json={"action": "read", "resource": "/admin/reports", "name": "View Reports"},
            headers=admin,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["category"] == "Custom"
        assert data["is_system"] is False

    async def test_create_duplicate_permission(self, client: AsyncClient, db_session, admin):
        await PermissionFactory.create(db_session, resource="/admin/reports")

        response = await client.post(
            f"{BASE}/permissions",
            json={"action": "read", "resource": "/admin/reports", "name": "Again"},
            headers=admin,
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Permission already exists: read /admin/reports"

    async def test_create_permission_invalid_action(self, client: AsyncClient, admin):
        response = await client.post(
            f"{BASE}/permissions",
            json={"action": "publish", "resource": "/admin/reports", "name": "Publish"},
            headers=admin,
        )

        assert response.status_code == 422

    async def test_update_system_permission(self, client: AsyncClient, db_session, admin):
        permission = await PermissionFactory.create(db_session, is_system=True)

        response = await client.patch(
            f"{BASE}/permissions/{permission.id}", json={"name": "Renamed"}, headers=admin
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot modify system permissions"

    async def test_delete_permission(self, client: AsyncClient, db_session, admin):
        permission = await PermissionFactory.create(db_session)
        permission_id = permission.id

        response = await client.delete(f"{BASE}/permissions/{permission_id}", headers=admin)

        assert response.status_code == 200
        assert response.json() == {"id": permission_id, "deleted": True}

        response = await client.get(f"{BASE}/permissions/{permission_id}", headers=admin)
        assert response.status_code == 404


@pytest.mark.api
class TestRoleEndpoints:
    """Test role and policy endpoints."""

    async def test_create_role_with_policies(self, client: AsyncClient, db_session, admin):
        read = await PermissionFactory.create(db_session, resource="/admin/orders")
        delete = await PermissionFactory.create(db_session, action="delete", resource="/admin/orders")

        response = await client.post(
            f"{BASE}/roles",
            json={
                "name": "Support",
                "description": "Customer support",
                "policies": [
                    {"permission_id": read.id},
                    {"permission_id": delete.id, "decision": "deny"},
                ],
            },
            headers=admin,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Support"
        decisions = {p["permission"]["action"]: p["decision"] for p in data["policies"]}
        assert decisions == {"read": "allow", "delete": "deny"}

    async def test_create_role_unknown_permission(self, client: AsyncClient, admin):
        response = await client.post(
            f"{BASE}/roles",
            json={"name": "Broken", "policies": [{"permission_id": "missing-permission"}]},
            headers=admin,
        )

        assert response.status_code == 404

        listing = await client.get(f"{BASE}/roles", headers=admin)
        assert listing.json()["count"] == 0

    async def test_create_role_duplicate_name(self, client: AsyncClient, db_session, admin):
        await RoleFactory.create(db_session, name="Editor")

        response = await client.post(f"{BASE}/roles", json={"name": "Editor"}, headers=admin)

        assert response.status_code == 409

    async def test_create_role_blank_name(self, client: AsyncClient, admin):
        response = await client.post(f"{BASE}/roles", json={"name": ""}, headers=admin)

        assert response.status_code == 422

    async def test_list_roles(self, client: AsyncClient, db_session, admin):
        permission = await PermissionFactory.create(db_session)
        await RoleFactory.create(db_session, name="Viewer", allow=[permission])
        await RoleFactory.create(db_session, name="Editor")

        response = await client.get(f"{BASE}/roles", headers=admin)

        assert response.status_code == 200
        roles = response.json()["roles"]
        assert [r["name"] for r in roles] == ["Editor", "Viewer"]
        assert len(roles[1]["policies"]) == 1

    async def test_get_missing_role(self, client: AsyncClient, admin):
        response = await client.get(f"{BASE}/roles/missing-role", headers=admin)

        assert response.status_code == 404
        assert response.json()["detail"] == "Role not found: missing-role"

    async def test_update_role_replaces_policies(self, client: AsyncClient, db_session, admin):
        old = await PermissionFactory.create(db_session)
        new = await PermissionFactory.create(db_session)
        role = await RoleFactory.create(db_session, allow=[old])

        response = await client.patch(
            f"{BASE}/roles/{role.id}",
            json={"description": "Now different", "policies": [{"permission_id": new.id}]},
            headers=admin,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["description"] == "Now different"
        assert [p["permission"]["id"] for p in data["policies"]] == [new.id]

    async def test_system_role_protected(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session, is_system=True)

        patch = await client.patch(f"{BASE}/roles/{role.id}", json={"name": "X"}, headers=admin)
        delete = await client.delete(f"{BASE}/roles/{role.id}", headers=admin)

        assert patch.status_code == 400
        assert patch.json()["detail"] == "Cannot modify system roles"
        assert delete.status_code == 400
        assert delete.json()["detail"] == "Cannot delete system roles"

    async def test_delete_role(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session)
        member = user_id()
        await assign(db_session, member, role)
        await pending_grant(db_session, "hire@example.com", role)
        role_id = role.id

        response = await client.delete(f"{BASE}/roles/{role_id}", headers=admin)

        assert response.status_code == 200
        assert response.json() == {"id": role_id, "deleted": True}
        assert await role_assignments.role_ids_for_user(db_session, member) == []

    async def test_replace_policies(self, client: AsyncClient, db_session, admin):
        first = await PermissionFactory.create(db_session)
        second = await PermissionFactory.create(db_session)
        role = await RoleFactory.create(db_session, allow=[first])

        response = await client.put(
            f"{BASE}/roles/{role.id}/policies",
            json={"policies": [{"permission_id": second.id, "decision": "deny"}]},
            headers=admin,
        )

        assert response.status_code == 200
        policies = response.json()["policies"]
        assert [(p["permission"]["id"], p["decision"]) for p in policies] == [(second.id, "deny")]

    async def test_list_policies(self, client: AsyncClient, db_session, admin):
        permission = await PermissionFactory.create(db_session)
        role = await RoleFactory.create(db_session, allow=[permission])
        await RoleFactory.create(db_session, deny=[permission])

        response = await client.get(f"{BASE}/policies", params={"role_id": role.id}, headers=admin)

        assert response.status_code == 200
        assert [p["decision"] for p in response.json()] == ["allow"]


@pytest.mark.api
class TestUserRoleEndpoints:
    """Test user-role assignment endpoints."""

    async def test_assign_and_list(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session, name="Viewer")
        member = user_id()

        first = await client.post(f"{BASE}/users/{member}/roles", json={"role_id": role.id}, headers=admin)
        second = await client.post(f"{BASE}/users/{member}/roles", json={"role_id": role.id}, headers=admin)

        assert first.status_code == 201
        assert first.json()["id"] == second.json()["id"]

        response = await client.get(f"{BASE}/users/{member}/roles", headers=admin)
        assert [r["name"] for r in response.json()["roles"]] == ["Viewer"]

    async def test_assign_unknown_role(self, client: AsyncClient, admin):
        response = await client.post(
            f"{BASE}/users/{user_id()}/roles", json={"role_id": "missing-role"}, headers=admin
        )

        assert response.status_code == 404

    async def test_remove_assignment(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session)
        member = user_id()
        await assign(db_session, member, role)

        removed = await client.delete(f"{BASE}/users/{member}/roles/{role.id}", headers=admin)
        again = await client.delete(f"{BASE}/users/{member}/roles/{role.id}", headers=admin)

        assert removed.json() == {"id": role.id, "deleted": True}
        assert again.json() == {"id": role.id, "deleted": False}

    async def test_list_users_with_roles(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session)
        members = [user_id(), user_id()]
        for member in members:
            await assign(db_session, member, role)

        response = await client.get(f"{BASE}/users", headers=admin)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert {u["user_id"] for u in data["users"]} == set(members)


@pytest.mark.api
class TestInviteEndpoints:
    """Test invites carrying a role."""

    async def test_issue_list_cancel(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session, name="Viewer")

        issued = await client.post(
            f"{BASE}/invites",
            json={"email": "New.Hire@example.com", "role_id": role.id},
            headers=admin,
        )
        assert issued.status_code == 201
        assert issued.json()["email"] == "new.hire@example.com"
        assert issued.json()["role_name"] == "Viewer"

        listing = await client.get(f"{BASE}/invites", headers=admin)
        assert [i["email"] for i in listing.json()] == ["new.hire@example.com"]

        cancelled = await client.delete(f"{BASE}/invites/new.hire@example.com", headers=admin)
        assert cancelled.json() == {"id": "new.hire@example.com", "deleted": True}

    async def test_invalid_email(self, client: AsyncClient, db_session, admin):
        role = await RoleFactory.create(db_session)

        response = await client.post(
            f"{BASE}/invites", json={"email": "not-an-email", "role_id": role.id}, headers=admin
        )

        assert response.status_code == 422


@pytest.mark.api
class TestCheckEndpoints:
    """Test the caller's own permission checks."""

    async def test_check_without_roles(self, client: AsyncClient, admin):
        response = await client.post(
            f"{BASE}/check", json={"action": "delete", "resource": "/admin/orders"}, headers=admin
        )

        assert response.status_code == 200
        assert response.json() == {
            "allowed": True,
            "reason": "No role assigned - full access",
            "action": "delete",
            "resource": "/admin/orders",
        }

    async def test_check_denied(self, client: AsyncClient, db_session, auth_headers):
        permission = await PermissionFactory.create(db_session, resource="/admin/orders")
        member = user_id()
        await assign(db_session, member, await RoleFactory.create(db_session, deny=[permission]))

        response = await client.post(
            f"{BASE}/check",
            json={"action": "read", "resource": "/admin/orders/order_1"},
            headers=auth_headers(member),
        )

        assert response.status_code == 200
        assert response.json()["allowed"] is False
        assert response.json()["reason"] == "Explicitly denied by policy"

    async def test_check_requires_token(self, client: AsyncClient):
        response = await client.post(f"{BASE}/check", json={"action": "read", "resource": "/admin/orders"})

        assert response.status_code == 401

    async def test_my_permissions(self, client: AsyncClient, db_session, auth_headers, mock_cache):
        permission = await PermissionFactory.create(db_session, resource="/admin/orders")
        role = await RoleFactory.create(db_session, name="Support", allow=[permission])
        member = user_id()
        await assign(db_session, member, role)

        response = await client.get(f"{BASE}/check", headers=auth_headers(member))

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == member
        assert data["has_roles"] is True
        assert [r["name"] for r in data["roles"]] == ["Support"]
        assert [(p["permission"]["resource"], p["decision"]) for p in data["permissions"]] == [
            ("/admin/orders", "allow")
        ]
        assert f"rbac:user_perms:{member}" in mock_cache

    async def test_my_permissions_cached_until_write(
        self, client: AsyncClient, db_session, auth_headers, admin, mock_cache
    ):
        """Summaries are served from cache until an RBAC write invalidates them."""
        role = await RoleFactory.create(db_session)
        member = user_id()
        headers = auth_headers(member)

        first = await client.get(f"{BASE}/check", headers=headers)
        assert first.json()["has_roles"] is False

        # Direct insert bypasses invalidation
        await assign(db_session, member, role)
        cached = await client.get(f"{BASE}/check", headers=headers)
        assert cached.json()["has_roles"] is False

        await client.post(f"{BASE}/roles", json={"name": "Unrelated"}, headers=admin)
        assert mock_cache == {}

        fresh = await client.get(f"{BASE}/check", headers=headers)
        assert fresh.json()["has_roles"] is True


@pytest.mark.api
class TestOpenApiDocument:
    """Test the documented error bodies."""

    def test_guarded_routes_document_access_denied_body(self, app):
        schema = app.openapi()
        paths = schema["paths"]

        for path, method in [
            (f"{BASE}/roles", "get"),
            (f"{BASE}/users/{{user_id}}/roles", "post"),
            (f"{BASE}/invites", "post"),
        ]:
            forbidden = paths[path][method]["responses"]["403"]
            ref = forbidden["content"]["application/json"]["schema"]["$ref"]
            assert ref.endswith("/AccessDeniedResponse")

        body = schema["components"]["schemas"]["AccessDeniedResponse"]
        assert set(body["required"]) == {"message", "reason", "action", "resource"}

    def test_check_routes_have_no_access_denied_body(self, app):
        responses = app.openapi()["paths"][f"{BASE}/check"]["get"]["responses"]
        assert "403" not in responses
