"""
API tests for route-level permission enforcement.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.core.security import create_access_token
from app.features.auth.dependencies import is_excluded
from app.features.rbac.assignments import role_assignments
from app.features.rbac.defaults import SUPER_ADMIN_ROLE, seed_defaults
from app.features.rbac.roles import role_registry
from tests.factories import assign, user_id

BASE = "/api/v1/admin/rbac"


async def seeded_user(db, role_name: str) -> str:
    """Seed the default catalog and return a user holding role_name."""
    await seed_defaults(db)
    member = user_id()
    await assign(db, member, await role_registry.get_by_name(db, role_name))
    return member


@pytest.mark.unit
class TestExcludedPaths:
    """Test which resources skip enforcement."""

    @pytest.mark.parametrize(
        "resource",
        ["/store/products", "/health", "/admin/auth", "/admin/rbac/check", "/admin/users/me"],
    )
    def test_excluded(self, resource):
        assert is_excluded(resource) is True

    @pytest.mark.parametrize("resource", ["/admin/rbac/roles", "/admin/orders", "/admin/users"])
    def test_enforced(self, resource):
        assert is_excluded(resource) is False


@pytest.mark.api
class TestAuthentication:
    """Test bearer token handling."""

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/roles")

        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/roles", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    async def test_token_without_subject(self, client: AsyncClient):
        token = create_access_token(subject={"email": "someone@example.com"})

        response = await client.get(f"{BASE}/roles", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


@pytest.mark.api
class TestRouteEnforcement:
    """Test decisions applied to admin routes."""

    async def test_denied_body(self, client: AsyncClient, db_session, auth_headers):
        viewer = await seeded_user(db_session, "Viewer")

        response = await client.get(f"{BASE}/roles", headers=auth_headers(viewer))

        assert response.status_code == 403
        assert response.json() == {
            "message": "Access denied",
            "reason": "Role has no policy for read /admin/rbac/roles",
            "action": "read",
            "resource": "/admin/rbac/roles",
        }

    async def test_method_maps_to_action(self, client: AsyncClient, db_session, auth_headers):
        viewer = await seeded_user(db_session, "Viewer")

        response = await client.post(
            f"{BASE}/roles", json={"name": "Sneaky"}, headers=auth_headers(viewer)
        )

        assert response.status_code == 403
        assert response.json()["action"] == "write"
        assert await role_registry.get_by_name(db_session, "Sneaky") is None

    async def test_ids_collapse_into_resource(self, client: AsyncClient, db_session, auth_headers):
        viewer = await seeded_user(db_session, "Viewer")
        role = await role_registry.get_by_name(db_session, "Editor")

        response = await client.get(f"{BASE}/roles/{role.id}", headers=auth_headers(viewer))

        assert response.status_code == 403
        assert response.json()["resource"] == "/admin/rbac/roles"

    async def test_super_admin_allowed(self, client: AsyncClient, db_session, auth_headers):
        admin = await seeded_user(db_session, SUPER_ADMIN_ROLE)

        response = await client.get(f"{BASE}/roles", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["count"] == 4

    async def test_user_without_roles_allowed(self, client: AsyncClient, db_session, auth_headers):
        await seed_defaults(db_session)

        response = await client.get(f"{BASE}/permissions", headers=auth_headers(user_id()))

        assert response.status_code == 200

    async def test_disabled_enforcement(self, client: AsyncClient, db_session, auth_headers, monkeypatch):
        viewer = await seeded_user(db_session, "Viewer")
        monkeypatch.setattr(settings, "rbac_enabled", False)

        response = await client.get(f"{BASE}/roles", headers=auth_headers(viewer))

        assert response.status_code == 200

    async def test_check_endpoint_never_enforced(self, client: AsyncClient, db_session, auth_headers):
        viewer = await seeded_user(db_session, "Viewer")

        response = await client.get(f"{BASE}/check", headers=auth_headers(viewer))

        assert response.status_code == 200
        assert [r["name"] for r in response.json()["roles"]] == ["Viewer"]


@pytest.mark.api
class TestInvitePermissions:
    """Invite routes are guarded by the /admin/invites permissions."""

    async def test_viewer_cannot_list_invites(self, client: AsyncClient, db_session, auth_headers):
        viewer = await seeded_user(db_session, "Viewer")

        response = await client.get(f"{BASE}/invites", headers=auth_headers(viewer))

        assert response.status_code == 403
        assert response.json()["resource"] == "/admin/invites"

    async def test_super_admin_can_invite(self, client: AsyncClient, db_session, auth_headers):
        admin = await seeded_user(db_session, SUPER_ADMIN_ROLE)
        viewer_role = await role_registry.get_by_name(db_session, "Viewer")

        response = await client.post(
            f"{BASE}/invites",
            json={"email": "hire@example.com", "role_id": viewer_role.id},
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        assert response.json()["dispatched"] is False


@pytest.mark.api
class TestStoreFailures:
    """Test enforcement when the authorization store errors."""

    @pytest.fixture(
        params=[
            OperationalError("SELECT role_id", {}, Exception("database unavailable")),
            ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 5432)"),
            TimeoutError(),
        ],
        ids=["sqlalchemy", "connection-refused", "timeout"],
    )
    def broken_store(self, request, monkeypatch):
        """Make the assignment lookup fail the way an unreachable database does."""

        async def failing_role_ids(db, user_id):
            raise request.param

        monkeypatch.setattr(role_assignments, "role_ids_for_user", failing_role_ids)

    async def test_fail_open(self, client: AsyncClient, auth_headers, broken_store, monkeypatch):
        monkeypatch.setattr(settings, "rbac_fail_open", True)

        response = await client.get(f"{BASE}/roles", headers=auth_headers(user_id()))

        assert response.status_code == 200

    async def test_fail_closed(self, client: AsyncClient, auth_headers, broken_store, monkeypatch):
        monkeypatch.setattr(settings, "rbac_fail_open", False)

        response = await client.get(f"{BASE}/roles", headers=auth_headers(user_id()))

        assert response.status_code == 503
        assert response.json()["detail"] == "Permission check unavailable"
