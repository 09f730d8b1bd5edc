"""
Integration tests for the permission catalog.
"""

import pytest

from app.core.exceptions import (
    DuplicateEntityError,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from app.features.rbac.catalog import PermissionFilter, permission_catalog
from app.features.rbac.policies import policy_store
from app.models import PermissionAction
from tests.factories import PermissionFactory, RoleFactory


@pytest.mark.integration
class TestPermissionCatalog:
    """Test catalog CRUD and system protection."""

    async def test_create_custom_permission(self, db_session):
        """New permissions land in the Custom category unless told otherwise."""
        permission = await permission_catalog.create(
            db_session,
            action="write",
            resource=" /admin/bulk-export ",
            name="Run Bulk Export",
        )

        assert permission.id is not None
        assert permission.action == "write"
        assert permission.resource == "/admin/bulk-export"
        assert permission.category == "Custom"
        assert permission.is_system is False

    async def test_create_with_category(self, db_session):
        permission = await permission_catalog.create(
            db_session,
            action=PermissionAction.READ,
            resource="/admin/reports",
            name="View Reports",
            category="Analytics",
        )

        assert permission.category == "Analytics"

    async def test_create_duplicate_pair(self, db_session):
        await PermissionFactory.create(db_session, action="read", resource="/admin/reports")

        with pytest.raises(DuplicateEntityError):
            await permission_catalog.create(
                db_session, action="read", resource="/admin/reports", name="Again"
            )

    async def test_same_resource_other_action_is_allowed(self, db_session):
        await PermissionFactory.create(db_session, action="read", resource="/admin/reports")

        permission = await permission_catalog.create(
            db_session, action="delete", resource="/admin/reports", name="Delete Reports"
        )
        assert permission.action == "delete"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"action": "read", "resource": "", "name": "Nameless"},
            {"action": "read", "resource": "/admin/x", "name": "  "},
            {"action": "", "resource": "/admin/x", "name": "X"},
            {"action": "publish", "resource": "/admin/x", "name": "X"},
        ],
    )
    async def test_create_rejects_invalid_input(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            await permission_catalog.create(db_session, **kwargs)

    async def test_create_system_permission_refused(self, db_session):
        with pytest.raises(ProtectedEntityError):
            await permission_catalog.create(
                db_session, action="read", resource="/admin/x", name="X", is_system=True
            )

    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await permission_catalog.get(db_session, "missing-id")

    async def test_update_custom_permission(self, db_session):
        permission = await PermissionFactory.create(db_session, name="Old")

        updated = await permission_catalog.update(
            db_session, permission.id, name="New", description="Better", category="Ops"
        )

        assert updated.name == "New"
        assert updated.description == "Better"
        assert updated.category == "Ops"

    async def test_system_permission_is_read_only(self, db_session):
        permission = await PermissionFactory.create(db_session, is_system=True)

        with pytest.raises(ProtectedEntityError):
            await permission_catalog.update(db_session, permission.id, name="Renamed")
        with pytest.raises(ProtectedEntityError):
            await permission_catalog.delete(db_session, permission.id)

    async def test_delete_removes_policies(self, db_session):
        """Deleting a permission also drops every policy pointing at it."""
        permission = await PermissionFactory.create(db_session)
        role = await RoleFactory.create(db_session, allow=[permission])
        permission_id, role_id = permission.id, role.id

        await permission_catalog.delete(db_session, permission_id)

        assert await policy_store.list_policies(db_session, role_id=role_id) == []
        with pytest.raises(NotFoundError):
            await permission_catalog.get(db_session, permission_id)

    async def test_list_filters(self, db_session):
        await PermissionFactory.create(db_session, action="read", resource="/admin/orders", category="Orders")
        await PermissionFactory.create(db_session, action="write", resource="/admin/orders", category="Orders")
        await PermissionFactory.create(db_session, action="read", resource="/admin/products", category="Products")

        reads = await permission_catalog.list_permissions(db_session, PermissionFilter(action="read"))
        assert {p.resource for p in reads} == {"/admin/orders", "/admin/products"}

        orders = await permission_catalog.list_permissions(db_session, PermissionFilter(resource="orders"))
        assert len(orders) == 2

        products = await permission_catalog.list_permissions(db_session, PermissionFilter(category="Products"))
        assert [p.resource for p in products] == ["/admin/products"]

    async def test_group_by_category(self, db_session):
        await PermissionFactory.create(db_session, category="Orders")
        await PermissionFactory.create(db_session, category="Orders")
        await PermissionFactory.create(db_session, category="Products")

        grouped = permission_catalog.group_by_category(
            await permission_catalog.list_permissions(db_session)
        )

        assert set(grouped) == {"Orders", "Products"}
        assert len(grouped["Orders"]) == 2

    async def test_get_many_skips_unknown(self, db_session):
        permission = await PermissionFactory.create(db_session)

        found = await permission_catalog.get_many(db_session, [permission.id, "missing-id"])

        assert list(found) == [permission.id]
