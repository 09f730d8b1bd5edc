"""
Integration tests for identity lifecycle handlers.
"""

import pytest

from app.features.identity.lifecycle import (
    on_identity_cleaned_up,
    on_user_created,
    on_user_deleted,
)
from app.features.rbac.assignments import role_assignments
from app.features.rbac.pending import pending_role_ledger
from tests.factories import RoleFactory, assign, pending_grant, user_id


@pytest.mark.integration
class TestIdentityLifecycle:
    """Every handler can be replayed without changing the outcome."""

    async def test_user_created_promotes_grant(self, db_session):
        role = await RoleFactory.create(db_session)
        await pending_grant(db_session, "hire@example.com", role)
        member = user_id()

        assert await on_user_created(db_session, member, "Hire@Example.com") is True
        assert await on_user_created(db_session, member, "Hire@Example.com") is False

        assert await role_assignments.role_ids_for_user(db_session, member) == [role.id]

    async def test_user_created_without_grant(self, db_session):
        member = user_id()

        assert await on_user_created(db_session, member, "walk-in@example.com") is False
        assert await role_assignments.role_ids_for_user(db_session, member) == []

    async def test_user_deleted(self, db_session):
        role = await RoleFactory.create(db_session)
        member = user_id()
        await assign(db_session, member, role)
        await assign(db_session, member, await RoleFactory.create(db_session))
        await pending_grant(db_session, "gone@example.com", role)

        cleanup = await on_user_deleted(db_session, member, "gone@example.com")

        assert cleanup.assignments_removed == 2
        assert cleanup.pending_grant_removed is True

        replay = await on_user_deleted(db_session, member, "gone@example.com")
        assert replay.assignments_removed == 0
        assert replay.pending_grant_removed is False

    async def test_user_deleted_without_email(self, db_session):
        role = await RoleFactory.create(db_session)
        member = user_id()
        await assign(db_session, member, role)
        await pending_grant(db_session, "other@example.com", role)

        cleanup = await on_user_deleted(db_session, member)

        assert cleanup.assignments_removed == 1
        assert cleanup.pending_grant_removed is False
        assert await pending_role_ledger.consume(db_session, "other@example.com") is not None

    async def test_identity_cleaned_up(self, db_session):
        role = await RoleFactory.create(db_session)
        await pending_grant(db_session, "expired@example.com", role)

        assert await on_identity_cleaned_up(db_session, "EXPIRED@example.com") is True
        assert await on_identity_cleaned_up(db_session, "expired@example.com") is False
