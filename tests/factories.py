"""
Factory pattern for creating test data.

Provides easy-to-use functions for creating test objects
with sensible defaults and optional overrides. Factories write rows
directly so tests can set fields the stores never accept (system flags,
timestamps).
"""

from typing import Any

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    PendingRoleGrant,
    Permission,
    Policy,
    PolicyDecision,
    Role,
    UserRoleAssignment,
)

fake = Faker()


async def _save(db: AsyncSession, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


class PermissionFactory:
    """Factory for creating catalog permissions."""

    @staticmethod
    async def create(db: AsyncSession, **kwargs: Any) -> Permission:
        """
        Create a permission.

        Usage:
            perm = await PermissionFactory.create(db, action="read", resource="/admin/orders")
        """
        defaults = {
            "action": "read",
            "resource": f"/admin/{fake.unique.slug()}",
            "name": fake.sentence(nb_words=3),
            "category": "General",
            "is_system": False,
        }
        defaults.update(kwargs)
        return await _save(db, Permission(**defaults))


class RoleFactory:
    """Factory for creating roles, optionally with policies."""

    @staticmethod
    async def create(
        db: AsyncSession,
        allow: list[Permission] | None = None,
        deny: list[Permission] | None = None,
        **kwargs: Any,
    ) -> Role:
        """
        Create a role with allow/deny policies on the given permissions.

        Usage:
            role = await RoleFactory.create(db, allow=[read_orders], name="Support")
        """
        defaults = {
            "name": f"{fake.job()} {fake.unique.random_int(1, 99999)}",
            "description": fake.sentence(),
            "is_system": False,
        }
        defaults.update(kwargs)
        role = await _save(db, Role(**defaults))

        for permission in allow or []:
            db.add(Policy(role_id=role.id, permission_id=permission.id, decision=PolicyDecision.ALLOW.value))
        for permission in deny or []:
            db.add(Policy(role_id=role.id, permission_id=permission.id, decision=PolicyDecision.DENY.value))
        await db.commit()

        return role


async def assign(db: AsyncSession, user_id: str, role: Role) -> UserRoleAssignment:
    """Assign a role to a user directly."""
    return await _save(db, UserRoleAssignment(user_id=user_id, role_id=role.id))


async def pending_grant(db: AsyncSession, email: str, role: Role) -> PendingRoleGrant:
    """Create a pending grant directly (email stored as given)."""
    return await _save(db, PendingRoleGrant(email=email, role_id=role.id))


def user_id() -> str:
    """Opaque identity-system user ID."""
    return f"user_{fake.unique.bothify('??##??##??##').upper()}"
