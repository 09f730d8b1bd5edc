"""
Role registry.
"""

from dataclasses import dataclass
from typing import Sequence

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import (
    DuplicateEntityError,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from app.features.rbac.policies import PolicySpec, policy_store
from app.models.pending_role import PendingRoleGrant
from app.models.role import Permission, Policy, Role
from app.models.user_role import UserRoleAssignment

logger = structlog.get_logger(__name__)


@dataclass
class RoleFilter:
    """Optional filters for listing roles."""

    name: str | None = None
    is_system: bool | None = None


class RoleRegistry:
    """Role CRUD with policy-aware create, update and cascade delete."""

    @staticmethod
    async def list_roles(db: AsyncSession, filters: RoleFilter | None = None) -> list[Role]:
        """List roles ordered by name."""
        query = select(Role)

        if filters:
            if filters.name:
                query = query.where(Role.name.contains(filters.name))
            if filters.is_system is not None:
                query = query.where(Role.is_system == filters.is_system)

        result = await db.execute(query.order_by(Role.name))
        return list(result.scalars().all())

    @staticmethod
    async def get(db: AsyncSession, role_id: str) -> Role:
        """
        Get a role by ID.

        Raises:
            NotFoundError: If the role doesn't exist
        """
        role = await db.get(Role, role_id)
        if not role:
            raise NotFoundError(f"Role not found: {role_id}")
        return role

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Role | None:
        result = await db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_with_policies(
        db: AsyncSession,
        role_id: str,
    ) -> tuple[Role, list[tuple[Policy, Permission]]]:
        """
        Get a role together with its policies and their permissions.

        Raises:
            NotFoundError: If the role doesn't exist
        """
        role = await RoleRegistry.get(db, role_id)

        result = await db.execute(
            select(Policy, Permission)
            .join(Permission, Permission.id == Policy.permission_id)
            .where(Policy.role_id == role_id)
            .order_by(Permission.category, Permission.resource, Permission.action)
        )
        return role, [(policy, permission) for policy, permission in result.all()]

    @staticmethod
    async def _check_name(db: AsyncSession, name: str | None, exclude_id: str | None = None) -> str:
        if not name or not name.strip():
            raise ValidationError("Role name is required")

        name = name.strip()
        query = select(Role.id).where(Role.name == name)
        if exclude_id:
            query = query.where(Role.id != exclude_id)

        existing = await db.execute(query)
        if existing.first() is not None:
            raise DuplicateEntityError(f"Role already exists: {name}")

        return name

    @staticmethod
    async def create(db: AsyncSession, name: str, description: str | None = None) -> Role:
        """
        Create a role without policies.

        Raises:
            ValidationError: If the name is blank
            DuplicateEntityError: If a role with the name exists
        """
        return await RoleRegistry.create_with_policies(db, name, description, [])

    @staticmethod
    async def create_with_policies(
        db: AsyncSession,
        name: str,
        description: str | None,
        policies: Sequence[PolicySpec],
    ) -> Role:
        """
        Create a role and its policies in one transaction.

        An unknown permission ID rolls back the role as well.

        Raises:
            ValidationError: If the name is blank or a decision is invalid
            DuplicateEntityError: If a role with the name exists
            NotFoundError: If a permission ID is unknown
        """
        name = await RoleRegistry._check_name(db, name)
        role = Role(name=name, description=description, is_system=False)

        async with atomic(db):
            db.add(role)
            await db.flush()
            await policy_store.add_policies(db, role.id, policies)

        await db.refresh(role)

        logger.info("role_created", role_id=role.id, name=role.name, policy_count=len(policies))
        return role

    @staticmethod
    async def update(
        db: AsyncSession,
        role_id: str,
        name: str | None = None,
        description: str | None = None,
        policies: Sequence[PolicySpec] | None = None,
    ) -> Role:
        """
        Update a role; when policies are given the set is replaced too.

        Raises:
            NotFoundError: If the role or a permission doesn't exist
            ProtectedEntityError: If the role is a system role
            DuplicateEntityError: If the new name is taken
        """
        role = await RoleRegistry.get(db, role_id)

        if role.is_system:
            raise ProtectedEntityError("Cannot modify system roles")

        if name is not None:
            name = await RoleRegistry._check_name(db, name, exclude_id=role_id)

        async with atomic(db):
            if name is not None:
                role.name = name
            if description is not None:
                role.description = description
            if policies is not None:
                await db.execute(delete(Policy).where(Policy.role_id == role_id))
                await policy_store.add_policies(db, role_id, policies)

        await db.refresh(role)

        logger.info("role_updated", role_id=role.id, policies_replaced=policies is not None)
        return role

    @staticmethod
    async def delete(db: AsyncSession, role_id: str) -> None:
        """
        Delete a role with its policies, assignments and pending grants.

        Raises:
            NotFoundError: If the role doesn't exist
            ProtectedEntityError: If the role is a system role
        """
        role = await RoleRegistry.get(db, role_id)

        if role.is_system:
            raise ProtectedEntityError("Cannot delete system roles")

        async with atomic(db):
            await db.execute(delete(Policy).where(Policy.role_id == role_id))
            assignments = await db.execute(
                delete(UserRoleAssignment).where(UserRoleAssignment.role_id == role_id)
            )
            grants = await db.execute(
                delete(PendingRoleGrant).where(PendingRoleGrant.role_id == role_id)
            )
            await db.execute(delete(Role).where(Role.id == role_id))

        logger.info(
            "role_deleted",
            role_id=role_id,
            assignments_removed=assignments.rowcount,
            pending_grants_removed=grants.rowcount,
        )


# Singleton instance
role_registry = RoleRegistry()
