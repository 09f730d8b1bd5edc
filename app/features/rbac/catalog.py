"""
Permission catalog: the (action, resource) pairs the system understands.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

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
from app.models.role import Permission, PermissionAction, Policy

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY = "General"
CUSTOM_CATEGORY = "Custom"


@dataclass
class PermissionFilter:
    """Optional filters for listing the catalog."""

    action: PermissionAction | None = None
    category: str | None = None
    resource: str | None = None


class PermissionCatalog:
    """Create, read, update and delete catalog permissions."""

    @staticmethod
    async def list_permissions(
        db: AsyncSession,
        filters: PermissionFilter | None = None,
    ) -> list[Permission]:
        """List permissions ordered by category, resource and action."""
        query = select(Permission)

        if filters:
            if filters.action:
                query = query.where(Permission.action == PermissionAction(filters.action).value)
            if filters.category:
                query = query.where(Permission.category == filters.category)
            if filters.resource:
                query = query.where(Permission.resource.contains(filters.resource))

        query = query.order_by(Permission.category, Permission.resource, Permission.action)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_for_action(db: AsyncSession, action: PermissionAction | str) -> list[Permission]:
        """All permissions for one action, the candidate set for matching."""
        result = await db.execute(
            select(Permission).where(Permission.action == PermissionAction(action).value)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get(db: AsyncSession, permission_id: str) -> Permission:
        """
        Get a permission by ID.

        Raises:
            NotFoundError: If the permission doesn't exist
        """
        permission = await db.get(Permission, permission_id)
        if not permission:
            raise NotFoundError(f"Permission not found: {permission_id}")
        return permission

    @staticmethod
    async def get_many(db: AsyncSession, permission_ids: Iterable[str]) -> dict[str, Permission]:
        """Load permissions by ID, keyed by ID. Missing IDs are simply absent."""
        ids = set(permission_ids)
        if not ids:
            return {}

        result = await db.execute(select(Permission).where(Permission.id.in_(ids)))
        return {permission.id: permission for permission in result.scalars().all()}

    @staticmethod
    async def create(
        db: AsyncSession,
        action: PermissionAction | str,
        resource: str,
        name: str,
        category: str | None = None,
        description: str | None = None,
        is_system: bool = False,
    ) -> Permission:
        """
        Create a custom permission.

        System permissions are only ever seeded, never created here.

        Raises:
            ProtectedEntityError: If is_system is requested
            ValidationError: If action, resource or name is missing
            DuplicateEntityError: If (action, resource) already exists
        """
        if is_system:
            raise ProtectedEntityError("System permissions cannot be created through the catalog")

        if not action or not resource or not resource.strip() or not name or not name.strip():
            raise ValidationError("action, resource, and name are required")

        try:
            action = PermissionAction(action)
        except ValueError:
            raise ValidationError(f"Invalid action: {action}")

        resource = resource.strip()

        existing = await db.execute(
            select(Permission.id).where(
                Permission.action == action.value,
                Permission.resource == resource,
            )
        )
        if existing.first() is not None:
            raise DuplicateEntityError(f"Permission already exists: {action.value} {resource}")

        permission = Permission(
            action=action.value,
            resource=resource,
            name=name.strip(),
            description=description,
            category=category or CUSTOM_CATEGORY,
            is_system=False,
        )

        async with atomic(db):
            db.add(permission)

        await db.refresh(permission)

        logger.info(
            "permission_created",
            permission_id=permission.id,
            action=permission.action,
            resource=permission.resource,
        )
        return permission

    @staticmethod
    async def update(
        db: AsyncSession,
        permission_id: str,
        name: str | None = None,
        description: str | None = None,
        category: str | None = None,
    ) -> Permission:
        """
        Update presentation fields of a custom permission.

        Raises:
            NotFoundError: If the permission doesn't exist
            ProtectedEntityError: If the permission is a system permission
        """
        permission = await PermissionCatalog.get(db, permission_id)

        if permission.is_system:
            raise ProtectedEntityError("Cannot modify system permissions")

        async with atomic(db):
            if name:
                permission.name = name
            if description is not None:
                permission.description = description
            if category:
                permission.category = category

        await db.refresh(permission)

        logger.info("permission_updated", permission_id=permission.id)
        return permission

    @staticmethod
    async def delete(db: AsyncSession, permission_id: str) -> None:
        """
        Delete a custom permission and every policy that references it.

        Raises:
            NotFoundError: If the permission doesn't exist
            ProtectedEntityError: If the permission is a system permission
        """
        permission = await PermissionCatalog.get(db, permission_id)

        if permission.is_system:
            raise ProtectedEntityError("Cannot delete system permissions")

        async with atomic(db):
            await db.execute(delete(Policy).where(Policy.permission_id == permission_id))
            await db.execute(delete(Permission).where(Permission.id == permission_id))

        logger.info("permission_deleted", permission_id=permission_id)

    @staticmethod
    def group_by_category(permissions: Iterable[Permission]) -> dict[str, list[Permission]]:
        """Group permissions by category for presentation."""
        grouped: dict[str, list[Permission]] = defaultdict(list)
        for permission in permissions:
            grouped[permission.category or DEFAULT_CATEGORY].append(permission)
        return dict(grouped)


# Singleton instance
permission_catalog = PermissionCatalog()
