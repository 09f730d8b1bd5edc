"""
User-role assignments.

User IDs are opaque strings owned by the identity system; nothing here
checks that a user exists.
"""

from collections import defaultdict

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import NotFoundError, ValidationError
from app.models.role import Role
from app.models.user_role import UserRoleAssignment

logger = structlog.get_logger(__name__)


class RoleAssignments:
    """Link users to roles."""

    @staticmethod
    async def find(db: AsyncSession, user_id: str, role_id: str) -> UserRoleAssignment | None:
        result = await db.execute(
            select(UserRoleAssignment).where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.role_id == role_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def stage(db: AsyncSession, user_id: str, role_id: str) -> UserRoleAssignment:
        """
        Add an assignment without committing; existing rows are reused.

        The caller owns the transaction and has verified the role.
        """
        existing = await RoleAssignments.find(db, user_id, role_id)
        if existing:
            return existing

        assignment = UserRoleAssignment(user_id=user_id, role_id=role_id)
        db.add(assignment)
        await db.flush()
        return assignment

    @staticmethod
    async def assign(db: AsyncSession, user_id: str, role_id: str) -> UserRoleAssignment:
        """
        Assign a role to a user. Assigning twice returns the first row.

        Raises:
            ValidationError: If user_id is blank
            NotFoundError: If the role doesn't exist
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required")

        if not await db.get(Role, role_id):
            raise NotFoundError(f"Role not found: {role_id}")

        existing = await RoleAssignments.find(db, user_id, role_id)
        if existing:
            return existing

        try:
            async with atomic(db):
                assignment = await RoleAssignments.stage(db, user_id, role_id)
        except IntegrityError:
            # A concurrent assign of the same pair committed first
            winner = await RoleAssignments.find(db, user_id, role_id)
            if winner is None:
                raise
            logger.info("role_assign_raced", user_id=user_id, role_id=role_id)
            return winner

        await db.refresh(assignment)

        logger.info("role_assigned", user_id=user_id, role_id=role_id)
        return assignment

    @staticmethod
    async def remove(db: AsyncSession, user_id: str, role_id: str) -> bool:
        """Remove one assignment. Returns False when there was none."""
        async with atomic(db):
            result = await db.execute(
                delete(UserRoleAssignment).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role_id == role_id,
                )
            )

        removed = result.rowcount > 0
        if removed:
            logger.info("role_unassigned", user_id=user_id, role_id=role_id)
        return removed

    @staticmethod
    async def remove_all_for_user(db: AsyncSession, user_id: str) -> int:
        """Remove every assignment of a user. Returns the number removed."""
        async with atomic(db):
            result = await db.execute(
                delete(UserRoleAssignment).where(UserRoleAssignment.user_id == user_id)
            )

        return result.rowcount

    @staticmethod
    async def role_ids_for_user(db: AsyncSession, user_id: str) -> list[str]:
        result = await db.execute(
            select(UserRoleAssignment.role_id).where(UserRoleAssignment.user_id == user_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str) -> list[Role]:
        """Roles assigned to a user, ordered by name."""
        result = await db.execute(
            select(Role)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(UserRoleAssignment.user_id == user_id)
            .order_by(Role.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_role(db: AsyncSession, role_id: str) -> list[UserRoleAssignment]:
        result = await db.execute(
            select(UserRoleAssignment)
            .where(UserRoleAssignment.role_id == role_id)
            .order_by(UserRoleAssignment.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def all_users_with_roles(db: AsyncSession) -> dict[str, list[Role]]:
        """Every user that holds at least one role, with those roles."""
        result = await db.execute(
            select(UserRoleAssignment.user_id, Role)
            .join(Role, Role.id == UserRoleAssignment.role_id)
            .order_by(UserRoleAssignment.user_id, Role.name)
        )

        users: dict[str, list[Role]] = defaultdict(list)
        for user_id, role in result.all():
            users[user_id].append(role)
        return dict(users)


# Singleton instance
role_assignments = RoleAssignments()
