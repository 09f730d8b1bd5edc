"""
Pending-role ledger.

Holds at most one role per invited email until that email registers as a
user, at which point the grant is promoted to a real assignment.
"""

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import NotFoundError, ValidationError
from app.core.metrics import rbac_pending_promotions_total
from app.features.rbac.assignments import role_assignments
from app.models.pending_role import PendingRoleGrant
from app.models.role import Role

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    """Canonical form used for every ledger lookup."""
    return (email or "").strip().lower()


class PendingRoleLedger:
    """Roles waiting for an invited email to become a user."""

    @staticmethod
    async def list_grants(db: AsyncSession) -> list[PendingRoleGrant]:
        result = await db.execute(select(PendingRoleGrant).order_by(PendingRoleGrant.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def consume(db: AsyncSession, email: str) -> PendingRoleGrant | None:
        """Look up the grant for an email without removing it."""
        email = normalize_email(email)
        if not email:
            return None

        result = await db.execute(select(PendingRoleGrant).where(PendingRoleGrant.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def grant(db: AsyncSession, email: str, role_id: str) -> PendingRoleGrant:
        """
        Record the role an invited email should receive.

        Any earlier grant for the same email is replaced.

        Raises:
            ValidationError: If the email is blank
            NotFoundError: If the role doesn't exist
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("email is required")

        if not await db.get(Role, role_id):
            raise NotFoundError(f"Role not found: {role_id}")

        grant = PendingRoleGrant(email=email, role_id=role_id)

        async with atomic(db):
            await db.execute(delete(PendingRoleGrant).where(PendingRoleGrant.email == email))
            db.add(grant)

        await db.refresh(grant)

        logger.info("pending_role_granted", email=email, role_id=role_id)
        return grant

    @staticmethod
    async def promote(db: AsyncSession, user_id: str, email: str) -> bool:
        """
        Turn the pending grant for an email into an assignment for user_id.

        Returns False and changes nothing when no grant exists.
        """
        grant = await PendingRoleLedger.consume(db, email)
        if not grant:
            rbac_pending_promotions_total.labels(result="none").inc()
            return False

        role_id, granted_email = grant.role_id, grant.email

        async with atomic(db):
            await role_assignments.stage(db, user_id, role_id)
            await db.execute(delete(PendingRoleGrant).where(PendingRoleGrant.id == grant.id))

        rbac_pending_promotions_total.labels(result="promoted").inc()
        logger.info("pending_role_promoted", user_id=user_id, email=granted_email, role_id=role_id)
        return True

    @staticmethod
    async def revoke(db: AsyncSession, email: str) -> bool:
        """Delete the grant for an email. Returns False when there was none."""
        email = normalize_email(email)
        if not email:
            return False

        async with atomic(db):
            result = await db.execute(delete(PendingRoleGrant).where(PendingRoleGrant.email == email))

        revoked = result.rowcount > 0
        if revoked:
            logger.info("pending_role_revoked", email=email)
        return revoked


# Singleton instance
pending_role_ledger = PendingRoleLedger()
