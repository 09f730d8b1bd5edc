"""
Reactions to identity-system lifecycle events.

Every handler is idempotent so events can be replayed safely.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.rbac.assignments import role_assignments
from app.features.rbac.pending import normalize_email, pending_role_ledger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LifecycleCleanup:
    assignments_removed: int
    pending_grant_removed: bool


async def on_user_created(db: AsyncSession, user_id: str, email: str) -> bool:
    """Promote the pending grant of a newly registered email, if any."""
    promoted = await pending_role_ledger.promote(db, user_id, email)
    logger.info("identity_user_created", user_id=user_id, role_promoted=promoted)
    return promoted


async def on_user_deleted(db: AsyncSession, user_id: str, email: str | None = None) -> LifecycleCleanup:
    """Drop every assignment of a deleted user and any grant for their email."""
    removed = await role_assignments.remove_all_for_user(db, user_id)

    grant_removed = False
    if email and normalize_email(email):
        grant_removed = await pending_role_ledger.revoke(db, email)

    logger.info(
        "identity_user_deleted",
        user_id=user_id,
        assignments_removed=removed,
        pending_grant_removed=grant_removed,
    )
    return LifecycleCleanup(assignments_removed=removed, pending_grant_removed=grant_removed)


async def on_identity_cleaned_up(db: AsyncSession, email: str) -> bool:
    """Drop the pending grant of an identity that no longer exists."""
    revoked = await pending_role_ledger.revoke(db, email)
    logger.info("identity_cleaned_up", pending_grant_removed=revoked)
    return revoked
