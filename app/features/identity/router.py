"""
Identity lifecycle webhooks.

The identity system posts here when users are created or deleted and when
dangling invites are cleaned up.
"""

import secrets
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.exceptions import unauthorized
from app.features.identity import lifecycle
from app.features.identity.schemas import (
    IdentityCleanedUpEvent,
    IdentityCleanedUpResult,
    UserCreatedEvent,
    UserCreatedResult,
    UserDeletedEvent,
    UserDeletedResult,
)
from app.features.rbac.cache import invalidate_rbac_cache

logger = structlog.get_logger(__name__)


async def verify_webhook_secret(
    x_identity_webhook_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Require the shared secret header when one is configured."""
    expected = settings.identity_webhook_secret
    if not expected:
        return

    if not x_identity_webhook_secret or not secrets.compare_digest(
        x_identity_webhook_secret, expected
    ):
        logger.warning("identity_webhook_rejected")
        raise unauthorized("Invalid webhook secret")


router = APIRouter(
    prefix="/identity/events",
    tags=["Identity"],
    dependencies=[Depends(verify_webhook_secret)],
)


@router.post("/user-created", response_model=UserCreatedResult)
async def user_created(
    event: UserCreatedEvent,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserCreatedResult:
    """Promote the pending role of the new user's email."""
    promoted = await lifecycle.on_user_created(db, event.user_id, event.email)
    if promoted:
        await invalidate_rbac_cache()
    return UserCreatedResult(role_promoted=promoted)


@router.post("/user-deleted", response_model=UserDeletedResult)
async def user_deleted(
    event: UserDeletedEvent,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UserDeletedResult:
    """Remove the deleted user's assignments and pending grant."""
    cleanup = await lifecycle.on_user_deleted(db, event.user_id, event.email)
    await invalidate_rbac_cache()
    return UserDeletedResult(
        assignments_removed=cleanup.assignments_removed,
        pending_grant_removed=cleanup.pending_grant_removed,
    )


@router.post("/identity-cleaned-up", response_model=IdentityCleanedUpResult)
async def identity_cleaned_up(
    event: IdentityCleanedUpEvent,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IdentityCleanedUpResult:
    """Remove the pending grant of a cleaned-up identity."""
    removed = await lifecycle.on_identity_cleaned_up(db, event.email)
    return IdentityCleanedUpResult(pending_grant_removed=removed)
