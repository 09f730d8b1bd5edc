"""
Invitations that carry a role.

The identity system owns the invitation itself; this side records which
role the invited email gets and, when configured, asks the identity system
to create the invite via a Celery task.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from kombu.exceptions import OperationalError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.celery_app import celery_app
from app.features.rbac.pending import normalize_email, pending_role_ledger
from app.features.rbac.roles import role_registry
from app.models.pending_role import PendingRoleGrant
from app.models.role import Role

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InviteResult:
    email: str
    role_id: str
    role_name: str
    dispatched: bool


@dataclass(frozen=True)
class PendingInvite:
    email: str
    role_id: str
    role_name: str
    created_at: datetime


def _dispatch_invite(email: str, role_id: str) -> bool:
    task_name = settings.identity_invite_task
    if not task_name:
        return False

    try:
        celery_app.send_task(task_name, kwargs={"email": email, "role_id": role_id})
    except OperationalError as e:
        # The grant stands; the identity system can be re-asked by re-issuing
        logger.error("invite_dispatch_failed", email=email, task=task_name, error=str(e))
        return False

    return True


async def issue_invite(db: AsyncSession, email: str, role_id: str) -> InviteResult:
    """
    Record a pending role for an email and request the invitation.

    Raises:
        NotFoundError: If the role doesn't exist
        ValidationError: If the email is blank
    """
    role = await role_registry.get(db, role_id)
    grant = await pending_role_ledger.grant(db, email, role.id)

    dispatched = _dispatch_invite(grant.email, role.id)
    logger.info("invite_issued", email=grant.email, role_id=role.id, dispatched=dispatched)

    return InviteResult(
        email=grant.email,
        role_id=role.id,
        role_name=role.name,
        dispatched=dispatched,
    )


async def list_invites(db: AsyncSession) -> list[PendingInvite]:
    """Pending grants with their role names, oldest first."""
    result = await db.execute(
        select(PendingRoleGrant, Role.name)
        .join(Role, Role.id == PendingRoleGrant.role_id)
        .order_by(PendingRoleGrant.created_at)
    )
    return [
        PendingInvite(
            email=grant.email,
            role_id=grant.role_id,
            role_name=role_name,
            created_at=grant.created_at,
        )
        for grant, role_name in result.all()
    ]


async def cancel_invite(db: AsyncSession, email: str) -> bool:
    """Drop the pending role of an invited email."""
    cancelled = await pending_role_ledger.revoke(db, email)
    if cancelled:
        logger.info("invite_cancelled", email=normalize_email(email))
    return cancelled
