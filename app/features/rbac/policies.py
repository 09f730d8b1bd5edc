"""
Policy store.

Policies are only ever managed as a complete set per role: the admin UI
always submits the full desired set, so edits delete and rebuild.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import NotFoundError, ProtectedEntityError, ValidationError
from app.features.rbac.catalog import permission_catalog
from app.models.role import Policy, PolicyDecision, Role

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PolicySpec:
    """Desired decision on one permission."""

    permission_id: str
    decision: PolicyDecision


class PolicyStore:
    """Whole-set policy management per role."""

    @staticmethod
    async def list_policies(
        db: AsyncSession,
        role_id: str | None = None,
        permission_id: str | None = None,
        role_ids: Iterable[str] | None = None,
    ) -> list[Policy]:
        """List policies, optionally narrowed by role(s) and permission."""
        query = select(Policy)

        if role_id:
            query = query.where(Policy.role_id == role_id)
        if role_ids is not None:
            query = query.where(Policy.role_id.in_(list(role_ids)))
        if permission_id:
            query = query.where(Policy.permission_id == permission_id)

        result = await db.execute(query.order_by(Policy.created_at, Policy.id))
        return list(result.scalars().all())

    @staticmethod
    async def add_policies(
        db: AsyncSession,
        role_id: str,
        policies: Sequence[PolicySpec],
    ) -> list[Policy]:
        """
        Stage policy rows for a role without committing.

        The caller owns the transaction. Every permission must exist.

        Raises:
            NotFoundError: If a permission ID is unknown
            ValidationError: If a decision is not allow/deny
        """
        if not policies:
            return []

        known = await permission_catalog.get_many(db, [p.permission_id for p in policies])

        rows = []
        for spec in policies:
            if spec.permission_id not in known:
                raise NotFoundError(f"Permission not found: {spec.permission_id}")
            try:
                decision = PolicyDecision(spec.decision)
            except ValueError:
                raise ValidationError(f"Invalid decision: {spec.decision}")

            rows.append(
                Policy(
                    role_id=role_id,
                    permission_id=spec.permission_id,
                    decision=decision.value,
                )
            )

        db.add_all(rows)
        await db.flush()
        return rows

    @staticmethod
    async def replace_policies(
        db: AsyncSession,
        role_id: str,
        policies: Sequence[PolicySpec],
    ) -> list[Policy]:
        """
        Replace every policy of a role with the given set.

        Delete and insert run in one transaction: a failure leaves the
        previous set untouched.

        Raises:
            NotFoundError: If the role or a permission doesn't exist
            ProtectedEntityError: If the role is a system role
        """
        role = await db.get(Role, role_id)
        if not role:
            raise NotFoundError(f"Role not found: {role_id}")
        if role.is_system:
            raise ProtectedEntityError("Cannot modify system roles")

        async with atomic(db):
            await db.execute(delete(Policy).where(Policy.role_id == role_id))
            rows = await PolicyStore.add_policies(db, role_id, policies)

        logger.info("role_policies_replaced", role_id=role_id, policy_count=len(rows))
        return rows


# Singleton instance
policy_store = PolicyStore()
