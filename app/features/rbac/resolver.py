"""
Authorization resolver.

Answers "may this user perform this action on this resource?" from the
catalog, role policies and user assignments. Holds no state of its own.
"""

from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError
from app.core.metrics import rbac_checks_total
from app.features.rbac.assignments import RoleAssignments, role_assignments
from app.features.rbac.catalog import PermissionCatalog, permission_catalog
from app.features.rbac.matching import select_permission
from app.features.rbac.policies import PolicyStore, policy_store
from app.models.role import Permission, PermissionAction, PolicyDecision, Role

logger = structlog.get_logger(__name__)

REASON_NO_ROLES = "No role assigned - full access"
REASON_DENIED = "Explicitly denied by policy"
REASON_ALLOWED = "Allowed by policy"
REASON_NO_ALLOW = "No matching allow policy"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


@dataclass(frozen=True)
class EffectivePermission:
    permission: Permission
    decision: PolicyDecision


@dataclass
class UserPermissions:
    permissions: list[EffectivePermission] = field(default_factory=list)
    roles: list[Role] = field(default_factory=list)


class AuthorizationResolver:
    """
    Evaluate permission checks.

    Users without any role assignment have full access. Once a user has a
    role, access needs an allow policy on the matched permission and no
    deny from any of the user's roles.
    """

    def __init__(
        self,
        catalog: PermissionCatalog,
        policies: PolicyStore,
        assignments: RoleAssignments,
    ):
        self.catalog = catalog
        self.policies = policies
        self.assignments = assignments

    async def check_permission(
        self,
        db: AsyncSession,
        user_id: str,
        action: PermissionAction | str,
        resource: str,
    ) -> AccessDecision:
        """
        Decide a single (user, action, resource) request.

        Raises:
            AuthenticationError: If user_id is missing
        """
        if not user_id or not str(user_id).strip():
            raise AuthenticationError("User not authenticated")

        action = PermissionAction(action)
        decision = await self._decide(db, user_id, action, resource)

        rbac_checks_total.labels(
            action=action.value,
            allowed=str(decision.allowed).lower(),
        ).inc()
        logger.debug(
            "rbac_check",
            user_id=user_id,
            action=action.value,
            resource=resource,
            allowed=decision.allowed,
            reason=decision.reason,
        )
        return decision

    async def _decide(
        self,
        db: AsyncSession,
        user_id: str,
        action: PermissionAction,
        resource: str,
    ) -> AccessDecision:
        role_ids = await self.assignments.role_ids_for_user(db, user_id)
        if not role_ids:
            return AccessDecision(True, REASON_NO_ROLES)

        candidates = await self.catalog.list_for_action(db, action)
        permission = select_permission(candidates, resource)
        if permission is None:
            return AccessDecision(False, f"No permission defined for {action.value} {resource}")

        policies = await self.policies.list_policies(
            db,
            permission_id=permission.id,
            role_ids=role_ids,
        )
        if not policies:
            return AccessDecision(False, f"Role has no policy for {action.value} {resource}")

        decisions = {policy.decision for policy in policies}
        if PolicyDecision.DENY.value in decisions:
            return AccessDecision(False, REASON_DENIED)
        if PolicyDecision.ALLOW.value in decisions:
            return AccessDecision(True, REASON_ALLOWED)

        return AccessDecision(False, REASON_NO_ALLOW)

    async def get_user_permissions(self, db: AsyncSession, user_id: str) -> UserPermissions:
        """
        Effective permissions of a user across all roles; deny wins.

        Raises:
            AuthenticationError: If user_id is missing
        """
        if not user_id or not str(user_id).strip():
            raise AuthenticationError("User not authenticated")

        roles = await self.assignments.list_for_user(db, user_id)
        if not roles:
            return UserPermissions()

        policies = await self.policies.list_policies(db, role_ids=[role.id for role in roles])

        effective: dict[str, PolicyDecision] = {}
        for policy in policies:
            decision = PolicyDecision(policy.decision)
            if effective.get(policy.permission_id) != PolicyDecision.DENY:
                effective[policy.permission_id] = decision

        permissions = await self.catalog.get_many(db, effective.keys())

        entries = [
            EffectivePermission(permission=permissions[permission_id], decision=decision)
            for permission_id, decision in effective.items()
            if permission_id in permissions
        ]
        entries.sort(key=lambda e: (e.permission.category, e.permission.resource, e.permission.action))

        return UserPermissions(permissions=entries, roles=roles)


# Singleton wired to the module-level stores
authorization_resolver = AuthorizationResolver(
    catalog=permission_catalog,
    policies=policy_store,
    assignments=role_assignments,
)
