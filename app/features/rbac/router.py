"""
RBAC administration endpoints.

Three routers:
- router: catalog, roles, policies and assignments, guarded route by route
  through enforce_route_permission
- invites_router: invitation grants, guarded by the /admin/invites permissions
- check_router: the caller's own checks, never enforced
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.features.auth.dependencies import (
    CurrentUserId,
    enforce_route_permission,
    require_permission,
)
from app.features.rbac import invites as invite_service
from app.features.rbac.assignments import role_assignments
from app.features.rbac.cache import (
    cache_permissions,
    get_cached_permissions,
    invalidate_rbac_cache,
)
from app.features.rbac.catalog import PermissionFilter, permission_catalog
from app.features.rbac.policies import PolicySpec, policy_store
from app.features.rbac.resolver import authorization_resolver
from app.features.rbac.roles import RoleFilter, role_registry
from app.models.role import PermissionAction
from app.schemas.common import AccessDeniedResponse
from app.schemas.rbac import (
    AssignmentCreate,
    AssignmentRead,
    CheckRequest,
    CheckResponse,
    DeletedResponse,
    EffectivePermissionRead,
    InviteCreate,
    InviteIssued,
    InviteRead,
    PermissionCreate,
    PermissionListResponse,
    PermissionRead,
    PermissionUpdate,
    PolicyInput,
    PolicyRead,
    PolicyReplace,
    PolicyWithPermission,
    RoleCreate,
    RoleListResponse,
    RoleRead,
    RoleUpdate,
    RoleWithPolicies,
    UserPermissionsResponse,
    UserRoles,
    UserRolesListResponse,
)

logger = structlog.get_logger(__name__)

ACCESS_DENIED = {status.HTTP_403_FORBIDDEN: {"model": AccessDeniedResponse}}

router = APIRouter(
    prefix="/admin/rbac",
    tags=["RBAC"],
    dependencies=[Depends(enforce_route_permission)],
    responses=ACCESS_DENIED,
)
invites_router = APIRouter(
    prefix="/admin/rbac/invites",
    tags=["RBAC"],
    responses=ACCESS_DENIED,
)
check_router = APIRouter(prefix="/admin/rbac", tags=["RBAC"])

DB = Annotated[AsyncSession, Depends(get_db)]


def _policy_specs(policies: list[PolicyInput] | None) -> list[PolicySpec] | None:
    if policies is None:
        return None
    return [PolicySpec(permission_id=p.permission_id, decision=p.decision) for p in policies]


async def _role_with_policies(db: AsyncSession, role_id: str) -> RoleWithPolicies:
    role, pairs = await role_registry.get_with_policies(db, role_id)
    return RoleWithPolicies(
        **RoleRead.model_validate(role).model_dump(),
        policies=[
            PolicyWithPermission(
                id=policy.id,
                decision=policy.decision,
                permission=PermissionRead.model_validate(permission),
            )
            for policy, permission in pairs
        ],
    )


# Permissions

@router.get("/permissions", response_model=PermissionListResponse)
async def list_permissions(
    db: DB,
    action: PermissionAction | None = Query(None),
    category: str | None = Query(None),
    resource: str | None = Query(None, description="Substring match on the resource path"),
) -> PermissionListResponse:
    """List the permission catalog, also grouped by category."""
    permissions = await permission_catalog.list_permissions(
        db, PermissionFilter(action=action, category=category, resource=resource)
    )
    grouped = permission_catalog.group_by_category(permissions)

    return PermissionListResponse(
        permissions=[PermissionRead.model_validate(p) for p in permissions],
        by_category={
            name: [PermissionRead.model_validate(p) for p in items]
            for name, items in grouped.items()
        },
        count=len(permissions),
    )


@router.post("/permissions", response_model=PermissionRead, status_code=status.HTTP_201_CREATED)
async def create_permission(body: PermissionCreate, db: DB) -> PermissionRead:
    """Create a custom permission (category defaults to Custom)."""
    permission = await permission_catalog.create(
        db,
        action=body.action,
        resource=body.resource,
        name=body.name,
        category=body.category,
        description=body.description,
    )
    await invalidate_rbac_cache()
    return PermissionRead.model_validate(permission)


@router.get("/permissions/{permission_id}", response_model=PermissionRead)
async def get_permission(permission_id: str, db: DB) -> PermissionRead:
    return PermissionRead.model_validate(await permission_catalog.get(db, permission_id))


@router.patch("/permissions/{permission_id}", response_model=PermissionRead)
async def update_permission(permission_id: str, body: PermissionUpdate, db: DB) -> PermissionRead:
    """Update a custom permission. System permissions are read-only."""
    permission = await permission_catalog.update(
        db,
        permission_id,
        name=body.name,
        description=body.description,
        category=body.category,
    )
    await invalidate_rbac_cache()
    return PermissionRead.model_validate(permission)


@router.delete("/permissions/{permission_id}", response_model=DeletedResponse)
async def delete_permission(permission_id: str, db: DB) -> DeletedResponse:
    """Delete a custom permission and the policies that reference it."""
    await permission_catalog.delete(db, permission_id)
    await invalidate_rbac_cache()
    return DeletedResponse(id=permission_id, deleted=True)


# Roles

@router.get("/roles", response_model=RoleListResponse)
async def list_roles(
    db: DB,
    name: str | None = Query(None, description="Substring match on the role name"),
    is_system: bool | None = Query(None),
) -> RoleListResponse:
    """List roles with their policies."""
    roles = await role_registry.list_roles(db, RoleFilter(name=name, is_system=is_system))
    items = [await _role_with_policies(db, role.id) for role in roles]
    return RoleListResponse(roles=items, count=len(items))


@router.post("/roles", response_model=RoleWithPolicies, status_code=status.HTTP_201_CREATED)
async def create_role(body: RoleCreate, db: DB) -> RoleWithPolicies:
    """Create a role together with its policies in one transaction."""
    role = await role_registry.create_with_policies(
        db,
        body.name,
        body.description,
        _policy_specs(body.policies),
    )
    await invalidate_rbac_cache()
    return await _role_with_policies(db, role.id)


@router.get("/roles/{role_id}", response_model=RoleWithPolicies)
async def get_role(role_id: str, db: DB) -> RoleWithPolicies:
    return await _role_with_policies(db, role_id)


@router.patch("/roles/{role_id}", response_model=RoleWithPolicies)
async def update_role(role_id: str, body: RoleUpdate, db: DB) -> RoleWithPolicies:
    """
    Update a role.

    Sending `policies` replaces the whole policy set; omitting it keeps
    the current one.
    """
    await role_registry.update(
        db,
        role_id,
        name=body.name,
        description=body.description,
        policies=_policy_specs(body.policies),
    )
    await invalidate_rbac_cache()
    return await _role_with_policies(db, role_id)


@router.delete("/roles/{role_id}", response_model=DeletedResponse)
async def delete_role(role_id: str, db: DB) -> DeletedResponse:
    """Delete a role with its policies, assignments and pending grants."""
    await role_registry.delete(db, role_id)
    await invalidate_rbac_cache()
    return DeletedResponse(id=role_id, deleted=True)


@router.put("/roles/{role_id}/policies", response_model=RoleWithPolicies)
async def replace_role_policies(role_id: str, body: PolicyReplace, db: DB) -> RoleWithPolicies:
    """Replace the full policy set of a role."""
    await policy_store.replace_policies(db, role_id, _policy_specs(body.policies))
    await invalidate_rbac_cache()
    return await _role_with_policies(db, role_id)


# Policies

@router.get("/policies", response_model=list[PolicyRead])
async def list_policies(
    db: DB,
    role_id: str | None = Query(None),
    permission_id: str | None = Query(None),
) -> list[PolicyRead]:
    policies = await policy_store.list_policies(db, role_id=role_id, permission_id=permission_id)
    return [PolicyRead.model_validate(p) for p in policies]


# Users

@router.get("/users", response_model=UserRolesListResponse)
async def list_users_with_roles(db: DB) -> UserRolesListResponse:
    """Every user holding at least one role."""
    users = await role_assignments.all_users_with_roles(db)
    items = [
        UserRoles(user_id=user_id, roles=[RoleRead.model_validate(r) for r in roles])
        for user_id, roles in users.items()
    ]
    return UserRolesListResponse(users=items, count=len(items))


@router.get("/users/{user_id}/roles", response_model=UserRoles)
async def list_user_roles(user_id: str, db: DB) -> UserRoles:
    roles = await role_assignments.list_for_user(db, user_id)
    return UserRoles(user_id=user_id, roles=[RoleRead.model_validate(r) for r in roles])


@router.post(
    "/users/{user_id}/roles",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def assign_user_role(user_id: str, body: AssignmentCreate, db: DB) -> AssignmentRead:
    """Assign a role to a user. Assigning an existing pair is a no-op."""
    assignment = await role_assignments.assign(db, user_id, body.role_id)
    await invalidate_rbac_cache()
    return AssignmentRead.model_validate(assignment)


@router.delete("/users/{user_id}/roles/{role_id}", response_model=DeletedResponse)
async def remove_user_role(user_id: str, role_id: str, db: DB) -> DeletedResponse:
    removed = await role_assignments.remove(db, user_id, role_id)
    if removed:
        await invalidate_rbac_cache()
    return DeletedResponse(id=role_id, deleted=removed)


# Invites

@invites_router.get("", response_model=list[InviteRead])
async def list_invites(
    db: DB,
    user_id: Annotated[str, Depends(require_permission("read", "/admin/invites"))],
) -> list[InviteRead]:
    invites = await invite_service.list_invites(db)
    return [InviteRead.model_validate(invite) for invite in invites]


@invites_router.post("", response_model=InviteIssued, status_code=status.HTTP_201_CREATED)
async def issue_invite(
    body: InviteCreate,
    db: DB,
    user_id: Annotated[str, Depends(require_permission("write", "/admin/invites"))],
) -> InviteIssued:
    """Record the role for an invited email and ask the identity system to invite it."""
    result = await invite_service.issue_invite(db, body.email, body.role_id)
    return InviteIssued.model_validate(result)


@invites_router.delete("/{email}", response_model=DeletedResponse)
async def cancel_invite(
    email: str,
    db: DB,
    user_id: Annotated[str, Depends(require_permission("delete", "/admin/invites"))],
) -> DeletedResponse:
    cancelled = await invite_service.cancel_invite(db, email)
    return DeletedResponse(id=email, deleted=cancelled)


# Checks

@check_router.post("/check", response_model=CheckResponse)
async def check_permission(body: CheckRequest, user_id: CurrentUserId, db: DB) -> CheckResponse:
    """Check one (action, resource) pair for the caller."""
    decision = await authorization_resolver.check_permission(db, user_id, body.action, body.resource)
    return CheckResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        action=body.action,
        resource=body.resource,
    )


@check_router.get("/check", response_model=UserPermissionsResponse)
async def get_my_permissions(user_id: CurrentUserId, db: DB) -> UserPermissionsResponse:
    """The caller's roles and effective permissions, cached per user."""
    cached = await get_cached_permissions(user_id)
    if cached is not None:
        return UserPermissionsResponse.model_validate(cached)

    summary = await authorization_resolver.get_user_permissions(db, user_id)
    response = UserPermissionsResponse(
        user_id=user_id,
        has_roles=bool(summary.roles),
        roles=[RoleRead.model_validate(role) for role in summary.roles],
        permissions=[
            EffectivePermissionRead(
                permission=PermissionRead.model_validate(entry.permission),
                decision=entry.decision,
            )
            for entry in summary.permissions
        ],
    )

    await cache_permissions(user_id, response.model_dump(mode="json"))
    return response
