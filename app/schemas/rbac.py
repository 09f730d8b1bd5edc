"""
Pydantic schemas for the RBAC admin API.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from app.models.role import PermissionAction, PolicyDecision
from app.schemas.common import BaseSchema


# Permissions

class PermissionCreate(BaseSchema):
    """Schema for creating a custom permission."""

    action: PermissionAction
    resource: str = Field(..., min_length=1, max_length=500, description="Resource path, e.g. /admin/products")
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=100)


class PermissionUpdate(BaseSchema):
    """Schema for updating a permission (all optional)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, min_length=1, max_length=100)


class PermissionRead(BaseSchema):
    id: str
    action: PermissionAction
    resource: str
    name: str
    description: str | None = None
    category: str
    is_system: bool
    created_at: datetime
    updated_at: datetime


class PermissionListResponse(BaseSchema):
    permissions: list[PermissionRead]
    by_category: dict[str, list[PermissionRead]]
    count: int


# Policies

class PolicyInput(BaseSchema):
    """One entry of a role's desired policy set."""

    permission_id: str = Field(..., min_length=1)
    decision: PolicyDecision = PolicyDecision.ALLOW


class PolicyReplace(BaseSchema):
    policies: list[PolicyInput]


class PolicyRead(BaseSchema):
    id: str
    role_id: str
    permission_id: str
    decision: PolicyDecision
    created_at: datetime


class PolicyWithPermission(BaseSchema):
    id: str
    decision: PolicyDecision
    permission: PermissionRead


# Roles

class RoleCreate(BaseSchema):
    """Schema for creating a role with its initial policies."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    policies: list[PolicyInput] = Field(default_factory=list)


class RoleUpdate(BaseSchema):
    """
    Schema for updating a role.

    When policies is present the role's policy set is replaced.
    """

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    policies: list[PolicyInput] | None = None


class RoleRead(BaseSchema):
    id: str
    name: str
    description: str | None = None
    is_system: bool
    created_at: datetime
    updated_at: datetime


class RoleWithPolicies(RoleRead):
    policies: list[PolicyWithPermission] = Field(default_factory=list)


class RoleListResponse(BaseSchema):
    roles: list[RoleWithPolicies]
    count: int


# Assignments

class AssignmentCreate(BaseSchema):
    role_id: str = Field(..., min_length=1)


class AssignmentRead(BaseSchema):
    id: str
    user_id: str
    role_id: str
    created_at: datetime


class UserRoles(BaseSchema):
    user_id: str
    roles: list[RoleRead]


class UserRolesListResponse(BaseSchema):
    users: list[UserRoles]
    count: int


# Invites

class InviteCreate(BaseSchema):
    email: EmailStr
    role_id: str = Field(..., min_length=1)


class InviteRead(BaseSchema):
    email: str
    role_id: str
    role_name: str
    created_at: datetime


class InviteIssued(BaseSchema):
    email: str
    role_id: str
    role_name: str
    dispatched: bool = Field(..., description="Whether the identity system was asked to send the invite")


# Checks

class CheckRequest(BaseSchema):
    action: PermissionAction
    resource: str = Field(..., min_length=1)


class CheckResponse(BaseSchema):
    allowed: bool
    reason: str
    action: PermissionAction
    resource: str


class EffectivePermissionRead(BaseSchema):
    permission: PermissionRead
    decision: PolicyDecision


class UserPermissionsResponse(BaseSchema):
    user_id: str
    has_roles: bool
    roles: list[RoleRead]
    permissions: list[EffectivePermissionRead]


class DeletedResponse(BaseSchema):
    id: str
    deleted: bool
