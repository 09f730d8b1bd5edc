"""
Pydantic schemas package.
"""

from app.schemas.common import (
    AccessDeniedResponse,
    BaseSchema,
)
from app.schemas.rbac import (
    PermissionCreate,
    PermissionRead,
    PermissionUpdate,
    PolicyInput,
    RoleCreate,
    RoleRead,
    RoleUpdate,
)

__all__ = [
    # Common
    "AccessDeniedResponse",
    "BaseSchema",
    # RBAC
    "PermissionCreate",
    "PermissionRead",
    "PermissionUpdate",
    "PolicyInput",
    "RoleCreate",
    "RoleRead",
    "RoleUpdate",
]
