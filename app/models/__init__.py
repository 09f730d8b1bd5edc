"""
Database models package.
"""

from app.core.database import Base
from app.models.base import BaseModel
from app.models.role import Permission, PermissionAction, Policy, PolicyDecision, Role
from app.models.user_role import UserRoleAssignment
from app.models.pending_role import PendingRoleGrant

__all__ = [
    "Base",
    "BaseModel",
    "Permission",
    "PermissionAction",
    "Policy",
    "PolicyDecision",
    "Role",
    "UserRoleAssignment",
    "PendingRoleGrant",
]
