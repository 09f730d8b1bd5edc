"""
Role-Based Access Control (RBAC) models.

A Permission is an (action, resource) pair from the catalog, a Role is a
named bundle of Policies, and each Policy binds one role to one permission
with an allow or deny decision.
"""

from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class PermissionAction(str, Enum):
    """Verb being authorized."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


class PolicyDecision(str, Enum):
    """Outcome a policy assigns to its permission."""
    ALLOW = "allow"
    DENY = "deny"


class Permission(BaseModel):
    """
    Permission model for fine-grained access control.

    Examples:
    - read /admin/products
    - write /admin/orders
    - delete /admin/orders/*

    Resources match by prefix, so /admin/products also covers
    /admin/products/prod_123. A trailing /* covers everything below it.
    """

    __tablename__ = "rbac_permissions"

    action: Mapped[PermissionAction] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Action type (read, write, delete)"
    )

    resource: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Protected resource path (e.g., /admin/products)"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Human-readable permission name"
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="What this permission allows"
    )

    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="General",
        comment="Grouping for presentation (e.g., Products, Orders)"
    )

    is_system: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="System-defined permission (cannot be modified)"
    )

    __table_args__ = (
        Index("idx_rbac_permission_action_resource", "action", "resource"),
    )

    def __repr__(self) -> str:
        return f"<Permission(action={self.action}, resource={self.resource})>"


class Role(BaseModel):
    """
    Role model for grouping policies.

    Default roles:
    - Super Admin: allow on every catalog permission
    - Editor: view and edit catalog, orders and customers
    - Viewer: read-only access
    - Order Manager: orders and customers

    Custom roles can be created through the admin API.
    """

    __tablename__ = "rbac_roles"

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Role name (e.g., 'Editor', 'Viewer')"
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Role description"
    )

    is_system: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="System-defined role (cannot be modified or deleted)"
    )

    def __repr__(self) -> str:
        return f"<Role(name={self.name}, is_system={self.is_system})>"


class Policy(BaseModel):
    """Allow/deny decision a role holds on a permission."""

    __tablename__ = "rbac_policies"

    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rbac_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning role"
    )

    permission_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rbac_permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Target permission"
    )

    decision: Mapped[PolicyDecision] = mapped_column(
        String(10),
        nullable=False,
        comment="allow or deny"
    )

    def __repr__(self) -> str:
        return (
            f"<Policy(role_id={self.role_id}, permission_id={self.permission_id}, "
            f"decision={self.decision})>"
        )
