"""
User-role assignment model.
"""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class UserRoleAssignment(BaseModel):
    """
    Binds an external user identity to a role.

    user_id is opaque: users live in the identity system, so there is
    no foreign key on it.
    """

    __tablename__ = "rbac_user_roles"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="User ID from the identity system"
    )

    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rbac_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Assigned role"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_rbac_user_role"),
    )

    def __repr__(self) -> str:
        return f"<UserRoleAssignment(user_id={self.user_id}, role_id={self.role_id})>"
