"""
Pending role grants for invited users.
"""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class PendingRoleGrant(BaseModel):
    """
    Role promised to an email address that is not a user yet.

    Created when an invite is issued with a role and converted into a
    UserRoleAssignment when the invited email registers.
    """

    __tablename__ = "rbac_pending_roles"

    # Always stored lower-cased
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Invited email address (lower-case)"
    )

    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rbac_roles.id", ondelete="CASCADE"),
        nullable=False,
        comment="Role to assign on registration"
    )

    def __repr__(self) -> str:
        return f"<PendingRoleGrant(email={self.email}, role_id={self.role_id})>"
