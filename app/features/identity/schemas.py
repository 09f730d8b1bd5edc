"""
Identity lifecycle event payloads.
"""

from pydantic import BaseModel, EmailStr, Field


class UserCreatedEvent(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: EmailStr


class UserDeletedEvent(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: EmailStr | None = None


class IdentityCleanedUpEvent(BaseModel):
    email: EmailStr


class UserCreatedResult(BaseModel):
    role_promoted: bool


class UserDeletedResult(BaseModel):
    assignments_removed: int
    pending_grant_removed: bool


class IdentityCleanedUpResult(BaseModel):
    pending_grant_removed: bool
