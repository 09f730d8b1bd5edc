"""
Authentication and authorization dependencies for dependency injection.
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.context import set_request_context
from app.core.database import get_db
from app.core.error_tracking import error_tracker
from app.core.exceptions import AccessDeniedError, service_unavailable, unauthorized
from app.core.metrics import rbac_check_errors_total
from app.core.security import get_token_subject
from app.features.rbac.matching import action_for_method, normalize_path
from app.features.rbac.resolver import authorization_resolver
from app.models.role import PermissionAction

logger = structlog.get_logger(__name__)

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)

# Store failures during a check. Driver connection errors (refused, timed out)
# surface as OSError before SQLAlchemy wraps anything.
STORE_ERRORS = (SQLAlchemyError, OSError)


async def get_current_user_id(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """
    Caller's user ID from the `sub` claim of a bearer JWT.

    Users live in the identity system; no lookup happens here.
    """
    if not credentials:
        raise unauthorized("Authentication required")

    user_id = get_token_subject(credentials.credentials)
    if not user_id:
        raise unauthorized("Invalid or expired token")

    request.state.user_id = user_id
    set_request_context(user_id=user_id)
    return user_id


async def authorize(
    db: AsyncSession,
    user_id: str,
    action: PermissionAction,
    resource: str,
) -> None:
    """
    Run a permission check and raise on denial.

    Store errors follow settings.rbac_fail_open: allow the request (and
    report it) or answer 503.

    Raises:
        AccessDeniedError: If the resolver denies the request
        HTTPException: 503 when the store fails and fail-open is off
    """
    try:
        decision = await authorization_resolver.check_permission(db, user_id, action, resource)
    except STORE_ERRORS as exc:
        await db.rollback()
        rbac_check_errors_total.inc()

        if not settings.rbac_fail_open:
            logger.error(
                "rbac_check_failed_closed",
                user_id=user_id,
                action=action.value,
                resource=resource,
                error=str(exc),
            )
            raise service_unavailable("Permission check unavailable")

        logger.error(
            "rbac_check_failed_open",
            user_id=user_id,
            action=action.value,
            resource=resource,
            error=str(exc),
        )
        error_tracker.capture_message(
            "Permission check failed open",
            level="warning",
            context={"user_id": user_id, "action": action.value, "resource": resource},
        )
        return

    if not decision.allowed:
        logger.info(
            "rbac_access_denied",
            user_id=user_id,
            action=action.value,
            resource=resource,
            reason=decision.reason,
        )
        raise AccessDeniedError(decision.reason, action.value, resource)


def is_excluded(resource: str) -> bool:
    """Paths that are never checked: non-admin routes and configured exclusions."""
    if not resource.startswith("/admin"):
        return True
    return any(resource.startswith(path) for path in settings.rbac_exclude_paths)


async def enforce_route_permission(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> None:
    """
    Router-level guard: derive (action, resource) from the request.

    Usage:
        router = APIRouter(dependencies=[Depends(enforce_route_permission)])
    """
    if not settings.rbac_enabled:
        return

    resource = normalize_path(request.url.path, settings.rbac_api_prefix)
    if is_excluded(resource):
        return

    await authorize(db, user_id, action_for_method(request.method), resource)


def require_permission(action: PermissionAction | str, resource: str):
    """
    Dependency factory for a fixed permission on a single route.

    Usage:
        @router.post("/uploads")
        async def upload(
            user_id: str = Depends(require_permission("write", "/admin/uploads"))
        ):
            ...
    """
    action = PermissionAction(action)

    async def permission_checker(
        db: Annotated[AsyncSession, Depends(get_db)],
        user_id: Annotated[str, Depends(get_current_user_id)],
    ) -> str:
        if settings.rbac_enabled:
            await authorize(db, user_id, action, resource)
        return user_id

    return permission_checker


# Type aliases for cleaner code
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
