"""
Celery entry points for identity lifecycle events.

For deployments where the identity system publishes events on the broker
instead of calling the webhooks.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable

import structlog

from app.core.celery_app import celery_app
from app.core.cache import cache_manager
from app.core.database import db_manager
from app.core.metrics import task_duration_seconds
from app.features.identity import lifecycle
from app.features.rbac.cache import invalidate_rbac_cache

logger = structlog.get_logger(__name__)


def _run(task_name: str, handler: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    """Run an async lifecycle handler in a fresh session and event loop."""

    async def runner() -> Any:
        db_manager.init()
        try:
            async with db_manager.session_scope() as db:
                return await handler(db, *args)
        finally:
            await db_manager.close()

    start_time = time.time()
    status = "success"
    try:
        return asyncio.run(runner())
    except Exception:
        status = "failure"
        raise
    finally:
        task_duration_seconds.labels(task_name=task_name, status=status).observe(
            time.time() - start_time
        )


async def _invalidate_cache() -> None:
    try:
        await cache_manager.init()
    except Exception as e:
        logger.warning("cache_unavailable", error=str(e))
        await cache_manager.close()
        return
    try:
        await invalidate_rbac_cache()
    finally:
        await cache_manager.close()


@celery_app.task(name="identity.user_created", bind=True, max_retries=3)
def user_created(self, user_id: str, email: str) -> dict:
    """Promote the pending role of a newly created user."""
    try:
        promoted = _run("identity.user_created", lifecycle.on_user_created, user_id, email)
    except Exception as exc:
        logger.error("identity_task_failed", task="identity.user_created", error=str(exc))
        raise self.retry(exc=exc)

    if promoted:
        asyncio.run(_invalidate_cache())
    return {"user_id": user_id, "role_promoted": promoted}


@celery_app.task(name="identity.user_deleted", bind=True, max_retries=3)
def user_deleted(self, user_id: str, email: str | None = None) -> dict:
    """Remove all assignments of a deleted user."""
    try:
        cleanup = _run("identity.user_deleted", lifecycle.on_user_deleted, user_id, email)
    except Exception as exc:
        logger.error("identity_task_failed", task="identity.user_deleted", error=str(exc))
        raise self.retry(exc=exc)

    asyncio.run(_invalidate_cache())
    return {
        "user_id": user_id,
        "assignments_removed": cleanup.assignments_removed,
        "pending_grant_removed": cleanup.pending_grant_removed,
    }


@celery_app.task(name="identity.identity_cleaned_up", bind=True, max_retries=3)
def identity_cleaned_up(self, email: str) -> dict:
    """Remove the pending grant of a cleaned-up identity."""
    try:
        removed = _run("identity.identity_cleaned_up", lifecycle.on_identity_cleaned_up, email)
    except Exception as exc:
        logger.error("identity_task_failed", task="identity.identity_cleaned_up", error=str(exc))
        raise self.retry(exc=exc)

    return {"email": email, "pending_grant_removed": removed}
