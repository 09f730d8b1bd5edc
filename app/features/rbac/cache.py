"""
Cached permission summaries.

GET /check responses are cached per user. Any RBAC write drops the whole
namespace; entries also expire after settings.rbac_cache_ttl.
"""

from typing import Any

from app.config import settings
from app.core.cache import cache_manager

RBAC_CACHE_NAMESPACE = "rbac"


def _user_key(user_id: str) -> str:
    return f"user_perms:{user_id}"


async def get_cached_permissions(user_id: str) -> dict[str, Any] | None:
    return await cache_manager.get(RBAC_CACHE_NAMESPACE, _user_key(user_id))


async def cache_permissions(user_id: str, summary: dict[str, Any]) -> None:
    await cache_manager.set(RBAC_CACHE_NAMESPACE, _user_key(user_id), summary, ttl=settings.rbac_cache_ttl)


async def invalidate_rbac_cache() -> int:
    return await cache_manager.invalidate_namespace(RBAC_CACHE_NAMESPACE)
