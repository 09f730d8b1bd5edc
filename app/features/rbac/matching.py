"""
Resource matching rules shared by the resolver and route enforcement.

A permission resource covers a requested resource when:
- the strings are equal
- the requested resource starts with the permission resource
- the permission resource ends with "/*" and the request is the base path
  or anything below it (/admin/orders/* does not cover /admin/ordersX)

When several catalog permissions cover the same request the most specific
one wins: exact matches first, then the longest matched prefix, then the
oldest entry.
"""

import re
from typing import Iterable, TypeVar

from app.models.role import PermissionAction

WILDCARD_SUFFIX = "/*"

# Third path segments that identify a single record rather than a sub-resource
_ID_PREFIXES = ("prod_", "order_", "cust_", "var_")
_ID_PATTERN = re.compile(r"^[a-f0-9-]{20,}$", re.IGNORECASE)

_METHOD_ACTIONS = {
    "GET": PermissionAction.READ,
    "HEAD": PermissionAction.READ,
    "POST": PermissionAction.WRITE,
    "PUT": PermissionAction.WRITE,
    "PATCH": PermissionAction.WRITE,
    "DELETE": PermissionAction.DELETE,
}

T = TypeVar("T")


def resource_matches(permission_resource: str, requested: str) -> bool:
    """Return True when a permission resource covers the requested resource."""
    if permission_resource.endswith(WILDCARD_SUFFIX):
        base = permission_resource[: -len(WILDCARD_SUFFIX)]
        return requested == base or requested.startswith(base + "/")

    if requested == permission_resource:
        return True

    return requested.startswith(permission_resource)


def match_specificity(permission_resource: str, requested: str) -> tuple[int, int] | None:
    """
    Rank how closely a permission resource matches a request.

    Returns None for no match, otherwise (is_exact, matched_length); larger
    tuples are more specific.
    """
    if not resource_matches(permission_resource, requested):
        return None

    if permission_resource == requested:
        return (1, len(permission_resource))

    if permission_resource.endswith(WILDCARD_SUFFIX):
        return (0, len(permission_resource) - len(WILDCARD_SUFFIX))

    return (0, len(permission_resource))


def select_permission(permissions: Iterable[T], requested: str) -> T | None:
    """
    Pick the most specific permission covering the requested resource.

    Expects objects with ``resource``, ``created_at`` and ``id`` attributes.
    Candidates should already be filtered by action.
    """
    best: T | None = None
    best_key = None

    for permission in permissions:
        specificity = match_specificity(permission.resource, requested)
        if specificity is None:
            continue

        # Higher specificity wins, then the oldest row, then the smallest id
        key = (-specificity[0], -specificity[1], permission.created_at, permission.id)
        if best_key is None or key < best_key:
            best, best_key = permission, key

    return best


def action_for_method(method: str) -> PermissionAction:
    """Map an HTTP method to an RBAC action (unknown methods read)."""
    return _METHOD_ACTIONS.get(method.upper(), PermissionAction.READ)


def _looks_like_id(segment: str) -> bool:
    return segment.startswith(_ID_PREFIXES) or bool(_ID_PATTERN.match(segment))


def normalize_path(path: str, api_prefix: str = "") -> str:
    """
    Reduce a request path to the resource used for permission checks.

    /api/v1/admin/products/prod_123/variants -> /admin/products
    /api/v1/admin/rbac/roles                 -> /admin/rbac/roles
    """
    path = path.split("?", 1)[0]

    if api_prefix and (path == api_prefix or path.startswith(api_prefix + "/")):
        path = path[len(api_prefix):]

    segments = [segment for segment in path.split("/") if segment]

    if len(segments) > 2 and segments[0] == "admin" and _looks_like_id(segments[2]):
        return f"/{segments[0]}/{segments[1]}"

    return "/" + "/".join(segments[:3])
