"""
API v1 router aggregator.

All v1 routes are registered here.
This pattern enables clean version management.
"""

from fastapi import APIRouter

from app.features.identity.router import router as identity_router
from app.features.rbac.router import (
    check_router as rbac_check_router,
    invites_router as rbac_invites_router,
    router as rbac_router,
)

# V1 API router
v1_router = APIRouter(prefix="/v1")

# Register all feature routers
v1_router.include_router(rbac_check_router)
v1_router.include_router(rbac_invites_router)
v1_router.include_router(rbac_router)
v1_router.include_router(identity_router)
