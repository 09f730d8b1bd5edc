"""
Prometheus scrape endpoint.

Exposes HTTP timings, cache hit rates, identity task durations and the
RBAC decision counters (rbac_checks_total, rbac_check_errors_total,
rbac_pending_promotions_total).
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Current process metrics in Prometheus text format."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
