"""
RouteSnap Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Reports OCR provider reachability (and circuit breaker state).

Status levels:
    - healthy:   OCR provider reachable (HTTP 200)
    - degraded:  OCR provider down or circuit open (HTTP 200). Text parsing
                 still works, so the instance keeps receiving traffic.
"""

import logging
import time

from fastapi import APIRouter

from routesnap import __version__
from routesnap.schemas.stops import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    """Probe the OCR provider and return aggregate status and uptime."""
    ocr_status = "available"
    overall = "healthy"

    try:
        from routesnap.services.gemini_service import gemini_service
        if gemini_service.circuit_breaker.state == "open":
            ocr_status = "circuit_open"
            overall = "degraded"
        elif not await gemini_service.health_check():
            ocr_status = "unavailable"
            overall = "degraded"
    except Exception as e:
        ocr_status = "unavailable"
        overall = "degraded"
        logger.warning("Health check: Gemini unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        ocr=ocr_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
