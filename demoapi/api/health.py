"""
Health check endpoint.

Provides a lightweight probe for load balancers, uptime monitors,
and deployment readiness checks. Never subject to fault injection.
"""

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])


@router.get(
    "/health",
    summary="Health Check",
    description="Returns the current health status of the service.",
    response_model=dict[str, str],
)
async def health_check(request: Request) -> dict[str, str]:
    """Return a constant healthy status."""
    logger.debug(
        "Health check requested | remote_addr=%s",
        request.client.host if request.client else "-",
    )
    return {"status": "healthy"}
