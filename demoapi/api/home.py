"""Root welcome endpoint."""

import logging

from fastapi import APIRouter, Depends, Request

from demoapi.errors import APIError
from demoapi.faults.policy import FaultContext, FaultPolicy, FaultSite, get_fault_policy

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Home"])


@router.get(
    "/",
    summary="Welcome message",
    response_model=dict[str, str],
)
async def home(
    request: Request, faults: FaultPolicy = Depends(get_fault_policy)
) -> dict[str, str]:
    logger.info("Handling home request | path=%s | method=%s", request.url.path, request.method)

    fault = faults.decide(FaultContext(FaultSite.HOME))
    if fault is not None:
        raise APIError(fault.status_code, fault.message, fault.detail)

    return {"message": "Welcome to the API"}
