"""
Version endpoint.

Reports the installed distribution version, the top-level module and the
interpreter version. Computed on every call from package metadata.
"""

import logging
import platform
from importlib import metadata

from fastapi import APIRouter, Request

from demoapi.models.version import VersionInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Version"])

DISTRIBUTION_NAME = "demo-web-service"
MODULE_NAME = "demoapi"


def get_build_info() -> VersionInfo:
    """Read build metadata, falling back to ``dev`` for uninstalled checkouts."""
    try:
        version = metadata.version(DISTRIBUTION_NAME) or "dev"
    except metadata.PackageNotFoundError:
        version = "dev"
    return VersionInfo(
        version=version,
        module=MODULE_NAME,
        python_version=platform.python_version(),
    )


@router.get(
    "/version",
    response_model=VersionInfo,
    summary="Build information",
    description="Returns the service version, module name and Python version.",
)
async def version_info(request: Request) -> VersionInfo:
    logger.debug(
        "Version information requested | remote_addr=%s",
        request.client.host if request.client else "-",
    )
    return get_build_info()
