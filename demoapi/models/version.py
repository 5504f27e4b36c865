"""Build metadata reported by ``GET /api/version``."""

from pydantic import BaseModel, ConfigDict, Field


class VersionInfo(BaseModel):
    """Immutable snapshot of the running build."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str
    module: str
    python_version: str = Field(..., alias="pythonVersion")
