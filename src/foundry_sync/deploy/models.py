"""Models for the deployment pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PollStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"


class DeploymentStep(str, Enum):
    CREATE_PACKAGE = "create_package"
    UPLOAD_BITS = "upload_bits"
    PACKAGE_READY = "package_ready"
    CREATE_BUILD = "create_build"
    BUILD_READY = "build_ready"
    SET_DROPLET = "set_droplet"
    START = "start"
    DONE = "done"


class PipelineState(BaseModel):
    """Progress of one in-flight deployment, owned by its caller."""

    app_id: str
    step: DeploymentStep = DeploymentStep.CREATE_PACKAGE
    package_id: Optional[str] = None
    build_id: Optional[str] = None
    droplet_id: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def advance(self, step: DeploymentStep, **ids: Optional[str]) -> None:
        self.step = step
        self.updated_at = _utcnow()
        for name, value in ids.items():
            setattr(self, name, value)
