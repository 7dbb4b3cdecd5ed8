"""Raw payloads returned by the platform API.

These mirror the platform's JSON documents closely; the mapper turns them
into the normalized models in ``foundry_sync.core.models``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Link(BaseModel):
    href: Optional[str] = None
    guid: Optional[str] = None


class RawApplication(BaseModel):
    """An application as listed by the platform."""

    guid: str
    name: str
    state: str = "STOPPED"
    created_at: datetime
    updated_at: datetime
    links: Dict[str, Link] = Field(default_factory=dict)

    @property
    def space_guid(self) -> Optional[str]:
        link = self.links.get("space")
        return link.guid if link else None

    @property
    def updated_millis(self) -> int:
        return int(self.updated_at.timestamp() * 1000)

    @property
    def created_millis(self) -> int:
        return int(self.created_at.timestamp() * 1000)


class LastOperation(BaseModel):
    state: Optional[str] = None
    description: Optional[str] = None


class ServiceInstanceEnv(BaseModel):
    name: Optional[str] = None
    plan: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    last_operation: Optional[LastOperation] = None


class SystemEnv(BaseModel):
    vcap_services: Dict[str, List[ServiceInstanceEnv]] = Field(default_factory=dict)


class ApplicationEnv(BaseModel):
    """Environment bundle of an application."""

    environment_json: Optional[Dict[str, Any]] = None
    system_env_json: SystemEnv = Field(default_factory=SystemEnv)


class HealthCheckData(BaseModel):
    endpoint: Optional[str] = None


class HealthCheck(BaseModel):
    type: Optional[str] = None
    data: Optional[HealthCheckData] = None


class ProcessInfo(BaseModel):
    """Web process metadata of an application."""

    guid: Optional[str] = None
    memory_in_mb: Optional[int] = None
    disk_in_mb: Optional[int] = None
    instances: Optional[int] = None
    health_check: Optional[HealthCheck] = None


class PackageState(str, Enum):
    AWAITING_UPLOAD = "AWAITING_UPLOAD"
    PROCESSING_UPLOAD = "PROCESSING_UPLOAD"
    READY = "READY"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class Checksum(BaseModel):
    type: Optional[str] = None
    value: Optional[str] = None


class PackageData(BaseModel):
    checksum: Optional[Checksum] = None


class RawPackage(BaseModel):
    guid: str
    # Kept as a string so unknown states reach the poll predicate.
    state: str = PackageState.AWAITING_UPLOAD.value
    data: PackageData = Field(default_factory=PackageData)
    links: Dict[str, Link] = Field(default_factory=dict)


class RawBuildpack(BaseModel):
    name: Optional[str] = None
    buildpack_name: Optional[str] = None
    detect_output: Optional[str] = None
    version: Optional[str] = None


class RawDroplet(BaseModel):
    guid: str
    state: Optional[str] = None
    stack: Optional[str] = None
    buildpacks: Optional[List[RawBuildpack]] = None
    links: Dict[str, Link] = Field(default_factory=dict)


class BuildState(str, Enum):
    STAGING = "STAGING"
    STAGED = "STAGED"
    FAILED = "FAILED"


class DropletGuid(BaseModel):
    guid: str


class RawBuild(BaseModel):
    guid: str
    state: str = BuildState.STAGING.value
    droplet: Optional[DropletGuid] = None


class RawInstance(BaseModel):
    """One entry of the instance map of a running application."""

    state: str
    uptime: int = 0
    details: Optional[str] = None
    since: Optional[float] = None


class Lifecycle(BaseModel):
    type: str = "buildpack"
    data: Dict[str, Any] = Field(default_factory=dict)


class Page(BaseModel, Generic[T]):
    total_results: int = 0
    total_pages: int = 1
    resources: List[T] = Field(default_factory=list)
