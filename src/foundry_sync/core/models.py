"""Normalized data models for Foundry Sync."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


class WorkloadState(str, Enum):
    """Lifecycle state of an application."""

    STARTED = "STARTED"
    STOPPED = "STOPPED"


class HealthState(str, Enum):
    """Normalized health of a running instance."""

    UP = "Up"
    DOWN = "Down"
    STARTING = "Starting"
    UNKNOWN = "Unknown"


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Organization(_Frozen):
    id: str
    name: Optional[str] = None


class Space(_Frozen):
    id: str
    name: Optional[str] = None
    organization: Optional[Organization] = None


class InstanceRecord(_Frozen):
    """One running replica of an application."""

    app_id: str = Field(..., description="Owning application id")
    key: str = Field(..., description="Instance index")
    health_state: HealthState = Field(HealthState.UNKNOWN)
    launch_time: int = Field(..., description="Launch time in epoch millis")
    details: Optional[str] = None
    zone: Optional[str] = None


class Buildpack(_Frozen):
    name: Optional[str] = None
    buildpack_name: Optional[str] = None
    detect_output: Optional[str] = None
    version: Optional[str] = None


class SourcePackage(_Frozen):
    download_url: Optional[str] = None
    checksum_type: Optional[str] = None
    checksum: Optional[str] = None


class DropletRef(_Frozen):
    """Staged, runnable artifact bound to an application."""

    id: str
    name: str
    stack: Optional[str] = None
    buildpacks: Tuple[Buildpack, ...] = ()
    space: Optional[Space] = None
    source_package: Optional[SourcePackage] = None


class ServiceBinding(_Frozen):
    service_name: str = Field(..., description="Service offering the binding belongs to")
    name: Optional[str] = None
    plan: Optional[str] = None
    tags: Tuple[str, ...] = ()
    status: Optional[str] = None
    last_operation_description: Optional[str] = None


class BuildInfo(_Frozen):
    job_name: Optional[str] = None
    job_number: Optional[str] = None
    job_url: Optional[str] = None


class ArtifactInfo(_Frozen):
    name: Optional[str] = None
    version: Optional[str] = None
    url: Optional[str] = None


class WorkloadEntity(_Frozen):
    """Normalized view of one deployed application.

    Values are immutable; the cache swaps whole entities and readers always
    hold a consistent snapshot.
    """

    id: str = Field(..., description="Application guid")
    name: str = Field(..., description="Application name")
    account: str = Field(..., description="Account the application was read from")
    space: Optional[Space] = None
    state: WorkloadState = WorkloadState.STOPPED
    memory: Optional[int] = Field(None, description="Memory quota in MB")
    disk_quota: Optional[int] = Field(None, description="Disk quota in MB")
    created_time: int = Field(..., description="Creation time in epoch millis")
    updated_time: int = Field(..., description="Last update time in epoch millis")
    health_check_type: Optional[str] = None
    health_check_http_endpoint: Optional[str] = None
    service_bindings: Tuple[ServiceBinding, ...] = ()
    env: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    ci_build: BuildInfo = Field(default_factory=BuildInfo)
    app_artifact: ArtifactInfo = Field(default_factory=ArtifactInfo)
    pipeline_id: Optional[str] = None
    droplet: Optional[DropletRef] = None
    instances: Tuple[InstanceRecord, ...] = ()
    apps_manager_uri: Optional[str] = None
    metrics_uri: Optional[str] = None

    @field_validator("env")
    @classmethod
    def _freeze_env(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @field_serializer("env")
    def _serialize_env(self, value: Mapping[str, Any]) -> Dict[str, Any]:
        return _thaw(value)

    @model_validator(mode="after")
    def _instances_require_started(self) -> "WorkloadEntity":
        if self.instances and self.state != WorkloadState.STARTED:
            raise ValueError("instances must be empty unless the application is STARTED")
        return self

    def with_health(self, state: WorkloadState, instances: Sequence[InstanceRecord]) -> "WorkloadEntity":
        """Copy carrying a new state and instance set, validated like a fresh entity."""
        return self.model_validate({**dict(self), "state": state, "instances": tuple(instances)})

    @property
    def region(self) -> Optional[str]:
        """Space name, used as the placement zone of instances."""
        return self.space.name if self.space else None


class ClusterView(_Frozen):
    account: str
    name: str
    server_groups: Tuple[WorkloadEntity, ...] = ()


class ApplicationView(_Frozen):
    name: str
    clusters: Tuple[ClusterView, ...] = ()
