"""Bits-to-running deployment pipeline.

Each method issues exactly one platform call. Transport failures surface as
``PipelineError``; nothing is retried here. Poll predicates are meant to be
called repeatedly by the caller until they report a terminal state.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Callable, Optional, TypeVar

import structlog

from foundry_sync.core.exceptions import (
    PipelineError,
    PipelineTerminalFailure,
    RemoteApiError,
    UnexpectedResponseError,
)
from foundry_sync.deploy.models import PollStatus
from foundry_sync.remote.client import RemoteClient
from foundry_sync.remote.models import BuildState, PackageState
from foundry_sync.utils.metrics import record_pipeline_step

logger = structlog.get_logger()

T = TypeVar("T")

_PACKAGE_FAILED_STATES = {PackageState.FAILED.value, PackageState.EXPIRED.value}


class DeploymentPipeline:
    """Stateless wrapper over the deployment calls of the platform."""

    def __init__(self, api: RemoteClient, metrics_enabled: bool = True):
        self.api = api
        self.metrics_enabled = metrics_enabled

    def _call(self, step: str, fn: Callable[[], T]) -> T:
        try:
            result = fn()
        except RemoteApiError as exc:
            record_pipeline_step(step, "error", self.metrics_enabled)
            logger.warning("Pipeline step failed", step=step, error=str(exc))
            raise PipelineError(f"{step} failed: {exc}", code=exc.code) from exc
        record_pipeline_step(step, "ok", self.metrics_enabled)
        return result

    # =========================================================================
    # Package
    # =========================================================================

    def create_package(self, app_id: str) -> str:
        package = self._call("create_package", lambda: self.api.create_package(app_id))
        if package is None:
            raise UnexpectedResponseError(
                "Platform signaled that package creation succeeded but failed to provide a response."
            )
        logger.info("Package created", appId=app_id, packageId=package.guid)
        return package.guid

    def upload_bits(self, package_id: str, artifact: Path) -> str:
        """Upload an artifact file as the bits of a package."""
        artifact = Path(artifact)
        with open(artifact, "rb") as bits:
            package = self._call(
                "upload_bits",
                lambda: self.api.upload_bits(package_id, bits, artifact.name),
            )
        if package is None:
            raise UnexpectedResponseError(
                "Platform signaled that package upload succeeded but failed to provide a response."
            )
        logger.info("Package bits uploaded", packageId=package_id, artifact=artifact.name)
        return package.guid

    def poll_package_ready(self, package_id: str) -> PollStatus:
        """Check whether uploaded bits have been processed.

        Raises:
            PipelineTerminalFailure: the package is FAILED or EXPIRED, or no
                longer reported by the platform.
        """
        package = self._call("package_ready", lambda: self.api.get_package(package_id))
        state = package.state if package else PackageState.FAILED.value
        if state in _PACKAGE_FAILED_STATES:
            raise PipelineTerminalFailure(f"Upload failed: package {package_id} is {state}", status=state)
        if state == PackageState.READY.value:
            return PollStatus.READY
        return PollStatus.PENDING

    def find_current_package_id(self, app_id: str) -> Optional[str]:
        """Package id behind the application's current droplet."""
        droplet = self._call("find_current_package", lambda: self.api.get_droplet(app_id))
        if droplet is None:
            return None
        link = droplet.links.get("package")
        if link is None or not link.href:
            return None
        return link.href.rstrip("/").rsplit("/", 1)[-1]

    def download_package_bits(self, package_id: str) -> BinaryIO:
        stream = self._call("download_bits", lambda: self.api.download_bits(package_id))
        if stream is None:
            raise UnexpectedResponseError("Failed to retrieve input stream of package bits.")
        return stream

    # =========================================================================
    # Build
    # =========================================================================

    def create_build(self, package_id: str) -> str:
        build = self._call("create_build", lambda: self.api.create_build(package_id))
        if build is None:
            raise UnexpectedResponseError(
                "Platform signaled that build creation succeeded but failed to provide a response."
            )
        logger.info("Build created", packageId=package_id, buildId=build.guid)
        return build.guid

    def poll_build_ready(self, build_id: str) -> PollStatus:
        """Check whether a build has staged a droplet.

        Raises:
            PipelineTerminalFailure: the build FAILED or is no longer reported.
        """
        build = self._call("build_ready", lambda: self.api.get_build(build_id))
        state = build.state if build else BuildState.FAILED.value
        if state == BuildState.FAILED.value:
            raise PipelineTerminalFailure(
                "Failed to build droplet or there are not enough resources available",
                status=state,
            )
        if state == BuildState.STAGED.value:
            return PollStatus.READY
        return PollStatus.PENDING

    def droplet_from_build(self, build_id: str) -> Optional[str]:
        build = self._call("droplet_from_build", lambda: self.api.get_build(build_id))
        if build is None or build.droplet is None:
            return None
        return build.droplet.guid

    # =========================================================================
    # Application lifecycle
    # =========================================================================

    def set_current_droplet(self, app_id: str, droplet_id: str) -> None:
        self._call("set_droplet", lambda: self.api.set_current_droplet(app_id, droplet_id))
        logger.info("Current droplet set", appId=app_id, dropletId=droplet_id)

    def start(self, app_id: str) -> None:
        self._call("start", lambda: self.api.start(app_id))

    def stop(self, app_id: str) -> None:
        self._call("stop", lambda: self.api.stop(app_id))

    def restage(self, app_id: str) -> None:
        self._call("restage", lambda: self.api.restage(app_id))

    def delete_instance(self, app_id: str, index: str) -> None:
        self._call("delete_instance", lambda: self.api.delete_instance(app_id, str(index)))

    def map_route(self, app_id: str, route_id: str) -> None:
        self._call("map_route", lambda: self.api.map_route(app_id, route_id))

    def unmap_route(self, app_id: str, route_id: str) -> None:
        self._call("unmap_route", lambda: self.api.unmap_route(app_id, route_id))
