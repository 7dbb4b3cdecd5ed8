"""Drives a deployment through the pipeline on behalf of a caller.

The runner advances the ``PipelineState`` of one deployment. A run that fails
can be resumed with the same state: completed steps are not repeated, so
packages and builds are never created twice. A package or build that fails
terminally is dropped from the state, and resuming creates a fresh one.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional

import structlog

from foundry_sync.core.config import Settings
from foundry_sync.core.exceptions import PipelineTerminalFailure, PipelineTimeoutError, UnexpectedResponseError
from foundry_sync.deploy.models import DeploymentStep, PipelineState, PollStatus
from foundry_sync.deploy.pipeline import DeploymentPipeline

logger = structlog.get_logger()


class DeploymentRunner:
    """Runs create-package through start with polling and a deadline."""

    def __init__(
        self,
        pipeline: DeploymentPipeline,
        poll_interval_seconds: float = 5.0,
        timeout_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.pipeline = pipeline
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        pipeline: DeploymentPipeline,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "DeploymentRunner":
        """Build a runner polling at the configured interval until the configured deadline."""
        return cls(
            pipeline,
            poll_interval_seconds=settings.poll_interval_seconds,
            timeout_seconds=settings.deploy_timeout_seconds,
            clock=clock,
            sleep=sleep,
        )

    def deploy(
        self,
        app_id: str,
        artifact: Path,
        state: Optional[PipelineState] = None,
        start: bool = True,
    ) -> PipelineState:
        """Deploy an artifact to an application.

        Args:
            app_id: Target application
            artifact: Path to the bits to upload
            state: State of an earlier, interrupted run to resume
            start: Start the application once the droplet is set

        Returns:
            The final pipeline state
        """
        state = state or PipelineState(app_id=app_id)
        deadline = self.clock() + self.timeout_seconds
        log = logger.bind(appId=app_id)

        if state.step == DeploymentStep.CREATE_PACKAGE:
            state.advance(DeploymentStep.UPLOAD_BITS, package_id=self.pipeline.create_package(app_id))

        if state.step == DeploymentStep.UPLOAD_BITS:
            self.pipeline.upload_bits(state.package_id, artifact)
            state.advance(DeploymentStep.PACKAGE_READY)

        if state.step == DeploymentStep.PACKAGE_READY:
            try:
                self._wait("package", lambda: self.pipeline.poll_package_ready(state.package_id), deadline)
            except PipelineTerminalFailure:
                log.warning("Package failed, next attempt starts from a new package", packageId=state.package_id)
                state.advance(DeploymentStep.CREATE_PACKAGE, package_id=None)
                raise
            state.advance(DeploymentStep.CREATE_BUILD)
            log.info("Package ready", packageId=state.package_id)

        if state.step == DeploymentStep.CREATE_BUILD:
            state.advance(DeploymentStep.BUILD_READY, build_id=self.pipeline.create_build(state.package_id))

        if state.step == DeploymentStep.BUILD_READY:
            try:
                self._wait("build", lambda: self.pipeline.poll_build_ready(state.build_id), deadline)
            except PipelineTerminalFailure:
                log.warning("Build failed, next attempt starts from a new build", buildId=state.build_id)
                state.advance(DeploymentStep.CREATE_BUILD, build_id=None)
                raise
            droplet_id = self.pipeline.droplet_from_build(state.build_id)
            if droplet_id is None:
                raise UnexpectedResponseError(f"Build {state.build_id} staged without a droplet")
            state.advance(DeploymentStep.SET_DROPLET, droplet_id=droplet_id)
            log.info("Build staged", buildId=state.build_id, dropletId=droplet_id)

        if state.step == DeploymentStep.SET_DROPLET:
            self.pipeline.set_current_droplet(app_id, state.droplet_id)
            state.advance(DeploymentStep.START)

        if state.step == DeploymentStep.START:
            if start:
                self.pipeline.start(app_id)
            state.advance(DeploymentStep.DONE)

        log.info("Deployment finished", dropletId=state.droplet_id, started=start)
        return state

    def _wait(self, what: str, poll: Callable[[], PollStatus], deadline: float) -> None:
        while True:
            if poll() == PollStatus.READY:
                return
            if self.clock() + self.poll_interval_seconds > deadline:
                raise PipelineTimeoutError(f"Timed out waiting for {what} to become ready")
            self.sleep(self.poll_interval_seconds)
