"""Maps raw platform applications into normalized workload entities."""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

import structlog

from foundry_sync.core.exceptions import RemoteApiError
from foundry_sync.core.models import (
    ArtifactInfo,
    BuildInfo,
    Buildpack,
    DropletRef,
    ServiceBinding,
    SourcePackage,
    Space,
    WorkloadEntity,
)
from foundry_sync.health.evaluator import HealthEvaluator, parse_workload_state
from foundry_sync.remote.client import ProcessResolver, RemoteClient, SpaceResolver
from foundry_sync.remote.models import ApplicationEnv, ProcessInfo, RawApplication

logger = structlog.get_logger()


class MetadataEnvVar(str, Enum):
    """Environment variables carrying deployment provenance."""

    JOB_NAME = "CI_BUILD_JOB_NAME"
    JOB_NUMBER = "CI_BUILD_JOB_NUMBER"
    JOB_URL = "CI_BUILD_JOB_URL"
    ARTIFACT_NAME = "ARTIFACT_NAME"
    ARTIFACT_VERSION = "ARTIFACT_VERSION"
    ARTIFACT_URL = "ARTIFACT_URL"
    PIPELINE_ID = "DEPLOY_PIPELINE_ID"


def get_env_var(env: Dict[str, Any], var: MetadataEnvVar) -> Optional[str]:
    value = env.get(var.value)
    return str(value) if value is not None else None


class EntityMapper:
    """Builds a ``WorkloadEntity`` from a raw application and its auxiliary reads."""

    def __init__(
        self,
        account: str,
        api: RemoteClient,
        spaces: SpaceResolver,
        processes: ProcessResolver,
        health: HealthEvaluator,
        apps_manager_uri: Optional[str] = None,
        metrics_uri: Optional[str] = None,
    ):
        self.account = account
        self.api = api
        self.spaces = spaces
        self.processes = processes
        self.health = health
        self.apps_manager_uri = apps_manager_uri
        self.metrics_uri = metrics_uri

    def map(self, raw: RawApplication) -> Optional[WorkloadEntity]:
        """Map one raw application.

        Args:
            raw: Application as listed by the platform

        Returns:
            The mapped entity with fresh instance health, or None when the
            environment read is refused and the application must be skipped.
        """
        app_id = raw.guid
        state = parse_workload_state(raw.state)
        space = self.spaces.find_by_id(raw.space_guid) if raw.space_guid else None

        try:
            app_env = self.api.get_environment(app_id)
        except Exception as e:
            if isinstance(e, RemoteApiError) and e.is_not_authorized:
                # Read-only access to a space refuses env reads; skip rather than fail the listing.
                logger.debug("Not authorized to read environment, skipping", appId=app_id, app=raw.name)
                return None
            logger.debug("Unable to read environment", appId=app_id, app=raw.name, error=str(e))
            app_env = None

        process = self.processes.find_process_by_id(app_id)
        droplet = self._find_droplet(raw, space)

        env: Dict[str, Any] = dict(app_env.environment_json or {}) if app_env else {}
        health_check_type, health_check_endpoint = self._health_check(process)

        entity = WorkloadEntity(
            id=app_id,
            name=raw.name,
            account=self.account,
            space=space,
            state=state,
            memory=process.memory_in_mb if process else None,
            disk_quota=process.disk_in_mb if process else None,
            created_time=raw.created_millis,
            updated_time=raw.updated_millis,
            health_check_type=health_check_type,
            health_check_http_endpoint=health_check_endpoint,
            service_bindings=self._service_bindings(app_env),
            env=env,
            ci_build=BuildInfo(
                job_name=get_env_var(env, MetadataEnvVar.JOB_NAME),
                job_number=get_env_var(env, MetadataEnvVar.JOB_NUMBER),
                job_url=get_env_var(env, MetadataEnvVar.JOB_URL),
            ),
            app_artifact=ArtifactInfo(
                name=get_env_var(env, MetadataEnvVar.ARTIFACT_NAME),
                version=get_env_var(env, MetadataEnvVar.ARTIFACT_VERSION),
                url=get_env_var(env, MetadataEnvVar.ARTIFACT_URL),
            ),
            pipeline_id=get_env_var(env, MetadataEnvVar.PIPELINE_ID),
            droplet=droplet,
            instances=(),
            apps_manager_uri=self._apps_manager_uri(app_id, space),
            metrics_uri=self._metrics_uri(app_id),
        )

        return self.health.evaluate(entity, raw)

    def _find_droplet(self, raw: RawApplication, space: Optional[Space]) -> Optional[DropletRef]:
        app_id = raw.guid
        try:
            source_package = None
            packages = self.api.get_packages(app_id)
            if packages and packages.resources:
                pkg = packages.resources[0]
                download = pkg.links.get("download")
                checksum = pkg.data.checksum
                source_package = SourcePackage(
                    download_url=download.href if download else None,
                    checksum_type=checksum.type if checksum else None,
                    checksum=checksum.value if checksum else None,
                )

            raw_droplet = self.api.get_droplet(app_id)
            if raw_droplet is None:
                return None
            return DropletRef(
                id=raw_droplet.guid,
                name=f"{raw.name}-droplet",
                stack=raw_droplet.stack,
                buildpacks=[
                    Buildpack(
                        name=bp.name,
                        buildpack_name=bp.buildpack_name,
                        detect_output=bp.detect_output,
                        version=bp.version,
                    )
                    for bp in raw_droplet.buildpacks or []
                ],
                space=space,
                source_package=source_package,
            )
        except Exception as e:
            logger.debug("Unable to retrieve droplet", appId=app_id, app=raw.name, error=str(e))
            return None

    @staticmethod
    def _service_bindings(app_env: Optional[ApplicationEnv]) -> Tuple[ServiceBinding, ...]:
        if app_env is None:
            return ()
        bindings = []
        for service_name, instances in app_env.system_env_json.vcap_services.items():
            for instance in instances:
                last_op = instance.last_operation
                has_status = last_op is not None and last_op.state is not None
                bindings.append(
                    ServiceBinding(
                        service_name=service_name,
                        name=instance.name,
                        plan=instance.plan,
                        tags=tuple(instance.tags),
                        status=last_op.state if has_status else None,
                        last_operation_description=last_op.description if has_status else None,
                    )
                )
        return tuple(bindings)

    @staticmethod
    def _health_check(process: Optional[ProcessInfo]):
        if process is None or process.health_check is None:
            return None, None
        check = process.health_check
        return check.type, check.data.endpoint if check.data else None

    def _apps_manager_uri(self, app_id: str, space: Optional[Space]) -> Optional[str]:
        if not self.apps_manager_uri:
            return self.apps_manager_uri
        if space is None or space.organization is None:
            return ""
        return (
            f"{self.apps_manager_uri}/organizations/{space.organization.id}"
            f"/spaces/{space.id}/applications/{app_id}"
        )

    def _metrics_uri(self, app_id: str) -> Optional[str]:
        if not self.metrics_uri:
            return self.metrics_uri
        return f"{self.metrics_uri}/apps/{app_id}"
