"""Overlays runtime instance health onto normalized applications."""

import time
from typing import Callable, Dict, List, Optional

import structlog

from foundry_sync.core.models import HealthState, InstanceRecord, WorkloadEntity, WorkloadState
from foundry_sync.remote.client import RemoteClient
from foundry_sync.remote.models import RawApplication, RawInstance

logger = structlog.get_logger()

_HEALTH_BY_INSTANCE_STATE: Dict[str, HealthState] = {
    "RUNNING": HealthState.UP,
    "DOWN": HealthState.DOWN,
    "CRASHED": HealthState.DOWN,
    "STARTING": HealthState.STARTING,
}


def health_state_for(instance_state: Optional[str]) -> HealthState:
    """Map a raw instance state to a health state; unknown states are Unknown."""
    return _HEALTH_BY_INSTANCE_STATE.get((instance_state or "").upper(), HealthState.UNKNOWN)


def parse_workload_state(raw_state: str) -> WorkloadState:
    return WorkloadState(raw_state.upper())


class HealthEvaluator:
    """Refreshes lifecycle state and instances of an application."""

    def __init__(self, api: RemoteClient, clock: Callable[[], float] = time.time):
        self.api = api
        self.clock = clock

    def evaluate(self, entity: WorkloadEntity, raw: RawApplication) -> WorkloadEntity:
        """Return a copy of ``entity`` with state and instances re-read.

        Instance fetch failures yield no instances; they never propagate.
        """
        state = parse_workload_state(raw.state)
        instances: List[InstanceRecord] = []

        if state == WorkloadState.STARTED:
            try:
                raw_instances = self.api.get_instances(entity.id) or {}
                instances = self._to_records(entity, raw_instances)
                logger.debug(
                    "Retrieved instances",
                    appId=entity.id,
                    app=raw.name,
                    count=len(instances),
                )
            except Exception as e:
                logger.debug("Unable to retrieve instances", appId=entity.id, app=raw.name, error=str(e))
                instances = []

        return entity.with_health(state, instances)

    def _to_records(self, entity: WorkloadEntity, raw_instances: Dict[str, RawInstance]) -> List[InstanceRecord]:
        now_ms = int(self.clock() * 1000)
        records = [
            InstanceRecord(
                app_id=entity.id,
                key=key,
                health_state=health_state_for(inst.state),
                details=inst.details,
                launch_time=now_ms - inst.uptime * 1000,
                zone=entity.region,
            )
            for key, inst in raw_instances.items()
        ]
        return sorted(records, key=lambda r: (len(r.key), r.key))
