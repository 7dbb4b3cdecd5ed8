"""Prometheus metrics for refresh cycles and pipeline steps."""

from prometheus_client import Counter, Histogram

REFRESH_CYCLES = Counter(
    "foundry_sync_refresh_cycles_total",
    "Reconciliation cycles run",
    ["account", "outcome"],
)

ENTITIES_EVICTED = Counter(
    "foundry_sync_entities_evicted_total",
    "Cached applications evicted because they vanished remotely",
    ["account"],
)

ENTITIES_REMAPPED = Counter(
    "foundry_sync_entities_remapped_total",
    "Applications remapped because they were missing or stale",
    ["account"],
)

ENTITIES_SKIPPED = Counter(
    "foundry_sync_entities_skipped_total",
    "Applications left out of a refresh phase",
    ["account", "phase"],
)

REFRESH_DURATION = Histogram(
    "foundry_sync_refresh_duration_seconds",
    "Reconciliation cycle duration",
    ["account"],
)

PIPELINE_STEPS = Counter(
    "foundry_sync_pipeline_steps_total",
    "Deployment pipeline remote calls",
    ["step", "outcome"],
)


class SyncMetrics:
    """Records sync metrics, or nothing when disabled."""

    def __init__(self, account: str, enabled: bool = True):
        self.account = account
        self.enabled = enabled

    def cycle(self, outcome: str, duration: float) -> None:
        if not self.enabled:
            return
        REFRESH_CYCLES.labels(account=self.account, outcome=outcome).inc()
        REFRESH_DURATION.labels(account=self.account).observe(duration)

    def evicted(self, count: int) -> None:
        if self.enabled and count:
            ENTITIES_EVICTED.labels(account=self.account).inc(count)

    def remapped(self, count: int) -> None:
        if self.enabled and count:
            ENTITIES_REMAPPED.labels(account=self.account).inc(count)

    def skipped(self, phase: str, count: int = 1) -> None:
        if self.enabled and count:
            ENTITIES_SKIPPED.labels(account=self.account, phase=phase).inc(count)


def record_pipeline_step(step: str, outcome: str, enabled: bool = True) -> None:
    if enabled:
        PIPELINE_STEPS.labels(step=step, outcome=outcome).inc()
