"""Application cache kept in sync with the platform listing.

A reconciliation cycle runs in three ordered steps:

1. evict cached applications that vanished remotely,
2. remap applications that are missing from the cache or whose remote
   ``updated_at`` differs from the cached value,
3. re-evaluate instance health of every listed application.

Steps 2 and 3 fan out across a bounded worker pool with a join in between.
Per-application failures are logged and skipped; they never fail the cycle.
"""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import structlog
from structlog.contextvars import reset_contextvars

from foundry_sync.cache.entity_cache import EntityCache
from foundry_sync.core.config import Settings
from foundry_sync.core.exceptions import (
    RefreshAbortedError,
    RemoteApiError,
    ResourceNotFoundError,
    UnauthorizedError,
    UnexpectedResponseError,
)
from foundry_sync.core.models import ApplicationView, Space, WorkloadEntity, WorkloadState
from foundry_sync.grouping.clusters import ClusterGrouper
from foundry_sync.health.evaluator import HealthEvaluator, parse_workload_state
from foundry_sync.mapping.mapper import EntityMapper
from foundry_sync.naming import NamingResolver, SequencedNameResolver
from foundry_sync.remote.client import ProcessResolver, RemoteClient, SpaceResolver, collect_pages
from foundry_sync.remote.models import Lifecycle, RawApplication
from foundry_sync.utils.logging import bind_sync_context
from foundry_sync.utils.metrics import SyncMetrics

logger = structlog.get_logger()


@dataclass
class RefreshResult:
    """Outcome of one reconciliation cycle."""

    evicted: List[str] = field(default_factory=list)
    remapped: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    evaluated: List[str] = field(default_factory=list)


class Applications:
    """Cached, reconciled view of the applications of one account."""

    def __init__(
        self,
        settings: Settings,
        api: RemoteClient,
        spaces: SpaceResolver,
        processes: ProcessResolver,
        naming: Optional[NamingResolver] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.account = settings.account
        self.api = api
        self.processes = processes

        self.health = HealthEvaluator(api, clock=clock)
        self.mapper = EntityMapper(
            account=self.account,
            api=api,
            spaces=spaces,
            processes=processes,
            health=self.health,
            apps_manager_uri=settings.apps_manager_uri,
            metrics_uri=settings.metrics_uri,
        )
        self.grouper = ClusterGrouper(
            self.account,
            naming or SequencedNameResolver(),
            only_managed=settings.only_managed,
        )
        self.cache: EntityCache[WorkloadEntity] = EntityCache(
            access_expiry_seconds=settings.access_expiry,
            write_expiry_seconds=settings.write_expiry,
        )
        self.metrics = SyncMetrics(self.account, enabled=settings.metrics_enabled)

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_workers,
            thread_name_prefix=f"foundry-sync-{self.account}",
        )

    def close(self) -> None:
        """Shut down the worker pool if this instance created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "Applications":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Lookups
    # =========================================================================

    def _load(self, app_id: str) -> WorkloadEntity:
        raw = self.api.get_entity(app_id)
        if raw is None:
            raise ResourceNotFoundError(f"Application {app_id} not found")
        entity = self.mapper.map(raw)
        if entity is None:
            raise ResourceNotFoundError(f"Application {app_id} is not readable")
        return entity

    def find_by_id(self, app_id: str) -> Optional[WorkloadEntity]:
        """Return the cached application, loading it once on a miss.

        Returns None when the application does not exist remotely.
        """
        try:
            return self.cache.get(app_id, self._load)
        except ResourceNotFoundError:
            return None
        except RemoteApiError:
            raise
        except Exception as e:
            raise RemoteApiError("Unable to find application by id", cause=e) from e

    def find_by_name_and_space(self, name: str, space_id: str) -> Optional[WorkloadEntity]:
        """Look an application up remotely by name and cache the result."""
        raw = self._find_remote_by_name(name, space_id)
        if raw is None:
            return None

        entity = self.mapper.map(raw)
        if entity is None:
            raise UnauthorizedError("Not authorized to retrieve details for this application")
        self.cache.put(entity.id, entity)
        return entity

    def find_id(self, name: str, space_id: str) -> Optional[str]:
        """Find an application id by name, preferring the cache."""
        for entity in self.cache.values():
            if entity.name.lower() == name.lower() and entity.space and entity.space.id == space_id:
                return entity.id

        raw = self._find_remote_by_name(name, space_id)
        if raw is None:
            return None
        entity = self.mapper.map(raw)
        if entity is None:
            return None
        self.cache.put(entity.id, entity)
        return entity.id

    def _find_remote_by_name(self, name: str, space_id: str) -> Optional[RawApplication]:
        page = self.api.list_entities(None, 1, [name], space_id)
        if page is None or not page.resources:
            return None
        return page.resources[0]

    def get_app_state(self, app_id: str) -> str:
        """Process state of an application, falling back to its lifecycle state."""
        state = self.processes.get_process_state(app_id)
        if state is not None:
            return state
        raw = self.api.get_entity(app_id)
        if raw is not None and parse_workload_state(raw.state) == WorkloadState.STARTED:
            return "RUNNING"
        return "DOWN"

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_application(
        self,
        name: str,
        space: Space,
        env: Optional[Dict[str, str]] = None,
        lifecycle: Optional[Lifecycle] = None,
    ) -> WorkloadEntity:
        raw = self.api.create_entity(name, space.id, env, lifecycle)
        if raw is None:
            raise UnexpectedResponseError(
                "Platform signaled that application creation succeeded but failed to provide a response."
            )
        entity = self.mapper.map(raw)
        if entity is None:
            raise UnexpectedResponseError(f"Created application {raw.guid} is not readable")
        logger.info("Application created", appId=entity.id, app=name, spaceId=space.id)
        return entity

    def delete_application(self, app_id: str) -> None:
        self.api.delete_entity(app_id)
        self.cache.invalidate(app_id)
        logger.info("Application deleted", appId=app_id, account=self.account)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def all(self, space_ids: Optional[Sequence[str]] = None) -> List[ApplicationView]:
        """List every application remotely, reconcile the cache and group it."""
        logger.debug("Listing all applications", account=self.account)

        space_filter = ",".join(space_ids) if space_ids else None
        listing = collect_pages(
            "applications",
            lambda page: self.api.list_entities(page, self.settings.results_per_page, None, space_filter),
        )
        logger.debug("Fetched applications", account=self.account, count=len(listing))

        self.refresh_all(listing)
        return self.grouper.group(self.cache.values())

    def refresh_all(self, listing: Sequence[RawApplication]) -> RefreshResult:
        """Reconcile the cache against a full remote listing.

        Callers must not run two cycles concurrently.

        Raises:
            RefreshAbortedError: the worker pool failed; the failing phase
                committed nothing.
        """
        tokens = bind_sync_context(account=self.account)
        try:
            return self._refresh(listing)
        finally:
            reset_contextvars(**tokens)

    def _refresh(self, listing: Sequence[RawApplication]) -> RefreshResult:
        start_time = time.time()
        result = RefreshResult()

        available = {raw.guid for raw in listing}
        for app_id in self.cache.keys():
            if app_id not in available:
                logger.debug("Evicting application", appId=app_id)
                self.cache.invalidate(app_id)
                result.evicted.append(app_id)
        self.metrics.evicted(len(result.evicted))
        logger.debug("Evicted applications no longer on the platform", count=len(result.evicted))

        stale = [raw for raw in listing if self._needs_remap(raw)]

        try:
            mapped = self._fan_out(self._remap, stale)
            for raw, entity in zip(stale, mapped):
                if entity is None:
                    result.skipped.append(raw.guid)
                    continue
                self.cache.put(entity.id, entity)
                result.remapped.append(entity.id)
            self.metrics.remapped(len(result.remapped))
            self.metrics.skipped("remap", len(result.skipped))

            evaluated = self._fan_out(self._evaluate, listing)
            health_failures = 0
            for raw, entity in zip(listing, evaluated):
                if entity is None:
                    health_failures += 1
                    continue
                self.cache.put(entity.id, entity)
                result.evaluated.append(entity.id)
            self.metrics.skipped("health", health_failures)
        except RefreshAbortedError:
            self.metrics.cycle("aborted", time.time() - start_time)
            raise

        duration = time.time() - start_time
        self.metrics.cycle("success", duration)
        logger.info(
            "Refreshed applications",
            listed=len(listing),
            evicted=len(result.evicted),
            remapped=len(result.remapped),
            skipped=len(result.skipped),
            duration_seconds=duration,
        )
        return result

    def _needs_remap(self, raw: RawApplication) -> bool:
        cached = self.cache.get_if_present(raw.guid)
        if cached is None:
            logger.debug("Application not cached", app=raw.name)
            return True
        if cached.updated_time != raw.updated_millis:
            logger.debug("Cached application is out of date", app=raw.name)
            return True
        return False

    def _remap(self, raw: RawApplication) -> Optional[WorkloadEntity]:
        try:
            return self.mapper.map(raw)
        except Exception as e:
            logger.warning("Failed to map application", appId=raw.guid, app=raw.name, error=str(e))
            return None

    def _evaluate(self, raw: RawApplication) -> Optional[WorkloadEntity]:
        entity = self.cache.get_if_present(raw.guid)
        if entity is None:
            return None
        try:
            return self.health.evaluate(entity, raw)
        except Exception as e:
            logger.warning("Failed to evaluate health", appId=raw.guid, app=raw.name, error=str(e))
            return None

    def _fan_out(
        self,
        fn: Callable[[RawApplication], Optional[WorkloadEntity]],
        items: Sequence[RawApplication],
    ) -> List[Optional[WorkloadEntity]]:
        """Run ``fn`` over ``items`` on the worker pool and wait for all of them."""
        if not items:
            return []
        futures = []
        try:
            for item in items:
                futures.append(self._executor.submit(contextvars.copy_context().run, fn, item))
        except RuntimeError as e:
            for future in futures:
                future.cancel()
            raise RefreshAbortedError(f"Worker pool rejected refresh work: {e}") from e

        wait(futures)
        results = []
        for future in futures:
            try:
                results.append(future.result())
            except Exception as e:
                raise RefreshAbortedError(f"Refresh worker failed: {e}") from e
        return results
