"""Interfaces of the platform collaborators consumed by the sync core.

Implementations own transport, authentication and retries. They return
``None`` for resources that do not exist, raise ``UnauthorizedError`` for
refused calls and ``RemoteApiError`` for any other failure.
"""

from typing import BinaryIO, Callable, Dict, List, Optional, Protocol, TypeVar

import structlog

from foundry_sync.core.models import Space
from foundry_sync.remote.models import (
    ApplicationEnv,
    Lifecycle,
    Page,
    ProcessInfo,
    RawApplication,
    RawBuild,
    RawDroplet,
    RawInstance,
    RawPackage,
)

logger = structlog.get_logger()

T = TypeVar("T")


class RemoteClient(Protocol):
    """Platform application API."""

    def list_entities(
        self,
        page: Optional[int],
        page_size: int,
        names: Optional[List[str]] = None,
        space_ids: Optional[str] = None,
    ) -> Optional[Page[RawApplication]]: ...

    def get_entity(self, app_id: str) -> Optional[RawApplication]: ...

    def get_environment(self, app_id: str) -> Optional[ApplicationEnv]: ...

    def get_packages(self, app_id: str) -> Optional[Page[RawPackage]]: ...

    def get_droplet(self, app_id: str) -> Optional[RawDroplet]: ...

    def get_instances(self, app_id: str) -> Optional[Dict[str, RawInstance]]: ...

    def create_entity(
        self,
        name: str,
        space_id: str,
        env: Optional[Dict[str, str]],
        lifecycle: Optional[Lifecycle],
    ) -> Optional[RawApplication]: ...

    def delete_entity(self, app_id: str) -> None: ...

    def create_package(self, app_id: str) -> Optional[RawPackage]: ...

    def upload_bits(self, package_id: str, bits: BinaryIO, filename: str) -> Optional[RawPackage]: ...

    def download_bits(self, package_id: str) -> Optional[BinaryIO]: ...

    def get_package(self, package_id: str) -> Optional[RawPackage]: ...

    def create_build(self, package_id: str) -> Optional[RawBuild]: ...

    def get_build(self, build_id: str) -> Optional[RawBuild]: ...

    def set_current_droplet(self, app_id: str, droplet_id: str) -> None: ...

    def start(self, app_id: str) -> None: ...

    def stop(self, app_id: str) -> None: ...

    def restage(self, app_id: str) -> None: ...

    def delete_instance(self, app_id: str, index: str) -> None: ...

    def map_route(self, app_id: str, route_id: str) -> None: ...

    def unmap_route(self, app_id: str, route_id: str) -> None: ...


class SpaceResolver(Protocol):
    """Resolves space references, including their organization."""

    def find_by_id(self, space_id: str) -> Optional[Space]: ...


class ProcessResolver(Protocol):
    """Resolves web-process metadata of an application."""

    def find_process_by_id(self, app_id: str) -> Optional[ProcessInfo]: ...

    def get_process_state(self, app_id: str) -> Optional[str]: ...


def collect_pages(
    resource: str,
    fetch: Callable[[int], Optional[Page[T]]],
) -> List[T]:
    """Walk every page of a listing and return all resources.

    Args:
        resource: Resource name used in log messages
        fetch: Called with a 1-based page number

    Returns:
        Resources of all pages, in page order
    """
    first = fetch(1)
    if first is None:
        return []

    resources = list(first.resources)
    for page in range(2, first.total_pages + 1):
        next_page = fetch(page)
        if next_page is None:
            logger.warning("Listing page vanished", resource=resource, page=page)
            break
        resources.extend(next_page.resources)

    logger.debug("Collected listing", resource=resource, count=len(resources), pages=first.total_pages)
    return resources
