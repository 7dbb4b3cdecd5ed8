"""
Pytest configuration and fixtures for Foundry Sync tests.
"""

import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from foundry_sync.core.config import Settings
from foundry_sync.core.models import Organization, Space
from foundry_sync.remote.models import (
    ApplicationEnv,
    HealthCheck,
    HealthCheckData,
    Link,
    Page,
    ProcessInfo,
    RawApplication,
    RawBuild,
    RawDroplet,
    RawInstance,
    RawPackage,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_app(
    guid: str,
    name: Optional[str] = None,
    state: str = "STARTED",
    updated_offset: int = 0,
    space_guid: str = "space-1",
) -> RawApplication:
    """Build a raw application; bump ``updated_offset`` to simulate a remote change."""
    return RawApplication(
        guid=guid,
        name=name or f"{guid}-v000",
        state=state,
        created_at=BASE_TIME,
        updated_at=BASE_TIME + timedelta(seconds=updated_offset),
        links={"space": Link(guid=space_guid)},
    )


class FakeRemoteClient:
    """In-memory platform API recording every call.

    Values stored as exceptions are raised when read.
    """

    def __init__(self):
        self.apps: Dict[str, RawApplication] = {}
        self.envs: Dict[str, object] = {}
        self.instances: Dict[str, object] = {}
        self.droplets: Dict[str, object] = {}
        self.packages: Dict[str, object] = {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def _record(self, method: str, *args) -> None:
        with self._lock:
            self.calls.append((method,) + args)

    def count(self, method: str, key: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for c in self.calls if c[0] == method and (key is None or c[1] == key))

    def counts(self, method: str) -> Counter:
        with self._lock:
            return Counter(c[1] for c in self.calls if c[0] == method)

    @staticmethod
    def _value(store: Dict[str, object], key: str):
        value = store.get(key)
        if isinstance(value, Exception):
            raise value
        return value

    def list_entities(self, page, page_size, names=None, space_ids=None):
        self._record("list_entities", page, page_size, names, space_ids)
        apps = list(self.apps.values())
        if names:
            apps = [a for a in apps if a.name in names]
        if space_ids:
            wanted = space_ids.split(",")
            apps = [a for a in apps if a.space_guid in wanted]
        page = page or 1
        total_pages = max(1, -(-len(apps) // page_size))
        chunk = apps[(page - 1) * page_size: page * page_size]
        return Page(total_results=len(apps), total_pages=total_pages, resources=chunk)

    def get_entity(self, app_id):
        self._record("get_entity", app_id)
        return self.apps.get(app_id)

    def get_environment(self, app_id):
        self._record("get_environment", app_id)
        return self._value(self.envs, app_id)

    def get_packages(self, app_id):
        self._record("get_packages", app_id)
        return self._value(self.packages, app_id)

    def get_droplet(self, app_id):
        self._record("get_droplet", app_id)
        return self._value(self.droplets, app_id)

    def get_instances(self, app_id):
        self._record("get_instances", app_id)
        return self._value(self.instances, app_id)

    def create_entity(self, name, space_id, env, lifecycle):
        self._record("create_entity", name, space_id)
        app = make_app(f"guid-{name}", name=name, state="STOPPED", space_guid=space_id)
        self.apps[app.guid] = app
        return app

    def delete_entity(self, app_id):
        self._record("delete_entity", app_id)
        self.apps.pop(app_id, None)


@pytest.fixture
def settings():
    return Settings(
        account="test-account",
        applications_access_expiry_seconds=-1,
        applications_write_expiry_seconds=-1,
        results_per_page=2,
        max_workers=4,
        metrics_enabled=False,
    )


@pytest.fixture
def space():
    return Space(id="space-1", name="dev", organization=Organization(id="org-1", name="acme"))


@pytest.fixture
def spaces(space):
    resolver = MagicMock()
    resolver.find_by_id.return_value = space
    return resolver


@pytest.fixture
def process_info():
    return ProcessInfo(
        guid="proc-1",
        memory_in_mb=1024,
        disk_in_mb=2048,
        health_check=HealthCheck(type="http", data=HealthCheckData(endpoint="/health")),
    )


@pytest.fixture
def processes(process_info):
    resolver = MagicMock()
    resolver.find_process_by_id.return_value = process_info
    resolver.get_process_state.return_value = None
    return resolver


@pytest.fixture
def fake_api():
    return FakeRemoteClient()


@pytest.fixture
def running_instances():
    return {
        "0": RawInstance(state="RUNNING", uptime=60, details=None),
        "1": RawInstance(state="CRASHED", uptime=0, details="exited"),
    }


@pytest.fixture
def sample_env():
    return ApplicationEnv.model_validate(
        {
            "environment_json": {
                "CI_BUILD_JOB_NAME": "build-myapp",
                "CI_BUILD_JOB_NUMBER": 42,
                "CI_BUILD_JOB_URL": "https://ci.example.com/job/build-myapp/42",
                "ARTIFACT_NAME": "myapp.jar",
                "ARTIFACT_VERSION": "1.2.3",
                "ARTIFACT_URL": "https://repo.example.com/myapp-1.2.3.jar",
                "DEPLOY_PIPELINE_ID": "pipe-7",
                "JAVA_OPTS": "-Xmx512m",
            },
            "system_env_json": {
                "vcap_services": {
                    "p-mysql": [
                        {
                            "name": "orders-db",
                            "plan": "small",
                            "tags": ["mysql"],
                            "last_operation": {"state": "succeeded", "description": "done"},
                        }
                    ],
                    "p-redis": [{"name": "cache", "plan": "shared"}],
                }
            },
        }
    )


@pytest.fixture
def sample_droplet():
    return RawDroplet.model_validate(
        {
            "guid": "droplet-1",
            "stack": "cflinuxfs4",
            "buildpacks": [
                {"name": "java_buildpack", "detect_output": "java", "version": "4.50", "buildpack_name": "java"}
            ],
            "links": {"package": {"href": "https://api.example.com/v3/packages/pkg-1"}},
        }
    )


@pytest.fixture
def sample_packages():
    return Page[RawPackage].model_validate(
        {
            "total_pages": 1,
            "resources": [
                {
                    "guid": "pkg-1",
                    "state": "READY",
                    "data": {"checksum": {"type": "sha256", "value": "abc123"}},
                    "links": {"download": {"href": "https://api.example.com/v3/packages/pkg-1/download"}},
                }
            ],
        }
    )


@pytest.fixture
def sample_build():
    return RawBuild.model_validate({"guid": "build-1", "state": "STAGED", "droplet": {"guid": "droplet-1"}})
