"""Tests for instance health overlay."""

import pytest
from pydantic import ValidationError

from foundry_sync.core.exceptions import RemoteApiError
from foundry_sync.core.models import HealthState, WorkloadEntity, WorkloadState
from foundry_sync.health.evaluator import HealthEvaluator, health_state_for
from foundry_sync.remote.models import RawInstance

from conftest import make_app

NOW = 1_700_000_000.0


@pytest.fixture
def entity(space):
    return WorkloadEntity(
        id="app-1",
        name="myapp-v001",
        account="test-account",
        space=space,
        state=WorkloadState.STOPPED,
        created_time=0,
        updated_time=0,
    )


@pytest.fixture
def evaluator(fake_api):
    return HealthEvaluator(fake_api, clock=lambda: NOW)


@pytest.mark.parametrize(
    "raw_state,expected",
    [
        ("RUNNING", HealthState.UP),
        ("DOWN", HealthState.DOWN),
        ("CRASHED", HealthState.DOWN),
        ("STARTING", HealthState.STARTING),
        ("UNKNOWN", HealthState.UNKNOWN),
        ("SOMETHING_NEW", HealthState.UNKNOWN),
        (None, HealthState.UNKNOWN),
    ],
)
def test_health_state_mapping(raw_state, expected):
    assert health_state_for(raw_state) == expected


def test_started_entity_gets_instances(evaluator, fake_api, entity):
    fake_api.instances["app-1"] = {
        "0": RawInstance(state="RUNNING", uptime=120, details=None),
        "1": RawInstance(state="CRASHED", uptime=0, details="out of memory"),
        "2": RawInstance(state="STARTING", uptime=3),
    }

    result = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    assert result.state == WorkloadState.STARTED
    by_key = {i.key: i for i in result.instances}
    assert by_key["0"].health_state == HealthState.UP
    assert by_key["1"].health_state == HealthState.DOWN
    assert by_key["1"].details == "out of memory"
    assert by_key["2"].health_state == HealthState.STARTING
    assert by_key["0"].launch_time == int(NOW * 1000) - 120_000
    assert all(i.app_id == "app-1" for i in result.instances)
    assert all(i.zone == "dev" for i in result.instances)


def test_evaluate_returns_copy(evaluator, fake_api, entity):
    fake_api.instances["app-1"] = {"0": RawInstance(state="RUNNING", uptime=1)}

    result = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    assert result is not entity
    assert entity.instances == ()
    assert entity.state == WorkloadState.STOPPED


def test_stopped_entity_has_no_instances(evaluator, fake_api, entity):
    fake_api.instances["app-1"] = {"0": RawInstance(state="RUNNING", uptime=1)}

    result = evaluator.evaluate(entity, make_app("app-1", state="STOPPED"))

    assert result.state == WorkloadState.STOPPED
    assert result.instances == ()
    assert fake_api.count("get_instances") == 0


def test_instance_fetch_failure_yields_empty_set(evaluator, fake_api, entity):
    fake_api.instances["app-1"] = RemoteApiError("instances unavailable")

    result = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    assert result.state == WorkloadState.STARTED
    assert result.instances == ()


def test_absent_instance_map_yields_empty_set(evaluator, entity):
    result = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    assert result.instances == ()


def test_started_to_stopped_clears_instances(evaluator, fake_api, entity):
    fake_api.instances["app-1"] = {"0": RawInstance(state="RUNNING", uptime=1)}
    started = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))
    assert len(started.instances) == 1

    stopped = evaluator.evaluate(started, make_app("app-1", state="STOPPED"))

    assert stopped.instances == ()


def test_with_health_rejects_instances_on_stopped_entity(entity, fake_api, evaluator):
    fake_api.instances["app-1"] = {"0": RawInstance(state="RUNNING", uptime=1)}
    started = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    with pytest.raises(ValidationError):
        started.with_health(WorkloadState.STOPPED, started.instances)


def test_evaluated_entity_shares_no_mutable_state(evaluator, fake_api, space):
    entity = WorkloadEntity(
        id="app-1",
        name="myapp-v001",
        account="test-account",
        space=space,
        created_time=0,
        updated_time=0,
        env={"JAVA_OPTS": "-Xmx512m", "LIMITS": {"cpu": ["1", "2"]}},
    )

    result = evaluator.evaluate(entity, make_app("app-1", state="STARTED"))

    with pytest.raises(TypeError):
        result.env["INJECTED"] = "x"
    with pytest.raises(TypeError):
        result.env["LIMITS"]["cpu"] = "3"
    assert result.model_dump()["env"] == {"JAVA_OPTS": "-Xmx512m", "LIMITS": {"cpu": ["1", "2"]}}
