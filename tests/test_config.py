"""Tests for settings loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from foundry_sync.core.config import Settings
from foundry_sync.core.exceptions import ConfigurationError


def test_defaults():
    settings = Settings()

    assert settings.applications_access_expiry_seconds == -1
    assert settings.access_expiry is None
    assert settings.write_expiry == 600
    assert settings.results_per_page == 100
    assert settings.only_managed is False
    assert settings.max_workers == 16


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FOUNDRY_SYNC_ACCOUNT", "prod")
    monkeypatch.setenv("FOUNDRY_SYNC_APPLICATIONS_ACCESS_EXPIRY_SECONDS", "30")
    monkeypatch.setenv("FOUNDRY_SYNC_APPLICATIONS_WRITE_EXPIRY_SECONDS", "-5")
    monkeypatch.setenv("FOUNDRY_SYNC_ONLY_MANAGED", "true")
    monkeypatch.setenv("FOUNDRY_SYNC_MAX_WORKERS", "4")

    settings = Settings()

    assert settings.account == "prod"
    assert settings.access_expiry == 30
    assert settings.write_expiry is None
    assert settings.only_managed is True
    assert settings.max_workers == 4


def test_zero_expiry_is_enabled():
    settings = Settings(applications_write_expiry_seconds=0)

    assert settings.write_expiry == 0


@pytest.mark.parametrize(
    "field,value",
    [
        ("results_per_page", 0),
        ("results_per_page", 10_000),
        ("max_workers", 0),
        ("log_format", "xml"),
        ("log_level", "LOUD"),
        ("poll_interval_seconds", 0),
    ],
)
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_log_options_normalized():
    settings = Settings(log_level="debug", log_format="CONSOLE")

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "console"


def test_from_yaml(tmp_path: Path):
    path = tmp_path / "sync.yaml"
    path.write_text(
        "account: staging\n"
        "apps_manager_uri: https://apps.example.com\n"
        "applications_access_expiry_seconds: 120\n"
        "results_per_page: 50\n"
        "only_managed: true\n"
    )

    settings = Settings.from_yaml(path)

    assert settings.account == "staging"
    assert settings.apps_manager_uri == "https://apps.example.com"
    assert settings.access_expiry == 120
    assert settings.results_per_page == 50
    assert settings.only_managed is True


def test_from_empty_yaml(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert Settings.from_yaml(path).account == "default"


def test_from_yaml_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigurationError):
        Settings.from_yaml(path)


def test_from_yaml_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        Settings.from_yaml(tmp_path / "missing.yaml")


def test_from_yaml_invalid_yaml(tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text("account: [unterminated\n")

    with pytest.raises(ConfigurationError):
        Settings.from_yaml(path)
