"""Configuration management for Foundry Sync."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from foundry_sync.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Sync configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="FOUNDRY_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Account
    account: str = Field("default", description="Account name attached to every entity")
    apps_manager_uri: Optional[str] = Field(None, description="Base URI of the apps manager UI")
    metrics_uri: Optional[str] = Field(None, description="Base URI of the metrics UI")

    # Local cache; negative values disable an expiry axis
    applications_access_expiry_seconds: int = Field(
        -1,
        description="Evict entries not read for this many seconds",
    )
    applications_write_expiry_seconds: int = Field(
        600,
        description="Evict entries not written for this many seconds",
    )

    # Listing
    results_per_page: int = Field(100, ge=1, le=5000, description="Page size for listings")
    only_managed: bool = Field(
        False,
        description="Skip applications whose name carries no sequence token",
    )

    # Concurrency
    max_workers: int = Field(16, ge=1, description="Worker pool size for refresh fan-out")

    # Deployment polling
    poll_interval_seconds: float = Field(5.0, gt=0, description="Delay between pipeline polls")
    deploy_timeout_seconds: float = Field(600.0, gt=0, description="Deadline for a whole deployment")

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("json")
    metrics_enabled: bool = Field(True)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and console renderers are supported."""
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError(f"Unsupported log format: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return v

    @staticmethod
    def _expiry(value: int) -> Optional[int]:
        return value if value >= 0 else None

    @property
    def access_expiry(self) -> Optional[int]:
        """Access expiry in seconds, or None when disabled."""
        return self._expiry(self.applications_access_expiry_seconds)

    @property
    def write_expiry(self) -> Optional[int]:
        """Write expiry in seconds, or None when disabled."""
        return self._expiry(self.applications_write_expiry_seconds)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Settings":
        """Load settings from a YAML file.

        Values from the file take precedence over environment variables.

        Args:
            path: Path to a YAML document holding a mapping of setting names

        Returns:
            Validated settings
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return cls(**data)
