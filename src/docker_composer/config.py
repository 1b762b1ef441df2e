"""Settings and declarative fixture files.

Two layers of configuration exist:

* :class:`ComposerSettings` -- process-wide knobs read from the environment
  with pydantic-settings (docker binary, polling cadence, default timeouts).
* :class:`FixtureConfig` -- a YAML description of one compose fixture, loaded
  by :func:`load_fixture_config` and turned into a builder by
  ``DockerCompose.from_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from docker_composer.exceptions import ConfigurationError

DEFAULT_COMPOSE_FILE = "docker-compose.yml"


class ComposerSettings(BaseSettings):
    """Environment-driven settings shared by every builder."""
    docker_command: str = Field(default="docker", validation_alias="DOCKER_COMPOSER_DOCKER")
    project_name: str = Field(default="", validation_alias="DOCKER_COMPOSER_PROJECT")
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")
    poll_interval_ms: int = Field(
        default=1000, validation_alias="DOCKER_COMPOSER_POLL_INTERVAL_MS"
    )
    poll_decrement_ms: int = Field(
        default=100, validation_alias="DOCKER_COMPOSER_POLL_DECREMENT_MS"
    )
    default_timeout_ms: int = Field(
        default=120_000, validation_alias="DOCKER_COMPOSER_TIMEOUT_MS"
    )
    command_timeout_s: float = Field(
        default=600.0, validation_alias="DOCKER_COMPOSER_COMMAND_TIMEOUT"
    )

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


@dataclass
class EnvironmentCondition:
    """An environment variable, optionally required to hold an exact value."""

    variable: str
    equals: str | None = None

    def as_check(self):
        """Return the predicate for the environment gate, or None for 'is set'."""
        if self.equals is None:
            return None
        expected = self.equals
        return lambda value: value == expected


@dataclass
class PortWait:
    service: str
    port: str
    timeout_ms: int | None = None
    address: str | None = None


@dataclass
class ProcessWait:
    service: str
    process: str
    timeout_ms: int | None = None


@dataclass
class HttpWait:
    service: str
    port: int
    path: str = "/"
    timeout_ms: int | None = None


@dataclass
class FixtureConfig:
    """Declarative description of one compose fixture."""

    compose_file: str = DEFAULT_COMPOSE_FILE
    project_name: str | None = None
    force_build: bool = False
    force_recreate: bool = False
    when_environment: EnvironmentCondition | None = None
    keep_alive_environment: EnvironmentCondition | None = None
    ports: list[PortWait] = field(default_factory=list)
    processes: list[ProcessWait] = field(default_factory=list)
    http: list[HttpWait] = field(default_factory=list)


def _pick(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter *data* to only keys accepted by *cls*."""
    valid = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in data.items() if k in valid}


def _condition(raw: Any, key: str) -> EnvironmentCondition | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return EnvironmentCondition(variable=raw)
    if not isinstance(raw, dict) or "variable" not in raw:
        raise ConfigurationError(f"'{key}' needs a 'variable' entry")
    return EnvironmentCondition(**_pick(raw, EnvironmentCondition))


def _waits(raw: dict[str, Any], key: str, cls: type) -> list[Any]:
    entries = raw.get(key) or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"'wait_for.{key}' must be a list")
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"'wait_for.{key}' entries must be mappings, got {entry!r}")
    try:
        return [cls(**_pick(entry, cls)) for entry in entries]
    except TypeError as exc:
        raise ConfigurationError(f"invalid 'wait_for.{key}' entry: {exc}") from exc


def load_fixture_config(path: Path | str) -> FixtureConfig:
    """Load a fixture description from a YAML file.

    Unknown keys are silently ignored so that forward-compatible fixture
    files work.

    Args:
        path: Path to the fixture YAML.

    Returns:
        Populated fixture configuration.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"fixture file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid fixture file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"fixture file {path} must contain a mapping")

    compose_file = raw.get("compose_file", DEFAULT_COMPOSE_FILE)
    if not isinstance(compose_file, str) or not compose_file.strip():
        raise ConfigurationError(f"'compose_file' in {path} must be a non-empty string")

    waits_raw = raw.get("wait_for") or {}
    if not isinstance(waits_raw, dict):
        raise ConfigurationError(f"'wait_for' in {path} must be a mapping")

    top_level = _pick(raw, FixtureConfig)
    for key in ("when_environment", "keep_alive_environment", "ports", "processes", "http"):
        top_level.pop(key, None)

    return FixtureConfig(
        when_environment=_condition(raw.get("when_environment"), "when_environment"),
        keep_alive_environment=_condition(
            raw.get("keep_alive_environment"), "keep_alive_environment"
        ),
        ports=_waits(waits_raw, "ports", PortWait),
        processes=_waits(waits_raw, "processes", ProcessWait),
        http=_waits(waits_raw, "http", HttpWait),
        **top_level,
    )
