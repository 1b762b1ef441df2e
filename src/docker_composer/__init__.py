"""docker-composer: compose-backed fixtures for integration tests."""

from docker_composer.compose import DockerCompose
from docker_composer.config import ComposerSettings, FixtureConfig, load_fixture_config
from docker_composer.environment import evaluate_environment
from docker_composer.exceptions import (
    ComposeCommandError,
    ComposeFileNotFoundError,
    ComposerError,
    ConfigurationError,
    ProbeEvaluationError,
    ProbeTimeoutError,
    StartupError,
)
from docker_composer.locator import find_compose_file
from docker_composer.session import ComposeSession

__version__ = "1.0.0"

__all__ = [
    "ComposeCommandError",
    "ComposeFileNotFoundError",
    "ComposeSession",
    "ComposerError",
    "ComposerSettings",
    "ConfigurationError",
    "DockerCompose",
    "FixtureConfig",
    "ProbeEvaluationError",
    "ProbeTimeoutError",
    "StartupError",
    "evaluate_environment",
    "find_compose_file",
    "load_fixture_config",
]
