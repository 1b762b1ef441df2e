"""Shared test fixtures for the docker-composer test suite."""
from __future__ import annotations

from pathlib import Path

import pytest

from docker_composer.config import ComposerSettings
from tests.fixtures import FakeBuilder


@pytest.fixture
def settings() -> ComposerSettings:
    """Settings with a fast polling cadence."""
    return ComposerSettings(
        poll_interval_ms=50,
        poll_decrement_ms=5,
        default_timeout_ms=2000,
    )


@pytest.fixture
def fake_builder() -> FakeBuilder:
    return FakeBuilder()


@pytest.fixture
def builder_factory(fake_builder: FakeBuilder):
    """A builder factory that hands out ``fake_builder`` and records its arguments."""

    def factory(settings: ComposerSettings, project_name: str | None) -> FakeBuilder:
        fake_builder.project_name = project_name
        return fake_builder

    return factory


@pytest.fixture
def compose_dir(tmp_path: Path) -> Path:
    """A project directory holding a docker-compose.yml."""
    compose = tmp_path / "docker-compose.yml"
    compose.write_text("services:\n  db:\n    image: postgres:16\n", encoding="utf-8")
    return tmp_path
