"""Test doubles and sample files for docker-composer tests.

Provides:
- sample_fixture.yml -- declarative fixture file exercising every option
- sample_docker_compose.yml -- two-service compose file
- FakeGroup / FakeBuilder -- in-memory orchestration collaborators
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from docker_composer.probes import ReadinessProbe

FIXTURES_DIR = Path(__file__).parent


def fixture_path(name: str) -> Path:
    """Return the absolute path to a named fixture file."""
    path = FIXTURES_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Fixture not found: {path}")
    return path


class FakeGroup:
    """In-memory stand-in for a composite service."""

    def __init__(self, start_error: BaseException | None = None) -> None:
        self.start_error = start_error
        self.calls: list[tuple[str, Any]] = []
        self.stop_error: Exception | None = None
        self.remove_error: Exception | None = None
        self.dispose_error: Exception | None = None

    def start(self) -> FakeGroup:
        self.calls.append(("start", None))
        if self.start_error is not None:
            raise self.start_error
        return self

    def stop(self) -> None:
        self.calls.append(("stop", None))
        if self.stop_error is not None:
            raise self.stop_error

    def remove(self, purge_volumes: bool = False) -> None:
        self.calls.append(("remove", purge_volumes))
        if self.remove_error is not None:
            raise self.remove_error

    def dispose(self) -> None:
        self.calls.append(("dispose", None))
        if self.dispose_error is not None:
            raise self.dispose_error

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FakeBuilder:
    """Records the orchestration request made by ``DockerCompose.up``."""

    def __init__(self, group: FakeGroup | None = None) -> None:
        self.group = group or FakeGroup()
        self.compose_file: Path | None = None
        self.flags: list[str] = []
        self.probes: list[ReadinessProbe] = []
        self.project_name: str | None = None

    def from_file(self, path: Path | str) -> FakeBuilder:
        self.compose_file = Path(path)
        return self

    def remove_orphans(self) -> FakeBuilder:
        self.flags.append("remove_orphans")
        return self

    def force_build(self) -> FakeBuilder:
        self.flags.append("force_build")
        return self

    def force_recreate(self) -> FakeBuilder:
        self.flags.append("force_recreate")
        return self

    def wait(self, probe: ReadinessProbe) -> FakeBuilder:
        self.probes.append(probe)
        return self

    def build(self) -> FakeGroup:
        return self.group
