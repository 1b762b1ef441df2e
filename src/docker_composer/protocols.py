"""Runtime-checkable protocols for the orchestration collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from docker_composer.probes import ReadinessProbe


@runtime_checkable
class RunningGroup(Protocol):
    """A started container group."""

    def stop(self) -> None:
        """Stop every container of the group."""
        ...

    def remove(self, purge_volumes: bool = False) -> None:
        """Remove the group's containers, and its volumes when asked."""
        ...

    def dispose(self) -> None:
        """Release in-memory resources held for the group."""
        ...


@runtime_checkable
class StartableGroup(RunningGroup, Protocol):
    """A built but not yet started container group."""

    def start(self) -> RunningGroup:
        """Start the group and block until all wait conditions hold."""
        ...


@runtime_checkable
class OrchestrationBuilder(Protocol):
    """Accumulates flags and wait conditions for one compose file."""

    def from_file(self, path: Path | str) -> OrchestrationBuilder: ...

    def remove_orphans(self) -> OrchestrationBuilder: ...

    def force_build(self) -> OrchestrationBuilder: ...

    def force_recreate(self) -> OrchestrationBuilder: ...

    def wait(self, probe: ReadinessProbe) -> OrchestrationBuilder: ...

    def build(self) -> StartableGroup: ...
