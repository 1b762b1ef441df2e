"""Docker Compose backed composite service.

``ComposeServiceBuilder`` accumulates the orchestration request and
``CompositeService`` drives the running group: start, stop, remove and
dispose.  Typical lifecycle::

    service = (
        ComposeServiceBuilder()
        .from_file(path)
        .remove_orphans()
        .wait(PortProbe(service="db", timeout_ms=5000, port=5432))
        .build()
        .start()
    )
    # ... test runs ...
    service.stop()
    service.remove(purge_volumes=True)
    service.dispose()
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from docker_composer.config import ComposerSettings
from docker_composer.exceptions import (
    ComposeCommandError,
    ComposerError,
    ConfigurationError,
    StartupError,
)
from docker_composer.logging import compose_project_context
from docker_composer.orchestration.command import ComposeCommand
from docker_composer.orchestration.waiter import ReadinessWaiter
from docker_composer.probes import ReadinessProbe

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    """Lifecycle state of a composite service."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"
    DISPOSED = "disposed"


class CompositeService:
    """Handle on the container group started from one compose file."""

    def __init__(
        self,
        command: ComposeCommand,
        up_args: list[str],
        probes: list[ReadinessProbe],
        settings: ComposerSettings,
    ) -> None:
        self._command: ComposeCommand | None = command
        self._up_args = list(up_args)
        self._probes = list(probes)
        self._settings = settings
        self.state = ServiceState.CREATED

    @property
    def project(self) -> str:
        if self._command is None:
            return ""
        return self._command.project_name or self._command.compose_file.parent.name

    def _require_command(self) -> ComposeCommand:
        if self._command is None:
            raise ComposerError("composite service has been disposed")
        return self._command

    def start(self) -> CompositeService:
        """Bring the group up and block until every probe is satisfied.

        Raises:
            StartupError: If ``docker compose up`` fails or a probe times out
                or faults.
        """
        command = self._require_command()
        with compose_project_context(self.project):
            logger.info("Starting %s", command.compose_file)
            try:
                command.run(*self._up_args)
            except ComposeCommandError as exc:
                raise StartupError(f"failed to start containers: {exc}") from exc
            self.state = ServiceState.RUNNING
            ReadinessWaiter(self._probes, command, self._settings).wait()
            logger.info("Containers ready (%d probes)", len(self._probes))
        return self

    def stop(self) -> None:
        """Stop every container of the group."""
        command = self._require_command()
        with compose_project_context(self.project):
            command.run("stop")
        self.state = ServiceState.STOPPED

    def remove(self, purge_volumes: bool = False) -> None:
        """Remove containers and networks, and volumes when *purge_volumes*."""
        command = self._require_command()
        args = ["down"]
        if purge_volumes:
            args.append("--volumes")
        args.append("--remove-orphans")
        with compose_project_context(self.project):
            command.run(*args)
        self.state = ServiceState.REMOVED

    def dispose(self) -> None:
        """Release in-memory resources held for the group."""
        if self.state is ServiceState.DISPOSED:
            return
        self._command = None
        self._probes.clear()
        self.state = ServiceState.DISPOSED


class ComposeServiceBuilder:
    """Accumulates an orchestration request for one compose file."""

    def __init__(
        self,
        settings: ComposerSettings | None = None,
        project_name: str | None = None,
    ) -> None:
        self.settings = settings or ComposerSettings()
        self.project_name = project_name or self.settings.project_name or None
        self.compose_file: Path | None = None
        self.orphans_removed = False
        self.build_forced = False
        self.recreate_forced = False
        self.probes: list[ReadinessProbe] = []

    def from_file(self, path: Path | str) -> ComposeServiceBuilder:
        self.compose_file = Path(path)
        return self

    def remove_orphans(self) -> ComposeServiceBuilder:
        self.orphans_removed = True
        return self

    def force_build(self) -> ComposeServiceBuilder:
        self.build_forced = True
        return self

    def force_recreate(self) -> ComposeServiceBuilder:
        self.recreate_forced = True
        return self

    def wait(self, probe: ReadinessProbe) -> ComposeServiceBuilder:
        """Install *probe* as a wait condition."""
        self.probes.append(probe)
        return self

    def up_arguments(self) -> list[str]:
        """The ``docker compose up`` arguments this request translates to."""
        args = ["up", "--detach"]
        if self.build_forced:
            args.append("--build")
        if self.recreate_forced:
            args.append("--force-recreate")
        if self.orphans_removed:
            args.append("--remove-orphans")
        return args

    def build(self) -> CompositeService:
        if self.compose_file is None:
            raise ConfigurationError("no compose file given to the service builder")
        command = ComposeCommand(
            self.compose_file,
            project_name=self.project_name,
            docker=self.settings.docker_command,
            timeout=self.settings.command_timeout_s,
        )
        return CompositeService(command, self.up_arguments(), self.probes, self.settings)
