"""Fluent lifecycle builder for compose-backed test fixtures.

Configure the fixture, then call :meth:`DockerCompose.up` to get a
:class:`~docker_composer.session.ComposeSession`::

    compose = (
        DockerCompose.with_compose_file("integration.compose.yml")
        .force_build()
        .force_recreate()
        .wait_for_port("db", "5432/tcp", timeout_ms=5000)
        .keep_alive_when_environment("KEEP_CONTAINERS")
    )
    with compose.up():
        run_tests()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from docker_composer.config import (
    DEFAULT_COMPOSE_FILE,
    ComposerSettings,
    FixtureConfig,
    load_fixture_config,
)
from docker_composer.environment import EnvironmentCheck, evaluate_environment
from docker_composer.exceptions import ConfigurationError
from docker_composer.locator import find_compose_file
from docker_composer.orchestration.service import ComposeServiceBuilder
from docker_composer.probes import (
    CustomProbe,
    HttpProbe,
    PortProbe,
    ProcessProbe,
    parse_port_and_protocol,
)
from docker_composer.protocols import OrchestrationBuilder, StartableGroup
from docker_composer.session import ComposeSession

logger = logging.getLogger(__name__)

BuilderFactory = Callable[[ComposerSettings, "str | None"], OrchestrationBuilder]


def _default_builder(settings: ComposerSettings, project_name: str | None) -> OrchestrationBuilder:
    return ComposeServiceBuilder(settings=settings, project_name=project_name)


class DockerCompose:
    """Declarative bring-up and tear-down of one compose file."""

    def __init__(
        self,
        file_name: str = DEFAULT_COMPOSE_FILE,
        *,
        working_dir: Path | str | None = None,
        project_name: str | None = None,
        settings: ComposerSettings | None = None,
        builder_factory: BuilderFactory | None = None,
    ) -> None:
        self._file_name = file_name
        self._working_dir = Path(working_dir) if working_dir is not None else None
        self._project_name = project_name
        self._settings = settings or ComposerSettings()
        self._builder_factory = builder_factory or _default_builder
        self._force_build = False
        self._force_recreate = False
        self._keep_alive = False
        self._is_target_environment = True
        self._checks: list[CustomProbe] = []
        self._port_checks: list[PortProbe] = []
        self._process_checks: list[ProcessProbe] = []
        self._http_checks: list[HttpProbe] = []

    @classmethod
    def with_compose_file(cls, file_name: str = DEFAULT_COMPOSE_FILE, **kwargs) -> DockerCompose:
        """Start configuring a fixture for *file_name*.

        The file is searched for in the working directory and its parents
        only when :meth:`up` runs.
        """
        return cls(file_name, **kwargs)

    @classmethod
    def from_config(
        cls,
        config: FixtureConfig | Path | str,
        **kwargs,
    ) -> DockerCompose:
        """Build a configured fixture from a YAML file or a loaded config."""
        if not isinstance(config, FixtureConfig):
            config = load_fixture_config(config)

        compose = cls(config.compose_file, project_name=config.project_name, **kwargs)
        if config.when_environment is not None:
            compose.when_environment(
                config.when_environment.variable, config.when_environment.as_check()
            )
        if config.keep_alive_environment is not None:
            compose.keep_alive_when_environment(
                config.keep_alive_environment.variable,
                config.keep_alive_environment.as_check(),
            )
        if config.force_build:
            compose.force_build()
        if config.force_recreate:
            compose.force_recreate()
        for port in config.ports:
            compose.wait_for_port(port.service, port.port, port.timeout_ms, port.address)
        for process in config.processes:
            compose.wait_for_process(process.service, process.process, process.timeout_ms)
        for http in config.http:
            compose.wait_for_http(http.service, http.port, http.path, http.timeout_ms)
        return compose

    @property
    def file_name(self) -> str:
        return self._file_name

    # -- configuration -------------------------------------------------------

    def when_environment(
        self, variable: str, check: EnvironmentCheck | None = None
    ) -> DockerCompose:
        """Only bring containers up when *variable* passes *check*.

        Without *check* the variable merely has to be set.  Evaluated now,
        not when :meth:`up` runs.
        """
        self._is_target_environment = evaluate_environment(variable, check)
        return self

    def with_project_name(self, project_name: str) -> DockerCompose:
        self._project_name = project_name
        return self

    def _timeout(self, timeout_ms: int | None) -> int:
        return self._settings.default_timeout_ms if timeout_ms is None else timeout_ms

    def wait_for_check(
        self,
        service: str,
        check: Callable[[], bool],
        timeout_ms: int | None = None,
    ) -> DockerCompose:
        """Wait until *check* returns true; it is retried with shrinking delays."""
        self._checks.append(
            CustomProbe(service=service, timeout_ms=self._timeout(timeout_ms), check=check)
        )
        return self

    def wait_for_port(
        self,
        service: str,
        port_and_proto: str,
        timeout_ms: int | None = None,
        address: str | None = None,
    ) -> DockerCompose:
        """Wait until *service* accepts connections on ``"<port>/<tcp|udp>"``.

        *address* replaces the host address the port is published on.
        """
        try:
            port, protocol = parse_port_and_protocol(port_and_proto)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._port_checks.append(
            PortProbe(
                service=service,
                timeout_ms=self._timeout(timeout_ms),
                port=port,
                protocol=protocol,
                address=address,
            )
        )
        return self

    def wait_for_process(
        self,
        service: str,
        process: str,
        timeout_ms: int | None = None,
    ) -> DockerCompose:
        self._process_checks.append(
            ProcessProbe(service=service, timeout_ms=self._timeout(timeout_ms), process=process)
        )
        return self

    def wait_for_http(
        self,
        service: str,
        port: int,
        path: str = "/",
        timeout_ms: int | None = None,
    ) -> DockerCompose:
        """Wait until ``GET <path>`` on the published *port* answers below 400."""
        self._http_checks.append(
            HttpProbe(
                service=service,
                timeout_ms=self._timeout(timeout_ms),
                port=port,
                path=path if path.startswith("/") else f"/{path}",
            )
        )
        return self

    def force_build(self) -> DockerCompose:
        self._force_build = True
        return self

    def force_recreate(self) -> DockerCompose:
        self._force_recreate = True
        return self

    def keep_alive_when(self, should_keep_alive: Callable[[], bool]) -> DockerCompose:
        """Leave containers running after the session ends.

        Useful locally to reuse containers across consecutive runs.
        """
        self._keep_alive = bool(should_keep_alive())
        return self

    def keep_alive_when_environment(
        self, variable: str, check: EnvironmentCheck | None = None
    ) -> DockerCompose:
        """Environment-variable form of :meth:`keep_alive_when`."""
        self._keep_alive = evaluate_environment(variable, check)
        return self

    # -- terminal operation --------------------------------------------------

    def _request(self, compose_file: Path) -> OrchestrationBuilder:
        builder = (
            self._builder_factory(self._settings, self._project_name)
            .from_file(compose_file)
            .remove_orphans()
        )
        if self._force_build:
            builder.force_build()
        if self._force_recreate:
            builder.force_recreate()
        for probe in (
            *self._checks,
            *self._port_checks,
            *self._process_checks,
            *self._http_checks,
        ):
            builder.wait(probe)
        return builder

    def up(self) -> ComposeSession:
        """Bring the containers up and block until every probe is satisfied.

        Returns:
            A session that tears the containers down when closed.

        Raises:
            ConfigurationError: If the compose file cannot be found.
            StartupError: If the containers fail to start or a probe times
                out or faults.  Partially started containers are removed
                before any error, interrupts included, leaves this call.
        """
        if not self._is_target_environment:
            logger.info("Not the target environment; skipping %s", self._file_name)
            return ComposeSession(None, keep_alive=self._keep_alive)

        start_dir = self._working_dir if self._working_dir is not None else Path.cwd()
        compose_file = find_compose_file(self._file_name, start_dir)

        service = self._request(compose_file).build()
        try:
            running = service.start()
        except BaseException:
            self._rollback(service)
            raise
        return ComposeSession(running, keep_alive=self._keep_alive)

    @staticmethod
    def _rollback(service: StartableGroup) -> None:
        for step, action in (
            ("remove", lambda: service.remove(purge_volumes=True)),
            ("dispose", service.dispose),
        ):
            try:
                action()
            except Exception as exc:
                logger.warning("Rollback step '%s' failed: %s", step, exc)
