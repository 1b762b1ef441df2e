"""Tests for ComposeServiceBuilder and CompositeService."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from docker_composer.compose import DockerCompose
from docker_composer.config import ComposerSettings
from docker_composer.exceptions import (
    ComposeCommandError,
    ComposerError,
    ConfigurationError,
    StartupError,
)
from docker_composer.orchestration.service import (
    ComposeServiceBuilder,
    CompositeService,
    ServiceState,
)
from docker_composer.probes import CustomProbe
from docker_composer.protocols import OrchestrationBuilder, RunningGroup, StartableGroup


@pytest.fixture
def builder(compose_dir: Path, settings: ComposerSettings) -> ComposeServiceBuilder:
    return ComposeServiceBuilder(settings=settings, project_name="it").from_file(
        compose_dir / "docker-compose.yml"
    )


def _service(up_args=None, probes=None, settings=None) -> tuple[CompositeService, MagicMock]:
    command = MagicMock()
    command.project_name = "it"
    service = CompositeService(
        command,
        up_args or ["up", "--detach"],
        probes or [],
        settings or ComposerSettings(),
    )
    return service, command


class TestComposeServiceBuilder:
    def test_satisfies_protocol(self, builder: ComposeServiceBuilder) -> None:
        assert isinstance(builder, OrchestrationBuilder)
        assert isinstance(builder.build(), StartableGroup)

    def test_plain_up_arguments(self, builder: ComposeServiceBuilder) -> None:
        assert builder.up_arguments() == ["up", "--detach"]

    def test_all_flags(self, builder: ComposeServiceBuilder) -> None:
        builder.remove_orphans().force_build().force_recreate()
        assert builder.up_arguments() == [
            "up", "--detach", "--build", "--force-recreate", "--remove-orphans"
        ]

    def test_build_without_file(self, settings: ComposerSettings) -> None:
        with pytest.raises(ConfigurationError):
            ComposeServiceBuilder(settings=settings).build()

    def test_project_name_from_settings(self) -> None:
        settings = ComposerSettings(project_name="from-env")
        assert ComposeServiceBuilder(settings=settings).project_name == "from-env"
        assert ComposeServiceBuilder(settings=settings, project_name="x").project_name == "x"

    def test_build_wires_command(self, builder: ComposeServiceBuilder, compose_dir: Path) -> None:
        service = builder.build()
        assert service.project == "it"
        assert service.state is ServiceState.CREATED


class TestCompositeService:
    def test_start_runs_up_then_waits(self) -> None:
        probe = CustomProbe(service="db", timeout_ms=1000, check=lambda: True)
        service, command = _service(["up", "--detach", "--build"], [probe])
        with patch("docker_composer.orchestration.service.ReadinessWaiter") as waiter_cls:
            assert service.start() is service
        command.run.assert_called_once_with("up", "--detach", "--build")
        waiter_cls.assert_called_once()
        assert waiter_cls.call_args.args[0] == [probe]
        waiter_cls.return_value.wait.assert_called_once()
        assert service.state is ServiceState.RUNNING

    def test_start_failure_is_startup_error(self) -> None:
        service, command = _service()
        command.run.side_effect = ComposeCommandError(["docker"], 1, "image not found")
        with pytest.raises(StartupError, match="image not found"):
            service.start()

    def test_probe_failure_propagates(self, settings: ComposerSettings) -> None:
        probe = CustomProbe(service="db", timeout_ms=100, check=lambda: False)
        service, _ = _service(probes=[probe], settings=settings)
        with pytest.raises(StartupError):
            service.start()

    def test_stop(self) -> None:
        service, command = _service()
        service.stop()
        command.run.assert_called_once_with("stop")
        assert service.state is ServiceState.STOPPED

    def test_remove_purging_volumes(self) -> None:
        service, command = _service()
        service.remove(purge_volumes=True)
        command.run.assert_called_once_with("down", "--volumes", "--remove-orphans")
        assert service.state is ServiceState.REMOVED

    def test_remove_keeping_volumes(self) -> None:
        service, command = _service()
        service.remove()
        command.run.assert_called_once_with("down", "--remove-orphans")

    def test_dispose_is_idempotent(self) -> None:
        service, _ = _service()
        service.dispose()
        service.dispose()
        assert service.state is ServiceState.DISPOSED
        assert isinstance(service, RunningGroup)

    def test_commands_after_dispose_fail(self) -> None:
        service, _ = _service()
        service.dispose()
        with pytest.raises(ComposerError):
            service.stop()


class TestIndependentFixtures:
    def test_two_fixtures_run_concurrently(self, tmp_path: Path, settings: ComposerSettings) -> None:
        dirs = []
        for name in ("alpha", "beta"):
            directory = tmp_path / name
            directory.mkdir()
            (directory / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
            dirs.append(directory)

        commands: list[list[str]] = []
        lock = threading.Lock()

        def fake_run(cmd, **kwargs):
            with lock:
                commands.append(cmd)
            return MagicMock(returncode=0, stdout="", stderr="")

        sessions = {}
        errors = []

        def bring_up(directory: Path) -> None:
            try:
                sessions[directory.name] = (
                    DockerCompose(working_dir=directory, settings=settings)
                    .wait_for_check("app", lambda: True)
                    .up()
                )
            except Exception as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        with patch("subprocess.run", side_effect=fake_run):
            threads = [threading.Thread(target=bring_up, args=(d,)) for d in dirs]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            assert errors == []
            assert set(sessions) == {"alpha", "beta"}

            commands.clear()
            sessions["alpha"].close()

        alpha_file = str((dirs[0] / "docker-compose.yml").resolve())
        assert commands
        assert all(alpha_file in cmd for cmd in commands)
        assert sessions["beta"].released is False
