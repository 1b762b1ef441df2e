"""Thin wrapper around the ``docker compose`` command line.

All subprocess calls capture stdout and stderr.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from docker_composer.exceptions import ComposeCommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one ``docker compose`` invocation."""
    returncode: int
    stdout: str
    stderr: str


class ComposeCommand:
    """Runs ``docker compose`` against a single compose file and project."""

    def __init__(
        self,
        compose_file: Path | str,
        project_name: str | None = None,
        docker: str = "docker",
        timeout: float | None = None,
    ) -> None:
        self.compose_file = Path(compose_file)
        self.project_name = project_name or None
        self.docker = docker
        self.timeout = timeout

    def base_args(self) -> list[str]:
        cmd = [self.docker, "compose", "-f", str(self.compose_file)]
        if self.project_name:
            cmd.extend(["-p", self.project_name])
        return cmd

    def run(
        self, *args: str, check: bool = True, timeout: float | None = None
    ) -> CommandResult:
        """Run a docker compose subcommand synchronously.

        Args:
            *args: Subcommand and its arguments, e.g. ``("up", "--detach")``.
            check: Raise :class:`ComposeCommandError` on a non-zero exit.
            timeout: Seconds before the call is abandoned; never longer
                than the command timeout given at construction.

        Returns:
            The captured result.
        """
        cmd = [*self.base_args(), *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout(timeout),
            )
        except subprocess.TimeoutExpired as exc:
            raise ComposeCommandError(cmd, -1, f"timed out after {exc.timeout}s") from exc
        except FileNotFoundError as exc:
            raise ComposeCommandError(cmd, 127, str(exc)) from exc

        result = CommandResult(completed.returncode, completed.stdout, completed.stderr)
        if check and result.returncode != 0:
            raise ComposeCommandError(cmd, result.returncode, result.stderr)
        return result

    def _timeout(self, timeout: float | None) -> float | None:
        if timeout is None:
            return self.timeout
        if self.timeout is None:
            return timeout
        return min(timeout, self.timeout)

    def port(
        self,
        service: str,
        port: int,
        protocol: str = "tcp",
        timeout: float | None = None,
    ) -> tuple[str, int] | None:
        """Resolve the host address and port a container port is published on.

        Returns:
            ``(host, port)`` or ``None`` when the port is not published (yet).
        """
        result = self.run(
            "port", "--protocol", protocol, service, str(port), check=False, timeout=timeout
        )
        host_port = result.stdout.strip().splitlines()[0].strip() if result.stdout.strip() else ""
        if result.returncode != 0 or ":" not in host_port:
            return None
        # Format is usually 0.0.0.0:PORT or [::]:PORT
        host, _, mapped = host_port.rpartition(":")
        try:
            return host.strip("[]"), int(mapped)
        except ValueError:
            return None

    def top(self, service: str, timeout: float | None = None) -> str:
        """Return the ``docker compose top`` listing for *service*."""
        return self.run("top", service, check=False, timeout=timeout).stdout
