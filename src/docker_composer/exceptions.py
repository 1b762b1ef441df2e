"""Custom exceptions for docker-composer."""

from __future__ import annotations

from pathlib import Path


class ComposerError(Exception):
    """Base exception for all docker-composer errors."""

    pass


class ConfigurationError(ComposerError):
    """Raised for configuration issues (missing compose file, bad fixture file, etc.)."""

    pass


class ComposeFileNotFoundError(ConfigurationError):
    """Raised when no ancestor directory holds the requested compose file."""

    def __init__(self, file_name: str, start_dir: Path | str) -> None:
        self.file_name = file_name
        self.start_dir = Path(start_dir)
        super().__init__(
            f"could not locate {file_name} in {self.start_dir} or any parent directory"
        )


class ComposeCommandError(ComposerError):
    """Raised when a ``docker compose`` invocation exits non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        super().__init__(
            f"'{' '.join(self.command)}' exited with {returncode}: {detail}"
        )


class StartupError(ComposerError):
    """Raised when the container group cannot be brought up and made ready."""

    def __init__(self, message: str, service: str = "") -> None:
        self.service = service
        super().__init__(message)


class ProbeTimeoutError(StartupError):
    """Raised when a readiness probe is not satisfied within its timeout."""

    def __init__(self, service: str, kind: str, timeout_ms: int) -> None:
        self.kind = kind
        self.timeout_ms = timeout_ms
        super().__init__(
            f"{kind} probe for '{service}' not satisfied within {timeout_ms}ms",
            service=service,
        )


class ProbeEvaluationError(StartupError):
    """Raised when a custom readiness check raises instead of returning."""

    def __init__(self, service: str, fault: BaseException) -> None:
        self.fault = fault
        super().__init__(
            f"readiness check for '{service}' raised {type(fault).__name__}: {fault}",
            service=service,
        )
