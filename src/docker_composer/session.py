"""Scoped handle on a running container group."""

from __future__ import annotations

import logging
from types import TracebackType

from docker_composer.protocols import RunningGroup

logger = logging.getLogger(__name__)


class ComposeSession:
    """Owns a running container group until the scope that acquired it ends.

    Usage::

        with DockerCompose.with_compose_file().wait_for_port("db", "5432/tcp").up():
            ...  # containers are ready here

    Leaving the block stops and removes the containers unless keep-alive was
    requested.  Teardown never raises; failures are logged.
    """

    def __init__(self, service: RunningGroup | None, keep_alive: bool = False) -> None:
        self._service = service
        self._keep_alive = keep_alive
        self._released = False

    @property
    def released(self) -> bool:
        """Whether :meth:`close` has already run."""
        return self._released

    def close(self) -> None:
        """Tear the group down, once.

        Stop, remove (volumes purged) and dispose are attempted
        independently; a failure in one does not skip the others.
        """
        if self._released:
            return
        self._released = True

        service, self._service = self._service, None
        if service is None:
            return
        if self._keep_alive:
            logger.info("Keep-alive set; leaving containers running")
            return

        last_error: Exception | None = None
        for step, action in (
            ("stop", service.stop),
            ("remove", lambda: service.remove(purge_volumes=True)),
            ("dispose", service.dispose),
        ):
            try:
                action()
            except Exception as exc:
                logger.warning("Teardown step '%s' failed: %s", step, exc)
                last_error = exc

        if last_error is not None:
            logger.error(
                "Container teardown incomplete; last error: %s",
                last_error,
                exc_info=last_error,
            )

    def __enter__(self) -> ComposeSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
