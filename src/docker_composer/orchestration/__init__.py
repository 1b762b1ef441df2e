"""Orchestration adapter over the ``docker compose`` command line."""

from docker_composer.orchestration.command import CommandResult, ComposeCommand
from docker_composer.orchestration.service import (
    ComposeServiceBuilder,
    CompositeService,
    ServiceState,
)
from docker_composer.orchestration.waiter import ReadinessWaiter

__all__ = [
    "CommandResult",
    "ComposeCommand",
    "ComposeServiceBuilder",
    "CompositeService",
    "ReadinessWaiter",
    "ServiceState",
]
