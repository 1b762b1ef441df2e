"""Readiness probe variants.

A probe is an immutable description of one wait condition.  The
orchestration layer (:mod:`docker_composer.orchestration.waiter`) is what
actually polls them; this module only carries their parameters and the
shrinking retry policy used by custom checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar


class ProbeKind(str, Enum):
    """Variant tag of a readiness probe."""
    CUSTOM = "custom"
    PORT = "port"
    PROCESS = "process"
    HTTP = "http"


class ProbeOutcome(str, Enum):
    """Result of a single probe evaluation."""
    SATISFIED = "satisfied"
    RETRY = "retry"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ReadinessProbe:
    """Base of all probes: the compose service it targets and its budget."""

    kind: ClassVar[ProbeKind]

    service: str
    timeout_ms: int


@dataclass(frozen=True)
class CustomProbe(ReadinessProbe):
    """Caller-supplied zero-argument predicate."""

    kind: ClassVar[ProbeKind] = ProbeKind.CUSTOM

    check: Callable[[], bool] = field(default=lambda: True, compare=False)


@dataclass(frozen=True)
class PortProbe(ReadinessProbe):
    """Published port that must accept connections."""

    kind: ClassVar[ProbeKind] = ProbeKind.PORT

    port: int = 0
    protocol: str = "tcp"
    address: str | None = None

    @property
    def port_and_proto(self) -> str:
        return f"{self.port}/{self.protocol}"


@dataclass(frozen=True)
class ProcessProbe(ReadinessProbe):
    """Process that must show up in the container's process list."""

    kind: ClassVar[ProbeKind] = ProbeKind.PROCESS

    process: str = ""


@dataclass(frozen=True)
class HttpProbe(ReadinessProbe):
    """HTTP endpoint on a published port that must answer below *status_below*."""

    kind: ClassVar[ProbeKind] = ProbeKind.HTTP

    port: int = 80
    path: str = "/"
    status_below: int = 400


def parse_port_and_protocol(port_and_proto: str) -> tuple[int, str]:
    """Split ``"5432/tcp"`` into ``(5432, "tcp")``.

    The protocol defaults to tcp when omitted.

    Raises:
        ValueError: If the port is not an integer in 1..65535 or the
            protocol is neither tcp nor udp.
    """
    port_str, _, protocol = port_and_proto.strip().partition("/")
    protocol = (protocol or "tcp").lower()
    if protocol not in ("tcp", "udp"):
        raise ValueError(f"unsupported protocol in '{port_and_proto}'")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in '{port_and_proto}'") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in '{port_and_proto}'")
    return port, protocol


def retry_delay_ms(attempt: int, base_ms: int = 1000, decrement_ms: int = 100) -> int:
    """Delay before re-running a custom check after *attempt* failures.

    The delay shrinks linearly as attempts accumulate and never goes
    negative, so polling gets more aggressive as the deadline nears.  Once
    ``attempt * decrement_ms`` reaches ``base_ms`` the delay stays at 0 and
    the check is re-run back-to-back until it passes or its timeout
    elapses.  Set ``DOCKER_COMPOSER_POLL_DECREMENT_MS`` to 0 to keep a fixed
    gap for expensive checks.
    """
    return max(base_ms - attempt * decrement_ms, 0)
