"""Concurrent readiness barrier.

Every installed probe gets its own polling coroutine.  The barrier holds
until all of them report satisfied; the first probe that times out or
faults cancels the others and its error is raised.

Blocking work (custom checks, ``docker compose port``/``top``) runs on an
executor owned by the barrier and every evaluation is bounded by what is
left of its probe's budget.  The executor is abandoned, not joined, when
the barrier ends, so a check that never returns cannot hold ``up()`` past
its timeout.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Iterator, Sequence

import httpx

from docker_composer.config import ComposerSettings
from docker_composer.exceptions import (
    ComposeCommandError,
    ProbeEvaluationError,
    ProbeTimeoutError,
    StartupError,
)
from docker_composer.orchestration.command import ComposeCommand
from docker_composer.probes import (
    CustomProbe,
    HttpProbe,
    PortProbe,
    ProbeOutcome,
    ProcessProbe,
    ReadinessProbe,
    retry_delay_ms,
)

logger = logging.getLogger(__name__)

_WILDCARD_HOSTS = {"", "0.0.0.0", "::"}


def _connect_host(published_host: str, address: str | None) -> str:
    if address:
        return address
    if published_host in _WILDCARD_HOSTS:
        return "127.0.0.1"
    return published_host


def process_commands(listing: str) -> Iterator[str]:
    """Yield the CMD column of every process row in ``docker compose top`` output.

    Each container block starts with its name, then a ``UID PID ... CMD``
    header.  The command is everything from the last header column on.
    """
    columns = 0
    for line in listing.splitlines():
        fields = line.split()
        if not fields:
            continue
        if fields[0] == "UID":
            columns = len(fields)
            continue
        if columns and len(fields) >= columns:
            yield line.split(None, columns - 1)[-1]


def _evaluate(check: Callable[[], bool]) -> tuple[bool, Exception | None]:
    # Faults travel back as values so they cannot be mistaken for a timeout
    try:
        return bool(check()), None
    except Exception as exc:
        return False, exc


class ReadinessWaiter:
    """Blocks until every probe is satisfied, or raises on the first failure."""

    def __init__(
        self,
        probes: Sequence[ReadinessProbe],
        command: ComposeCommand,
        settings: ComposerSettings | None = None,
    ) -> None:
        self.probes = list(probes)
        self.command = command
        self.settings = settings or ComposerSettings()
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None

    # -- public API ----------------------------------------------------------

    def wait(self) -> None:
        """Run the barrier synchronously.

        Inside a running event loop the barrier is run on a dedicated
        worker thread with its own loop.
        """
        if not self.probes:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.wait_async())
            return
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            pool.submit(asyncio.run, self.wait_async()).result()

    async def wait_async(self) -> None:
        """Run all probes concurrently; fail fast on the first error."""
        if not self.probes:
            return
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(self.probes), thread_name_prefix="readiness"
        )
        tasks = [
            asyncio.ensure_future(self._run_probe(probe)) for probe in self.probes
        ]
        try:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise exc
        finally:
            for task in tasks:
                task.cancel()
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("All %d readiness probes satisfied", len(self.probes))

    # -- per-probe loops -----------------------------------------------------

    async def _run_probe(self, probe: ReadinessProbe) -> None:
        if isinstance(probe, CustomProbe):
            await self._wait_custom(probe)
        elif isinstance(probe, PortProbe):
            await self._poll(probe, lambda budget: self._check_port(probe, budget))
        elif isinstance(probe, ProcessProbe):
            await self._poll(probe, lambda budget: self._check_process(probe, budget))
        elif isinstance(probe, HttpProbe):
            await self._poll(probe, lambda budget: self._check_http(probe, budget))
        else:
            raise TypeError(f"unsupported probe type: {type(probe).__name__}")

    async def _blocking(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, functools.partial(func, *args, **kwargs)
        )

    def _timed_out(self, probe: ReadinessProbe, attempts: int) -> ProbeTimeoutError:
        self._log_outcome(probe, ProbeOutcome.TIMED_OUT, attempts)
        return ProbeTimeoutError(probe.service, probe.kind.value, probe.timeout_ms)

    async def _wait_custom(self, probe: CustomProbe) -> None:
        deadline = time.monotonic() + probe.timeout_ms / 1000
        attempt = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._timed_out(probe, attempt)
            try:
                ready, fault = await asyncio.wait_for(
                    self._blocking(_evaluate, probe.check), remaining
                )
            except asyncio.TimeoutError:
                raise self._timed_out(probe, attempt) from None
            if fault is not None:
                raise ProbeEvaluationError(probe.service, fault) from fault
            if ready:
                self._log_outcome(probe, ProbeOutcome.SATISFIED, attempt)
                return
            delay_s = retry_delay_ms(
                attempt, self.settings.poll_interval_ms, self.settings.poll_decrement_ms
            ) / 1000
            attempt += 1
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._timed_out(probe, attempt)
            await asyncio.sleep(min(delay_s, remaining))

    async def _poll(
        self,
        probe: ReadinessProbe,
        check: Callable[[float], Awaitable[bool]],
    ) -> None:
        deadline = time.monotonic() + probe.timeout_ms / 1000
        interval_s = self.settings.poll_interval_ms / 1000
        attempt = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._timed_out(probe, attempt)
            try:
                ready = await asyncio.wait_for(check(remaining), remaining)
            except asyncio.TimeoutError:
                raise self._timed_out(probe, attempt) from None
            except ComposeCommandError as exc:
                if time.monotonic() >= deadline:
                    raise self._timed_out(probe, attempt) from exc
                raise StartupError(
                    f"{probe.kind.value} probe for '{probe.service}' failed: {exc}",
                    service=probe.service,
                ) from exc
            if ready:
                self._log_outcome(probe, ProbeOutcome.SATISFIED, attempt)
                return
            attempt += 1
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._timed_out(probe, attempt)
            logger.debug(
                "%s probe for '%s' not ready (attempt %d)",
                probe.kind.value, probe.service, attempt,
            )
            await asyncio.sleep(min(interval_s, remaining))

    # -- checks --------------------------------------------------------------

    async def _resolve(
        self, service: str, port: int, protocol: str, budget: float
    ) -> tuple[str, int] | None:
        return await self._blocking(
            self.command.port, service, port, protocol, timeout=budget
        )

    async def _check_port(self, probe: PortProbe, budget: float) -> bool:
        published = await self._resolve(probe.service, probe.port, probe.protocol, budget)
        if published is None:
            return False
        host = _connect_host(published[0], probe.address)
        timeout_s = self.settings.poll_interval_ms / 1000 or None
        try:
            if probe.protocol == "udp":
                loop = asyncio.get_running_loop()
                transport, _ = await asyncio.wait_for(
                    loop.create_datagram_endpoint(
                        asyncio.DatagramProtocol, remote_addr=(host, published[1])
                    ),
                    timeout_s,
                )
                transport.close()
                return True
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, published[1]), timeout_s
            )
            writer.close()
            await writer.wait_closed()
            return True
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("Port %s:%d not reachable: %s", host, published[1], exc)
            return False

    async def _check_process(self, probe: ProcessProbe, budget: float) -> bool:
        listing = await self._blocking(self.command.top, probe.service, timeout=budget)
        return any(probe.process in cmd for cmd in process_commands(listing))

    async def _check_http(self, probe: HttpProbe, budget: float) -> bool:
        published = await self._resolve(probe.service, probe.port, "tcp", budget)
        if published is None:
            return False
        url = f"http://{_connect_host(published[0], None)}:{published[1]}{probe.path}"
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.get(url)
                return resp.status_code < probe.status_below
        except httpx.HTTPError as exc:
            logger.debug("Health check failed for '%s' at %s: %s", probe.service, url, exc)
            return False

    @staticmethod
    def _log_outcome(probe: ReadinessProbe, outcome: ProbeOutcome, attempts: int) -> None:
        level = logging.INFO if outcome is ProbeOutcome.SATISFIED else logging.ERROR
        logger.log(
            level,
            "%s probe for '%s' %s after %d retries",
            probe.kind.value, probe.service, outcome.value, attempts,
        )
