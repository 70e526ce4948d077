"""Background recovery prober for degraded circuits."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress

from breakerbox.circuit_breaker.limiter import ConcurrencyLimiter
from breakerbox.circuit_breaker.state import CircuitStatus, StatusMachine
from breakerbox.logging import StructuredLogger, StdlibLogger, log_info

PROBE_REPAIRED = "repaired"
PROBE_STILL_DEGRADED = "still_degraded"
PROBE_IDLE = "idle"
PROBE_STOPPED = "stopped"


def build_interruptible_sleep(
    stop_event: asyncio.Event,
) -> Callable[[float], Awaitable[None]]:
    """Build an async sleep that exits early when shutdown is requested."""

    async def _interruptible_sleep(delay: float) -> None:
        if stop_event.is_set():
            return

        bounded_delay = max(delay, 0.0)
        with suppress(TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=bounded_delay)

    return _interruptible_sleep


def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class RecoveryProber:
    """Periodically test for spare capacity and clear ``DEGRADED`` status.

    The prober only ever takes a reservation to release it immediately; it
    never interacts with in-flight commands.
    """

    def __init__(
        self,
        *,
        name: str,
        limiter: ConcurrencyLimiter,
        status: StatusMachine,
        interval_seconds: float,
        logger: StructuredLogger | StdlibLogger,
    ) -> None:
        """Bind the prober to one breaker's limiter and status.

        Args:
            name: Breaker name used in log events.
            limiter: Limiter whose spare capacity is probed.
            status: Status machine updated by probe outcomes.
            interval_seconds: Delay between probe ticks.
            logger: Structured logger receiving probe events.
        """
        self._name = name
        self._limiter = limiter
        self._status = status
        self._interval_seconds = interval_seconds
        self._logger = logger
        self._stop_event = asyncio.Event()
        self._sleep = build_interruptible_sleep(self._stop_event)
        self._task: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def probe_once(self) -> str:
        """Run one probe tick and return what it did."""
        if self._status.is_shutdown:
            return PROBE_STOPPED
        if self._status.status != CircuitStatus.DEGRADED:
            return PROBE_IDLE

        if not self._limiter.try_reserve():
            log_info(
                self._logger,
                "breaker.circuit.still_degraded",
                breaker=self._name,
                reserved=self._limiter.reserved,
                capacity=self._limiter.capacity,
            )
            return PROBE_STILL_DEGRADED

        self._limiter.release()
        self._status.mark_healthy()
        log_info(
            self._logger,
            "breaker.circuit.repaired",
            breaker=self._name,
            reserved=self._limiter.reserved,
            capacity=self._limiter.capacity,
        )
        return PROBE_REPAIRED

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self._sleep(self._interval_seconds)
            if self.probe_once() == PROBE_STOPPED:
                return

    def start(self) -> None:
        """Start the probe loop on the running event loop if not running."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(
            self._run(),
            name=f"circuit_breaker:{self._name}:prober",
        )

    def stop(self) -> None:
        """Ask the probe loop to exit at its next wake-up.

        May be called from any thread; off the loop thread the stop event is
        set through ``call_soon_threadsafe``.
        """
        loop = self._loop
        if loop is None or _on_loop_thread(loop):
            self._stop_event.set()
            return
        with suppress(RuntimeError):
            loop.call_soon_threadsafe(self._stop_event.set)

    async def wait_stopped(self) -> None:
        """Await probe loop termination after ``stop()``."""
        task = self._task
        if task is None:
            return
        grace_seconds = max(self._interval_seconds, 0.01) + 5.0
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=grace_seconds)
        except TimeoutError:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
