"""Core breaker implementation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from breakerbox.circuit_breaker.command import (
    Command,
    invoke_body,
    invoke_callback,
    resolve_timeout,
)
from breakerbox.circuit_breaker.exceptions import (
    BreakerShutdownError,
    CallbackError,
    CapacityExceededError,
    CleanupFailedError,
    CommandFailedError,
    CommandTimeoutError,
    FallbackFailedError,
)
from breakerbox.circuit_breaker.limiter import ConcurrencyLimiter
from breakerbox.circuit_breaker.prober import RecoveryProber
from breakerbox.circuit_breaker.result import BreakerResult
from breakerbox.circuit_breaker.state import (
    BreakerSnapshot,
    CircuitStatus,
    StatusMachine,
)
from breakerbox.logging import (
    StdlibLogger,
    StructuredLogger,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if TYPE_CHECKING:
    from breakerbox.settings import BreakerSettings

DEFAULT_PROBE_INTERVAL = 0.1


@dataclass(slots=True)
class BreakerConfig:
    """Breaker configuration values.

    Attributes:
        timeout: Default seconds a command may run before it is abandoned.
        max_concurrent: Maximum commands executing at once.
        probe_interval: Seconds between recovery probe ticks.
    """

    timeout: float
    max_concurrent: int
    probe_interval: float = DEFAULT_PROBE_INTERVAL

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if self.probe_interval <= 0:
            raise ValueError("probe_interval must be > 0")


def _deliver(future: asyncio.Future[BreakerResult], result: BreakerResult) -> None:
    if not future.done():
        future.set_result(result)


def _fail(future: asyncio.Future[BreakerResult], error: CallbackError) -> None:
    if not future.done():
        future.set_exception(error)


def _cancel_if_pending(
    future: asyncio.Future[BreakerResult],
    pipeline: asyncio.Task[None],
) -> None:
    if not future.done():
        future.cancel()


def _body_error(work: asyncio.Task[object]) -> BaseException | None:
    if work.cancelled():
        return asyncio.CancelledError("command body was cancelled")
    return work.exception()


class Breaker:
    """Bulkhead with timeout isolation and background recovery probing.

    Admission is decided only by live capacity and the shutdown flag. The
    cached ``status`` never rejects work on its own; it records whether the
    breaker recently ran out of capacity and drives the recovery prober.

    A breaker must be created inside a running event loop, since the prober
    starts immediately. ``execute`` must be called from that loop's thread;
    other threads can submit with ``asyncio.run_coroutine_threadsafe``.
    ``shutdown`` may be called from any thread.
    """

    def __init__(
        self,
        name: str,
        timeout: float,
        max_concurrent: int,
        *,
        probe_interval: float = DEFAULT_PROBE_INTERVAL,
        logger: StructuredLogger | StdlibLogger | None = None,
    ) -> None:
        """Build a breaker and start its recovery prober.

        Args:
            name: Breaker name used in log events and task names.
            timeout: Default command timeout in seconds.
            max_concurrent: Maximum commands executing at once.
            probe_interval: Seconds between recovery probe ticks.
            logger: Structured event sink. Defaults to a structlog logger.

        Raises:
            ValueError: If any configuration value is out of range.
            RuntimeError: If no event loop is running.
        """
        self.name = name
        self.config = BreakerConfig(
            timeout=timeout,
            max_concurrent=max_concurrent,
            probe_interval=probe_interval,
        )
        self._logger = get_logger(__name__) if logger is None else logger
        self._limiter = ConcurrencyLimiter(max_concurrent)
        self._status = StatusMachine()
        self._pipelines: set[asyncio.Task[None]] = set()
        self._inflight: set[asyncio.Task[object]] = set()
        self._prober = RecoveryProber(
            name=name,
            limiter=self._limiter,
            status=self._status,
            interval_seconds=probe_interval,
            logger=self._logger,
        )
        self._prober.start()
        log_info(
            self._logger,
            "breaker.started",
            breaker=name,
            timeout_seconds=timeout,
            capacity=max_concurrent,
            probe_interval_seconds=probe_interval,
        )

    @classmethod
    def from_config(
        cls,
        name: str,
        config: BreakerConfig,
        *,
        logger: StructuredLogger | StdlibLogger | None = None,
    ) -> Breaker:
        return cls(
            name,
            config.timeout,
            config.max_concurrent,
            probe_interval=config.probe_interval,
            logger=logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: BreakerSettings,
        *,
        logger: StructuredLogger | StdlibLogger | None = None,
    ) -> Breaker:
        return cls.from_config(
            settings.breaker_name,
            settings.breaker_config(),
            logger=logger,
        )

    @property
    def status(self) -> CircuitStatus:
        return self._status.status

    @property
    def is_shutdown(self) -> bool:
        return self._status.is_shutdown

    @property
    def reserved(self) -> int:
        return self._limiter.reserved

    @property
    def capacity(self) -> int:
        return self._limiter.capacity

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            name=self.name,
            status=self._status.status,
            reserved=self._limiter.reserved,
            capacity=self._limiter.capacity,
        )

    def execute(self, command: Command) -> asyncio.Future[BreakerResult]:
        """Submit ``command`` and return a future resolving to its outcome.

        The admission decision is made before this method returns; the work
        itself runs concurrently. A command body that raises yields a ``FAILED``
        result once fallback and cleanup ran. Awaiting the future raises
        ``FallbackFailedError`` or ``CleanupFailedError`` only when one of
        those recovery callbacks failed.

        Raises:
            ValueError: If the command declares a non-positive timeout.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[BreakerResult] = loop.create_future()
        command_name = command.name

        if self._status.is_shutdown:
            log_info(
                self._logger,
                "breaker.command.shutdown_rejected",
                breaker=self.name,
                command=command_name,
            )
            cause = BreakerShutdownError(self.name)
            _deliver(future, BreakerResult.shut_down_with(cause))
            return future

        timeout = resolve_timeout(command, self.config.timeout)
        if not self._limiter.try_reserve():
            if self._status.mark_degraded():
                log_warning(
                    self._logger,
                    "breaker.circuit.degraded",
                    breaker=self.name,
                    capacity=self._limiter.capacity,
                )
            self._spawn(self._reject(command, future), future, command_name)
            return future

        work = self._start_work(command)
        self._spawn(self._race(command, work, timeout, future), future, command_name)
        return future

    async def call(self, command: Command) -> BreakerResult:
        """Submit ``command`` and await its outcome."""
        return await self.execute(command)

    def shutdown(self) -> None:
        """Permanently stop accepting work.

        Idempotent and safe to call from any thread.
        """
        if not self._status.mark_shutdown():
            return
        self._prober.stop()
        log_info(
            self._logger,
            "breaker.shutdown",
            breaker=self.name,
            reserved=self._limiter.reserved,
        )

    async def wait_closed(self) -> None:
        """Await recovery prober termination after ``shutdown()``."""
        await self._prober.wait_stopped()

    def _spawn(
        self,
        coro: Coroutine[Any, Any, None],
        future: asyncio.Future[BreakerResult],
        command_name: str,
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            coro,
            name=f"circuit_breaker:{self.name}:{command_name}",
        )
        self._pipelines.add(task)
        task.add_done_callback(self._pipelines.discard)
        task.add_done_callback(partial(_cancel_if_pending, future))

    async def _recover(
        self,
        command: Command,
        future: asyncio.Future[BreakerResult],
    ) -> bool:
        """Run fallback then cleanup.

        Returns ``False`` once a callback raised, after failing ``future`` with
        the matching ``CallbackError``. A fallback failure skips cleanup.
        Aborts that are not ``Exception`` subclasses still fail the future
        before they propagate.
        """
        steps: tuple[tuple[Callable[[], object], type[CallbackError]], ...] = (
            (command.fallback, FallbackFailedError),
            (command.cleanup, CleanupFailedError),
        )
        for callback, error_type in steps:
            try:
                await invoke_callback(callback)
            except BaseException as exc:
                failure = error_type(self.name, command.name)
                failure.__cause__ = exc
                _fail(future, failure)
                if not isinstance(exc, Exception):
                    raise
                return False
        return True

    async def _reject(
        self,
        command: Command,
        future: asyncio.Future[BreakerResult],
    ) -> None:
        log_warning(
            self._logger,
            "breaker.command.rejected",
            breaker=self.name,
            command=command.name,
            capacity=self._limiter.capacity,
        )
        if not await self._recover(command, future):
            return
        cause = CapacityExceededError(self.name, command.name, self._limiter.capacity)
        _deliver(future, BreakerResult.rejected_with(cause))

    def _start_work(self, command: Command) -> asyncio.Task[object]:
        command_name = command.name
        work = asyncio.get_running_loop().create_task(
            invoke_body(command, thread_name=f"{self.name}:{command_name}"),
            name=f"circuit_breaker:{self.name}:{command_name}:run",
        )
        self._inflight.add(work)
        work.add_done_callback(self._release_slot)
        return work

    async def _race(
        self,
        command: Command,
        work: asyncio.Task[object],
        timeout: float,
        future: asyncio.Future[BreakerResult],
    ) -> None:
        command_name = command.name
        done, _ = await asyncio.wait((work,), timeout=timeout)
        if work in done:
            error = _body_error(work)
            if error is None:
                _deliver(future, BreakerResult.succeeded())
                return
            log_error(
                self._logger,
                "breaker.command.failed",
                breaker=self.name,
                command=command_name,
                error=repr(error),
            )
            if not await self._recover(command, future):
                return
            failure = CommandFailedError(self.name, command_name)
            failure.__cause__ = error
            _deliver(future, BreakerResult.failed_with(failure))
            return

        work.add_done_callback(partial(self._log_late_failure, command_name))
        log_warning(
            self._logger,
            "breaker.command.timed_out",
            breaker=self.name,
            command=command_name,
            timeout_seconds=timeout,
        )
        if not await self._recover(command, future):
            return
        cause = CommandTimeoutError(self.name, command_name, timeout)
        _deliver(future, BreakerResult.timed_out_with(cause))

    def _release_slot(self, work: asyncio.Task[object]) -> None:
        self._inflight.discard(work)
        self._limiter.release()

    def _log_late_failure(self, command_name: str, work: asyncio.Task[object]) -> None:
        if work.cancelled():
            return
        error = work.exception()
        if error is None:
            return
        log_error(
            self._logger,
            "breaker.command.late_failure",
            breaker=self.name,
            command=command_name,
            error=repr(error),
        )
