"""Client-side command contract and helpers for invoking it."""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Protocol, cast, runtime_checkable


@runtime_checkable
class Command(Protocol):
    """Unit of work submitted through a breaker.

    ``run`` may be a coroutine function or a plain blocking callable. Blocking
    bodies run on a daemon thread so a hung call can be abandoned on timeout.
    ``fallback`` and ``cleanup`` may be sync or async and should be quick; they
    run on the event loop.

    Implementations must not raise. When they do anyway:
      - ``run`` raising triggers ``fallback`` then ``cleanup`` and yields a
        ``FAILED`` result.
      - ``fallback`` raising skips ``cleanup``; awaiting the result future
        raises ``FallbackFailedError``.
    """

    @property
    def name(self) -> str:
        """Identify the command in log events."""

    def run(self) -> object:
        """Do the actual work."""

    def fallback(self) -> object:
        """Provide default behavior after a timeout or rejection."""

    def cleanup(self) -> object:
        """Release anything the fallback or the abandoned work left behind."""


@runtime_checkable
class TimeoutOverride(Protocol):
    """Optional capability overriding the breaker-wide timeout.

    A ``timeout`` of ``None`` means "use the breaker default".
    """

    @property
    def timeout(self) -> float | None:
        """Return the command timeout in seconds."""


def resolve_timeout(command: object, default: float) -> float:
    """Return the effective timeout in seconds for ``command``.

    Raises:
        ValueError: If the command declares a non-positive timeout.
    """
    if not isinstance(command, TimeoutOverride):
        return default
    override = command.timeout
    if override is None:
        return default
    if override <= 0:
        raise ValueError("command timeout must be > 0")
    return float(override)


async def _run_in_daemon_thread(func: Callable[[], object], *, name: str) -> object:
    """Run a blocking callable in a daemon thread and await its completion.

    The thread is never joined; a body that never returns only leaks the
    thread, not the event loop. A body that exits with a non-``Exception``
    such as ``SystemExit`` surfaces as a ``RuntimeError`` chained to it.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[object] = loop.create_future()

    def _resolve(result: object, error: BaseException | None) -> None:
        if future.done():
            return
        if error is None:
            future.set_result(result)
            return
        if not isinstance(error, Exception):
            aborted = RuntimeError(f"command body aborted with {error!r}")
            aborted.__cause__ = error
            error = aborted
        future.set_exception(error)

    def _run() -> None:
        result: object | None = None
        error: BaseException | None = None
        try:
            result = func()
        except BaseException as exc:
            error = exc
        finally:
            with suppress(RuntimeError):
                loop.call_soon_threadsafe(_resolve, result, error)

    thread = threading.Thread(target=_run, name=name, daemon=True)
    thread.start()
    return await future


async def invoke_body(command: Command, *, thread_name: str) -> object:
    """Run ``command.run`` to completion, offloading blocking bodies."""
    if inspect.iscoroutinefunction(command.run):
        return await command.run()
    return await _run_in_daemon_thread(command.run, name=thread_name)


async def invoke_callback(callback: Callable[[], object]) -> None:
    """Call a sync or async fallback/cleanup callable."""
    result = callback()
    if inspect.isawaitable(result):
        await cast(Awaitable[object], result)
