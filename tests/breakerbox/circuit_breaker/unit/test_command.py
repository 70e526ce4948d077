import asyncio
import threading
from dataclasses import dataclass

import pytest

from breakerbox.circuit_breaker.command import (
    Command,
    invoke_body,
    invoke_callback,
    resolve_timeout,
)
from tests.breakerbox.support.fakes import BlockingCommand, RecordingCommand

pytestmark = pytest.mark.asyncio


@dataclass
class _NoOverride:
    name: str = "plain"

    async def run(self) -> None:
        return None

    def fallback(self) -> None:
        return None

    def cleanup(self) -> None:
        return None


async def test_resolve_timeout_prefers_override() -> None:
    assert resolve_timeout(RecordingCommand(timeout=0.25), 1.0) == 0.25


async def test_resolve_timeout_defaults_when_override_is_none_or_missing() -> None:
    assert resolve_timeout(RecordingCommand(timeout=None), 1.5) == 1.5
    assert resolve_timeout(_NoOverride(), 2.0) == 2.0


async def test_resolve_timeout_rejects_non_positive_override() -> None:
    with pytest.raises(ValueError, match="command timeout must be > 0"):
        resolve_timeout(RecordingCommand(timeout=-1.0), 1.0)


async def test_commands_satisfy_protocol() -> None:
    assert isinstance(RecordingCommand(), Command)
    assert isinstance(BlockingCommand(), Command)
    assert isinstance(_NoOverride(), Command)


async def test_invoke_callback_accepts_sync_and_async() -> None:
    calls: list[str] = []

    def _sync() -> None:
        calls.append("sync")

    async def _async() -> None:
        calls.append("async")

    await invoke_callback(_sync)
    await invoke_callback(_async)

    assert calls == ["sync", "async"]


async def test_invoke_body_runs_blocking_work_on_daemon_thread() -> None:
    seen: list[tuple[str, bool]] = []

    @dataclass
    class _ThreadRecorder(_NoOverride):
        def run(self) -> str:  # type: ignore[override]
            current = threading.current_thread()
            seen.append((current.name, current.daemon))
            return "ok"

    result = await invoke_body(_ThreadRecorder(), thread_name="svc:worker")

    assert result == "ok"
    assert seen == [("svc:worker", True)]


async def test_invoke_body_propagates_blocking_errors() -> None:
    @dataclass
    class _Failing(_NoOverride):
        def run(self) -> None:  # type: ignore[override]
            raise KeyError("missing")

    with pytest.raises(KeyError):
        await invoke_body(_Failing(), thread_name="svc:failing")


async def test_invoke_body_awaits_coroutine_bodies() -> None:
    command = RecordingCommand(delay=0.01)

    await asyncio.wait_for(invoke_body(command, thread_name="unused"), timeout=1.0)

    assert command.calls == ["run"]


async def test_invoke_body_wraps_interpreter_exit_from_blocking_work() -> None:
    command = BlockingCommand(error=SystemExit(3))

    with pytest.raises(RuntimeError, match="command body aborted") as excinfo:
        await asyncio.wait_for(
            invoke_body(command, thread_name="svc:exiting"),
            timeout=1.0,
        )

    assert isinstance(excinfo.value.__cause__, SystemExit)
    assert command.calls == ["run"]
