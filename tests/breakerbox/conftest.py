from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
import pytest_asyncio

from breakerbox.circuit_breaker import Breaker
from tests.breakerbox.support.fakes import FakeLogger

BreakerFactory = Callable[..., Breaker]


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest_asyncio.fixture
async def make_breaker(fake_logger: FakeLogger) -> AsyncIterator[BreakerFactory]:
    """Build breakers bound to the fake logger and shut them down afterwards."""
    created: list[Breaker] = []

    def _make(
        name: str = "svc",
        timeout: float = 1.0,
        max_concurrent: int = 1,
        probe_interval: float = 0.01,
    ) -> Breaker:
        breaker = Breaker(
            name,
            timeout,
            max_concurrent,
            probe_interval=probe_interval,
            logger=fake_logger,
        )
        created.append(breaker)
        return breaker

    yield _make

    for breaker in created:
        breaker.shutdown()
        await breaker.wait_closed()
