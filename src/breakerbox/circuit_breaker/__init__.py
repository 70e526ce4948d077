"""Bulkhead-style circuit breaker for asyncio services.

Key behavior notes:
  - Admission is decided by live capacity and the shutdown flag only. The
    cached circuit status never rejects work; it feeds the recovery prober and
    log events.
  - A timed-out command is abandoned, not cancelled. Its concurrency slot stays
    reserved until the command really finishes, so a hung dependency keeps
    shedding load after its callers have moved on.
  - Every submission resolves exactly once. Timeout, rejection, shutdown and a
    recovered command failure are result values; only fallback or cleanup
    failures propagate as exceptions.
"""

from breakerbox.circuit_breaker.breaker import Breaker, BreakerConfig
from breakerbox.circuit_breaker.command import Command, TimeoutOverride
from breakerbox.circuit_breaker.exceptions import (
    BreakerError,
    BreakerShutdownError,
    CallbackError,
    CapacityExceededError,
    CleanupFailedError,
    CommandFailedError,
    CommandTimeoutError,
    FallbackFailedError,
)
from breakerbox.circuit_breaker.limiter import ConcurrencyLimiter
from breakerbox.circuit_breaker.result import BreakerResult, Outcome
from breakerbox.circuit_breaker.state import BreakerSnapshot, CircuitStatus

__all__ = [
    "Breaker",
    "BreakerConfig",
    "BreakerError",
    "BreakerResult",
    "BreakerShutdownError",
    "BreakerSnapshot",
    "CallbackError",
    "CapacityExceededError",
    "CircuitStatus",
    "CleanupFailedError",
    "Command",
    "CommandFailedError",
    "CommandTimeoutError",
    "ConcurrencyLimiter",
    "FallbackFailedError",
    "Outcome",
    "TimeoutOverride",
]
