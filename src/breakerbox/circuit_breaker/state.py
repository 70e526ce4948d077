"""Circuit status primitives."""

import threading
from dataclasses import dataclass
from enum import StrEnum


class CircuitStatus(StrEnum):
    """Circuit status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    SHUTDOWN = "shutdown"


class StatusMachine:
    """Thread-safe holder for the cached circuit status.

    ``SHUTDOWN`` is terminal: once entered, every other transition is ignored.
    Each transition method returns whether the status actually changed.
    """

    def __init__(self) -> None:
        self._status = CircuitStatus.HEALTHY
        self._lock = threading.Lock()

    @property
    def status(self) -> CircuitStatus:
        with self._lock:
            return self._status

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._status == CircuitStatus.SHUTDOWN

    def _transition(self, new: CircuitStatus) -> bool:
        with self._lock:
            if self._status in (CircuitStatus.SHUTDOWN, new):
                return False
            self._status = new
            return True

    def mark_degraded(self) -> bool:
        """Record that an admission attempt was denied."""
        return self._transition(CircuitStatus.DEGRADED)

    def mark_healthy(self) -> bool:
        """Record that a trial reservation found spare capacity."""
        return self._transition(CircuitStatus.HEALTHY)

    def mark_shutdown(self) -> bool:
        """Enter the terminal state. Only the first call returns ``True``."""
        return self._transition(CircuitStatus.SHUTDOWN)


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for logging.

    Attributes:
        name: Breaker name.
        status: Cached circuit status.
        reserved: Slots held by in-flight commands, timed-out ones included.
        capacity: Maximum concurrent commands.
    """

    name: str
    status: CircuitStatus
    reserved: int
    capacity: int

    @property
    def is_shutdown(self) -> bool:
        return self.status == CircuitStatus.SHUTDOWN
