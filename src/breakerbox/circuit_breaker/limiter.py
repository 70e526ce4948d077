"""Fixed-capacity, non-blocking concurrency limiter."""

import threading


class ConcurrencyLimiter:
    """Grant or deny reservations against a fixed capacity.

    There is no blocking acquire: callers that cannot reserve a slot are turned
    away, never queued. The lock only guards the counter and is never held
    across an ``await``.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._reserved = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def reserved(self) -> int:
        with self._lock:
            return self._reserved

    @property
    def available(self) -> int:
        with self._lock:
            return self._capacity - self._reserved

    def try_reserve(self) -> bool:
        """Reserve one slot if capacity remains."""
        with self._lock:
            if self._reserved >= self._capacity:
                return False
            self._reserved += 1
            return True

    def release(self) -> None:
        """Return one previously reserved slot.

        Raises:
            RuntimeError: If no reservation is outstanding.
        """
        with self._lock:
            if self._reserved == 0:
                raise RuntimeError("release() called without a reservation")
            self._reserved -= 1
