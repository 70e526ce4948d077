import threading

import pytest

from breakerbox.circuit_breaker import ConcurrencyLimiter


def test_try_reserve_respects_capacity() -> None:
    limiter = ConcurrencyLimiter(2)

    assert limiter.try_reserve() is True
    assert limiter.try_reserve() is True
    assert limiter.try_reserve() is False
    assert limiter.reserved == 2
    assert limiter.available == 0

    limiter.release()
    assert limiter.available == 1
    assert limiter.try_reserve() is True


def test_release_without_reservation_raises() -> None:
    limiter = ConcurrencyLimiter(1)

    with pytest.raises(RuntimeError, match="without a reservation"):
        limiter.release()


def test_rejects_invalid_capacity() -> None:
    with pytest.raises(ValueError, match="capacity"):
        ConcurrencyLimiter(0)


def test_concurrent_threads_never_exceed_capacity() -> None:
    limiter = ConcurrencyLimiter(5)
    barrier = threading.Barrier(32)
    granted: list[bool] = []
    granted_lock = threading.Lock()

    def _reserve() -> None:
        barrier.wait()
        ok = limiter.try_reserve()
        with granted_lock:
            granted.append(ok)

    threads = [threading.Thread(target=_reserve) for _ in range(32)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert granted.count(True) == 5
    assert limiter.reserved == 5


def test_reserve_release_churn_keeps_invariant() -> None:
    limiter = ConcurrencyLimiter(3)
    violations: list[int] = []

    def _churn() -> None:
        for _ in range(500):
            if limiter.try_reserve():
                reserved = limiter.reserved
                if reserved > limiter.capacity:
                    violations.append(reserved)
                limiter.release()

    threads = [threading.Thread(target=_churn) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert violations == []
    assert limiter.reserved == 0
