"""Circuit breaker exceptions.

Callers can distinguish between:
  - Outcome causes carried inside a ``BreakerResult`` (timeout, rejection,
    shutdown, and a command body failure the fallback recovered from). These
    are never raised by the breaker itself.
  - Recovery failures propagated through the result future. Awaiting the
    future raises ``FallbackFailedError`` or ``CleanupFailedError``, chained
    to the exception the callback raised.
"""


class BreakerError(Exception):
    """Base exception for the circuit breaker package.

    Attributes:
        breaker_name: Name of the breaker that produced the error.
    """

    def __init__(self, breaker_name: str, message: str) -> None:
        self.breaker_name = breaker_name
        super().__init__(message)


class CommandTimeoutError(BreakerError):
    """Cause of a timeout result: the command outlived its window.

    Attributes:
        command_name: Name of the abandoned command.
        timeout: Effective timeout in seconds that expired.
    """

    def __init__(self, breaker_name: str, command_name: str, timeout: float) -> None:
        self.command_name = command_name
        self.timeout = timeout
        super().__init__(breaker_name, "task timed out")


class CapacityExceededError(BreakerError):
    """Cause of a rejected result: every concurrency slot was reserved.

    Attributes:
        command_name: Name of the rejected command.
        capacity: Configured maximum concurrent commands.
    """

    def __init__(self, breaker_name: str, command_name: str, capacity: int) -> None:
        self.command_name = command_name
        self.capacity = capacity
        super().__init__(breaker_name, "reached threshold, cannot run your command")


class BreakerShutdownError(BreakerError):
    """Cause of a shutdown result: the breaker no longer accepts work."""

    def __init__(self, breaker_name: str) -> None:
        super().__init__(
            breaker_name,
            "circuit has been permanently shutdown. create a new one",
        )


class CallbackError(BreakerError):
    """Failure of a client callback.

    Attributes:
        command_name: Name of the command whose callback failed.
        callback: Which callback failed (``run``, ``fallback`` or ``cleanup``).
    """

    callback = "run"

    def __init__(self, breaker_name: str, command_name: str) -> None:
        self.command_name = command_name
        super().__init__(
            breaker_name,
            f"{self.callback}_failed: {breaker_name}/{command_name}",
        )


class CommandFailedError(CallbackError):
    """Cause of a failed result: the body raised, fallback and cleanup ran."""

    callback = "run"


class FallbackFailedError(CallbackError):
    """The fallback raised; cleanup was skipped."""

    callback = "fallback"


class CleanupFailedError(CallbackError):
    """The cleanup raised after the fallback completed."""

    callback = "cleanup"
