"""Terminal outcome of one breaker submission."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from breakerbox.circuit_breaker.exceptions import (
    BreakerError,
    BreakerShutdownError,
    CapacityExceededError,
    CommandFailedError,
    CommandTimeoutError,
)


class Outcome(StrEnum):
    """Outcome tags delivered through the result future."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    SHUTDOWN = "shutdown"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class BreakerResult:
    """Exactly-once outcome of a submitted command.

    Attributes:
        outcome: Which terminal outcome occurred. ``FAILED`` means the command
            body raised and fallback plus cleanup then ran to completion.
        cause: Underlying error for non-success outcomes, ``None`` on success.
    """

    outcome: Outcome
    cause: BreakerError | None = None

    def __post_init__(self) -> None:
        if self.outcome == Outcome.SUCCESS and self.cause is not None:
            raise ValueError("success results must not carry a cause")
        if self.outcome != Outcome.SUCCESS and self.cause is None:
            raise ValueError(f"{self.outcome} results require a cause")

    @classmethod
    def succeeded(cls) -> BreakerResult:
        return cls(Outcome.SUCCESS)

    @classmethod
    def timed_out_with(cls, cause: CommandTimeoutError) -> BreakerResult:
        return cls(Outcome.TIMEOUT, cause)

    @classmethod
    def rejected_with(cls, cause: CapacityExceededError) -> BreakerResult:
        return cls(Outcome.REJECTED, cause)

    @classmethod
    def failed_with(cls, cause: CommandFailedError) -> BreakerResult:
        return cls(Outcome.FAILED, cause)

    @classmethod
    def shut_down_with(cls, cause: BreakerShutdownError) -> BreakerResult:
        return cls(Outcome.SHUTDOWN, cause)

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.outcome == Outcome.TIMEOUT

    @property
    def rejected(self) -> bool:
        return self.outcome == Outcome.REJECTED

    @property
    def is_shutdown(self) -> bool:
        return self.outcome == Outcome.SHUTDOWN

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILED

    def raise_for_outcome(self) -> None:
        """Raise the cause unless the command succeeded."""
        if self.cause is not None:
            raise self.cause
