# bledriver/runtime/retry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay connect retry policy.

    max_attempts=None retries forever (passive reconnection); a number bounds
    the attempts (interactive actuation).
    """
    delay_s: float
    max_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        if self.delay_s < 0:
            raise ValueError(f"delay_s must be >= 0, got {self.delay_s}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def unbounded(cls, delay_s: float) -> "RetryPolicy":
        return cls(delay_s=float(delay_s))

    @classmethod
    def bounded(cls, max_attempts: int, delay_s: float) -> "RetryPolicy":
        return cls(delay_s=float(delay_s), max_attempts=int(max_attempts))

    @property
    def is_bounded(self) -> bool:
        return self.max_attempts is not None

    def exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts

    def delay_after(self, attempt: int) -> float:
        return self.delay_s
