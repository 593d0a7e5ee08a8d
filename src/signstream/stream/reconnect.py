"""
Reconnect Policy
================

Decides how long to wait before each automatic reconnect attempt.

The default is a fixed delay with unlimited attempts. Under a server outage
every client then retries in lock-step every `base_delay` seconds. The
"exponential" strategy with jitter spreads retries out and must be selected
explicitly.

Formulas:
    fixed:       delay = base_delay
    exponential: delay = min(max_delay, base_delay * 2 ** (attempt - 1))
    jitter:      delay *= uniform(1 - jitter, 1 + jitter), clamped to max_delay
"""

import random
from dataclasses import dataclass
from typing import Callable, Literal, Optional


@dataclass(frozen=True)
class ReconnectPolicy:
    """
    Reconnect timing and attempt budget.

    Attributes:
        base_delay: Seconds before the first retry
        strategy: "fixed" or "exponential"
        max_delay: Upper bound for any single delay
        jitter: Relative jitter in [0, 1)
        max_attempts: Consecutive failed attempts allowed (0 = unlimited)
    """

    base_delay: float = 3.0
    strategy: Literal["fixed", "exponential"] = "fixed"
    max_delay: float = 30.0
    jitter: float = 0.0
    max_attempts: int = 0

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0 <= self.jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.strategy not in ("fixed", "exponential"):
            raise ValueError(f"Unknown reconnect strategy: {self.strategy}")

    def allows(self, attempt: int) -> bool:
        """Whether the given 1-based attempt is within budget."""
        return self.max_attempts == 0 or attempt <= self.max_attempts

    def delay_for(
        self,
        attempt: int,
        rand: Optional[Callable[[float, float], float]] = None,
    ) -> float:
        """
        Delay before the given 1-based attempt.

        Args:
            attempt: Attempt number, starting at 1
            rand: uniform(a, b) source, defaults to random.uniform
        """
        if attempt < 1:
            raise ValueError("attempt must be >= 1")

        if self.strategy == "fixed":
            delay = self.base_delay
        else:
            delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))

        if self.jitter:
            uniform = rand or random.uniform
            delay *= uniform(1 - self.jitter, 1 + self.jitter)
            delay = min(delay, self.max_delay)

        return delay
