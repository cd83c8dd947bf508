"""Reconnect delay policy for mailbox sessions."""

from __future__ import annotations

import random
from dataclasses import dataclass

# Any factor > 1 reaches max_delay long before this many doublings
MAX_EXPONENT = 32


@dataclass(frozen=True)
class BackoffPolicy:
    """Capped exponential backoff. There is no attempt limit: sessions retry forever."""

    base_delay: float = 5.0
    max_delay: float = 300.0
    factor: float = 2.0
    jitter: float = 0.0  # fraction of the delay added at random, 0 disables

    def delay_for(self, attempt: int) -> float:
        exponent = min(max(attempt, 0), MAX_EXPONENT)
        delay = min(self.base_delay * (self.factor ** exponent), self.max_delay)
        if self.jitter > 0:
            delay += delay * random.random() * self.jitter
        return delay
