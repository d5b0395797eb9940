# Overview: Service-layer operations for concurrency; row locks and bounded retry.

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry: at most `attempts` tries, sleeping `delay * backoff**n`
    between them. attempts is a hard ceiling.
    """
    attempts: int = 3
    delay: float = 0.05
    backoff: float = 2.0

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    def pause(self, attempt: int) -> None:
        if self.delay:
            time.sleep(self.delay * (self.backoff ** attempt))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()
