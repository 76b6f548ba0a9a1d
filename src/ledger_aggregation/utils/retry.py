"""Backoff helper for ledger collaborators reached over the network."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ledger_aggregation.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger("retry")


class RetryError(Exception):
    """The call kept failing with a retryable exception."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def retry(
    func: Callable[[], T],
    retries: int,
    backoff: float,
    exceptions: Tuple[Type[BaseException], ...],
    sleep: Optional[Callable[[float], None]] = None,
    max_delay: Optional[float] = None,
) -> T:
    """
    Call ``func`` up to ``retries + 1`` times.

    Only ``exceptions`` are retried; the delay starts at ``backoff`` and doubles
    after each failure, capped at ``max_delay`` when given.
    """
    pause = sleep or time.sleep
    delay = backoff
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except exceptions as exc:
            if attempt > retries:
                raise RetryError(attempt, exc) from exc
            logger.warning("Attempt %d/%d failed (%s); retrying in %.2fs", attempt, retries + 1, exc, delay)
            pause(delay)
            delay = delay * 2 if max_delay is None else min(delay * 2, max_delay)
