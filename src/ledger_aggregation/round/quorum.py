"""Adaptive quorum bookkeeping for one aggregation round."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class QuorumState:
    required: int
    accepted: int
    initial: int


class QuorumTracker:
    """
    Tracks how many accepted proposals are still needed to close a round.

    Every rejected proposal lowers the target by one so the remaining honest
    clients can still complete the round. The tracker is not thread-safe; the
    owning round serializes access.
    """

    def __init__(self, initial: int) -> None:
        if initial <= 0:
            raise ValueError("initial quorum must be positive")
        self.initial = initial
        self.required = initial
        self.accepted = 0

    def decrement_required(self) -> int:
        """Lower the target by one, flooring at zero. Never closes the round."""
        if self.required > 0:
            self.required -= 1
        return self.required

    def record_accepted(self) -> bool:
        """Count one accepted proposal; True when the target is now met."""
        self.accepted += 1
        return self.accepted == self.required

    @property
    def stalled(self) -> bool:
        """
        True when no further acceptance can make the counts equal.

        This happens when rejections lower the target to or below the number
        already accepted.
        """
        return self.accepted >= self.required

    def reset(self, initial: int | None = None) -> None:
        if initial is not None:
            if initial <= 0:
                raise ValueError("initial quorum must be positive")
            self.initial = initial
        self.required = self.initial
        self.accepted = 0

    def state(self) -> QuorumState:
        return QuorumState(required=self.required, accepted=self.accepted, initial=self.initial)
