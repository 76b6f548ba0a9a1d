"""Round engine: quorum tracking, proposal folding and threshold decryption."""

from .decryptor import ThresholdDecryptor
from .engine import AggregationRound, RoundPhase, RoundSnapshot, SubmitOutcome, SubmitStatus
from .quorum import QuorumState, QuorumTracker

__all__ = [
    "AggregationRound",
    "QuorumState",
    "QuorumTracker",
    "RoundPhase",
    "RoundSnapshot",
    "SubmitOutcome",
    "SubmitStatus",
    "ThresholdDecryptor",
]
