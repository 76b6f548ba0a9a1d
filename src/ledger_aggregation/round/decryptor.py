"""Threshold decryption: recombine client shares with the private partial."""

from __future__ import annotations

from typing import Optional, Sequence

from ledger_aggregation.crypto.ciphertext import Ciphertext, DecryptionShare
from ledger_aggregation.crypto.codec import encode_ciphertext
from ledger_aggregation.errors import ErrorKind, QuorumMismatchError, RoundStateError
from ledger_aggregation.models.proposal import PlaintextResult
from ledger_aggregation.round.engine import AggregationRound, RoundPhase
from ledger_aggregation.utils import InMemoryMetrics, MetricsSink, Timer, get_logger

logger = get_logger("decryptor")


class ThresholdDecryptor:
    """
    Sums decryption shares, adds the private partial, publishes the result and
    resets the round.

    The share count must equal the round's *current* quorum, which may be lower
    than the configured client count after rejections.
    """

    def __init__(self, round_: AggregationRound, metrics: Optional[MetricsSink] = None) -> None:
        self.round = round_
        self.metrics = metrics if metrics is not None else InMemoryMetrics()

    def check_ready(self, share_count: int) -> None:
        """
        Raise unless a decryption with ``share_count`` shares may run now.

        Caller must hold the round lock for the check to stay valid.
        """
        required = self.round.required_count
        if share_count != required:
            raise QuorumMismatchError(
                f"Share count mismatch: expected {required}, got {share_count}"
            )
        if self.round.phase is not RoundPhase.DECRYPTION_PENDING:
            # Only release_partial enters DecryptionPending, after writing this round's partial.
            raise RoundStateError(
                f"Round {self.round.round_index} is {self.round.phase.value}; release the partial before decrypting",
                kind=ErrorKind.ROUND_NOT_READY,
            )

    def combine(self, shares: Sequence[DecryptionShare], private_partial: Ciphertext) -> PlaintextResult:
        """
        Combine ``shares`` with ``private_partial`` into the plaintext result.

        Raises:
            QuorumMismatchError: ``len(shares)`` differs from the current quorum.
            RoundStateError: the partial for this round has not been released.
            ShapeMismatchError: a share does not match the partial's shape.
        """
        algebra = self.round.algebra
        with self.round.lock:
            self.check_ready(len(shares))
            with Timer(self.metrics, "decrypt_seconds"):
                total = algebra.identity_like(private_partial)
                for share in shares:
                    total = algebra.add(total, share.ciphertext)
                result = algebra.add(total, private_partial)
                self.round.ledger.put(self.round.latest_key, encode_ciphertext(result))
            plaintext = PlaintextResult(
                values=algebra.recover_plaintext(result),
                ciphertext=result,
                round_index=self.round.round_index,
                share_count=len(shares),
            )
            logger.info(
                "Round %d decrypted with %d shares; publishing plaintext under '%s'",
                self.round.round_index,
                len(shares),
                self.round.latest_key,
            )
            self.metrics.emit_counter("decryptions")
            self.round.reset()
            return plaintext
