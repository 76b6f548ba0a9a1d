"""
Aggregation round state machine.

A round moves Open -> Closed -> DecryptionPending -> Reset and re-enters Open
for the next round. Every state change happens under the round lock, so a
submit and a decryption never interleave.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ledger_aggregation.crypto.ciphertext import Ciphertext, CiphertextAlgebra
from ledger_aggregation.crypto.codec import encode_ciphertext
from ledger_aggregation.errors import ErrorKind, RoundStateError
from ledger_aggregation.filtering import OutlierFilter
from ledger_aggregation.models.proposal import Proposal
from ledger_aggregation.round.quorum import QuorumTracker
from ledger_aggregation.storage.ledger import LedgerInterface
from ledger_aggregation.utils import InMemoryMetrics, MetricsSink, get_logger

logger = get_logger("round")


class RoundPhase(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    DECRYPTION_PENDING = "DecryptionPending"
    RESET = "Reset"


class SubmitStatus(str, Enum):
    ACCEPTED = "Accepted"
    REJECTED_POISON = "RejectedPoison"
    REJECTED_INCONSISTENT = "RejectedInconsistent"


@dataclass(frozen=True)
class SubmitOutcome:
    status: SubmitStatus
    round_index: int
    required: int
    accepted: int
    closed: bool = False


@dataclass(frozen=True)
class RoundSnapshot:
    round_index: int
    phase: RoundPhase
    required: int
    accepted: int
    initial: int
    has_sum: bool
    stalled: bool = False


class AggregationRound:
    """
    Validates proposals and folds accepted ones into a running ciphertext sum.

    Args:
        algebra: Group operations for the configured ciphertext encoding.
        ledger: Collaborator the aggregate is published to on closure.
        client_count: Quorum every round starts with.
        latest_key: Ledger key of the published aggregate.
        outlier_filter: Poisoning check over the plaintext noisy model.
        metrics: Sink for submission counters and quorum gauges.
    """

    def __init__(
        self,
        algebra: CiphertextAlgebra,
        ledger: LedgerInterface,
        client_count: int = 10,
        latest_key: str = "latest_model",
        outlier_filter: Optional[OutlierFilter] = None,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        self.algebra = algebra
        self.ledger = ledger
        self.latest_key = latest_key
        self.outlier_filter = outlier_filter or OutlierFilter()
        self.metrics = metrics if metrics is not None else InMemoryMetrics()
        self.quorum = QuorumTracker(client_count)
        self.round_index = 0
        self.phase = RoundPhase.OPEN
        self._sum: Optional[Ciphertext] = None
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def required_count(self) -> int:
        return self.quorum.required

    @property
    def accepted_count(self) -> int:
        return self.quorum.accepted

    @property
    def accumulated_sum(self) -> Optional[Ciphertext]:
        """Running total, or None while no proposal has been accepted."""
        return self._sum

    def snapshot(self) -> RoundSnapshot:
        with self._lock:
            state = self.quorum.state()
            return RoundSnapshot(
                round_index=self.round_index,
                phase=self.phase,
                required=state.required,
                accepted=state.accepted,
                initial=state.initial,
                has_sum=self._sum is not None,
                stalled=self.phase is RoundPhase.OPEN and self.quorum.stalled,
            )

    def submit(self, proposal: Proposal) -> SubmitOutcome:
        """
        Validate ``proposal`` and fold it into the round.

        Raises:
            RoundStateError: the round is not accepting proposals.
            ShapeMismatchError: ciphertexts disagree in length or parameters.
            DegenerateInputError: the outlier statistic cannot be evaluated.
        """
        with self._lock:
            if self.phase is not RoundPhase.OPEN:
                raise RoundStateError(
                    f"Round {self.round_index} is {self.phase.value}; not accepting proposals",
                    kind=ErrorKind.ROUND_CLOSED,
                )
            self._check_shapes(proposal)

            # Consistency first: an inconsistent proposal is RejectedInconsistent whatever its noisy model.
            claimed = self.algebra.add(proposal.encrypted_model, proposal.encrypted_noise)
            if not self.algebra.equal(claimed, proposal.encrypted_noisy_model):
                return self._reject(SubmitStatus.REJECTED_INCONSISTENT, proposal)

            if self.outlier_filter.is_anomalous(proposal.noisy_model):
                return self._reject(SubmitStatus.REJECTED_POISON, proposal)

            base = self._sum if self._sum is not None else self.algebra.identity_like(proposal.encrypted_model)
            self._sum = self.algebra.add(base, proposal.encrypted_model)
            closed = self.quorum.record_accepted()
            self._emit(SubmitStatus.ACCEPTED)
            logger.info(
                "Round %d accepted proposal from %s (%d/%d)",
                self.round_index,
                proposal.client_id or "anonymous",
                self.quorum.accepted,
                self.quorum.required,
                extra={"round_index": self.round_index, "client_id": proposal.client_id, "status": "Accepted"},
            )
            if closed:
                self._close()
            return SubmitOutcome(
                status=SubmitStatus.ACCEPTED,
                round_index=self.round_index,
                required=self.quorum.required,
                accepted=self.quorum.accepted,
                closed=closed,
            )

    def _check_shapes(self, proposal: Proposal) -> None:
        self.algebra.check_compatible(proposal.encrypted_model, proposal.encrypted_noise)
        self.algebra.check_compatible(proposal.encrypted_model, proposal.encrypted_noisy_model)
        if self._sum is not None:
            self.algebra.check_compatible(self._sum, proposal.encrypted_model)

    def _reject(self, status: SubmitStatus, proposal: Proposal) -> SubmitOutcome:
        required = self.quorum.decrement_required()
        self._emit(status)
        logger.warning(
            "Round %d rejected proposal from %s: %s; quorum lowered to %d",
            self.round_index,
            proposal.client_id or "anonymous",
            status.value,
            required,
            extra={"round_index": self.round_index, "client_id": proposal.client_id, "status": status.value},
        )
        if self.quorum.stalled:
            logger.warning(
                "Round %d can no longer close: accepted=%d required=%d",
                self.round_index,
                self.quorum.accepted,
                required,
            )
        return SubmitOutcome(
            status=status,
            round_index=self.round_index,
            required=required,
            accepted=self.quorum.accepted,
        )

    def _emit(self, status: SubmitStatus) -> None:
        self.metrics.emit_counter("proposals", status=status.value)
        self.metrics.emit_gauge("required_count", self.quorum.required)
        self.metrics.emit_gauge("accepted_count", self.quorum.accepted)

    def _close(self) -> None:
        self.phase = RoundPhase.CLOSED
        self.metrics.emit_counter("rounds_closed")
        logger.info(
            "Round %d closed with %d accepted proposals",
            self.round_index,
            self.quorum.accepted,
            extra={"round_index": self.round_index},
        )
        self.publish()

    def publish(self) -> None:
        """Write the aggregate to the ledger; collaborator errors propagate."""
        with self._lock:
            if self.phase not in (RoundPhase.CLOSED, RoundPhase.DECRYPTION_PENDING) or self._sum is None:
                raise RoundStateError(
                    f"Round {self.round_index} has no finalized aggregate",
                    kind=ErrorKind.ROUND_NOT_READY,
                )
            self.ledger.put(self.latest_key, encode_ciphertext(self._sum))
            logger.info("Published aggregate for round %d under '%s'", self.round_index, self.latest_key)

    def mark_decryption_pending(self) -> None:
        with self._lock:
            if self.phase is RoundPhase.DECRYPTION_PENDING:
                return
            if self.phase is not RoundPhase.CLOSED:
                raise RoundStateError(
                    f"Round {self.round_index} is {self.phase.value}; aggregate not finalized",
                    kind=ErrorKind.ROUND_NOT_READY,
                )
            self.phase = RoundPhase.DECRYPTION_PENDING
            logger.info("Round %d awaiting decryption shares", self.round_index)

    def reset(self) -> None:
        """Restore the configured quorum and open the next round."""
        with self._lock:
            self.phase = RoundPhase.RESET
            self.quorum.reset()
            self._sum = None
            self.round_index += 1
            self.phase = RoundPhase.OPEN
            self.metrics.emit_gauge("required_count", self.quorum.required)
            self.metrics.emit_gauge("accepted_count", 0)
            logger.info("Round reset; round %d open with quorum %d", self.round_index, self.quorum.required)
