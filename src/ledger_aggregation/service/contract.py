"""
Caller-facing aggregation contract.

Translates wire payloads into round operations and every core failure into a
discriminated ``{status, message}`` response. Nothing here raises for a bad
request; collaborator I/O failures are the only exceptions that escape.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ledger_aggregation.config.models import AppConfig, EngineConfig, LedgerBackend, LedgerConfig
from ledger_aggregation.crypto.ciphertext import CiphertextAlgebra, build_algebra
from ledger_aggregation.crypto.codec import (
    decode_ciphertext,
    decode_proposal,
    decode_real_component,
    decode_share,
    encode_ciphertext,
    encode_real_component,
)
from ledger_aggregation.crypto.sign import load_public_keys, verify_proposal
from ledger_aggregation.errors import (
    AggregationError,
    LedgerNotFoundError,
    MalformedPayloadError,
    UnauthorizedProposalError,
)
from ledger_aggregation.filtering import OutlierFilter
from ledger_aggregation.models.proposal import Proposal
from ledger_aggregation.round import AggregationRound, RoundPhase, ThresholdDecryptor
from ledger_aggregation.storage.ledger import GatewayLedger, LedgerInterface, MockLedger
from ledger_aggregation.utils import InMemoryMetrics, MetricsSink, get_logger

logger = get_logger("contract")

SUCCESS = "Success"


@dataclass(frozen=True)
class ContractResponse:
    """Discriminated result returned by every contract operation."""

    status: str
    message: str = ""
    payload: Optional[bytes] = None
    plaintext: Optional[List[float]] = None

    @property
    def ok(self) -> bool:
        return self.status in (SUCCESS, "Accepted")

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"status": self.status, "message": self.message}
        if self.payload is not None:
            body["payload"] = base64.b64encode(self.payload).decode("ascii")
        if self.plaintext is not None:
            body["plaintext"] = self.plaintext
        return body


def _error(exc: AggregationError) -> ContractResponse:
    return ContractResponse(status=exc.kind.value, message=exc.message)


def build_ledger(config: LedgerConfig) -> LedgerInterface:
    if config.backend == LedgerBackend.GATEWAY:
        return GatewayLedger(
            gateway_url=config.gateway_url,
            timeout=config.timeout_seconds,
            retries=config.retries,
            backoff=config.backoff_seconds,
        )
    if config.backend == LedgerBackend.FILE:
        return MockLedger(storage_path=config.storage_path)
    return MockLedger()


class AggregationContract:
    """
    Hosts one aggregation round and exposes submit/query/release/decrypt.

    Args:
        config: Engine parameters.
        ledger: Ledger collaborator for public and private state.
        client_keys: Client id to raw Ed25519 public key, for endorsement.
        metrics: Metrics sink shared by the round and the decryptor.
        rescale: Scheme-specific rescale hook for the scaled encoding.
    """

    def __init__(
        self,
        config: EngineConfig,
        ledger: LedgerInterface,
        client_keys: Optional[Mapping[str, bytes]] = None,
        metrics: Optional[MetricsSink] = None,
        rescale: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.client_keys: Dict[str, bytes] = dict(client_keys or {})
        self.metrics = metrics if metrics is not None else InMemoryMetrics()
        self.algebra: CiphertextAlgebra = build_algebra(
            config.encoding,
            modulus=config.modulus,
            scale=config.scale,
            tolerance=config.equality_tolerance,
            rescale=rescale,
        )
        self.round = AggregationRound(
            self.algebra,
            ledger,
            client_count=config.client_count,
            latest_key=config.latest_key,
            outlier_filter=OutlierFilter(epsilon=config.degenerate_epsilon),
            metrics=self.metrics,
        )
        self.decryptor = ThresholdDecryptor(self.round, metrics=self.metrics)

    @classmethod
    def from_config(cls, config: AppConfig, metrics: Optional[MetricsSink] = None) -> "AggregationContract":
        client_keys: Dict[str, bytes] = {}
        if config.service.client_keys_dir:
            client_keys = load_public_keys(Path(config.service.client_keys_dir))
            logger.info("Loaded %d client public keys", len(client_keys))
        return cls(config.engine, build_ledger(config.ledger), client_keys=client_keys, metrics=metrics)

    def _authorize(self, proposal: Proposal) -> None:
        if not self.config.require_signatures and proposal.signature is None:
            return
        public_key = self.client_keys.get(proposal.client_id) if proposal.client_id else None
        if public_key is None:
            raise UnauthorizedProposalError(f"Unknown client '{proposal.client_id}'")
        if not verify_proposal(public_key, proposal):
            raise UnauthorizedProposalError(f"Signature from '{proposal.client_id}' does not verify")

    def submit(self, payload: bytes) -> ContractResponse:
        """Decode, authorize and submit one proposal."""
        try:
            proposal = decode_proposal(payload)
            self._authorize(proposal)
            outcome = self.round.submit(proposal)
        except AggregationError as exc:
            logger.warning("Proposal not processed: %s (%s)", exc.message, exc.kind.value)
            self.metrics.emit_counter("proposals", status=exc.kind.value)
            return _error(exc)
        message = f"round={outcome.round_index} accepted={outcome.accepted} required={outcome.required}"
        if outcome.closed:
            message += f"; aggregate published under '{self.config.latest_key}'"
        return ContractResponse(status=outcome.status.value, message=message)

    def query_latest(self, key: str) -> ContractResponse:
        """Read published state under ``key``."""
        if not key:
            return _error(MalformedPayloadError("Key cannot be empty"))
        value = self.ledger.get(key)
        if value is None:
            return _error(LedgerNotFoundError(f"No value under '{key}'"))
        return ContractResponse(status=SUCCESS, payload=value)

    def release_partial(self, key: Optional[str] = None) -> ContractResponse:
        """
        Move the aggregate's real component into the private collection.

        Returns the imaginary component publicly so clients can compute their
        decryption shares; the round moves to DecryptionPending.
        """
        key = key or self.config.latest_key
        with self.round.lock:
            value = self.ledger.get(key)
            if value is None:
                return _error(LedgerNotFoundError(f"No value under '{key}'"))
            try:
                aggregate = decode_ciphertext(value)
                private_partial, public_component = self.algebra.split_partial(aggregate)
            except AggregationError as exc:
                return _error(exc)
            self.ledger.put_private(
                self.config.private_collection,
                key,
                encode_real_component(self.algebra.recover_plaintext(private_partial)),
            )
            if key == self.config.latest_key and self.round.phase is RoundPhase.CLOSED:
                self.round.mark_decryption_pending()
            logger.info("Released private partial for '%s'", key)
            return ContractResponse(status=SUCCESS, payload=encode_real_component(public_component))

    def decrypt(self, shares: Sequence[bytes]) -> ContractResponse:
        """Combine decryption shares with the stored private partial."""
        with self.round.lock:
            try:
                decoded = [decode_share(share) for share in shares]
                self.decryptor.check_ready(len(decoded))
                raw = self.ledger.get_private(self.config.private_collection, self.config.latest_key)
                if raw is None:
                    raise LedgerNotFoundError(
                        f"No private partial in '{self.config.private_collection}' for '{self.config.latest_key}'"
                    )
                try:
                    partial = self.algebra.partial_from_real(decode_real_component(raw))
                except (ValueError, OverflowError) as exc:
                    raise MalformedPayloadError(f"Stored private partial is unusable: {exc}") from exc
                result = self.decryptor.combine(decoded, partial)
            except AggregationError as exc:
                logger.warning("Decryption refused: %s (%s)", exc.message, exc.kind.value)
                return _error(exc)
        return ContractResponse(
            status=SUCCESS,
            message=f"round={result.round_index} shares={result.share_count}",
            payload=encode_ciphertext(result.ciphertext),
            plaintext=result.to_list(),
        )

    def status(self) -> Dict[str, Any]:
        snap = self.round.snapshot()
        return {
            "round_index": snap.round_index,
            "phase": snap.phase.value,
            "required": snap.required,
            "accepted": snap.accepted,
            "initial": snap.initial,
            "stalled": snap.stalled,
            "encoding": self.config.encoding.value,
        }
