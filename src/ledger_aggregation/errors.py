"""Error taxonomy shared by the aggregation core and the contract layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminates failures surfaced to callers."""

    SHAPE_MISMATCH = "ShapeMismatch"
    DEGENERATE_INPUT = "DegenerateInput"
    QUORUM_MISMATCH = "QuorumMismatch"
    NOT_FOUND = "NotFound"
    MALFORMED = "Malformed"
    UNAUTHORIZED = "Unauthorized"
    ROUND_CLOSED = "RoundClosed"
    ROUND_NOT_READY = "RoundNotReady"


class AggregationError(RuntimeError):
    """Base class for every failure raised by the aggregation core."""

    kind: ErrorKind = ErrorKind.MALFORMED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ShapeMismatchError(AggregationError):
    """Ciphertexts differ in length, encoding, modulus or scale."""

    kind = ErrorKind.SHAPE_MISMATCH


class DegenerateInputError(AggregationError):
    """The outlier statistic hit an empty vector or a vanishing denominator."""

    kind = ErrorKind.DEGENERATE_INPUT


class QuorumMismatchError(AggregationError):
    """Decryption was attempted with a share count different from the quorum."""

    kind = ErrorKind.QUORUM_MISMATCH


class LedgerNotFoundError(AggregationError):
    """A ledger key (public or private) holds no value."""

    kind = ErrorKind.NOT_FOUND


class MalformedPayloadError(AggregationError):
    """Submitted bytes could not be decoded into the expected document."""

    kind = ErrorKind.MALFORMED


class UnauthorizedProposalError(AggregationError):
    """Proposal endorsement is missing or does not verify."""

    kind = ErrorKind.UNAUTHORIZED


class RoundStateError(AggregationError):
    """Operation is not permitted in the round's current phase."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.ROUND_CLOSED) -> None:
        super().__init__(message)
        self.kind = kind
