"""
JSON wire codec for ciphertexts, decryption shares and proposals.

Encoded ciphertexts must round-trip exactly through the ledger, so integers
are emitted as JSON integers and complex coefficients as ``[re, im]`` pairs of
Python floats (whose ``repr`` is lossless).
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, ValidationError

from ledger_aggregation.crypto.ciphertext import (
    Ciphertext,
    DecryptionShare,
    RingCiphertext,
    ScaledCiphertext,
)
from ledger_aggregation.errors import MalformedPayloadError
from ledger_aggregation.models.proposal import Proposal


class RingDocument(BaseModel):
    encoding: Literal["ring"]
    modulus: int
    real: List[int]
    imag: List[int]


class ScaledDocument(BaseModel):
    encoding: Literal["scaled"]
    scale: float
    values: List[Tuple[float, float]]


CiphertextDocument = Annotated[Union[RingDocument, ScaledDocument], Field(discriminator="encoding")]


class ShareDocument(BaseModel):
    client_id: Optional[str] = None
    share: CiphertextDocument


class ProposalDocument(BaseModel):
    client_id: Optional[str] = None
    signature: Optional[str] = None
    noisy_model: List[float]
    encrypted_model: CiphertextDocument
    encrypted_noise: CiphertextDocument
    encrypted_noisy_model: CiphertextDocument


def ciphertext_to_dict(ct: Ciphertext) -> Dict[str, Any]:
    if isinstance(ct, RingCiphertext):
        return {
            "encoding": "ring",
            "modulus": ct.modulus,
            "real": [int(v) for v in ct.real],
            "imag": [int(v) for v in ct.imag],
        }
    if isinstance(ct, ScaledCiphertext):
        return {
            "encoding": "scaled",
            "scale": ct.scale,
            "values": [[float(v.real), float(v.imag)] for v in ct.values],
        }
    raise TypeError(f"Unsupported ciphertext type {type(ct).__name__}")


def _from_document(doc: Union[RingDocument, ScaledDocument]) -> Ciphertext:
    try:
        if isinstance(doc, RingDocument):
            return RingCiphertext(real=doc.real, imag=doc.imag, modulus=doc.modulus)
        values = np.array([complex(re, im) for re, im in doc.values], dtype=np.complex128)
        return ScaledCiphertext(values=values, scale=doc.scale)
    except (ValueError, OverflowError) as exc:
        # Bad modulus/scale or coefficients outside int64; length mismatches raise ShapeMismatchError.
        raise MalformedPayloadError(str(exc)) from exc


def ciphertext_from_dict(data: Any) -> Ciphertext:
    try:
        holder = ShareDocument.model_validate({"share": data})
    except ValidationError as exc:
        raise MalformedPayloadError(f"Invalid ciphertext document: {exc}") from exc
    return _from_document(holder.share)


def encode_ciphertext(ct: Ciphertext) -> bytes:
    return json.dumps(ciphertext_to_dict(ct), separators=(",", ":")).encode("utf-8")


def _load_json(data: bytes | str) -> Any:
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise MalformedPayloadError(f"Payload is not valid JSON: {exc}") from exc


def decode_ciphertext(data: bytes | str) -> Ciphertext:
    return ciphertext_from_dict(_load_json(data))


def encode_share(share: DecryptionShare) -> bytes:
    doc = {"client_id": share.client_id, "share": ciphertext_to_dict(share.ciphertext)}
    return json.dumps(doc, separators=(",", ":")).encode("utf-8")


def decode_share(data: bytes | str) -> DecryptionShare:
    """
    Decode one share.

    Accepts either ``{"client_id": ..., "share": <ciphertext>}`` or a bare
    ciphertext document.
    """
    raw = _load_json(data)
    if isinstance(raw, dict) and "share" in raw:
        try:
            doc = ShareDocument.model_validate(raw)
        except ValidationError as exc:
            raise MalformedPayloadError(f"Invalid share document: {exc}") from exc
        return DecryptionShare(ciphertext=_from_document(doc.share), client_id=doc.client_id)
    return DecryptionShare(ciphertext=ciphertext_from_dict(raw))


def encode_real_component(values: np.ndarray) -> bytes:
    if np.issubdtype(values.dtype, np.integer):
        items: List[Any] = [int(v) for v in values]
    else:
        items = [float(v) for v in values]
    return json.dumps(items, separators=(",", ":")).encode("utf-8")


def decode_real_component(data: bytes | str) -> List[Union[int, float]]:
    raw = _load_json(data)
    if not isinstance(raw, list) or not all(isinstance(v, (int, float)) for v in raw):
        raise MalformedPayloadError("Private partial must be a JSON list of numbers")
    return raw


def proposal_signing_payload(
    noisy_model: Sequence[float],
    encrypted_model: Ciphertext,
    encrypted_noise: Ciphertext,
    encrypted_noisy_model: Ciphertext,
    client_id: Optional[str],
) -> bytes:
    """Canonical bytes an endorsing client signs."""
    doc = {
        "client_id": client_id,
        "noisy_model": [float(v) for v in noisy_model],
        "encrypted_model": ciphertext_to_dict(encrypted_model),
        "encrypted_noise": ciphertext_to_dict(encrypted_noise),
        "encrypted_noisy_model": ciphertext_to_dict(encrypted_noisy_model),
    }
    return json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")


def encode_proposal(proposal: Proposal) -> bytes:
    doc: Dict[str, Any] = {
        "noisy_model": [float(v) for v in proposal.noisy_model],
        "encrypted_model": ciphertext_to_dict(proposal.encrypted_model),
        "encrypted_noise": ciphertext_to_dict(proposal.encrypted_noise),
        "encrypted_noisy_model": ciphertext_to_dict(proposal.encrypted_noisy_model),
    }
    if proposal.client_id is not None:
        doc["client_id"] = proposal.client_id
    if proposal.signature is not None:
        doc["signature"] = proposal.signature.hex()
    return json.dumps(doc, separators=(",", ":")).encode("utf-8")


def decode_proposal(data: bytes | str) -> Proposal:
    raw = _load_json(data)
    try:
        doc = ProposalDocument.model_validate(raw)
    except ValidationError as exc:
        raise MalformedPayloadError(f"Invalid proposal document: {exc}") from exc
    signature: Optional[bytes] = None
    if doc.signature is not None:
        try:
            signature = bytes.fromhex(doc.signature)
        except ValueError as exc:
            raise MalformedPayloadError("Proposal signature must be hex encoded") from exc
    return Proposal(
        noisy_model=list(doc.noisy_model),
        encrypted_model=_from_document(doc.encrypted_model),
        encrypted_noise=_from_document(doc.encrypted_noise),
        encrypted_noisy_model=_from_document(doc.encrypted_noisy_model),
        client_id=doc.client_id,
        signature=signature,
    )
