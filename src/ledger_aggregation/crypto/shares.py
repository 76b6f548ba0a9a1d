"""
Client-side helpers for building proposals and dealing decryption shares.

These mirror what a participating client does off-ledger and are used by the
simulation script and the tests. They are not a production secret-sharing
scheme: shares are plain additive splits over the ciphertext group.
"""

import secrets
from typing import List, Optional, Sequence

import numpy as np

from ledger_aggregation.crypto.ciphertext import (
    Ciphertext,
    CiphertextAlgebra,
    DecryptionShare,
    RingAlgebra,
    RingCiphertext,
    ScaledAlgebra,
    ScaledCiphertext,
)
from ledger_aggregation.models.proposal import Proposal


def _random_like(algebra: CiphertextAlgebra, length: int) -> Ciphertext:
    if isinstance(algebra, RingAlgebra):
        q = algebra.modulus
        return RingCiphertext(
            real=[secrets.randbelow(q) for _ in range(length)],
            imag=[secrets.randbelow(q) for _ in range(length)],
            modulus=q,
        )
    # Integer-valued coefficients keep float sums exact.
    re = np.array([secrets.randbelow(2**20) for _ in range(length)], dtype=np.float64)
    im = np.array([secrets.randbelow(2**20) for _ in range(length)], dtype=np.float64)
    return ScaledCiphertext(values=re + 1j * im, scale=algebra.scale)


def _negate(algebra: CiphertextAlgebra, ct: Ciphertext) -> Ciphertext:
    if isinstance(algebra, RingAlgebra):
        return RingCiphertext(real=-ct.real, imag=-ct.imag, modulus=algebra.modulus)
    if isinstance(algebra, ScaledAlgebra):
        return ScaledCiphertext(values=-ct.values, scale=ct.scale)
    raise TypeError(f"Unsupported algebra {type(algebra).__name__}")


def split_additive_shares(
    algebra: CiphertextAlgebra,
    secret: Ciphertext,
    n: int,
    client_ids: Optional[Sequence[str]] = None,
) -> List[DecryptionShare]:
    """
    Split ``secret`` into ``n`` shares whose group sum equals ``secret``.
    """
    if n < 1:
        raise ValueError("n must be at least 1")
    if client_ids is not None and len(client_ids) != n:
        raise ValueError("client_ids must have exactly n entries")
    randoms = [_random_like(algebra, len(secret)) for _ in range(n - 1)]
    last = secret
    for r in randoms:
        last = algebra.add(last, _negate(algebra, r))
    parts = randoms + [last]
    ids = list(client_ids) if client_ids is not None else [None] * n
    return [DecryptionShare(ciphertext=part, client_id=cid) for part, cid in zip(parts, ids)]


def build_proposal(
    algebra: CiphertextAlgebra,
    noisy_model: Sequence[float],
    encrypted_model: Ciphertext,
    encrypted_noise: Optional[Ciphertext] = None,
    client_id: Optional[str] = None,
) -> Proposal:
    """Assemble a homomorphically consistent proposal."""
    if encrypted_noise is None:
        encrypted_noise = _random_like(algebra, len(encrypted_model))
    return Proposal(
        noisy_model=list(noisy_model),
        encrypted_model=encrypted_model,
        encrypted_noise=encrypted_noise,
        encrypted_noisy_model=algebra.add(encrypted_model, encrypted_noise),
        client_id=client_id,
    )
