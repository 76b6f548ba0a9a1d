"""Client proposal and decryption result records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import numpy as np

if TYPE_CHECKING:
    from ledger_aggregation.crypto.ciphertext import Ciphertext


@dataclass(eq=False)
class Proposal:
    """
    One client's update for the current round.

    Attributes:
        noisy_model: Plaintext noisy model, used only by the outlier filter.
        encrypted_model: Ciphertext folded into the running sum when accepted.
        encrypted_noise: Ciphertext of the noise the client added.
        encrypted_noisy_model: Claimed ``encrypted_model + encrypted_noise``.
        client_id: Identity used to verify ``signature``.
        signature: Ed25519 signature over the canonical proposal payload.
    """

    noisy_model: List[float]
    encrypted_model: Ciphertext
    encrypted_noise: Ciphertext
    encrypted_noisy_model: Ciphertext
    client_id: Optional[str] = None
    signature: Optional[bytes] = None


@dataclass(eq=False)
class PlaintextResult:
    """Outcome of threshold decryption."""

    values: np.ndarray
    ciphertext: Ciphertext
    round_index: int
    share_count: int

    def to_list(self) -> List[float]:
        return self.values.tolist()
