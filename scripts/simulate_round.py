#!/usr/bin/env python3
"""
In-process simulation of one aggregation round followed by threshold decryption.

Usage:
  pip install -e .
  python scripts/simulate_round.py --clients 10 --poisoned 3 --inconsistent 7
"""

import argparse
import secrets
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from ledger_aggregation.config import EngineConfig
from ledger_aggregation.crypto import (
    RingCiphertext,
    build_proposal,
    encode_proposal,
    encode_share,
    load_public_keys,
    load_signing_keypair,
    sign_proposal,
    split_additive_shares,
)
from ledger_aggregation.crypto.codec import decode_ciphertext
from ledger_aggregation.service import AggregationContract
from ledger_aggregation.storage import MockLedger
from ledger_aggregation.utils import configure_logging, get_logger

HONEST_PROFILE = [1.0, 2.0, 3.0, 4.0]
# Nine equal coordinates and one zero: average ratio is about 2.
POISONED_PROFILE = [0.0] + [1.0] * 9


def _random_ring(length: int, modulus: int) -> RingCiphertext:
    return RingCiphertext(
        real=[secrets.randbelow(modulus) for _ in range(length)],
        imag=[secrets.randbelow(modulus) for _ in range(length)],
        modulus=modulus,
    )


def _noisy_model(index: int, poisoned: bool) -> List[float]:
    profile = POISONED_PROFILE if poisoned else HONEST_PROFILE
    return [(index + 1) * v for v in profile]


def run(
    clients: int,
    length: int,
    poisoned: Sequence[int],
    inconsistent: Sequence[int],
    storage: Optional[str],
    keys_dir: Optional[Path],
) -> None:
    logger = get_logger("simulate_round")
    config = EngineConfig(client_count=clients, require_signatures=keys_dir is not None)
    client_keys = load_public_keys(keys_dir) if keys_dir is not None else {}
    contract = AggregationContract(config, MockLedger(storage_path=storage), client_keys=client_keys)
    algebra = contract.algebra

    for i in range(clients):
        client_id = f"client-{i + 1:02d}"
        proposal = build_proposal(
            algebra,
            _noisy_model(i, poisoned=(i + 1) in poisoned),
            _random_ring(length, config.modulus),
            client_id=client_id,
        )
        if (i + 1) in inconsistent:
            proposal.encrypted_noisy_model = _random_ring(length, config.modulus)
        if keys_dir is not None:
            sign_proposal(load_signing_keypair(keys_dir / f"{client_id}_sk.pem").private_key, proposal)
        response = contract.submit(encode_proposal(proposal))
        logger.info("%s -> %s (%s)", client_id, response.status, response.message)

    status = contract.status()
    if status["phase"] != "Closed":
        logger.warning("Round did not close: %s", status)
        return

    released = contract.release_partial()
    logger.info("Public component released: %d bytes", len(released.payload or b""))

    aggregate = decode_ciphertext(contract.query_latest(config.latest_key).payload)
    # Shares carry the negated public component; only the real part is read back.
    secret = RingCiphertext(real=np.zeros(length, dtype=np.int64), imag=-aggregate.imag, modulus=config.modulus)
    shares = split_additive_shares(algebra, secret, status["required"])
    result = contract.decrypt([encode_share(s) for s in shares])
    logger.info("Decrypt -> %s %s plaintext=%s", result.status, result.message, result.plaintext)
    logger.info("Round after decryption: %s", contract.status())


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate one aggregation round")
    parser.add_argument("--clients", type=int, default=10, help="Configured client count (default: 10)")
    parser.add_argument("--length", type=int, default=4, help="Ciphertext length (default: 4)")
    parser.add_argument("--poisoned", type=int, nargs="*", default=[], help="1-based indices of poisoned clients")
    parser.add_argument(
        "--inconsistent", type=int, nargs="*", default=[], help="1-based indices with a bad noisy ciphertext"
    )
    parser.add_argument("--storage", type=str, default=None, help="Optional JSON file for ledger state")
    parser.add_argument(
        "--keys-dir", type=Path, default=None, help="Sign proposals with keys from scripts/generate_keys.py"
    )
    parser.add_argument("--log-level", type=str, default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    run(args.clients, args.length, args.poisoned, args.inconsistent, args.storage, args.keys_dir)


if __name__ == "__main__":
    main()
