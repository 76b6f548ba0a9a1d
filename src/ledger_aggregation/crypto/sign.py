"""Ed25519 endorsement of proposals."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ledger_aggregation.crypto.codec import proposal_signing_payload
from ledger_aggregation.models.proposal import Proposal

_RAW = serialization.Encoding.Raw


@dataclass
class SigningKeyPair:
    """Raw 32-byte Ed25519 keys of one client."""
    private_key: bytes
    public_key: bytes


def _raw_keypair(key: Ed25519PrivateKey) -> SigningKeyPair:
    return SigningKeyPair(
        private_key=key.private_bytes(_RAW, serialization.PrivateFormat.Raw, serialization.NoEncryption()),
        public_key=key.public_key().public_bytes(_RAW, serialization.PublicFormat.Raw),
    )


def generate_signing_keypair() -> SigningKeyPair:
    return _raw_keypair(Ed25519PrivateKey.generate())


def write_client_keypair(identity: str, keys_dir: Path) -> Tuple[Path, Path]:
    """
    Generate a keypair for ``identity`` and store it as PEM files.

    Writes ``<identity>_sk.pem`` (PKCS8) and ``<identity>_pk.pem``; the public
    halves are what ``load_public_keys`` reads back.
    """
    key = Ed25519PrivateKey.generate()
    keys_dir = Path(keys_dir)
    keys_dir.mkdir(parents=True, exist_ok=True)
    sk_path = keys_dir / f"{identity}_sk.pem"
    pk_path = keys_dir / f"{identity}_pk.pem"
    sk_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    pk_path.write_bytes(
        key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return sk_path, pk_path


def load_signing_keypair(sk_path: Path) -> SigningKeyPair:
    """Read a PEM private key written by ``write_client_keypair``."""
    key = serialization.load_pem_private_key(Path(sk_path).read_bytes(), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError(f"{sk_path} does not hold an Ed25519 private key")
    return _raw_keypair(key)


def _payload(proposal: Proposal) -> bytes:
    return proposal_signing_payload(
        proposal.noisy_model,
        proposal.encrypted_model,
        proposal.encrypted_noise,
        proposal.encrypted_noisy_model,
        proposal.client_id,
    )


def sign_proposal(private_key: bytes, proposal: Proposal) -> bytes:
    """Sign the canonical payload of ``proposal`` and attach the signature."""
    private_key_obj = Ed25519PrivateKey.from_private_bytes(private_key)
    signature = private_key_obj.sign(_payload(proposal))
    proposal.signature = signature
    return signature


def verify_proposal(public_key_bytes: bytes, proposal: Proposal) -> bool:
    if proposal.signature is None:
        return False
    try:
        pub = Ed25519PublicKey.from_public_bytes(public_key_bytes)
        pub.verify(proposal.signature, _payload(proposal))
        return True
    except (InvalidSignature, ValueError):
        return False


def load_public_keys(keys_dir: Path) -> Dict[str, bytes]:
    """
    Load ``<client_id>_pk.pem`` files from ``keys_dir``.

    Returns a mapping of client id to raw public key bytes.
    """
    keys: Dict[str, bytes] = {}
    for key_file in sorted(Path(keys_dir).glob("*_pk.pem")):
        public_key = serialization.load_pem_public_key(key_file.read_bytes())
        if not isinstance(public_key, Ed25519PublicKey):
            raise ValueError(f"{key_file} does not hold an Ed25519 public key")
        identity = key_file.stem[: -len("_pk")]
        keys[identity] = public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    return keys
