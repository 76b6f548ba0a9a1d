from .ciphertext import (
    Ciphertext,
    CiphertextAlgebra,
    DecryptionShare,
    Encoding,
    RingAlgebra,
    RingCiphertext,
    ScaledAlgebra,
    ScaledCiphertext,
    build_algebra,
)
from .codec import (
    decode_ciphertext,
    decode_proposal,
    decode_share,
    encode_ciphertext,
    encode_proposal,
    encode_share,
)
from .shares import build_proposal, split_additive_shares
from .sign import (
    SigningKeyPair,
    generate_signing_keypair,
    load_public_keys,
    load_signing_keypair,
    sign_proposal,
    verify_proposal,
    write_client_keypair,
)

__all__ = [
    "Ciphertext",
    "CiphertextAlgebra",
    "DecryptionShare",
    "Encoding",
    "RingAlgebra",
    "RingCiphertext",
    "ScaledAlgebra",
    "ScaledCiphertext",
    "build_algebra",
    "decode_ciphertext",
    "decode_proposal",
    "decode_share",
    "encode_ciphertext",
    "encode_proposal",
    "encode_share",
    "build_proposal",
    "split_additive_shares",
    "SigningKeyPair",
    "generate_signing_keypair",
    "load_public_keys",
    "load_signing_keypair",
    "sign_proposal",
    "verify_proposal",
    "write_client_keypair",
]
