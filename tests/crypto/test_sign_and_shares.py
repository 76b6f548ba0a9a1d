import numpy as np
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from ledger_aggregation.crypto import (
    RingAlgebra,
    RingCiphertext,
    ScaledAlgebra,
    ScaledCiphertext,
    build_proposal,
    generate_signing_keypair,
    load_public_keys,
    load_signing_keypair,
    sign_proposal,
    split_additive_shares,
    verify_proposal,
    write_client_keypair,
)


def _ring(real, imag) -> RingCiphertext:
    return RingCiphertext(real=real, imag=imag, modulus=800)


def _proposal():
    return build_proposal(
        RingAlgebra(800),
        [1.0, 2.0, 3.0, 4.0],
        _ring([1, 2], [3, 4]),
        _ring([5, 6], [7, 8]),
        client_id="client-01",
    )


class TestSigning:
    def test_sign_and_verify(self) -> None:
        keys = generate_signing_keypair()
        proposal = _proposal()
        signature = sign_proposal(keys.private_key, proposal)
        assert proposal.signature == signature
        assert verify_proposal(keys.public_key, proposal)

    def test_tampered_noisy_model_fails(self) -> None:
        keys = generate_signing_keypair()
        proposal = _proposal()
        sign_proposal(keys.private_key, proposal)
        proposal.noisy_model[0] = 100.0
        assert not verify_proposal(keys.public_key, proposal)

    def test_wrong_key_fails(self) -> None:
        proposal = _proposal()
        sign_proposal(generate_signing_keypair().private_key, proposal)
        assert not verify_proposal(generate_signing_keypair().public_key, proposal)

    def test_unsigned_proposal_fails(self) -> None:
        assert not verify_proposal(generate_signing_keypair().public_key, _proposal())

    def test_load_public_keys(self, tmp_path) -> None:
        private = Ed25519PrivateKey.generate()
        pem = private.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        (tmp_path / "client-03_pk.pem").write_bytes(pem)
        (tmp_path / "client-03_sk.pem").write_bytes(b"ignored")

        keys = load_public_keys(tmp_path)

        assert list(keys) == ["client-03"]
        assert len(keys["client-03"]) == 32

    def test_written_keypair_signs_and_verifies(self, tmp_path) -> None:
        sk_path, pk_path = write_client_keypair("client-01", tmp_path / "keys")
        assert pk_path.name == "client-01_pk.pem"

        keypair = load_signing_keypair(sk_path)
        public_keys = load_public_keys(tmp_path / "keys")
        proposal = _proposal()
        sign_proposal(keypair.private_key, proposal)

        assert public_keys["client-01"] == keypair.public_key
        assert verify_proposal(public_keys["client-01"], proposal)


class TestShares:
    def test_ring_shares_sum_to_secret(self) -> None:
        algebra = RingAlgebra(800)
        secret = _ring([10, 20, 30], [799, 0, 1])
        shares = split_additive_shares(algebra, secret, 9, client_ids=[f"c{i}" for i in range(9)])
        assert len(shares) == 9
        assert shares[4].client_id == "c4"
        assert algebra.equal(algebra.sum([s.ciphertext for s in shares]), secret)

    def test_scaled_shares_sum_to_secret(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        secret = ScaledCiphertext(values=np.array([4.0 + 1.0j, -2.0 + 0j]), scale=1024.0)
        shares = split_additive_shares(algebra, secret, 4)
        assert algebra.equal(algebra.sum([s.ciphertext for s in shares]), secret)

    def test_single_share_is_secret(self) -> None:
        algebra = RingAlgebra(800)
        secret = _ring([1], [2])
        [share] = split_additive_shares(algebra, secret, 1)
        assert algebra.equal(share.ciphertext, secret)

    def test_invalid_arguments(self) -> None:
        algebra = RingAlgebra(800)
        with pytest.raises(ValueError):
            split_additive_shares(algebra, _ring([1], [1]), 0)
        with pytest.raises(ValueError):
            split_additive_shares(algebra, _ring([1], [1]), 2, client_ids=["only-one"])

    def test_build_proposal_is_consistent(self) -> None:
        algebra = RingAlgebra(800)
        proposal = build_proposal(algebra, [1.0], _ring([1, 2, 3], [4, 5, 6]))
        claimed = algebra.add(proposal.encrypted_model, proposal.encrypted_noise)
        assert algebra.equal(claimed, proposal.encrypted_noisy_model)
