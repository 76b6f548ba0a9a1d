import numpy as np
import pytest

from ledger_aggregation.crypto import (
    DecryptionShare,
    Encoding,
    RingAlgebra,
    RingCiphertext,
    ScaledAlgebra,
    ScaledCiphertext,
    build_algebra,
)
from ledger_aggregation.errors import ErrorKind, ShapeMismatchError

Q = 800


def _ring(real, imag, q: int = Q) -> RingCiphertext:
    return RingCiphertext(real=real, imag=imag, modulus=q)


def _random_ring(rng: np.random.Generator, length: int = 6) -> RingCiphertext:
    return _ring(rng.integers(0, Q, length), rng.integers(0, Q, length))


def _scaled(values, scale: float = 1024.0) -> ScaledCiphertext:
    return ScaledCiphertext(values=np.asarray(values, dtype=np.complex128), scale=scale)


class TestRingAlgebra:
    def test_identity_on_both_sides(self) -> None:
        algebra = RingAlgebra(Q)
        x = _ring([5, 799, 0, 123], [1, 2, 3, 4])
        identity = algebra.identity_like(x)
        assert algebra.equal(algebra.add(identity, x), x)
        assert algebra.equal(algebra.add(x, identity), x)

    def test_commutative_and_associative(self) -> None:
        algebra = RingAlgebra(Q)
        rng = np.random.default_rng(7)
        a, b, c = (_random_ring(rng) for _ in range(3))
        assert algebra.equal(algebra.add(a, b), algebra.add(b, a))
        assert algebra.equal(algebra.add(algebra.add(a, b), c), algebra.add(a, algebra.add(b, c)))

    def test_addition_wraps_modulus(self) -> None:
        algebra = RingAlgebra(Q)
        total = algebra.add(_ring([799, 400], [1, 799]), _ring([2, 400], [799, 1]))
        assert total.real.tolist() == [1, 0]
        assert total.imag.tolist() == [0, 0]

    def test_construction_reduces_into_ring(self) -> None:
        ct = _ring([-1, 801], [1600, 5])
        assert ct.real.tolist() == [799, 1]
        assert ct.imag.tolist() == [0, 5]

    def test_equal_detects_single_coefficient(self) -> None:
        algebra = RingAlgebra(Q)
        assert not algebra.equal(_ring([1, 2], [3, 4]), _ring([1, 2], [3, 5]))

    def test_length_mismatch_raises(self) -> None:
        algebra = RingAlgebra(Q)
        with pytest.raises(ShapeMismatchError) as info:
            algebra.add(_ring([1, 2], [1, 2]), _ring([1, 2, 3], [1, 2, 3]))
        assert info.value.kind == ErrorKind.SHAPE_MISMATCH

    def test_modulus_mismatch_raises(self) -> None:
        algebra = RingAlgebra(Q)
        with pytest.raises(ShapeMismatchError):
            algebra.equal(_ring([1], [1]), _ring([1], [1], q=97))

    def test_component_length_mismatch_raises(self) -> None:
        with pytest.raises(ShapeMismatchError):
            _ring([1, 2, 3], [1, 2])

    def test_mixed_encodings_rejected(self) -> None:
        algebra = RingAlgebra(Q)
        with pytest.raises(ShapeMismatchError):
            algebra.add(_ring([1], [1]), _scaled([1 + 1j]))

    def test_split_partial_separates_components(self) -> None:
        algebra = RingAlgebra(Q)
        private, public = algebra.split_partial(_ring([10, 20], [30, 40]))
        assert private.real.tolist() == [10, 20]
        assert private.imag.tolist() == [0, 0]
        assert public.tolist() == [30, 40]
        assert algebra.recover_plaintext(private).tolist() == [10, 20]

    def test_sum_folds_from_identity(self) -> None:
        algebra = RingAlgebra(Q)
        items = [_ring([i, i], [i, 0]) for i in range(1, 5)]
        assert algebra.sum(items).real.tolist() == [10, 10]

    def test_invalid_modulus(self) -> None:
        with pytest.raises(ValueError):
            RingAlgebra(1)


class TestScaledAlgebra:
    def test_identity_on_both_sides(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        x = _scaled([1.5 + 2.25j, -3.0 + 0.5j])
        identity = algebra.identity_like(x)
        assert algebra.equal(algebra.add(identity, x), x)
        assert algebra.equal(algebra.add(x, identity), x)

    def test_commutative_and_associative(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        a = _scaled([1 + 2j, 3 + 4j])
        b = _scaled([5 + 6j, 7 + 8j])
        c = _scaled([9 + 10j, 11 + 12j])
        assert algebra.equal(algebra.add(a, b), algebra.add(b, a))
        assert algebra.equal(algebra.add(algebra.add(a, b), c), algebra.add(a, algebra.add(b, c)))

    def test_scale_carried_from_left_operand(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        total = algebra.add(_scaled([1 + 1j]), _scaled([2 + 2j]))
        assert total.scale == 1024.0
        np.testing.assert_array_equal(total.values, np.array([3 + 3j]))

    def test_scale_mismatch_raises(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        with pytest.raises(ShapeMismatchError):
            algebra.add(_scaled([1 + 1j]), _scaled([1 + 1j], scale=2048.0))

    def test_rescale_hook_applied_after_addition(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0, rescale=lambda v: v / 2)
        total = algebra.add(_scaled([2 + 4j]), _scaled([2 + 4j]))
        np.testing.assert_array_equal(total.values, np.array([2 + 4j]))

    def test_tolerance_controls_equality(self) -> None:
        a = _scaled([1.0 + 1.0j])
        b = _scaled([1.0 + 1.0j + 1e-9])
        assert not ScaledAlgebra(scale=1024.0).equal(a, b)
        assert ScaledAlgebra(scale=1024.0, tolerance=1e-6).equal(a, b)

    def test_split_partial(self) -> None:
        algebra = ScaledAlgebra(scale=1024.0)
        private, public = algebra.split_partial(_scaled([1.5 + 2.5j, -1 + 3j]))
        np.testing.assert_array_equal(private.values, np.array([1.5 + 0j, -1 + 0j]))
        assert public.tolist() == [2.5, 3.0]


def test_build_algebra_selects_encoding() -> None:
    assert isinstance(build_algebra("ring", modulus=97), RingAlgebra)
    scaled = build_algebra(Encoding.SCALED, scale=64.0, tolerance=0.1)
    assert isinstance(scaled, ScaledAlgebra)
    assert scaled.scale == 64.0
    with pytest.raises(ValueError):
        build_algebra("paillier")


def test_decryption_share_wraps_ciphertext() -> None:
    share = DecryptionShare(ciphertext=_ring([1, 2], [3, 4]), client_id="c1")
    assert len(share) == 2
    assert share.client_id == "c1"
