"""
Additive-group ciphertext algebra.

Two encodings are supported:

- ``ring``: a pair of equal-length integer vectors (real, imag) reduced mod q.
- ``scaled``: a complex vector tagged with a scaling factor, where addition is
  followed by an optional scheme-specific rescale step.

The aggregation round only relies on ``add``/``equal``/``identity_like``, so a
single round implementation works over either encoding.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from ledger_aggregation.errors import ShapeMismatchError

# Sums of two reduced residues must stay inside int64.
MAX_RING_MODULUS = 2**62


class Encoding(str, Enum):
    RING = "ring"
    SCALED = "scaled"


@dataclass(eq=False)
class RingCiphertext:
    """Ciphertext over Z_q with a real and an imaginary component."""

    real: np.ndarray
    imag: np.ndarray
    modulus: int

    encoding = Encoding.RING

    def __post_init__(self) -> None:
        if self.modulus <= 1 or self.modulus > MAX_RING_MODULUS:
            raise ValueError(f"Ring modulus must be within 2..2**62, got {self.modulus}")
        self.modulus = int(self.modulus)
        self.real = np.asarray(self.real, dtype=np.int64).reshape(-1) % self.modulus
        self.imag = np.asarray(self.imag, dtype=np.int64).reshape(-1) % self.modulus
        if self.real.shape != self.imag.shape:
            raise ShapeMismatchError(
                f"Ring components differ in length: real={self.real.size} imag={self.imag.size}"
            )

    def __len__(self) -> int:
        return int(self.real.size)

    def __repr__(self) -> str:
        return f"RingCiphertext(len={len(self)}, modulus={self.modulus})"


@dataclass(eq=False)
class ScaledCiphertext:
    """CKKS-style ciphertext: complex coefficients plus the scale they carry."""

    values: np.ndarray
    scale: float

    encoding = Encoding.SCALED

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self.scale}")
        self.scale = float(self.scale)
        self.values = np.asarray(self.values, dtype=np.complex128).reshape(-1)

    def __len__(self) -> int:
        return int(self.values.size)

    def __repr__(self) -> str:
        return f"ScaledCiphertext(len={len(self)}, scale={self.scale})"


Ciphertext = Union[RingCiphertext, ScaledCiphertext]


@dataclass(eq=False)
class DecryptionShare:
    """
    A client's partial decryption.

    Shares have the same wire shape as ciphertexts but are a distinct type so an
    aggregation ciphertext is never passed where a share is expected.
    """

    ciphertext: Ciphertext
    client_id: Optional[str] = field(default=None)

    def __len__(self) -> int:
        return len(self.ciphertext)


class CiphertextAlgebra(ABC):
    """Group operations over one ciphertext encoding."""

    encoding: Encoding

    @abstractmethod
    def check_compatible(self, a: Ciphertext, b: Ciphertext) -> None:
        """Raise ShapeMismatchError unless ``a`` and ``b`` can be combined."""

    @abstractmethod
    def add(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Homomorphic addition."""

    @abstractmethod
    def equal(self, a: Ciphertext, b: Ciphertext) -> bool:
        """Element-wise equality of two compatible ciphertexts."""

    @abstractmethod
    def identity(self, length: int) -> Ciphertext:
        """All-zero ciphertext of the given length."""

    @abstractmethod
    def split_partial(self, ct: Ciphertext) -> Tuple[Ciphertext, np.ndarray]:
        """Split ``ct`` into (private partial ciphertext, public component)."""

    @abstractmethod
    def partial_from_real(self, real: Sequence) -> Ciphertext:
        """Rebuild a private partial from its stored real component."""

    @abstractmethod
    def recover_plaintext(self, ct: Ciphertext) -> np.ndarray:
        """Return the recoverable (real) component of a combined result."""

    def identity_like(self, ct: Ciphertext) -> Ciphertext:
        self._check_encoding(ct)
        return self.identity(len(ct))

    def sum(self, items: Sequence[Ciphertext], start: Optional[Ciphertext] = None) -> Ciphertext:
        """Fold ``items`` with ``add`` starting from ``start`` (or the identity)."""
        if start is None:
            if not items:
                raise ValueError("Cannot infer identity shape from an empty sequence")
            start = self.identity_like(items[0])
        acc = start
        for item in items:
            acc = self.add(acc, item)
        return acc

    def _check_encoding(self, *cts: Ciphertext) -> None:
        for ct in cts:
            if getattr(ct, "encoding", None) != self.encoding:
                raise ShapeMismatchError(
                    f"Expected {self.encoding.value} ciphertext, got {type(ct).__name__}"
                )


class RingAlgebra(CiphertextAlgebra):
    """Addition mod q over (real, imag) integer pairs."""

    encoding = Encoding.RING

    def __init__(self, modulus: int) -> None:
        if modulus <= 1 or modulus > MAX_RING_MODULUS:
            raise ValueError(f"Ring modulus must be within 2..2**62, got {modulus}")
        self.modulus = int(modulus)

    def check_compatible(self, a: Ciphertext, b: Ciphertext) -> None:
        self._check_encoding(a, b)
        if a.modulus != self.modulus or b.modulus != self.modulus:
            raise ShapeMismatchError(
                f"Modulus mismatch: expected {self.modulus}, got {a.modulus} and {b.modulus}"
            )
        if len(a) != len(b):
            raise ShapeMismatchError(f"Length mismatch: {len(a)} != {len(b)}")

    def add(self, a: Ciphertext, b: Ciphertext) -> RingCiphertext:
        self.check_compatible(a, b)
        return RingCiphertext(
            real=(a.real + b.real) % self.modulus,
            imag=(a.imag + b.imag) % self.modulus,
            modulus=self.modulus,
        )

    def equal(self, a: Ciphertext, b: Ciphertext) -> bool:
        self.check_compatible(a, b)
        return bool(np.array_equal(a.real, b.real) and np.array_equal(a.imag, b.imag))

    def identity(self, length: int) -> RingCiphertext:
        zeros = np.zeros(length, dtype=np.int64)
        return RingCiphertext(real=zeros, imag=zeros.copy(), modulus=self.modulus)

    def split_partial(self, ct: Ciphertext) -> Tuple[RingCiphertext, np.ndarray]:
        self._check_encoding(ct)
        return self.partial_from_real(ct.real), ct.imag.copy()

    def partial_from_real(self, real: Sequence) -> RingCiphertext:
        real_arr = np.asarray(real, dtype=np.int64)
        return RingCiphertext(real=real_arr, imag=np.zeros_like(real_arr), modulus=self.modulus)

    def recover_plaintext(self, ct: Ciphertext) -> np.ndarray:
        self._check_encoding(ct)
        return ct.real.copy()


class ScaledAlgebra(CiphertextAlgebra):
    """
    Complex-coefficient addition with an optional rescale hook.

    Args:
        scale: Scale every operand must carry.
        rescale: Callable applied to the summed coefficients (mod reduction,
            rescaling); identity when omitted.
        tolerance: Absolute tolerance used by ``equal``; 0 means exact.
    """

    encoding = Encoding.SCALED

    def __init__(
        self,
        scale: float,
        rescale: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        tolerance: float = 0.0,
    ) -> None:
        if scale <= 0:
            raise ValueError("scale must be positive")
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        self.scale = float(scale)
        self.rescale = rescale
        self.tolerance = float(tolerance)

    def check_compatible(self, a: Ciphertext, b: Ciphertext) -> None:
        self._check_encoding(a, b)
        if a.scale != b.scale:
            raise ShapeMismatchError(f"Scale mismatch: {a.scale} != {b.scale}")
        if a.scale != self.scale:
            raise ShapeMismatchError(f"Scale mismatch: expected {self.scale}, got {a.scale}")
        if len(a) != len(b):
            raise ShapeMismatchError(f"Length mismatch: {len(a)} != {len(b)}")

    def add(self, a: Ciphertext, b: Ciphertext) -> ScaledCiphertext:
        self.check_compatible(a, b)
        values = a.values + b.values
        if self.rescale is not None:
            values = self.rescale(values)
        return ScaledCiphertext(values=values, scale=a.scale)

    def equal(self, a: Ciphertext, b: Ciphertext) -> bool:
        self.check_compatible(a, b)
        if self.tolerance == 0.0:
            return bool(np.array_equal(a.values, b.values))
        return bool(np.allclose(a.values, b.values, rtol=0.0, atol=self.tolerance))

    def identity(self, length: int) -> ScaledCiphertext:
        return ScaledCiphertext(values=np.zeros(length, dtype=np.complex128), scale=self.scale)

    def split_partial(self, ct: Ciphertext) -> Tuple[ScaledCiphertext, np.ndarray]:
        self._check_encoding(ct)
        return self.partial_from_real(ct.values.real), ct.values.imag.copy()

    def partial_from_real(self, real: Sequence) -> ScaledCiphertext:
        real_arr = np.asarray(real, dtype=np.float64)
        return ScaledCiphertext(values=real_arr.astype(np.complex128), scale=self.scale)

    def recover_plaintext(self, ct: Ciphertext) -> np.ndarray:
        self._check_encoding(ct)
        return ct.values.real.copy()


def build_algebra(
    encoding: Encoding | str,
    modulus: int = 800,
    scale: float = float(2**20),
    tolerance: float = 0.0,
    rescale: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> CiphertextAlgebra:
    """Construct the algebra for ``encoding`` with the given parameters."""
    encoding = Encoding(encoding)
    if encoding is Encoding.RING:
        return RingAlgebra(modulus)
    return ScaledAlgebra(scale, rescale=rescale, tolerance=tolerance)
