"""
Element kinds supported by kernelcheck tensors.

An element kind names the scalar encoding stored in a tensor buffer. Storage
is always a NumPy array; `bf16` values are stored as their raw 16-bit
patterns (`np.uint16`) because NumPy has no native brain-float dtype.
"""

from __future__ import annotations

from enum import Enum

import numpy as np


class ElementKind(Enum):
    """
    Enumeration of tensor element encodings.

    Attributes
    ----------
    F32 : ElementKind
        IEEE-754 binary32.
    F16 : ElementKind
        IEEE-754 binary16.
    BF16 : ElementKind
        Brain float (1 sign, 8 exponent, 7 significand bits).
    """

    F32 = "f32"
    F16 = "f16"
    BF16 = "bf16"

    @classmethod
    def from_string(cls, name: str) -> "ElementKind":
        """
        Parse a short description such as "f32" or "bf16".

        Raises
        ------
        ValueError
            If `name` is not a supported element kind.
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            supported = [k.value for k in cls]
            raise ValueError(
                f"Unknown element kind '{name}'. Supported: {supported}"
            ) from None

    @property
    def short_description(self) -> str:
        return self.value

    @property
    def itemsize(self) -> int:
        """Number of bytes occupied by one element."""
        return 4 if self is ElementKind.F32 else 2

    @property
    def storage_dtype(self) -> np.dtype:
        """NumPy dtype used for the raw storage of this element kind."""
        if self is ElementKind.F32:
            return np.dtype(np.float32)
        if self is ElementKind.F16:
            return np.dtype(np.float16)
        return np.dtype(np.uint16)

    @property
    def is_half_precision(self) -> bool:
        return self is not ElementKind.F32

    @property
    def most_negative_finite_bits(self) -> int:
        """
        Bit pattern of the most-negative finite value for this kind.

        Attention masks use this value in place of negative infinity so that
        masked scores stay finite.
        """
        if self is ElementKind.F32:
            return 0xFF7FFFFF
        if self is ElementKind.F16:
            return 0xFBFF
        return 0xFF7F

    def most_negative_finite_storage(self) -> np.ndarray:
        """
        Return the most-negative finite value as a 0-d storage array.

        The value is produced by reinterpreting the kind's bit pattern, so it
        is exact for every kind (narrowing `-FLT_MAX` to `bf16` would round to
        negative infinity).
        """
        if self is ElementKind.F32:
            bits = np.array(self.most_negative_finite_bits, dtype=np.uint32)
        else:
            bits = np.array(self.most_negative_finite_bits, dtype=np.uint16)
        return bits.view(self.storage_dtype)
