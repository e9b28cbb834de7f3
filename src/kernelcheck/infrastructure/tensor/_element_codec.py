"""
Float32 encode/decode for tensor storage.

All cross-kind conversion goes through float32: widening from `f16`/`bf16`
is lossless and narrowing rounds to nearest even. Bits are never
reinterpreted across kinds.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ...domain._element_kind import ElementKind
from ..numeric._bfloat16 import narrow_to_bfloat16_bits, widen_from_bfloat16_bits


def decode_to_float32(storage: np.ndarray, element_kind: ElementKind) -> np.ndarray:
    """Return a new float32 array holding the decoded values of `storage`."""
    if element_kind is ElementKind.BF16:
        return widen_from_bfloat16_bits(storage)
    return np.asarray(storage).astype(np.float32, copy=True)


def encode_from_float32(values: Any, element_kind: ElementKind) -> np.ndarray:
    """
    Encode float32-convertible values into `element_kind` storage.

    Values out of range for a 16-bit kind become infinities; NaN stays NaN
    (canonicalized for `bf16`).
    """
    with np.errstate(all="ignore"):
        f32 = np.asarray(values, dtype=np.float32)
        if element_kind is ElementKind.BF16:
            return narrow_to_bfloat16_bits(f32)
        return f32.astype(element_kind.storage_dtype, copy=True)
