"""
Attention mask synthesis.

Masks are additive: an open entry holds `0` and a masked entry holds the
most-negative finite value of the element kind. Synthesis works directly on
storage patterns, so the output for `f32`, `f16` and `bf16` differs only in
the bit pattern used for masked entries.
"""

from __future__ import annotations

from math import ceil, prod
from typing import Tuple

import numpy as np

from ...domain._attention_mask import AttentionMask, BlockSparse, UpperTriangular
from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError


def _planes(shape: Tuple[int, ...]) -> Tuple[int, int, int]:
    if len(shape) < 2:
        raise ContractViolationError(
            f"a mask needs at least two dimensions, got shape {shape}", "shape"
        )
    return prod(shape[:-2]), shape[-2], shape[-1]


def _upper_triangular_open(shape: Tuple[int, ...]) -> np.ndarray:
    planes, rows, cols = _planes(shape)
    if rows != cols:
        raise ContractViolationError(
            f"an upper-triangular mask must be square, got {rows} x {cols}", "R"
        )
    plane = np.tril(np.ones((rows, cols), dtype=bool))
    return np.broadcast_to(plane, (planes, rows, cols))


def _block_sparse_open(
    shape: Tuple[int, ...], mask: BlockSparse, rng: np.random.Generator
) -> np.ndarray:
    planes, rows, cols = _planes(shape)
    block = int(mask.block_size)
    bands = ceil(rows / block)
    blocks = ceil(cols / block)
    # one draw per (plane, band, block); random() is in [0, 1)
    draws = rng.random((planes, bands, blocks)) < float(mask.sparsity)
    expanded = np.repeat(np.repeat(draws, block, axis=1), block, axis=2)
    return expanded[:, :rows, :cols]


def synthesize_mask_storage(
    shape: Tuple[int, ...],
    element_kind: ElementKind,
    mask: AttentionMask,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Build flat mask storage for `shape`.

    Parameters
    ----------
    shape : tuple[int, ...]
        Mask shape; the last two dimensions are the score plane (rows x
        columns) and every leading dimension indexes a separate plane.
    element_kind : ElementKind
        Encoding of the produced storage.
    mask : AttentionMask
        `UpperTriangular` (entry (i, j) open iff j <= i, one plane broadcast
        to all planes) or `BlockSparse` (blocks opened independently per band
        and per plane with probability `sparsity`).
    rng : np.random.Generator
        Random stream used by block-sparse masks.

    Returns
    -------
    np.ndarray
        Flat array of dtype `element_kind.storage_dtype`.
    """
    if isinstance(mask, UpperTriangular):
        open_entries = _upper_triangular_open(shape)
    elif isinstance(mask, BlockSparse):
        open_entries = _block_sparse_open(shape, mask, rng)
    else:
        raise ContractViolationError(
            f"unsupported mask variant: {type(mask).__name__}", "mask"
        )

    dtype = element_kind.storage_dtype
    zero = np.zeros((), dtype=dtype)
    masked = element_kind.most_negative_finite_storage()
    out = np.where(open_entries, zero, masked).astype(dtype, copy=False)
    return np.ascontiguousarray(out).reshape(-1)
