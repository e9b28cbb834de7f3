"""
CPU attention kernels for kernelcheck backends.

Computes `O = softmax(Q K^T / sqrt(D) + mask) V` per head on float32 arrays.

- `attention_reference_cpu` materializes the full score matrix.
- `attention_tiled_cpu` streams K/V in column blocks with an online softmax
  (running max and running denominator), as a flash-attention style kernel
  would.

Operands arrive in physical layout and are brought into the canonical
`[..., H, rows, D]` arrangement before any math; the output is written back
in O's physical layout.
"""

from __future__ import annotations

import math
from typing import Mapping, Optional

import numpy as np

from ...domain._parameters import AttentionParameters


def _canonical_operands(q, k, v, params: AttentionParameters):
    q = q.reshape(params.shape_q)
    k = k.reshape(params.shape_k)
    v = v.reshape(params.shape_v)
    # Q: [..., R, H, D] or [..., H, D, R] -> [..., H, R, D]
    q = np.swapaxes(q, -1, -2) if params.transpose_q else np.swapaxes(q, -3, -2)
    # K: [..., C, H, D] or [..., H, D, C] -> [..., H, C, D]
    k = np.swapaxes(k, -3, -2) if params.transpose_k else np.swapaxes(k, -1, -2)
    # V: [..., C, H, D] or [..., H, D, C] -> [..., H, C, D]
    v = np.swapaxes(v, -1, -2) if params.transpose_v else np.swapaxes(v, -3, -2)
    return q, k, v


def _physical_output(o: np.ndarray, params: AttentionParameters) -> np.ndarray:
    # [..., H, R, D] -> [..., R, H, D] or [..., H, D, R]
    o = np.swapaxes(o, -1, -2) if params.transpose_o else np.swapaxes(o, -3, -2)
    return np.ascontiguousarray(o, dtype=np.float32)


def _shaped_mask(
    mask: Optional[np.ndarray], params: AttentionParameters
) -> Optional[np.ndarray]:
    if not params.masked or mask is None:
        return None
    return mask.reshape(params.shape_mask)


def attention_reference_cpu(
    q: np.ndarray,
    k: np.ndarray,
    v: np.ndarray,
    mask: Optional[np.ndarray],
    params: AttentionParameters,
) -> np.ndarray:
    """
    Compute attention with a fully materialized score matrix.

    Returns
    -------
    np.ndarray
        Float32 array of shape `params.shape_o`.
    """
    q, k, v = _canonical_operands(q, k, v, params)
    scale = np.float32(1.0 / math.sqrt(params.D))

    with np.errstate(over="ignore"):
        scores = np.matmul(q, np.swapaxes(k, -1, -2), dtype=np.float32) * scale
        m = _shaped_mask(mask, params)
        if m is not None:
            scores = scores + m
        scores = scores - scores.max(axis=-1, keepdims=True)
        p = np.exp(scores, dtype=np.float32)
        p /= p.sum(axis=-1, keepdims=True)
        o = np.matmul(p, v, dtype=np.float32)
    return _physical_output(o, params)


def attention_tiled_cpu(
    q: np.ndarray,
    k: np.ndarray,
    v: np.ndarray,
    mask: Optional[np.ndarray],
    params: AttentionParameters,
    tile_constants: Mapping[str, int],
) -> np.ndarray:
    """
    Compute attention in `N_simd`-wide column blocks with an online softmax.

    Returns
    -------
    np.ndarray
        Float32 array of shape `params.shape_o`.
    """
    block = int(tile_constants["N_simd"])
    if block <= 0:
        raise ValueError(f"tile constants must be positive, got {dict(tile_constants)}")

    q, k, v = _canonical_operands(q, k, v, params)
    m = _shaped_mask(mask, params)
    scale = np.float32(1.0 / math.sqrt(params.D))

    lead = np.broadcast_shapes(q.shape[:-2], k.shape[:-2])
    rows = params.R
    running_max = np.full(lead + (rows, 1), -np.inf, dtype=np.float32)
    running_sum = np.zeros(lead + (rows, 1), dtype=np.float32)
    acc = np.zeros(lead + (rows, params.D), dtype=np.float32)

    with np.errstate(over="ignore", invalid="ignore"):
        for c0 in range(0, params.C, block):
            c1 = min(c0 + block, params.C)
            s = np.matmul(q, np.swapaxes(k[..., c0:c1, :], -1, -2), dtype=np.float32)
            s = s * scale
            if m is not None:
                s = s + m[..., c0:c1]
            block_max = s.max(axis=-1, keepdims=True)
            new_max = np.maximum(running_max, block_max)
            correction = np.exp(running_max - new_max, dtype=np.float32)
            p = np.exp(s - new_max, dtype=np.float32)
            running_sum = running_sum * correction + p.sum(axis=-1, keepdims=True)
            acc = acc * correction + np.matmul(p, v[..., c0:c1, :], dtype=np.float32)
            running_max = new_max

    return _physical_output(acc / running_sum, params)
