"""
CPU GEMM kernels for kernelcheck backends.

This module provides the two host implementations of `C = A @ B (+ D)` used
by the bundled backends:

- `gemm_reference_cpu`: a single `np.matmul` call, the vendor-style baseline
- `gemm_tiled_cpu`: a blocked kernel that walks M in `M_simd`-row tiles and
  accumulates K in `K_simd`-wide slabs, mimicking a tuned GPU kernel's
  decomposition

Both operate on float32 arrays in physical layout (already decoded from the
operand element kind) and return a float32 array of C's shape.

Non-goals
---------
- Speed. The kernels exist so the harness can be exercised end to end.
"""

from __future__ import annotations

from typing import Mapping, Optional

import numpy as np

from ...domain._parameters import GEMMParameters


def _logical_operands(a: np.ndarray, b: np.ndarray, params: GEMMParameters):
    a = a.reshape(params.shape_a)
    b = b.reshape(params.shape_b)
    if params.transpose_a:
        a = np.swapaxes(a, -1, -2)
    if params.transpose_b:
        b = np.swapaxes(b, -1, -2)
    return a, b


def _apply_bias(
    c: np.ndarray, d: Optional[np.ndarray], params: GEMMParameters
) -> np.ndarray:
    if not params.fused_bias or d is None:
        return c
    d = d.reshape(params.shape_d)
    if params.transpose_d:
        # indexed by row: [..., M] -> [..., M, 1]
        return c + d[..., :, None]
    return c + d[..., None, :]


def _finish(c: np.ndarray, params: GEMMParameters) -> np.ndarray:
    return np.ascontiguousarray(
        np.broadcast_to(c, params.shape_c), dtype=np.float32
    )


def gemm_reference_cpu(
    a: np.ndarray,
    b: np.ndarray,
    d: Optional[np.ndarray],
    params: GEMMParameters,
) -> np.ndarray:
    """
    Compute `A @ B (+ D)` with one broadcasting matmul.

    Parameters
    ----------
    a, b : np.ndarray
        Float32 operands; flat or already shaped like `params.shape_a` /
        `params.shape_b`.
    d : Optional[np.ndarray]
        Float32 bias, required when `params.fused_bias` is set.
    params : GEMMParameters
        Derived operation descriptor.

    Returns
    -------
    np.ndarray
        Float32 array of shape `params.shape_c`.
    """
    a, b = _logical_operands(a, b, params)
    c = np.matmul(a, b, dtype=np.float32)
    return _finish(_apply_bias(c, d, params), params)


def gemm_tiled_cpu(
    a: np.ndarray,
    b: np.ndarray,
    d: Optional[np.ndarray],
    params: GEMMParameters,
    tile_constants: Mapping[str, int],
) -> np.ndarray:
    """
    Compute `A @ B (+ D)` with an explicit M x K blocking.

    The output is built `M_simd` rows at a time; each row tile accumulates
    its K extent in `K_simd`-wide slabs in float32. `N_simd` is validated but
    a full row of N is produced per slab.

    Raises
    ------
    ValueError
        If a tile constant is missing or not positive.
    """
    m_simd = int(tile_constants["M_simd"])
    n_simd = int(tile_constants["N_simd"])
    k_simd = int(tile_constants["K_simd"])
    if min(m_simd, n_simd, k_simd) <= 0:
        raise ValueError(f"tile constants must be positive, got {dict(tile_constants)}")

    a, b = _logical_operands(a, b, params)
    batch = np.broadcast_shapes(a.shape[:-2], b.shape[:-2])
    M, N, K = params.M, params.N, params.K
    c = np.zeros(batch + (M, N), dtype=np.float32)

    for m0 in range(0, M, m_simd):
        m1 = min(m0 + m_simd, M)
        acc = np.zeros(batch + (m1 - m0, N), dtype=np.float32)
        for k0 in range(0, K, k_simd):
            k1 = min(k0 + k_simd, K)
            acc += np.matmul(a[..., m0:m1, k0:k1], b[..., k0:k1, :], dtype=np.float32)
        c[..., m0:m1, :] = acc

    return _finish(_apply_bias(c, d, params), params)
