"""
GEMM operand shape algebra.

This module resolves the logical dimensions (M, N, K) of `C = A @ B (+ D)`
from physical operand shapes and transpose flags, and performs the inverse
mapping from logical dimensions to physical shapes.

Layout rules
------------
- A is `[M, K]`, or `[K, M]` when `transpose_a`.
- B is `[K, N]`, or `[N, K]` when `transpose_b`.
- C is `[M, N]`.
- The bias D is `[N]`, or `[M]` when `transpose_d`.
- Any dimensions before these cores are batch dimensions. Batching is
  signaled by A or C having rank > 2 (both must then be batched), and the
  batch prefixes of A, B and D must broadcast to C's batch prefix.

Every mismatch is a `ContractViolationError` (a caller bug), never a
recoverable condition.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .._element_kind import ElementKind
from .._errors import ContractViolationError, ShapeMismatchError
from .._parameters import GEMMParameters

Shape = Tuple[int, ...]


def _as_shape(shape: Sequence[int], name: str, min_rank: int) -> Shape:
    out = tuple(int(s) for s in shape)
    if len(out) < min_rank:
        raise ContractViolationError(
            f"{name} must have rank >= {min_rank}, got shape {out}", name
        )
    if any(s <= 0 for s in out):
        raise ContractViolationError(
            f"{name} dimensions must be positive, got shape {out}", name
        )
    return out


def _check_batch_broadcast(
    target: Shape, prefixes: Sequence[Tuple[str, Shape]]
) -> None:
    """
    Require every prefix in `prefixes` to broadcast to exactly `target`.

    Raises
    ------
    ContractViolationError
        If the prefixes are not broadcast-compatible with `target`.
    """
    for name, prefix in prefixes:
        try:
            combined = np.broadcast_shapes(tuple(prefix), tuple(target))
        except ValueError:
            raise ContractViolationError(
                f"batch dimensions of {name} {prefix} do not broadcast to {target}",
                "batch",
            ) from None
        if tuple(combined) != tuple(target):
            raise ContractViolationError(
                f"batch dimensions of {name} {prefix} do not broadcast to {target}",
                "batch",
            )


def derive_gemm_parameters(
    a_shape: Sequence[int],
    b_shape: Sequence[int],
    c_shape: Sequence[int],
    d_shape: Optional[Sequence[int]] = None,
    *,
    transpose_a: bool = False,
    transpose_b: bool = False,
    transpose_d: bool = False,
    fused_bias: bool = False,
    element_kind: ElementKind = ElementKind.F32,
) -> GEMMParameters:
    """
    Derive GEMM parameters from physical operand shapes.

    Parameters
    ----------
    a_shape, b_shape, c_shape : Sequence[int]
        Physical shapes of A, B and the destination C (rank >= 2).
    d_shape : Optional[Sequence[int]], optional
        Physical shape of the bias operand, if any (rank >= 1).
    transpose_a, transpose_b, transpose_d : bool, optional
        Layout flags of A, B and D.
    fused_bias : bool, optional
        Whether a bias is added. Must agree with `d_shape` being supplied.
    element_kind : ElementKind, optional
        Element kind recorded on the returned descriptor.

    Returns
    -------
    GEMMParameters
        The derived descriptor. Deriving again from `params.shape_a`,
        `params.shape_b`, `params.shape_c` and `params.shape_d` with the same
        flags reproduces it exactly.

    Raises
    ------
    ShapeMismatchError
        If K disagrees between A and B, or C/D disagree with M or N.
    ContractViolationError
        For malformed ranks, bias misuse, or incompatible batch prefixes.
    """
    a = _as_shape(a_shape, "A", 2)
    b = _as_shape(b_shape, "B", 2)
    c = _as_shape(c_shape, "C", 2)

    if transpose_a:
        a_k, m = a[-2], a[-1]
    else:
        m, a_k = a[-2], a[-1]
    if transpose_b:
        n, b_k = b[-2], b[-1]
    else:
        b_k, n = b[-2], b[-1]
    if a_k != b_k:
        raise ShapeMismatchError("K", a_k, b_k)
    k = a_k

    if c[-2] != m:
        raise ShapeMismatchError("M", m, c[-2])
    if c[-1] != n:
        raise ShapeMismatchError("N", n, c[-1])

    batched = False
    if len(a) > 2:
        if len(c) <= 2:
            raise ContractViolationError(
                f"A is batched {a} but C is not {c}", "batch"
            )
        batched = True
    if len(c) > 2:
        if len(a) <= 2:
            raise ContractViolationError(
                f"C is batched {c} but A is not {a}", "batch"
            )
        batched = True

    batch_a, batch_b, batch_c = a[:-2], b[:-2], c[:-2]
    prefixes = [("A", batch_a), ("B", batch_b)]

    batch_d: Optional[Shape] = None
    if not fused_bias:
        if d_shape is not None:
            raise ContractViolationError(
                "a bias operand was supplied without fused_bias", "D"
            )
    else:
        if d_shape is None:
            raise ContractViolationError("fused_bias requires a bias operand", "D")
        d = _as_shape(d_shape, "D", 1)
        if transpose_d:
            if d[-1] != m:
                raise ShapeMismatchError("M", m, d[-1])
        else:
            if d[-1] != n:
                raise ShapeMismatchError("N", n, d[-1])
        batch_d = d[:-1]
        prefixes.append(("D", batch_d))

    _check_batch_broadcast(batch_c, prefixes)

    return GEMMParameters(
        element_kind=element_kind,
        M=m,
        N=n,
        K=k,
        transpose_a=bool(transpose_a),
        transpose_b=bool(transpose_b),
        transpose_d=bool(transpose_d),
        batched=batched,
        fused_bias=bool(fused_bias),
        batch_dimensions_a=batch_a,
        batch_dimensions_b=batch_b,
        batch_dimensions_c=batch_c,
        batch_dimensions_d=batch_d,
    )


def gemm_operand_shapes(
    M: int,
    N: int,
    K: int,
    *,
    transpose_a: bool = False,
    transpose_b: bool = False,
    transpose_d: bool = False,
    use_bias: bool = False,
    batch_dimensions: Sequence[int] = (),
) -> Tuple[Shape, Shape, Shape, Optional[Shape]]:
    """
    Build physical shapes (A, B, C, D) from logical dimensions.

    All operands receive the same `batch_dimensions` prefix. D is None unless
    `use_bias` is set.
    """
    batch = tuple(int(x) for x in batch_dimensions)
    shape_a = batch + ((K, M) if transpose_a else (M, K))
    shape_b = batch + ((N, K) if transpose_b else (K, N))
    shape_c = batch + (M, N)
    shape_d: Optional[Shape] = None
    if use_bias:
        shape_d = batch + ((M,) if transpose_d else (N,))
    return shape_a, shape_b, shape_c, shape_d
