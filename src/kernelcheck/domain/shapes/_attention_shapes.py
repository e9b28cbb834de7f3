"""
Attention operand shape algebra.

Resolves the logical dimensions R (query rows), C (key/value columns),
H (heads) and D (head dimension) from the physical shapes of Q, K, V, O and
an optional mask.

Layout rules (the last three dimensions of each operand)
-------------------------------------------------------
- Q: `[R, H, D]`, transposed `[H, D, R]`
- K: `[H, D, C]`, transposed `[C, H, D]` (keys default to transposed)
- V: `[C, H, D]`, transposed `[H, D, C]`
- O: `[R, H, D]`, transposed `[H, D, R]`
- mask: `[H or 1, R, C]`

All dimensions before the last three are batch dimensions and must be equal
across Q, K, V and O. The mask carries its own batch prefix, which must have
exactly one dimension fewer than the data prefix when the operation is
batched and none when it is not: the mask is broadcast across the outermost
batch axis.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .._element_kind import ElementKind
from .._errors import ContractViolationError, ShapeMismatchError
from .._parameters import AttentionParameters
from ._gemm_shapes import _as_shape

Shape = Tuple[int, ...]


def _split_query_like(shape: Shape, transposed: bool) -> Tuple[int, int, int]:
    """Return (rows, H, D) for Q/O style operands."""
    if transposed:
        return shape[-1], shape[-3], shape[-2]
    return shape[-3], shape[-2], shape[-1]


def derive_attention_parameters(
    q_shape: Sequence[int],
    k_shape: Sequence[int],
    v_shape: Sequence[int],
    o_shape: Sequence[int],
    mask_shape: Optional[Sequence[int]] = None,
    *,
    transpose_q: bool = False,
    transpose_k: bool = True,
    transpose_v: bool = False,
    transpose_o: bool = False,
    block_sparse: bool = False,
    element_kind: ElementKind = ElementKind.F32,
) -> AttentionParameters:
    """
    Derive attention parameters from physical operand shapes.

    Parameters
    ----------
    q_shape, k_shape, v_shape, o_shape : Sequence[int]
        Physical shapes of queries, keys, values and the output (rank >= 3,
        all of equal rank).
    mask_shape : Optional[Sequence[int]], optional
        Physical shape of the additive mask, if any.
    transpose_q, transpose_k, transpose_v, transpose_o : bool, optional
        Layout flags; keys are transposed by default.
    block_sparse : bool, optional
        Request block-sparse execution. Requires a mask.
    element_kind : ElementKind, optional
        Element kind recorded on the returned descriptor.

    Returns
    -------
    AttentionParameters
        The derived descriptor.

    Raises
    ------
    ShapeMismatchError
        If R, C, H or D disagree between operands.
    ContractViolationError
        For malformed ranks, unequal batch prefixes, a mask whose batch rank
        breaks the broadcast rule, or block sparsity without a mask.
    """
    q = _as_shape(q_shape, "Q", 3)
    k = _as_shape(k_shape, "K", 3)
    v = _as_shape(v_shape, "V", 3)
    o = _as_shape(o_shape, "O", 3)
    if not (len(q) == len(k) == len(v) == len(o)):
        raise ContractViolationError(
            f"Q/K/V/O must share one rank, got {q}, {k}, {v}, {o}", "rank"
        )

    batch = q[:-3]
    for name, shape in (("K", k), ("V", v), ("O", o)):
        if shape[:-3] != batch:
            raise ContractViolationError(
                f"batch dimensions of {name} {shape[:-3]} do not match Q {batch}",
                "batch",
            )

    q_r, q_h, q_d = _split_query_like(q, transpose_q)
    o_r, o_h, o_d = _split_query_like(o, transpose_o)
    if transpose_k:
        k_c, k_h, k_d = k[-3], k[-2], k[-1]
    else:
        k_h, k_d, k_c = k[-3], k[-2], k[-1]
    if transpose_v:
        v_h, v_d, v_c = v[-3], v[-2], v[-1]
    else:
        v_c, v_h, v_d = v[-3], v[-2], v[-1]

    if q_r != o_r:
        raise ShapeMismatchError("R", q_r, o_r)
    if k_c != v_c:
        raise ShapeMismatchError("C", k_c, v_c)
    for h in (k_h, v_h, o_h):
        if h != q_h:
            raise ShapeMismatchError("H", q_h, h)
    for d in (k_d, v_d, o_d):
        if d != q_d:
            raise ShapeMismatchError("D", q_d, d)

    batched = len(q) > 3

    batch_mask: Optional[Shape] = None
    mask_heads: Optional[int] = None
    if mask_shape is not None:
        mask = _as_shape(mask_shape, "mask", 3)
        if mask[-2] != q_r:
            raise ShapeMismatchError("R", q_r, mask[-2])
        if mask[-1] != k_c:
            raise ShapeMismatchError("C", k_c, mask[-1])
        if mask[-3] not in (1, q_h):
            raise ShapeMismatchError("H", q_h, mask[-3])
        batch_mask = mask[:-3]
        expected = len(batch) - 1 if batched else 0
        if len(batch_mask) != expected:
            raise ContractViolationError(
                f"mask batch rank must be {expected} for data batch {batch}, "
                f"got mask shape {mask}",
                "mask",
            )
        inner = batch[len(batch) - len(batch_mask):]
        for have, want in zip(batch_mask, inner):
            if have not in (1, want):
                raise ContractViolationError(
                    f"mask batch dimensions {batch_mask} do not broadcast to {inner}",
                    "mask",
                )
        mask_heads = mask[-3]
    elif block_sparse:
        raise ContractViolationError("block sparsity requires a mask", "mask")

    return AttentionParameters(
        element_kind=element_kind,
        R=q_r,
        C=k_c,
        H=q_h,
        D=q_d,
        transpose_q=bool(transpose_q),
        transpose_k=bool(transpose_k),
        transpose_v=bool(transpose_v),
        transpose_o=bool(transpose_o),
        batched=batched,
        masked=mask_shape is not None,
        block_sparse=bool(block_sparse),
        batch_dimensions_q=batch,
        batch_dimensions_mask=batch_mask,
        mask_heads=mask_heads,
    )


def attention_operand_shapes(
    R: int,
    C: int,
    H: int,
    D: int,
    *,
    transpose_q: bool = False,
    transpose_k: bool = True,
    transpose_v: bool = False,
    transpose_o: bool = False,
    batch_dimensions: Sequence[int] = (),
    masked: bool = False,
    mask_heads: int = 1,
) -> Tuple[Shape, Shape, Shape, Shape, Optional[Shape]]:
    """
    Build physical shapes (Q, K, V, O, mask) from logical dimensions.

    The mask (when `masked`) drops the outermost batch dimension, following
    the broadcast rule of `derive_attention_parameters`.
    """
    batch = tuple(int(x) for x in batch_dimensions)
    shape_q = batch + ((H, D, R) if transpose_q else (R, H, D))
    shape_k = batch + ((C, H, D) if transpose_k else (H, D, C))
    shape_v = batch + ((H, D, C) if transpose_v else (C, H, D))
    shape_o = batch + ((H, D, R) if transpose_o else (R, H, D))
    shape_mask: Optional[Shape] = None
    if masked:
        shape_mask = batch[1:] + (int(mask_heads), R, C)
    return shape_q, shape_k, shape_v, shape_o, shape_mask
