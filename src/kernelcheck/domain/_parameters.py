"""
Operation descriptors dispatched to compute backends.

`GEMMParameters` and `AttentionParameters` are derived (never stored
independently) from physical tensor shapes and transpose flags by the shape
algebra in `kernelcheck.domain.shapes`. Each descriptor can regenerate the
physical operand shapes it was derived from, which keeps derivation
idempotent and testable.

`GEMMTensors` and `AttentionTensors` bundle the operand buffers handed to
`ComputeBackend.dispatch` alongside the descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from math import prod
from typing import Any, Optional, Tuple

from ._element_kind import ElementKind

Shape = Tuple[int, ...]


class OperationKind(Enum):
    """Operation families the harness can benchmark."""

    GEMM = "gemm"
    ATTENTION = "attention"


@dataclass(frozen=True)
class GEMMParameters:
    """
    Logical description of `C = A @ B (+ D)`.

    Attributes
    ----------
    element_kind : ElementKind
        Element kind shared by all operands.
    M, N, K : int
        Logical matrix dimensions: A is M x K, B is K x N, C is M x N.
    transpose_a, transpose_b, transpose_d : bool
        Physical layout flags. A transposed is stored as [K, M], B transposed
        as [N, K], and a transposed bias is indexed by M instead of N.
    batched : bool
        True when A and C carry leading batch dimensions.
    fused_bias : bool
        True when a bias operand D is added to the product.
    batch_dimensions_a, batch_dimensions_b, batch_dimensions_c : tuple[int, ...]
        Leading (batch) dimensions of each operand.
    batch_dimensions_d : Optional[tuple[int, ...]]
        Leading dimensions of the bias, or None without a bias.
    """

    element_kind: ElementKind
    M: int
    N: int
    K: int
    transpose_a: bool = False
    transpose_b: bool = False
    transpose_d: bool = False
    batched: bool = False
    fused_bias: bool = False
    batch_dimensions_a: Shape = ()
    batch_dimensions_b: Shape = ()
    batch_dimensions_c: Shape = ()
    batch_dimensions_d: Optional[Shape] = None

    @property
    def kind(self) -> OperationKind:
        return OperationKind.GEMM

    @property
    def batch_size(self) -> int:
        """Number of independent products computed (product of C's batch dims)."""
        return prod(self.batch_dimensions_c) if self.batch_dimensions_c else 1

    @property
    def flop_count(self) -> int:
        """Floating-point operations of one dispatch: 2*M*N*K per product."""
        return 2 * self.M * self.N * self.K * self.batch_size

    @property
    def shape_a(self) -> Shape:
        core = (self.K, self.M) if self.transpose_a else (self.M, self.K)
        return tuple(self.batch_dimensions_a) + core

    @property
    def shape_b(self) -> Shape:
        core = (self.N, self.K) if self.transpose_b else (self.K, self.N)
        return tuple(self.batch_dimensions_b) + core

    @property
    def shape_c(self) -> Shape:
        return tuple(self.batch_dimensions_c) + (self.M, self.N)

    @property
    def shape_d(self) -> Optional[Shape]:
        if not self.fused_bias:
            return None
        core = (self.M,) if self.transpose_d else (self.N,)
        return tuple(self.batch_dimensions_d or ()) + core


@dataclass(frozen=True)
class AttentionParameters:
    """
    Logical description of `O = softmax(Q K^T / sqrt(D) + mask) V`.

    Attributes
    ----------
    element_kind : ElementKind
        Element kind shared by all operands.
    R : int
        Number of query rows.
    C : int
        Number of key/value columns.
    H : int
        Number of heads.
    D : int
        Head dimension.
    transpose_q, transpose_k, transpose_v, transpose_o : bool
        Physical layout flags (see `kernelcheck.domain.shapes`).
    batched : bool
        True when operands carry leading batch dimensions.
    masked : bool
        True when a mask operand is supplied.
    block_sparse : bool
        True when the kernel may skip fully-masked blocks.
    batch_dimensions_q : tuple[int, ...]
        Leading batch dimensions shared by Q, K, V and O.
    batch_dimensions_mask : Optional[tuple[int, ...]]
        Leading batch dimensions of the mask, or None without a mask.
    mask_heads : Optional[int]
        Head extent of the mask (1 when shared across heads, else H).
    """

    element_kind: ElementKind
    R: int
    C: int
    H: int
    D: int
    transpose_q: bool = False
    transpose_k: bool = True
    transpose_v: bool = False
    transpose_o: bool = False
    batched: bool = False
    masked: bool = False
    block_sparse: bool = False
    batch_dimensions_q: Shape = ()
    batch_dimensions_mask: Optional[Shape] = None
    mask_heads: Optional[int] = None

    @property
    def kind(self) -> OperationKind:
        return OperationKind.ATTENTION

    @property
    def batch_size(self) -> int:
        return prod(self.batch_dimensions_q) if self.batch_dimensions_q else 1

    @property
    def flop_count(self) -> int:
        """Operations of one dispatch: two R x C x D products per head."""
        return 4 * self.R * self.C * self.D * self.H * self.batch_size

    @property
    def shape_q(self) -> Shape:
        core = (
            (self.H, self.D, self.R) if self.transpose_q else (self.R, self.H, self.D)
        )
        return tuple(self.batch_dimensions_q) + core

    @property
    def shape_k(self) -> Shape:
        core = (
            (self.C, self.H, self.D) if self.transpose_k else (self.H, self.D, self.C)
        )
        return tuple(self.batch_dimensions_q) + core

    @property
    def shape_v(self) -> Shape:
        core = (
            (self.H, self.D, self.C) if self.transpose_v else (self.C, self.H, self.D)
        )
        return tuple(self.batch_dimensions_q) + core

    @property
    def shape_o(self) -> Shape:
        core = (
            (self.H, self.D, self.R) if self.transpose_o else (self.R, self.H, self.D)
        )
        return tuple(self.batch_dimensions_q) + core

    @property
    def shape_mask(self) -> Optional[Shape]:
        if not self.masked:
            return None
        heads = self.mask_heads if self.mask_heads is not None else 1
        return tuple(self.batch_dimensions_mask or ()) + (heads, self.R, self.C)


@dataclass
class GEMMTensors:
    """Operand buffers of a GEMM dispatch (`d` is the optional bias)."""

    a: Any
    b: Any
    c: Any
    d: Any = None


@dataclass
class AttentionTensors:
    """Operand buffers of an attention dispatch (`mask` is optional)."""

    q: Any
    k: Any
    v: Any
    o: Any
    mask: Any = None
