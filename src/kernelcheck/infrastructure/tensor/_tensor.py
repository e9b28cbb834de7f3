"""
Backend-owned dense tensors.

`Tensor` pairs a `TensorBuffer` with the backend that allocated it and
offers the construction modes the harness needs:

- `uninitialized`, `zeros`, `random_uniform`: fresh allocations
- `copying`: re-allocate another tensor's data on the current backend,
  converting element kinds through float32
- `slicing`, `reshaping`: copy a contiguous block / reinterpret the shape
- `with_mask`: synthesize an additive attention mask

Tensors are only combinable when their backend tags match; crossing
backends always goes through `copying`.
"""

from __future__ import annotations

from math import prod
from typing import TYPE_CHECKING, Any, Optional, Sequence, Tuple

import numpy as np
from typing_extensions import Self

from ...domain._attention_mask import AttentionMask
from ...domain._element_kind import ElementKind
from ...domain._errors import BackendMismatchError, ContractViolationError
from ...domain._parameters import (
    AttentionParameters,
    AttentionTensors,
    GEMMParameters,
    GEMMTensors,
)
from ...domain.backend._backend_tag import BackendTag
from ...domain.shapes._attention_shapes import derive_attention_parameters
from ...domain.shapes._gemm_shapes import derive_gemm_parameters
from ..distance._euclidean_distance import (
    EuclideanDistanceParameters,
    check_agreement,
    coarser_element_kind,
    euclidean_distance,
)
from ._element_codec import decode_to_float32, encode_from_float32
from ._mask import synthesize_mask_storage
from ._tensor_buffer import TensorBuffer, validate_shape

if TYPE_CHECKING:
    from ..backends._execution_context import ExecutionContext


class Tensor:
    """
    Dense, row-major tensor owned by one backend.

    Parameters
    ----------
    buffer : TensorBuffer
        Allocation holding the encoded elements.
    backend : ComputeBackend
        Backend that allocated `buffer`; it receives dispatches and reclaims
        the buffer on `release()`.

    Notes
    -----
    Prefer the factory classmethods over calling the constructor directly.
    """

    def __init__(self, buffer: TensorBuffer, backend: Any) -> None:
        if buffer.backend_tag != backend.tag:
            raise BackendMismatchError(str(buffer.backend_tag), str(backend.tag))
        self._buffer = buffer
        self._backend = backend

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------
    @classmethod
    def uninitialized(
        cls, shape: Sequence[int], element_kind: ElementKind, context: "ExecutionContext"
    ) -> Self:
        """Allocate on the context's current backend without initializing data."""
        backend = context.backend
        return cls(backend.allocate(validate_shape(shape), element_kind), backend)

    @classmethod
    def zeros(
        cls, shape: Sequence[int], element_kind: ElementKind, context: "ExecutionContext"
    ) -> Self:
        out = cls.uninitialized(shape, element_kind, context)
        # +0.0 is all-zero bits for every kind
        out._buffer.storage.fill(0)
        return out

    @classmethod
    def random_uniform(
        cls,
        shape: Sequence[int],
        element_kind: ElementKind,
        context: "ExecutionContext",
        *,
        low: float = 0.0,
        high: float = 1.0,
    ) -> Self:
        """
        Allocate and fill with uniform values from `[low, high)`.

        Values are drawn in float32 from `context.rng` and narrowed to the
        element kind (round to nearest even).
        """
        if not high > low:
            raise ContractViolationError(
                f"empty distribution range [{low}, {high})", "distribution"
            )
        out = cls.uninitialized(shape, element_kind, context)
        draws = context.rng.random(out.count, dtype=np.float32)
        values = draws * np.float32(high - low) + np.float32(low)
        out._buffer.storage[:] = encode_from_float32(values, element_kind)
        return out

    @classmethod
    def copying(
        cls,
        other: "Tensor",
        context: Optional["ExecutionContext"] = None,
        *,
        element_kind: Optional[ElementKind] = None,
    ) -> Self:
        """
        Copy `other` into a new allocation.

        Parameters
        ----------
        other : Tensor
            Source tensor.
        context : Optional[ExecutionContext]
            When given, the copy is allocated on the context's current backend
            (and tagged with it). Otherwise it stays on `other`'s backend.
        element_kind : Optional[ElementKind]
            Destination element kind; defaults to `other.element_kind`.
            Differing kinds convert through float32, never by reinterpreting
            bits.
        """
        backend = context.backend if context is not None else other._backend
        kind = other.element_kind if element_kind is None else element_kind
        out = cls(backend.allocate(other.shape, kind), backend)
        if kind is other.element_kind:
            out._buffer.storage[:] = other._buffer.storage
        else:
            out._buffer.storage[:] = encode_from_float32(other.to_numpy(), kind).reshape(
                -1
            )
        return out

    @classmethod
    def slicing(
        cls, other: "Tensor", indices: Sequence[int], last_sliced_dim: int
    ) -> Self:
        """
        Copy the contiguous block addressed by a leading multi-index.

        The first `last_sliced_dim + 1` dimensions of `other` are indexed by
        `indices` (row-major); the result has the remaining trailing shape.

        Raises
        ------
        ContractViolationError
            If `len(indices) != last_sliced_dim + 1`, an index is out of range,
            or no trailing dimension would remain.
        """
        shape = other.shape
        last = int(last_sliced_dim)
        if last < 0 or last + 1 >= len(shape):
            raise ContractViolationError(
                f"last_sliced_dim {last_sliced_dim} must leave at least one trailing "
                f"dimension of shape {shape}",
                "last_sliced_dim",
            )
        if len(indices) != last + 1:
            raise ContractViolationError(
                f"expected {last + 1} indices, got {len(indices)}", "indices"
            )

        offset = 0
        for dim, index in enumerate(indices):
            index = int(index)
            if not 0 <= index < shape[dim]:
                raise ContractViolationError(
                    f"index {index} out of range for dimension {dim} of size {shape[dim]}",
                    "indices",
                )
            offset += index * prod(shape[dim + 1 :])

        trailing = shape[last + 1 :]
        block = prod(trailing)
        out = cls(other._backend.allocate(trailing, other.element_kind), other._backend)
        out._buffer.storage[:] = other._buffer.storage[offset : offset + block]
        return out

    @classmethod
    def reshaping(cls, other: "Tensor", shape: Sequence[int]) -> Self:
        """
        Copy `other` under a new shape with the same element count.

        Raises
        ------
        ContractViolationError
            If the element count would change.
        """
        shape = validate_shape(shape)
        if prod(shape) != other.count:
            raise ContractViolationError(
                f"cannot reshape {other.shape} ({other.count} elements) to {shape}",
                "shape",
            )
        out = cls(other._backend.allocate(shape, other.element_kind), other._backend)
        out._buffer.storage[:] = other._buffer.storage
        return out

    @classmethod
    def with_mask(
        cls,
        shape: Sequence[int],
        element_kind: ElementKind,
        context: "ExecutionContext",
        mask: AttentionMask,
    ) -> Self:
        """
        Allocate an additive attention mask of `shape`.

        Open entries hold 0; masked entries hold the most-negative finite value
        of `element_kind`. Block-sparse masks draw from `context.rng`.
        """
        out = cls.uninitialized(shape, element_kind, context)
        out._buffer.storage[:] = synthesize_mask_storage(
            out.shape, element_kind, mask, context.rng
        )
        return out

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def shape(self) -> Tuple[int, ...]:
        return self._buffer.shape

    @property
    def element_kind(self) -> ElementKind:
        return self._buffer.element_kind

    @property
    def backend_tag(self) -> BackendTag:
        return self._buffer.backend_tag

    @property
    def backend(self) -> Any:
        return self._backend

    @property
    def buffer(self) -> TensorBuffer:
        return self._buffer

    @property
    def count(self) -> int:
        return self._buffer.count

    @property
    def allocated_size(self) -> int:
        return self._buffer.allocated_size

    def __repr__(self) -> str:
        return (
            f"Tensor(shape={self.shape}, element_kind={self.element_kind.short_description}, "
            f"backend='{self.backend_tag}')"
        )

    # ------------------------------------------------------------------
    # Host I/O
    # ------------------------------------------------------------------
    def raw(self) -> np.ndarray:
        """Shaped view of the encoded storage (bf16 as `np.uint16` bits)."""
        return self._buffer.storage.reshape(self.shape)

    def to_numpy(self) -> np.ndarray:
        """Decode to a new float32 array of `shape`."""
        return decode_to_float32(self._buffer.storage, self.element_kind).reshape(
            self.shape
        )

    def copy_from_numpy(self, values: Any) -> None:
        """
        Encode `values` (broadcastable to `shape`) into this tensor.

        Raises
        ------
        ContractViolationError
            If `values` does not broadcast to the tensor's shape.
        """
        arr = np.asarray(values, dtype=np.float32)
        try:
            arr = np.broadcast_to(arr, self.shape)
        except ValueError:
            raise ContractViolationError(
                f"cannot copy values of shape {arr.shape} into tensor of shape {self.shape}",
                "shape",
            ) from None
        self._buffer.storage[:] = encode_from_float32(arr, self.element_kind).reshape(-1)

    def has_nan(self) -> bool:
        return bool(np.isnan(self.to_numpy()).any())

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------
    def _check_same_backend(self, other: "Tensor") -> None:
        if self.backend_tag != other.backend_tag:
            raise BackendMismatchError(str(self.backend_tag), str(other.backend_tag))

    def euclidean_distance(self, other: "Tensor") -> float:
        """
        L2 distance between the decoded contents of two tensors.

        Element kinds may differ; backends and element counts must match.
        """
        self._check_same_backend(other)
        return euclidean_distance(self.to_numpy(), other.to_numpy())

    def is_approximately_equal(
        self, other: "Tensor", parameters: EuclideanDistanceParameters
    ) -> bool:
        """
        Whether the distance to `other` is below the tolerance.

        The tolerance uses the less precise of the two element kinds.

        Raises
        ------
        NumericDivergenceError
            If the distance is NaN.
        """
        distance = self.euclidean_distance(other)
        kind = coarser_element_kind(self.element_kind, other.element_kind)
        tolerance = parameters.tolerance(kind, self.count)
        return check_agreement(distance, tolerance)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def matmul(
        self,
        b: "Tensor",
        c: "Tensor",
        d: Optional["Tensor"] = None,
        *,
        transpose_a: bool = False,
        transpose_b: bool = False,
        transpose_d: bool = False,
    ) -> GEMMParameters:
        """
        Enqueue `c = self @ b (+ d)` on this tensor's backend.

        The work runs at the backend's next `synchronize()`.

        Returns
        -------
        GEMMParameters
            The descriptor derived from the operand shapes.
        """
        operands = [b, c] + ([d] if d is not None else [])
        for t in operands:
            self._check_same_backend(t)
        params = derive_gemm_parameters(
            self.shape,
            b.shape,
            c.shape,
            d.shape if d is not None else None,
            transpose_a=transpose_a,
            transpose_b=transpose_b,
            transpose_d=transpose_d,
            fused_bias=d is not None,
            element_kind=self.element_kind,
        )
        self._backend.dispatch(
            params,
            GEMMTensors(
                self._buffer, b._buffer, c._buffer, d._buffer if d is not None else None
            ),
        )
        return params

    def attention(
        self,
        k: "Tensor",
        v: "Tensor",
        o: "Tensor",
        mask: Optional["Tensor"] = None,
        *,
        transpose_q: bool = False,
        transpose_k: bool = True,
        transpose_v: bool = False,
        transpose_o: bool = False,
        block_sparse: bool = False,
    ) -> AttentionParameters:
        """
        Enqueue `o = softmax(self k^T / sqrt(D) + mask) v` on this tensor's backend.

        Returns
        -------
        AttentionParameters
            The descriptor derived from the operand shapes.
        """
        operands = [k, v, o] + ([mask] if mask is not None else [])
        for t in operands:
            self._check_same_backend(t)
        params = derive_attention_parameters(
            self.shape,
            k.shape,
            v.shape,
            o.shape,
            mask.shape if mask is not None else None,
            transpose_q=transpose_q,
            transpose_k=transpose_k,
            transpose_v=transpose_v,
            transpose_o=transpose_o,
            block_sparse=block_sparse,
            element_kind=self.element_kind,
        )
        self._backend.dispatch(
            params,
            AttentionTensors(
                self._buffer,
                k._buffer,
                v._buffer,
                o._buffer,
                mask._buffer if mask is not None else None,
            ),
        )
        return params

    def release(self) -> None:
        """Return the allocation to the owning backend (idempotent)."""
        self._backend.release(self._buffer)
