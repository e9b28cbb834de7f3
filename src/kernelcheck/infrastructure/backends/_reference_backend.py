"""
Reference backend: plain NumPy, one matmul per product.

Plays the role of the vendor library every candidate is checked against.
It accepts `f32` and `f16` only; the harness runs its companion reference
pass in `f32` when a candidate uses `bf16`.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Optional, Sequence

from ...domain._element_kind import ElementKind
from ...domain.backend._backend_tag import BackendKind, BackendTag
from ..ops.attention_cpu import attention_reference_cpu
from ..ops.gemm_cpu import gemm_reference_cpu
from ..tensor._tensor_buffer import TensorBuffer
from ._command_queue import CommandQueue
from ._dispatch import build_command
from ._host_allocator import HostAllocator


class ReferenceBackend:
    """Vendor-style reference implementation of the `ComputeBackend` contract."""

    kind = BackendKind.REFERENCE
    supported_element_kinds: FrozenSet[ElementKind] = frozenset(
        {ElementKind.F32, ElementKind.F16}
    )

    def __init__(
        self, index: Optional[int] = None, *, capacity_bytes: Optional[int] = None
    ) -> None:
        self.tag = BackendTag.of(self.kind, index)
        self._allocator = HostAllocator(
            self.tag, self.supported_element_kinds, capacity_bytes
        )
        self._queue = CommandQueue(str(self.tag))

    def __repr__(self) -> str:
        return f"ReferenceBackend(tag='{self.tag}')"

    @property
    def allocated_bytes(self) -> int:
        return self._allocator.allocated_bytes

    @property
    def pending_commands(self) -> int:
        return len(self._queue)

    def allocate(self, shape: Sequence[int], element_kind: ElementKind) -> TensorBuffer:
        return self._allocator.allocate(shape, element_kind)

    def release(self, buffer: TensorBuffer) -> None:
        self._allocator.release(buffer)

    def dispatch(self, parameters: Any, tensors: Any) -> None:
        self._queue.enqueue(
            build_command(
                self.tag,
                self.supported_element_kinds,
                parameters,
                tensors,
                gemm_reference_cpu,
                attention_reference_cpu,
            )
        )

    def mark_first_command(self) -> None:
        self._queue.mark_first()

    def mark_last_command(self) -> None:
        self._queue.mark_last()

    def discard_commands(self) -> int:
        return self._queue.discard()

    def synchronize(self) -> float:
        return self._queue.drain()
