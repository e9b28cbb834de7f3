"""
Host memory allocator composed by the bundled backends.
"""

from __future__ import annotations

from typing import FrozenSet, Optional, Sequence

from ...domain._element_kind import ElementKind
from ...domain._errors import BackendMismatchError, BackendResourceError
from ...domain.backend._backend_tag import BackendTag
from ..tensor._tensor_buffer import TensorBuffer, validate_shape
from ._dispatch import check_element_kind


class HostAllocator:
    """
    Hands out `TensorBuffer`s tagged with one backend and tracks live bytes.

    Parameters
    ----------
    tag : BackendTag
        Tag stamped on every buffer.
    supported : frozenset[ElementKind]
        Element kinds the owning backend accepts.
    capacity_bytes : Optional[int]
        Upper bound on live bytes. Exceeding it raises `BackendResourceError`.
        None means unbounded.
    """

    def __init__(
        self,
        tag: BackendTag,
        supported: FrozenSet[ElementKind],
        capacity_bytes: Optional[int] = None,
    ) -> None:
        self.tag = tag
        self.supported = supported
        self.capacity_bytes = capacity_bytes
        self.allocated_bytes = 0

    def allocate(self, shape: Sequence[int], element_kind: ElementKind) -> TensorBuffer:
        check_element_kind(element_kind, self.supported, self.tag)
        shape = validate_shape(shape)
        requested = element_kind.itemsize
        for s in shape:
            requested *= s
        if (
            self.capacity_bytes is not None
            and self.allocated_bytes + requested > self.capacity_bytes
        ):
            raise BackendResourceError(
                str(self.tag),
                f"allocation of {requested} bytes exceeds capacity "
                f"({self.allocated_bytes}/{self.capacity_bytes} bytes in use)",
            )
        try:
            buffer = TensorBuffer(shape, element_kind, self.tag)
        except MemoryError as e:
            raise BackendResourceError(
                str(self.tag), f"allocation of {requested} bytes failed"
            ) from e
        self.allocated_bytes += buffer.allocated_size
        return buffer

    def release(self, buffer: TensorBuffer) -> None:
        if buffer.backend_tag != self.tag:
            raise BackendMismatchError(str(buffer.backend_tag), str(self.tag))
        self.allocated_bytes -= buffer.free()
