"""
Backend-owned tensor storage.

This module defines `TensorBuffer`, the allocation handed out by a compute
backend's `allocate(shape, element_kind)`. A buffer owns one flat, contiguous
NumPy array holding `count` elements encoded in the buffer's element kind
(`bf16` elements are raw `np.uint16` bit patterns).

Ownership
---------
- A buffer is owned by exactly one backend, identified by `backend_tag`.
- The storage is freed exactly once: `free()` is idempotent and any later
  access to `storage` raises `RuntimeError`.
- Buffers carry no stride or view semantics; slicing and reshaping always
  allocate a fresh buffer (see `Tensor.slicing` / `Tensor.reshaping`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from math import prod
import threading
from typing import Optional, Sequence, Tuple

import numpy as np

from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError
from ...domain.backend._backend_tag import BackendTag


def validate_shape(shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Normalize and validate a tensor shape.

    Raises
    ------
    ContractViolationError
        If the shape is empty or any dimension is not a positive integer.
    """
    out = tuple(int(s) for s in shape)
    if len(out) == 0:
        raise ContractViolationError("tensor shape must not be empty", "shape")
    for i, s in enumerate(out):
        if s <= 0:
            raise ContractViolationError(
                f"tensor dimension {i} must be positive, got shape {out}", "shape"
            )
    return out


@dataclass(eq=False)
class TensorBuffer:
    """
    A single contiguous allocation of encoded elements.

    Attributes
    ----------
    shape : tuple[int, ...]
        Logical row-major shape; `count == prod(shape)`.
    element_kind : ElementKind
        Encoding of each element.
    backend_tag : BackendTag
        Tag of the backend that owns the allocation.
    """

    shape: Tuple[int, ...]
    element_kind: ElementKind
    backend_tag: BackendTag
    _storage: Optional[np.ndarray] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.shape = validate_shape(self.shape)
        self.count = prod(self.shape)
        if self._storage is None:
            self._storage = np.empty(self.count, dtype=self.element_kind.storage_dtype)
        elif self._storage.size != self.count:
            raise ContractViolationError(
                f"storage holds {self._storage.size} elements, shape {self.shape} "
                f"needs {self.count}",
                "shape",
            )

    @property
    def allocated_size(self) -> int:
        """Number of bytes owned by this buffer (0 after `free`)."""
        if self._storage is None:
            return 0
        return self.count * self.element_kind.itemsize

    @property
    def is_freed(self) -> bool:
        return self._storage is None

    @property
    def storage(self) -> np.ndarray:
        """
        Flat storage array of dtype `element_kind.storage_dtype`.

        Raises
        ------
        RuntimeError
            If the buffer has already been freed.
        """
        if self._storage is None:
            raise RuntimeError(
                f"TensorBuffer{self.shape} on '{self.backend_tag}' was already released"
            )
        return self._storage

    def free(self) -> int:
        """
        Drop the storage and return the number of bytes released.

        Calling `free` more than once is harmless and returns 0.
        """
        with self._lock:
            if self._storage is None:
                return 0
            released = self.count * self.element_kind.itemsize
            self._storage = None
            return released
