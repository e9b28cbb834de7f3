"""
Backend tag utilities.

This module defines lightweight descriptors for the backends that own tensor
allocations. It provides:

- `BackendKind`: the closed enumeration of backend variants
- `BackendTag`: a concrete descriptor that validates and normalizes
  user-facing strings such as "native", "reference" or "native:1"

Two tensors are only directly combinable when their tags compare equal.
"""

from __future__ import annotations

from enum import Enum
import re
from typing import Optional


class BackendKind(Enum):
    """
    Enumeration of supported backend variants.

    Attributes
    ----------
    NATIVE : BackendKind
        The tuned kernel backend under test (tile sizes are configurable).
    REFERENCE : BackendKind
        The vendor-style reference implementation used to check agreement.
    """

    NATIVE = "native"
    REFERENCE = "reference"


class BackendTag:
    """
    Concrete backend descriptor.

    Parameters
    ----------
    tag : str
        Backend identifier string. Must be one of:
        - "native" or "reference"
        - "<kind>:<index>", where <index> is a non-negative integer that
          distinguishes several instances of the same backend kind

    Raises
    ------
    ValueError
        If the provided string does not match the supported formats.

    Notes
    -----
    `__slots__` is used to prevent dynamic attribute creation; tags are
    compared and hashed by value so they can key dictionaries.
    """

    __slots__ = ("kind", "index")

    _PATTERN = re.compile(r"^(native|reference)(?::(\d+))?$")

    def __init__(self, tag: str):
        m = self._PATTERN.match(tag)
        if not m:
            raise ValueError(
                f"Invalid backend tag '{tag}'. "
                "Expected 'native', 'reference', or '<kind>:<index>'"
            )
        self.kind = BackendKind(m.group(1))
        self.index: Optional[int] = int(m.group(2)) if m.group(2) else None

    @classmethod
    def of(cls, kind: BackendKind, index: Optional[int] = None) -> "BackendTag":
        """Build a tag from a kind and optional instance index."""
        if index is None:
            return cls(kind.value)
        return cls(f"{kind.value}:{int(index)}")

    def __str__(self) -> str:
        if self.index is None:
            return self.kind.value
        return f"{self.kind.value}:{self.index}"

    def __repr__(self) -> str:
        return f"BackendTag('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BackendTag):
            return NotImplemented
        return (self.kind, self.index) == (other.kind, other.index)

    def __hash__(self) -> int:
        return hash((self.kind, self.index))

    def is_native(self) -> bool:
        return self.kind is BackendKind.NATIVE

    def is_reference(self) -> bool:
        return self.kind is BackendKind.REFERENCE
