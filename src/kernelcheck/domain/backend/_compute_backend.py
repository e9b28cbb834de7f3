"""
Compute backend contract for kernelcheck.

This module defines a duck-typed `ComputeBackend` protocol describing the
narrow capability the core consumes from any kernel implementation:

- `allocate(shape, element_kind)` / `release(buffer)`
- `dispatch(parameters, tensors)`: enqueue work without blocking
- `mark_first_command()` / `mark_last_command()`: bracket a timing window
- `discard_commands()`: drop the work of an abandoned timing window
- `synchronize()`: block until enqueued work completes and return the wall
  time of the bracketed window in seconds

The core never inspects how dispatch executes; it only requires that after
`synchronize()` returns the destination buffer holds the completed result.

Design notes
------------
- Uses `typing.Protocol` and `@runtime_checkable` so concrete backends are
  plain classes and need no common base class.
- Backends advertise the element kinds they accept through
  `supported_element_kinds`; anything else is a contract violation.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Protocol, Sequence, runtime_checkable

from .._element_kind import ElementKind
from ._backend_tag import BackendTag


@runtime_checkable
class ComputeBackend(Protocol):
    """
    Duck-typed backend contract.

    Any object that provides these members can own tensor allocations and
    execute GEMM/attention dispatches for the harness.
    """

    tag: BackendTag
    supported_element_kinds: FrozenSet[ElementKind]

    def allocate(self, shape: Sequence[int], element_kind: ElementKind) -> Any: ...
    def release(self, buffer: Any) -> None: ...
    def dispatch(self, parameters: Any, tensors: Any) -> None: ...
    def mark_first_command(self) -> None: ...
    def mark_last_command(self) -> None: ...
    def discard_commands(self) -> int: ...
    def synchronize(self) -> float: ...
