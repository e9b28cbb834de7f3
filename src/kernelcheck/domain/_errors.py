"""
Contract, numeric, and backend exceptions for kernelcheck.

This module defines the error taxonomy used throughout the framework:

- Contract violations (malformed shapes, mismatched dimensions, wrong slice
  arity, unsupported element-kind/backend combinations). These indicate a
  caller bug and are never recovered by the harness.
- Numeric divergence between a candidate backend and the reference backend.
- Backend resource failures (device unavailable, allocation failure), which
  are propagated as typed failures so callers may decide to skip a
  configuration.
"""

from __future__ import annotations

from typing import Optional


class ContractViolationError(RuntimeError):
    """
    Raised when a caller violates a documented precondition.

    Attributes
    ----------
    dimension : Optional[str]
        Name of the offending dimension or argument, when one applies
        (e.g., "K", "R", "indices").
    """

    def __init__(self, message: str, dimension: Optional[str] = None) -> None:
        """
        Initialize the ContractViolationError.

        Parameters
        ----------
        message : str
            Human-readable description of the violated precondition.
        dimension : Optional[str], optional
            Name of the offending dimension or argument.
        """
        super().__init__(message)
        self.dimension = dimension


class ShapeMismatchError(ContractViolationError):
    """
    Raised when two operands disagree on a logical dimension.

    The message always names the mismatched dimension (M, N, K for GEMM;
    R, C, H, D for attention) together with the conflicting values.
    """

    def __init__(self, dimension: str, lhs: object, rhs: object) -> None:
        """
        Initialize the ShapeMismatchError.

        Parameters
        ----------
        dimension : str
            Logical dimension name that does not match.
        lhs : object
            Value derived from the first operand.
        rhs : object
            Value derived from the second operand.
        """
        super().__init__(f"{dimension} does not match: {lhs} vs {rhs}.", dimension)
        self.lhs = lhs
        self.rhs = rhs


class BackendMismatchError(ContractViolationError):
    """
    Raised when tensors owned by different backends are combined.

    Cross-backend use requires an explicit copy that reallocates the data in
    the destination backend (see `Tensor.copying`).
    """

    def __init__(self, backend_a: str, backend_b: str) -> None:
        """
        Initialize the BackendMismatchError.

        Parameters
        ----------
        backend_a : str
            Backend tag of the first operand.
        backend_b : str
            Backend tag of the second operand.
        """
        super().__init__(f"Backend mismatch: '{backend_a}' vs '{backend_b}'.")
        self.backend_a = backend_a
        self.backend_b = backend_b


class UnsupportedElementKindError(ContractViolationError):
    """
    Raised when a backend is asked to handle an element kind it does not support.

    Attributes
    ----------
    element_kind : str
        Short description of the requested element kind (e.g., "bf16").
    backend : str
        Backend tag that rejected the request.
    """

    def __init__(self, element_kind: str, backend: str) -> None:
        super().__init__(
            f"Element kind '{element_kind}' is not supported by backend '{backend}'.",
            "element_kind",
        )
        self.element_kind = element_kind
        self.backend = backend


class NumericDivergenceError(RuntimeError):
    """
    Raised when a candidate backend disagrees with the reference backend.

    A NaN distance is always reported through this error as well: it signals
    an uncomparable or corrupted result rather than agreement.

    Attributes
    ----------
    distance : float
        Euclidean distance between the two outputs (may be NaN).
    tolerance : Optional[float]
        Tolerance the distance was checked against, if one was computed.
    """

    def __init__(
        self, message: str, distance: float, tolerance: Optional[float] = None
    ) -> None:
        super().__init__(message)
        self.distance = distance
        self.tolerance = tolerance


class BackendResourceError(RuntimeError):
    """
    Raised when a backend cannot provide a resource (device, allocation, queue).

    The harness never retries these; a caller may choose to skip the
    configuration that raised it.
    """

    def __init__(self, backend: str, reason: str) -> None:
        super().__init__(f"Backend '{backend}' failed: {reason}")
        self.backend = backend
        self.reason = reason
