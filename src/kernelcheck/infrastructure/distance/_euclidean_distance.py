"""
Euclidean distance and the tolerance model used to compare backend outputs.

Two outputs agree when `||x - y||_2 < tolerance`, where

    tolerance = count * max(a * average_magnitude, b * average_deviation)

with `(a, b) = (0.002, 3e-7)` for `f32` and `(0.02, 1e-2)` for `f16`/`bf16`.
A NaN distance never counts as agreement: it raises `NumericDivergenceError`.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Optional

import numpy as np

from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError, NumericDivergenceError

_COEFFICIENTS = {
    ElementKind.F32: (0.002, 3e-7),
    ElementKind.F16: (0.02, 1e-2),
    ElementKind.BF16: (0.02, 1e-2),
}


@dataclass(frozen=True)
class EuclideanDistanceParameters:
    """
    Expected scale of the compared values.

    Attributes
    ----------
    average_magnitude : float
        Roughly twice the expected element magnitude: 1.0 for uniform random
        data, 0.5 * K for a GEMM over K products of such values.
    average_deviation : float
        Expected accumulated deviation: sqrt(K) for a GEMM.
    batch_size : Optional[int]
        Leading batch extent of the compared tensors, when there is one.
    """

    average_magnitude: float
    average_deviation: float
    batch_size: Optional[int] = None

    @classmethod
    def for_matrix(
        cls, K: int, batch_size: Optional[int] = None
    ) -> "EuclideanDistanceParameters":
        return cls(0.5 * float(K), math.sqrt(float(K)), batch_size)

    @classmethod
    def for_attention(
        cls, batch_size: Optional[int] = None
    ) -> "EuclideanDistanceParameters":
        return cls(1.0, 0.2, batch_size)

    def tolerance(self, element_kind: ElementKind, count: int) -> float:
        """Distance below which `count` elements of `element_kind` agree."""
        a, b = _COEFFICIENTS[element_kind]
        return float(count) * max(
            a * self.average_magnitude, b * self.average_deviation
        )


def coarser_element_kind(lhs: ElementKind, rhs: ElementKind) -> ElementKind:
    """Return the less precise of two element kinds (the one with looser tolerance)."""
    if lhs.is_half_precision:
        return lhs
    return rhs


def euclidean_distance(x: np.ndarray, y: np.ndarray) -> float:
    """
    L2 norm of `x - y`, accumulated in float64.

    Raises
    ------
    ContractViolationError
        If the element counts differ.
    """
    x = np.asarray(x).reshape(-1)
    y = np.asarray(y).reshape(-1)
    if x.size != y.size:
        raise ContractViolationError(
            f"element counts differ: {x.size} vs {y.size}", "count"
        )
    diff = x.astype(np.float64) - y.astype(np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def check_agreement(
    distance: float, tolerance: float, *, label: str = "outputs"
) -> bool:
    """
    Return whether `distance < tolerance`.

    Raises
    ------
    NumericDivergenceError
        If `distance` is NaN.
    """
    if math.isnan(distance):
        raise NumericDivergenceError(
            f"{label}: distance is NaN", distance=distance, tolerance=tolerance
        )
    return distance < tolerance
