"""
Attention mask variants.

Both variants describe masks that can be accelerated with block-sparse
attention. They are plain value objects; synthesis of the actual mask data
lives with the Tensor implementation (`Tensor.with_mask`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ._errors import ContractViolationError


@dataclass(frozen=True)
class UpperTriangular:
    """
    Causal mask over a square R x R score plane.

    Entry (i, j) is 0 when j <= i and the most-negative finite value of the
    element kind otherwise.
    """


@dataclass(frozen=True)
class BlockSparse:
    """
    Randomized block-sparse mask.

    Attributes
    ----------
    block_size : int
        Edge length of a block. Columns are partitioned into blocks of this
        width and rows into bands of this height.
    sparsity : float
        Probability in [0, 1] that a block is open (computed). 1.0 yields an
        all-open mask, 0.0 an all-masked one.
    """

    block_size: int
    sparsity: float

    def __post_init__(self) -> None:
        if int(self.block_size) <= 0:
            raise ContractViolationError(
                f"block_size must be positive, got {self.block_size}", "block_size"
            )
        if not (0.0 <= float(self.sparsity) <= 1.0):
            raise ContractViolationError(
                f"sparsity must lie in [0, 1], got {self.sparsity}", "sparsity"
            )


AttentionMask = Union[UpperTriangular, BlockSparse]
