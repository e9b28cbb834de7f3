from ._element_kind import ElementKind
from ._errors import (
    BackendMismatchError,
    BackendResourceError,
    ContractViolationError,
    NumericDivergenceError,
    ShapeMismatchError,
    UnsupportedElementKindError,
)
from ._attention_mask import AttentionMask, BlockSparse, UpperTriangular
from ._parameters import (
    AttentionParameters,
    AttentionTensors,
    GEMMParameters,
    GEMMTensors,
    OperationKind,
)

__all__ = [
    ElementKind.__name__,
    BackendMismatchError.__name__,
    BackendResourceError.__name__,
    ContractViolationError.__name__,
    NumericDivergenceError.__name__,
    ShapeMismatchError.__name__,
    UnsupportedElementKindError.__name__,
    "AttentionMask",
    BlockSparse.__name__,
    UpperTriangular.__name__,
    AttentionParameters.__name__,
    AttentionTensors.__name__,
    GEMMParameters.__name__,
    GEMMTensors.__name__,
    OperationKind.__name__,
]
