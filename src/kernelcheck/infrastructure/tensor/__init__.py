from ._tensor import Tensor
from ._tensor_buffer import TensorBuffer

__all__ = [
    Tensor.__name__,
    TensorBuffer.__name__,
]
