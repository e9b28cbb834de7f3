from ._gemm_shapes import derive_gemm_parameters, gemm_operand_shapes
from ._attention_shapes import attention_operand_shapes, derive_attention_parameters

__all__ = [
    derive_gemm_parameters.__name__,
    gemm_operand_shapes.__name__,
    derive_attention_parameters.__name__,
    attention_operand_shapes.__name__,
]
