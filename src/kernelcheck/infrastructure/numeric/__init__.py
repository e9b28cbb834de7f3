from ._bfloat16 import (
    BFloat16,
    RoundingRule,
    narrow_to_bfloat16_bits,
    widen_from_bfloat16_bits,
)

__all__ = [
    BFloat16.__name__,
    RoundingRule.__name__,
    narrow_to_bfloat16_bits.__name__,
    widen_from_bfloat16_bits.__name__,
]
