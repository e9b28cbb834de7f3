"""
Command construction shared by the host backends.

`build_command` validates a dispatch request against the backend that
receives it and returns a zero-argument closure suitable for
`CommandQueue.enqueue`. The closure decodes operands to float32 when it
runs, calls the backend's kernel, and encodes the result into the
destination buffer.
"""

from __future__ import annotations

from typing import Any, Callable, FrozenSet, Iterable, Tuple

from ...domain._element_kind import ElementKind
from ...domain._errors import (
    BackendMismatchError,
    ContractViolationError,
    UnsupportedElementKindError,
)
from ...domain._parameters import (
    AttentionParameters,
    AttentionTensors,
    GEMMParameters,
    GEMMTensors,
)
from ...domain.backend._backend_tag import BackendTag
from ..tensor._element_codec import decode_to_float32, encode_from_float32
from ..tensor._tensor_buffer import TensorBuffer

GEMMKernel = Callable[..., Any]
AttentionKernel = Callable[..., Any]


def check_element_kind(
    element_kind: ElementKind, supported: FrozenSet[ElementKind], tag: BackendTag
) -> None:
    if element_kind not in supported:
        raise UnsupportedElementKindError(element_kind.short_description, str(tag))


def _check_operands(
    tag: BackendTag,
    element_kind: ElementKind,
    operands: Iterable[Tuple[str, Any, Any]],
) -> None:
    for name, buffer, expected_shape in operands:
        if buffer is None:
            if expected_shape is not None:
                raise ContractViolationError(f"operand {name} is missing", name)
            continue
        if not isinstance(buffer, TensorBuffer):
            raise ContractViolationError(
                f"operand {name} must be a TensorBuffer, got {type(buffer).__name__}",
                name,
            )
        if buffer.backend_tag != tag:
            raise BackendMismatchError(str(buffer.backend_tag), str(tag))
        if buffer.element_kind is not element_kind:
            raise ContractViolationError(
                f"operand {name} holds {buffer.element_kind.short_description}, "
                f"dispatch expects {element_kind.short_description}",
                name,
            )
        if expected_shape is None or buffer.shape != tuple(expected_shape):
            raise ContractViolationError(
                f"operand {name} has shape {buffer.shape}, expected {expected_shape}",
                name,
            )


def _decode(buffer: TensorBuffer):
    if buffer is None:
        return None
    return decode_to_float32(buffer.storage, buffer.element_kind)


def build_command(
    tag: BackendTag,
    supported: FrozenSet[ElementKind],
    parameters: Any,
    tensors: Any,
    gemm_kernel: GEMMKernel,
    attention_kernel: AttentionKernel,
) -> Callable[[], None]:
    """
    Validate a dispatch and return the command that executes it.

    Raises
    ------
    UnsupportedElementKindError
        If the element kind is not supported by the backend.
    BackendMismatchError
        If an operand is owned by a different backend.
    ContractViolationError
        For missing, mistyped or misshapen operands.
    """
    check_element_kind(parameters.element_kind, supported, tag)

    if isinstance(parameters, GEMMParameters):
        if not isinstance(tensors, GEMMTensors):
            raise ContractViolationError("GEMM dispatch expects GEMMTensors", "tensors")
        _check_operands(
            tag,
            parameters.element_kind,
            [
                ("A", tensors.a, parameters.shape_a),
                ("B", tensors.b, parameters.shape_b),
                ("C", tensors.c, parameters.shape_c),
                ("D", tensors.d, parameters.shape_d),
            ],
        )

        def run_gemm() -> None:
            out = gemm_kernel(
                _decode(tensors.a), _decode(tensors.b), _decode(tensors.d), parameters
            )
            tensors.c.storage[:] = encode_from_float32(
                out, tensors.c.element_kind
            ).reshape(-1)

        return run_gemm

    if isinstance(parameters, AttentionParameters):
        if not isinstance(tensors, AttentionTensors):
            raise ContractViolationError(
                "attention dispatch expects AttentionTensors", "tensors"
            )
        _check_operands(
            tag,
            parameters.element_kind,
            [
                ("Q", tensors.q, parameters.shape_q),
                ("K", tensors.k, parameters.shape_k),
                ("V", tensors.v, parameters.shape_v),
                ("O", tensors.o, parameters.shape_o),
                ("mask", tensors.mask, parameters.shape_mask),
            ],
        )

        def run_attention() -> None:
            out = attention_kernel(
                _decode(tensors.q),
                _decode(tensors.k),
                _decode(tensors.v),
                _decode(tensors.mask),
                parameters,
            )
            tensors.o.storage[:] = encode_from_float32(
                out, tensors.o.element_kind
            ).reshape(-1)

        return run_attention

    raise ContractViolationError(
        f"unsupported operation descriptor: {type(parameters).__name__}", "parameters"
    )
