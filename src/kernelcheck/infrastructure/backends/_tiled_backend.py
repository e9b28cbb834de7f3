"""
Native backend: tiled kernels with configurable tile constants.

The tile constants (`M_simd`, `N_simd`, `K_simd`) play the part of the
function constants a GPU pipeline is specialized with. Each distinct
(operation, constants) pair gets its own pipeline, cached until the
constants change.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError
from ...domain.backend._backend_tag import BackendKind, BackendTag
from ..ops.attention_cpu import attention_tiled_cpu
from ..ops.gemm_cpu import gemm_tiled_cpu
from ..tensor._tensor_buffer import TensorBuffer
from ._command_queue import CommandQueue
from ._dispatch import build_command
from ._host_allocator import HostAllocator

DEFAULT_TILE_CONSTANTS: Mapping[str, int] = {"M_simd": 16, "N_simd": 16, "K_simd": 32}

_Pipeline = Tuple[Callable[..., Any], Callable[..., Any]]


class TiledBackend:
    """
    Tuned-kernel stand-in implementing the `ComputeBackend` contract.

    Attributes
    ----------
    function_constants : dict[str, int]
        Current tile constants. Modify through `set_function_constants` and
        `reset_function_constants`, which keep the pipeline cache coherent.
    """

    kind = BackendKind.NATIVE
    supported_element_kinds: FrozenSet[ElementKind] = frozenset(ElementKind)

    def __init__(
        self, index: Optional[int] = None, *, capacity_bytes: Optional[int] = None
    ) -> None:
        self.tag = BackendTag.of(self.kind, index)
        self._allocator = HostAllocator(
            self.tag, self.supported_element_kinds, capacity_bytes
        )
        self._queue = CommandQueue(str(self.tag))
        self.function_constants: Dict[str, int] = dict(DEFAULT_TILE_CONSTANTS)
        self._pipelines: Dict[Tuple[Any, ...], _Pipeline] = {}

    def __repr__(self) -> str:
        return f"TiledBackend(tag='{self.tag}', function_constants={self.function_constants})"

    @property
    def allocated_bytes(self) -> int:
        return self._allocator.allocated_bytes

    @property
    def pending_commands(self) -> int:
        return len(self._queue)

    @property
    def cached_pipelines(self) -> int:
        return len(self._pipelines)

    # ------------------------------------------------------------------
    # Tile constants / pipeline cache
    # ------------------------------------------------------------------
    def set_function_constants(self, constants: Mapping[str, int]) -> None:
        """
        Replace the tile constants and drop every cached pipeline.

        Raises
        ------
        ContractViolationError
            If a constant is unknown or not a positive integer.
        """
        updated = dict(self.function_constants)
        for name, value in constants.items():
            if name not in DEFAULT_TILE_CONSTANTS:
                raise ContractViolationError(f"unknown tile constant '{name}'", name)
            if int(value) <= 0:
                raise ContractViolationError(
                    f"tile constant {name} must be positive, got {value}", name
                )
            updated[name] = int(value)
        self.function_constants = updated
        self.clear_cache()

    def reset_function_constants(self) -> None:
        self.function_constants = dict(DEFAULT_TILE_CONSTANTS)
        self.clear_cache()

    def clear_cache(self) -> None:
        self._pipelines.clear()

    def _pipeline(self, parameters: Any) -> _Pipeline:
        key = (parameters, tuple(sorted(self.function_constants.items())))
        pipeline = self._pipelines.get(key)
        if pipeline is None:
            constants = dict(self.function_constants)
            pipeline = (
                partial(gemm_tiled_cpu, tile_constants=constants),
                partial(attention_tiled_cpu, tile_constants=constants),
            )
            self._pipelines[key] = pipeline
        return pipeline

    # ------------------------------------------------------------------
    # ComputeBackend contract
    # ------------------------------------------------------------------
    def allocate(self, shape: Sequence[int], element_kind: ElementKind) -> TensorBuffer:
        return self._allocator.allocate(shape, element_kind)

    def release(self, buffer: TensorBuffer) -> None:
        self._allocator.release(buffer)

    def dispatch(self, parameters: Any, tensors: Any) -> None:
        gemm_kernel, attention_kernel = self._pipeline(parameters)
        self._queue.enqueue(
            build_command(
                self.tag,
                self.supported_element_kinds,
                parameters,
                tensors,
                gemm_kernel,
                attention_kernel,
            )
        )

    def mark_first_command(self) -> None:
        self._queue.mark_first()

    def mark_last_command(self) -> None:
        self._queue.mark_last()

    def discard_commands(self) -> int:
        return self._queue.discard()

    def synchronize(self) -> float:
        return self._queue.drain()
