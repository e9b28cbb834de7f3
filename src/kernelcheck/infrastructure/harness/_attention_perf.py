"""
Attention throughput sweeps over sequence length.

`AttentionPerfTests` benchmarks `O = softmax(Q K^T / sqrt(D) + mask) V` with
R = C = size and a fixed number of heads and head dimension.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from ...domain._attention_mask import AttentionMask, UpperTriangular
from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError
from ...domain.shapes._attention_shapes import attention_operand_shapes
from ..backends._execution_context import ExecutionContext
from ..config._settings import HarnessSettings
from ..distance._euclidean_distance import EuclideanDistanceParameters
from ..tensor._tensor import Tensor
from ._configuration import FAST_CONFIGS, BenchmarkConfiguration
from ._extraction import Extraction, extract
from ._segment import Segment, default_segments, require_power_of_two
from ._sweep import Operands, SizeSweep


class AttentionWorkload:
    """Square attention operands (R = C = size) for one layout."""

    def __init__(
        self,
        element_kind: ElementKind,
        *,
        heads: int = 1,
        head_dimension: int = 64,
        transpose_q: bool = False,
        transpose_k: bool = True,
        transpose_v: bool = False,
        transpose_o: bool = False,
        batch_size: Optional[int] = None,
        mask: Optional[AttentionMask] = None,
        block_sparse: bool = False,
    ) -> None:
        if block_sparse and mask is None:
            raise ContractViolationError("block sparsity requires a mask", "mask")
        self.element_kind = element_kind
        self.heads = heads
        self.head_dimension = head_dimension
        self.transpose_q = transpose_q
        self.transpose_k = transpose_k
        self.transpose_v = transpose_v
        self.transpose_o = transpose_o
        self.batch_size = batch_size
        self.mask = mask
        self.block_sparse = block_sparse

    def shapes(self, size: int):
        batch = (self.batch_size,) if self.batch_size is not None else ()
        return attention_operand_shapes(
            size,
            size,
            self.heads,
            self.head_dimension,
            transpose_q=self.transpose_q,
            transpose_k=self.transpose_k,
            transpose_v=self.transpose_v,
            transpose_o=self.transpose_o,
            batch_dimensions=batch,
            masked=self.mask is not None,
        )

    def label(self, size: int) -> str:
        message = (
            f"{size}x{size}x{self.heads}x{self.head_dimension}"
            f"x{self.element_kind.short_description}"
        )
        if self.batch_size is not None:
            message = f"{self.batch_size}x{message}"
        return message

    def flop_count(self, size: int) -> int:
        return (
            4 * size * size * self.head_dimension * self.heads * (self.batch_size or 1)
        )

    def distance_parameters(self, size: int) -> EuclideanDistanceParameters:
        return EuclideanDistanceParameters.for_attention(self.batch_size)

    def allocate(
        self, size: int, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands:
        shape_q, shape_k, shape_v, shape_o, shape_mask = self.shapes(size)
        return {
            "q": Tensor.random_uniform(shape_q, element_kind, context),
            "k": Tensor.random_uniform(shape_k, element_kind, context),
            "v": Tensor.random_uniform(shape_v, element_kind, context),
            "o": Tensor.zeros(shape_o, element_kind, context),
            "mask": (
                Tensor.with_mask(shape_mask, element_kind, context, self.mask)
                if shape_mask is not None
                else None
            ),
        }

    def replicate(
        self, operands: Operands, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands:
        out = {}
        for name in ("q", "k", "v", "mask"):
            source = operands[name]
            out[name] = (
                Tensor.copying(source, context, element_kind=element_kind)
                if source is not None
                else None
            )
        out["o"] = Tensor.zeros(operands["o"].shape, element_kind, context)
        return out

    def dispatch(self, operands: Operands):
        return operands["q"].attention(
            operands["k"],
            operands["v"],
            operands["o"],
            operands["mask"],
            transpose_q=self.transpose_q,
            transpose_k=self.transpose_k,
            transpose_v=self.transpose_v,
            transpose_o=self.transpose_o,
            block_sparse=self.block_sparse,
        )

    def output(self, operands: Operands) -> Tensor:
        return operands["o"]


class AttentionPerfTests:
    """
    Attention performance test case.

    Parameters
    ----------
    element_kind : ElementKind
        Element kind of the benchmarked operands.
    context : Optional[ExecutionContext]
        Backend selection and random state; defaults to a context seeded
        from `settings.seed`.
    settings : Optional[HarnessSettings]
        Harness tunables; defaults to `HarnessSettings()`.
    configs : Optional[Sequence[BenchmarkConfiguration]]
        Configurations to measure; defaults to `FAST_CONFIGS`.
    """

    def __init__(
        self,
        element_kind: ElementKind,
        context: Optional[ExecutionContext] = None,
        settings: Optional[HarnessSettings] = None,
        configs: Optional[Sequence[BenchmarkConfiguration]] = None,
    ) -> None:
        self.element_kind = element_kind
        self.settings = settings if settings is not None else HarnessSettings()
        self.context = (
            context if context is not None else ExecutionContext.from_settings(self.settings)
        )
        self.configs = tuple(configs) if configs is not None else FAST_CONFIGS

    def type_description(self) -> str:
        return "AttentionPerfTests"

    def test_attention_speed(
        self,
        granularity: int,
        trials_extension: int,
        *,
        heads: int = 1,
        head_dimension: int = 64,
        transpose_q: bool = False,
        transpose_k: bool = True,
        transpose_v: bool = False,
        transpose_o: bool = False,
        batch_size: Optional[int] = None,
        mask: Optional[AttentionMask] = None,
        block_sparse: bool = False,
        segments: Optional[List[Segment]] = None,
        configs: Optional[Sequence[BenchmarkConfiguration]] = None,
    ) -> List[Extraction]:
        """
        Sweep sequence lengths and return one `Extraction` per configuration.

        Raises
        ------
        ContractViolationError
            If `granularity` is not a power of two, or block sparsity is
            requested without a mask.
        NumericDivergenceError
            If a configuration disagrees with the reference backend.
        """
        require_power_of_two(granularity, "granularity")
        if segments is None:
            segments = default_segments(self.element_kind, batch_size)
        configs = tuple(configs) if configs is not None else self.configs

        workload = AttentionWorkload(
            self.element_kind,
            heads=heads,
            head_dimension=head_dimension,
            transpose_q=transpose_q,
            transpose_k=transpose_k,
            transpose_v=transpose_v,
            transpose_o=transpose_o,
            batch_size=batch_size,
            mask=mask,
            block_sparse=block_sparse,
        )
        sweep = SizeSweep(workload, self.element_kind, self.context, self.settings, configs)
        for segment in segments:
            sweep.profile(segment, granularity, trials_extension)
        return [extract(config, segments, granularity) for config in configs]

    def run_quick_tests(self) -> None:
        self.test_attention_speed(
            granularity=8,
            trials_extension=1,
            heads=2,
            head_dimension=16,
            segments=[Segment(range(8, 33), 2)],
        )

    def run_long_tests(self) -> None:
        self.test_attention_speed(
            granularity=16,
            trials_extension=1,
            heads=2,
            head_dimension=32,
            batch_size=2,
            mask=UpperTriangular(),
            segments=[Segment(range(16, 65), 4)],
        )

    def run_very_long_tests(self) -> List[Extraction]:
        return self.test_attention_speed(granularity=8, trials_extension=2)
