"""
GEMM throughput sweeps over square problem sizes.

`GEMMPerfTests` benchmarks `C = A @ B (+ D)` with M = N = K = size for each
configuration and verifies every measured size against the reference
backend before timing it.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from ...domain._element_kind import ElementKind
from ...domain.shapes._gemm_shapes import gemm_operand_shapes
from ..backends._execution_context import ExecutionContext
from ..config._settings import HarnessSettings
from ..distance._euclidean_distance import EuclideanDistanceParameters
from ..tensor._tensor import Tensor
from ._configuration import FAST_CONFIGS, BenchmarkConfiguration
from ._extraction import Extraction, extract
from ._segment import Segment, default_segments, large_segments, require_power_of_two
from ._sweep import Operands, SizeSweep


class GEMMWorkload:
    """
    Square GEMM operands for one transpose/batch/bias combination.

    With a batch size, A and C get a leading batch dimension. B is shared
    across the batch (leading `1`) when A's last dimension is divisible by 3,
    and so is the bias when it is divisible by 5.
    """

    def __init__(
        self,
        element_kind: ElementKind,
        *,
        transpose_a: bool = False,
        transpose_b: bool = False,
        transpose_d: bool = False,
        batch_size: Optional[int] = None,
        use_bias: bool = False,
    ) -> None:
        self.element_kind = element_kind
        self.transpose_a = transpose_a
        self.transpose_b = transpose_b
        self.transpose_d = transpose_d
        self.batch_size = batch_size
        self.use_bias = use_bias

    def shapes(self, size: int):
        shape_a, shape_b, shape_c, shape_d = gemm_operand_shapes(
            size,
            size,
            size,
            transpose_a=self.transpose_a,
            transpose_b=self.transpose_b,
            transpose_d=self.transpose_d,
            use_bias=self.use_bias,
        )
        if self.batch_size is not None:
            shape_a = (self.batch_size,) + shape_a
            if shape_a[-1] % 3 == 0:
                shape_b = (1,) + shape_b
            if shape_d is not None and shape_a[-1] % 5 == 0:
                shape_d = (1,) + shape_d
            shape_c = (self.batch_size,) + shape_c
        return shape_a, shape_b, shape_c, shape_d

    def label(self, size: int) -> str:
        message = f"{size}x{size}x{size}x{self.element_kind.short_description}"
        if self.batch_size is not None:
            message = f"{self.batch_size}x{message}"
        return message

    def flop_count(self, size: int) -> int:
        return 2 * size * size * size * (self.batch_size or 1)

    def distance_parameters(self, size: int) -> EuclideanDistanceParameters:
        return EuclideanDistanceParameters.for_matrix(size, self.batch_size)

    def allocate(
        self, size: int, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands:
        shape_a, shape_b, shape_c, shape_d = self.shapes(size)
        return {
            "a": Tensor.random_uniform(shape_a, element_kind, context),
            "b": Tensor.random_uniform(shape_b, element_kind, context),
            "c": Tensor.zeros(shape_c, element_kind, context),
            "d": (
                Tensor.random_uniform(shape_d, element_kind, context)
                if shape_d is not None
                else None
            ),
        }

    def replicate(
        self, operands: Operands, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands:
        d = operands["d"]
        return {
            "a": Tensor.copying(operands["a"], context, element_kind=element_kind),
            "b": Tensor.copying(operands["b"], context, element_kind=element_kind),
            "c": Tensor.zeros(operands["c"].shape, element_kind, context),
            "d": (
                Tensor.copying(d, context, element_kind=element_kind)
                if d is not None
                else None
            ),
        }

    def dispatch(self, operands: Operands):
        return operands["a"].matmul(
            operands["b"],
            operands["c"],
            operands["d"],
            transpose_a=self.transpose_a,
            transpose_b=self.transpose_b,
            transpose_d=self.transpose_d,
        )

    def output(self, operands: Operands) -> Tensor:
        return operands["c"]


class GEMMPerfTests:
    """
    GEMM performance test case.

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
        return "GEMMPerfTests"

    def test_gemm_speed(
        self,
        granularity: int,
        trials_extension: int,
        transpose_a: bool = False,
        transpose_b: bool = False,
        transpose_d: bool = False,
        batch_size: Optional[int] = None,
        use_bias: bool = False,
        large: bool = False,
        segments: Optional[List[Segment]] = None,
        configs: Optional[Sequence[BenchmarkConfiguration]] = None,
    ) -> List[Extraction]:
        """
        Sweep square GEMM sizes and return one `Extraction` per configuration.

        Parameters
        ----------
        granularity : int
            Only sizes divisible by this power of two are measured.
        trials_extension : int
            Multiplier applied to the configured number of trials.
        transpose_a, transpose_b, transpose_d : bool
            Operand layouts.
        batch_size : Optional[int]
            Leading batch extent of A and C.
        use_bias : bool
            Add a bias operand D.
        large : bool
            Use the large-size ladder instead of the default one.
        segments : Optional[list[Segment]]
            Explicit ladder overriding `large` and the defaults.
        configs : Optional[Sequence[BenchmarkConfiguration]]
            Configurations overriding the test case's own.

        Raises
        ------
        ContractViolationError
            If `granularity` is not a power of two.
        NumericDivergenceError
            If a configuration disagrees with the reference backend.
        """
        require_power_of_two(granularity, "granularity")
        if segments is None:
            if large:
                segments = large_segments(self.element_kind, trials_extension, batch_size)
            else:
                segments = default_segments(self.element_kind, batch_size)
        configs = tuple(configs) if configs is not None else self.configs

        workload = GEMMWorkload(
            self.element_kind,
            transpose_a=transpose_a,
            transpose_b=transpose_b,
            transpose_d=transpose_d,
            batch_size=batch_size,
            use_bias=use_bias,
        )
        sweep = SizeSweep(workload, self.element_kind, self.context, self.settings, configs)
        for segment in segments:
            sweep.profile(segment, granularity, trials_extension)
        return [extract(config, segments, granularity) for config in configs]

    def run_quick_tests(self) -> None:
        self.test_gemm_speed(
            granularity=8,
            trials_extension=1,
            segments=[Segment(range(8, 33), 2)],
        )

    def run_long_tests(self) -> None:
        for transpose_a, transpose_b in ((False, True), (True, False), (True, True)):
            self.test_gemm_speed(
                granularity=16,
                trials_extension=1,
                transpose_a=transpose_a,
                transpose_b=transpose_b,
                batch_size=2,
                use_bias=True,
                segments=[Segment(range(16, 65), 4)],
            )

    def run_very_long_tests(self) -> List[Extraction]:
        return self.test_gemm_speed(granularity=8, trials_extension=2)
