"""
Size sweep: warm-up, verification and timing across configurations.

For every report section of a segment, each configuration goes through

1. warm-up: one run at the largest size of the section, then one run at
   every measured size. Each run is checked against a companion run on the
   reference backend; disagreement raises `NumericDivergenceError`.
2. measuring: `trials * trials_extension` timing brackets of `iterations`
   dispatches per measured size; the minimum bracket time gives the
   throughput. The reference configuration caps `iterations`.

The operation itself is supplied by a `Workload` (GEMM or attention).
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence
import warnings

from ...domain._element_kind import ElementKind
from ...domain._errors import NumericDivergenceError
from ...domain.backend._backend_tag import BackendKind
from ..backends._execution_context import ExecutionContext
from ..config._settings import HarnessSettings
from ..distance._euclidean_distance import (
    EuclideanDistanceParameters,
    check_agreement,
    coarser_element_kind,
)
from ..tensor._tensor import Tensor
from ._configuration import BenchmarkConfiguration
from ._segment import Segment, report_sections

Operands = Dict[str, Optional[Tensor]]


class Workload(Protocol):
    """Operation-specific half of a sweep."""

    def label(self, size: int) -> str: ...
    def flop_count(self, size: int) -> int: ...
    def allocate(
        self, size: int, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands: ...
    def replicate(
        self, operands: Operands, element_kind: ElementKind, context: ExecutionContext
    ) -> Operands: ...
    def dispatch(self, operands: Operands) -> Any: ...
    def output(self, operands: Operands) -> Tensor: ...
    def distance_parameters(self, size: int) -> EuclideanDistanceParameters: ...


def release_operands(operands: Operands) -> None:
    for tensor in operands.values():
        if tensor is not None:
            tensor.release()


class SizeSweep:
    """
    Drives one workload over segments for a list of configurations.

    Parameters
    ----------
    workload : Workload
        Operation being benchmarked.
    element_kind : ElementKind
        Element kind requested by the caller.
    context : ExecutionContext
        Backend selection and random state.
    settings : HarnessSettings
        Trials, reference iteration cap, report granularity, logging.
    configs : Sequence[BenchmarkConfiguration]
        Configurations measured, in report order.
    """

    def __init__(
        self,
        workload: Workload,
        element_kind: ElementKind,
        context: ExecutionContext,
        settings: HarnessSettings,
        configs: Sequence[BenchmarkConfiguration],
    ) -> None:
        self.workload = workload
        self.element_kind = element_kind
        self.context = context
        self.settings = settings
        self.configs = tuple(configs)
        self._warned = set()

    # ------------------------------------------------------------------
    # Element kind selection
    # ------------------------------------------------------------------
    def _kind_for(self, backend: Any) -> ElementKind:
        if self.element_kind in backend.supported_element_kinds:
            return self.element_kind
        if backend.tag not in self._warned:
            self._warned.add(backend.tag)
            warnings.warn(
                f"backend '{backend.tag}' does not support "
                f"{self.element_kind.short_description}; running it in f32",
                RuntimeWarning,
                stacklevel=3,
            )
        return ElementKind.F32

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def profile(self, segment: Segment, granularity: int, trials_extension: int) -> None:
        """Measure every configuration over `segment`, section by section."""
        granularity = segment.effective_granularity(granularity)
        trials_extension = segment.effective_trials_extension(trials_extension)
        for config in self.configs:
            segment.flops[config.name] = []

        for section in report_sections(segment.sizes, self.settings.report_granularity):
            for config in self.configs:
                with config.applied(self.context, self.element_kind) as backend:
                    kind = self._kind_for(backend)
                    self._warm_up(section, granularity, kind)
                    self._measure(
                        segment, section, granularity, trials_extension, config, kind
                    )
            if self.settings.log_progress:
                self._log(segment, section, granularity)

    def _warm_up(self, section: range, granularity: int, kind: ElementKind) -> None:
        largest = section.stop - 1
        if largest % granularity == 0:
            self._run_once(largest, kind)
        for size in section:
            if size % granularity == 0:
                self._run_once(size, kind)

    def _run_once(self, size: int, kind: ElementKind) -> None:
        operands = self.workload.allocate(size, kind, self.context)
        try:
            self.context.profile_commands(lambda: self.workload.dispatch(operands))
            self.verify(size, operands, kind)
        finally:
            release_operands(operands)

    def verify(self, size: int, operands: Operands, kind: ElementKind) -> float:
        """
        Check a completed candidate run against the reference backend.

        Returns
        -------
        float
            Euclidean distance between the two outputs.

        Raises
        ------
        NumericDivergenceError
            If the distance is NaN or not below the tolerance.
        """
        reference = self.context.backend_for(BackendKind.REFERENCE)
        ref_kind = kind if kind in reference.supported_element_kinds else ElementKind.F32
        label = self.workload.label(size)

        with self.context.using_backend(BackendKind.REFERENCE):
            ref_operands = self.workload.replicate(operands, ref_kind, self.context)
            candidate = None
            try:
                self.context.profile_commands(
                    lambda: self.workload.dispatch(ref_operands)
                )
                candidate = Tensor.copying(
                    self.workload.output(operands), self.context, element_kind=ref_kind
                )
                expected = self.workload.output(ref_operands)
                distance = candidate.euclidean_distance(expected)
                tolerance = self.workload.distance_parameters(size).tolerance(
                    coarser_element_kind(kind, ref_kind), candidate.count
                )
                agreed = check_agreement(distance, tolerance, label=label)
            finally:
                if candidate is not None:
                    candidate.release()
                release_operands(ref_operands)

        if not agreed:
            raise NumericDivergenceError(
                f"{label}: tensors did not match. Euclidean distance: {distance} "
                f"(tolerance {tolerance})",
                distance=distance,
                tolerance=tolerance,
            )
        return distance

    def _measure(
        self,
        segment: Segment,
        section: range,
        granularity: int,
        trials_extension: int,
        config: BenchmarkConfiguration,
        kind: ElementKind,
    ) -> None:
        record = segment.flops[config.name]
        iterations = segment.iterations
        if config.is_reference:
            iterations = min(iterations, self.settings.reference_iteration_cap)
        trials = self.settings.trials * trials_extension

        for size in section:
            if size % granularity != 0:
                record.append(0.0)
                continue
            operands = self.workload.allocate(size, kind, self.context)
            try:

                def body() -> None:
                    for _ in range(iterations):
                        self.workload.dispatch(operands)

                min_time = min(
                    self.context.profile_commands(body) for _ in range(trials)
                )
            finally:
                release_operands(operands)
            record.append(self.workload.flop_count(size) * iterations / min_time)

    def _log(self, segment: Segment, section: range, granularity: int) -> None:
        for size in section:
            if size % granularity != 0:
                continue
            message = self.workload.label(size)
            index = size - segment.sizes.start
            for config in self.configs:
                gflops = segment.flops[config.name][index] / 1e9
                message += f" - {config.name} {int(gflops)}"
            print(message)
