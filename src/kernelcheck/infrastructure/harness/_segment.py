"""
Size segments and the default size ladders.

A `Segment` is a contiguous, ascending range of square problem sizes that
share an iteration count (and optionally their own granularity and trials
extension). Measured throughput is stored per configuration name with one
entry per size of the range (0.0 for sizes skipped by the granularity).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from ...domain._element_kind import ElementKind
from ...domain._errors import ContractViolationError


@dataclass
class Segment:
    """
    A contiguous sub-range of problem sizes.

    Attributes
    ----------
    sizes : range
        Half-open, step-1, non-empty range of sizes.
    iterations : int
        Dispatches per timing bracket.
    granularity : Optional[int]
        Overrides the sweep's granularity for this segment.
    trials_extension : Optional[int]
        Overrides the sweep's trials extension for this segment.
    flops : dict[str, list[float]]
        Measured FLOP/s per configuration name, indexed like `sizes`.
    """

    sizes: range
    iterations: int
    granularity: Optional[int] = None
    trials_extension: Optional[int] = None
    flops: Dict[str, List[float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.sizes, range) or self.sizes.step != 1:
            raise ContractViolationError(
                f"segment sizes must be a step-1 range, got {self.sizes!r}", "sizes"
            )
        if len(self.sizes) == 0 or self.sizes.start < 1:
            raise ContractViolationError(
                f"segment sizes must be a non-empty range of positive sizes, "
                f"got {self.sizes!r}",
                "sizes",
            )
        if self.iterations < 1:
            raise ContractViolationError(
                f"iterations must be positive, got {self.iterations}", "iterations"
            )
        if self.granularity is not None:
            require_power_of_two(self.granularity, "granularity")
        if self.trials_extension is not None and self.trials_extension < 1:
            raise ContractViolationError(
                f"trials_extension must be positive, got {self.trials_extension}",
                "trials_extension",
            )

    def effective_granularity(self, default: int) -> int:
        return self.granularity if self.granularity is not None else default

    def effective_trials_extension(self, default: int) -> int:
        return self.trials_extension if self.trials_extension is not None else default


def require_power_of_two(value: int, name: str) -> None:
    if value < 1 or value & (value - 1):
        raise ContractViolationError(
            f"{name} must be a power of two, got {value}", name
        )


def segments_are_contiguous(segments: Sequence[Segment]) -> bool:
    """True when each segment starts exactly where the previous one stops."""
    return all(
        prev.sizes.stop == nxt.sizes.start
        for prev, nxt in zip(segments, segments[1:])
    )


def report_sections(sizes: range, report_granularity: int) -> Iterator[range]:
    """
    Split `sizes` into report sections of `report_granularity` sizes.

    The final section absorbs a short remainder: a section that would leave
    fewer than three sizes behind extends to the end of the range.
    """
    start = sizes.start
    while start < sizes.stop:
        if start + report_granularity + 2 >= sizes.stop:
            yield range(start, sizes.stop)
            return
        yield range(start, start + report_granularity)
        start += report_granularity


def _uses_short_tail(element_kind: ElementKind, batch_size: Optional[int]) -> bool:
    return element_kind is ElementKind.F32 or (batch_size or 1) > 1


def default_segments(
    element_kind: ElementKind, batch_size: Optional[int] = None
) -> List[Segment]:
    """Default ladder from 1 up to 1536 (f32 or batched) or 2048."""
    segments = [
        Segment(range(1, 64), 256),
        Segment(range(64, 128), 256),
        Segment(range(128, 192), 256),
        Segment(range(192, 256), 128),
        Segment(range(256, 384), 64),
        Segment(range(384, 512), 32),
        Segment(range(512, 768), 16),
        Segment(range(768, 1024), 8),
    ]
    if _uses_short_tail(element_kind, batch_size):
        segments.append(Segment(range(1024, 1537), 4))
    else:
        segments.append(Segment(range(1024, 1536), 4))
        segments.append(Segment(range(1536, 2049), 2))
    return segments


def large_segments(
    element_kind: ElementKind,
    trials_extension: int,
    batch_size: Optional[int] = None,
) -> List[Segment]:
    """Large-size ladder up to 5120 with coarser per-segment granularity."""
    first = 1536 if _uses_short_tail(element_kind, batch_size) else 2048
    return [
        Segment(range(first, 3072), 2, 64, trials_extension),
        Segment(range(3072, 4096), 2, 128, trials_extension),
        Segment(range(4096, 5121), 2, 256, trials_extension),
    ]
