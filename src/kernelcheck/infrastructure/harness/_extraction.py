"""
Per-configuration throughput reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from ._configuration import BenchmarkConfiguration
from ._segment import Segment


@dataclass
class Extraction:
    """
    Throughput series of one configuration.

    Attributes
    ----------
    title : str
        Configuration name.
    sizes : list[int]
        Measured sizes, ascending.
    flops : list[float]
        FLOP/s per entry of `sizes`.
    style : str
        Plot style hint of the configuration.
    """

    title: str
    sizes: List[int] = field(default_factory=list)
    flops: List[float] = field(default_factory=list)
    style: str = ""

    @property
    def gflops(self) -> List[float]:
        return [f / 1e9 for f in self.flops]


def extract(
    config: BenchmarkConfiguration, segments: Sequence[Segment], granularity: int
) -> Extraction:
    """Collect the sizes each segment measured for `config`."""
    out = Extraction(config.name, style=config.style)
    for segment in segments:
        recorded = segment.flops.get(config.name, [])
        step = segment.effective_granularity(granularity)
        for index, size in enumerate(segment.sizes):
            if size % step == 0 and index < len(recorded):
                out.sizes.append(size)
                out.flops.append(recorded[index])
    return out
