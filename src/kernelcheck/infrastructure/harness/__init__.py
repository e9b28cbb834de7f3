from ._configuration import (
    FAST_CONFIGS,
    NATIVE_32X32,
    NATIVE_48X48,
    REFERENCE,
    BenchmarkConfiguration,
)
from ._extraction import Extraction, extract
from ._segment import (
    Segment,
    default_segments,
    large_segments,
    report_sections,
    segments_are_contiguous,
)
from ._sweep import SizeSweep
from ._gemm_perf import GEMMPerfTests, GEMMWorkload
from ._attention_perf import AttentionPerfTests, AttentionWorkload
from ._runner import PerfTestCase, TestCaseRunner, TestSpeed
from ._selection import perf_tests_for

__all__ = [
    "FAST_CONFIGS",
    "NATIVE_32X32",
    "NATIVE_48X48",
    "REFERENCE",
    BenchmarkConfiguration.__name__,
    Extraction.__name__,
    extract.__name__,
    Segment.__name__,
    default_segments.__name__,
    large_segments.__name__,
    report_sections.__name__,
    segments_are_contiguous.__name__,
    SizeSweep.__name__,
    GEMMPerfTests.__name__,
    GEMMWorkload.__name__,
    AttentionPerfTests.__name__,
    AttentionWorkload.__name__,
    PerfTestCase.__name__,
    TestCaseRunner.__name__,
    TestSpeed.__name__,
    perf_tests_for.__name__,
]
