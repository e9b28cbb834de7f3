"""
Perf test case selection by operation kind.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...domain._element_kind import ElementKind
from ...domain._parameters import OperationKind
from ..backends._execution_context import ExecutionContext
from ..config._settings import HarnessSettings
from ._attention_perf import AttentionPerfTests
from ._configuration import BenchmarkConfiguration
from ._gemm_perf import GEMMPerfTests
from ._runner import PerfTestCase

_TEST_CASES = {
    OperationKind.GEMM: GEMMPerfTests,
    OperationKind.ATTENTION: AttentionPerfTests,
}


def perf_tests_for(
    operation: OperationKind,
    element_kind: ElementKind,
    context: Optional[ExecutionContext] = None,
    settings: Optional[HarnessSettings] = None,
    configs: Optional[Sequence[BenchmarkConfiguration]] = None,
) -> PerfTestCase:
    """
    Build the perf test case benchmarking `operation`.

    Parameters
    ----------
    operation : OperationKind
        Operation family, or its string value (`"gemm"`, `"attention"`).
    element_kind : ElementKind
        Element kind of the benchmarked operands.
    context, settings, configs
        Forwarded to the test case constructor.

    Raises
    ------
    ValueError
        If `operation` names no known operation kind.
    """
    test_case = _TEST_CASES[OperationKind(operation)]
    return test_case(element_kind, context, settings, configs)
