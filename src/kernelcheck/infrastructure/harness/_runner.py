"""
Test-case runner.

A perf test case exposes three tiers of work. `TestCaseRunner.run_tests`
runs the tiers selected by a `TestSpeed` and collects the extractions of
the very-long tier, keyed by the test case's description.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Protocol, Sequence, runtime_checkable
import warnings

from ...domain._errors import BackendResourceError
from ._extraction import Extraction


class TestSpeed(Enum):
    """How much of each test case to run."""

    # only quick smoke tests
    QUICK = "quick"
    # quick tests plus short performance sweeps
    LONG = "long"
    # everything, including the full size ladders
    VERY_LONG = "very_long"


@runtime_checkable
class PerfTestCase(Protocol):
    def type_description(self) -> str: ...
    def run_quick_tests(self) -> None: ...
    def run_long_tests(self) -> None: ...
    def run_very_long_tests(self) -> List[Extraction]: ...


class TestCaseRunner:
    """Runs perf test cases at a given speed."""

    __test__ = False

    @staticmethod
    def run_tests(
        test_cases: Sequence[PerfTestCase],
        speed: TestSpeed,
        skip_unavailable: bool = False,
    ) -> Dict[str, List[Extraction]]:
        """
        Run every test case at `speed`.

        Parameters
        ----------
        test_cases : Sequence[PerfTestCase]
            Test cases, run in order.
        speed : TestSpeed
            QUICK runs the quick tier; LONG adds the long tier; VERY_LONG
            adds the very-long tier and collects its extractions.
        skip_unavailable : bool
            When True, a test case whose backend raises
            `BackendResourceError` is skipped with a `RuntimeWarning` instead
            of aborting the run.

        Returns
        -------
        dict[str, list[Extraction]]
            Extractions of the very-long tier per `type_description()`;
            empty for faster speeds.
        """
        results: Dict[str, List[Extraction]] = {}
        for test_case in test_cases:
            try:
                test_case.run_quick_tests()
                if speed is TestSpeed.QUICK:
                    continue
                test_case.run_long_tests()
                if speed is TestSpeed.LONG:
                    continue
                results[test_case.type_description()] = test_case.run_very_long_tests()
            except BackendResourceError as e:
                if not skip_unavailable:
                    raise
                warnings.warn(
                    f"skipping {test_case.type_description()}: {e}",
                    RuntimeWarning,
                    stacklevel=2,
                )
        return results
