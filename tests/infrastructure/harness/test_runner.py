from unittest import TestCase
import unittest

from kernelcheck.domain import BackendResourceError, ElementKind, OperationKind
from kernelcheck.infrastructure.backends import ExecutionContext
from kernelcheck.infrastructure.config import HarnessSettings
import kernelcheck.infrastructure.harness as harness

class _RecordingCase:
    def __init__(self, name, failing_tier=None):
        self.name = name
        self.failing_tier = failing_tier
        self.calls = []

    def type_description(self):
        return self.name

    def _run(self, tier):
        self.calls.append(tier)
        if tier == self.failing_tier:
            raise BackendResourceError("native", "device lost")

    def run_quick_tests(self):
        self._run("quick")

    def run_long_tests(self):
        self._run("long")

    def run_very_long_tests(self):
        self._run("very_long")
        return [harness.Extraction(self.name, [8], [1e9], "-b")]

class TestCaseRunnerBehaviour(TestCase):

    def test_speed_selects_tiers(self):
        expectations = {
            harness.TestSpeed.QUICK: ["quick"],
            harness.TestSpeed.LONG: ["quick", "long"],
            harness.TestSpeed.VERY_LONG: ["quick", "long", "very_long"],
        }
        for speed, tiers in expectations.items():
            with self.subTest(speed=speed):
                case = _RecordingCase("GEMMPerfTests")
                results = harness.TestCaseRunner.run_tests([case], speed)
                self.assertEqual(case.calls, tiers)
                if speed is harness.TestSpeed.VERY_LONG:
                    self.assertEqual(list(results), ["GEMMPerfTests"])
                    self.assertEqual(results["GEMMPerfTests"][0].gflops, [1.0])
                else:
                    self.assertEqual(results, {})

    def test_recording_case_satisfies_protocol(self):
        self.assertIsInstance(_RecordingCase("x"), harness.PerfTestCase)

    def test_resource_errors_propagate_by_default(self):
        case = _RecordingCase("AttentionPerfTests", failing_tier="long")
        with self.assertRaises(BackendResourceError):
            harness.TestCaseRunner.run_tests([case], harness.TestSpeed.LONG)

    def test_unavailable_cases_are_skipped_with_a_warning(self):
        failing = _RecordingCase("AttentionPerfTests", failing_tier="quick")
        healthy = _RecordingCase("GEMMPerfTests")
        with self.assertWarns(RuntimeWarning) as ctx:
            results = harness.TestCaseRunner.run_tests(
                [failing, healthy], harness.TestSpeed.VERY_LONG, skip_unavailable=True
            )
        self.assertIn("AttentionPerfTests", str(ctx.warning))
        self.assertEqual(list(results), ["GEMMPerfTests"])
        self.assertEqual(failing.calls, ["quick"])

    def test_real_case_at_quick_speed(self):
        settings = HarnessSettings(trials=1, reference_iteration_cap=1, log_progress=False)
        case = harness.GEMMPerfTests(ElementKind.F32, ExecutionContext(seed=0), settings)
        self.assertEqual(case.type_description(), "GEMMPerfTests")
        self.assertEqual(
            harness.TestCaseRunner.run_tests([case], harness.TestSpeed.QUICK), {}
        )


class TestPerfTestSelection(TestCase):

    def test_operation_kind_selects_test_case(self):
        settings = HarnessSettings(seed=3, log_progress=False)
        gemm = harness.perf_tests_for(OperationKind.GEMM, ElementKind.F16, settings=settings)
        self.assertIsInstance(gemm, harness.GEMMPerfTests)
        self.assertIs(gemm.element_kind, ElementKind.F16)
        self.assertIs(gemm.settings, settings)
        attention = harness.perf_tests_for("attention", ElementKind.F32)
        self.assertIsInstance(attention, harness.AttentionPerfTests)
        self.assertIsInstance(attention, harness.PerfTestCase)

    def test_context_and_configs_are_forwarded(self):
        context = ExecutionContext(seed=1)
        case = harness.perf_tests_for(
            OperationKind.ATTENTION, ElementKind.F32, context, configs=[harness.REFERENCE]
        )
        self.assertIs(case.context, context)
        self.assertEqual(case.configs, (harness.REFERENCE,))

    def test_unknown_operation(self):
        with self.assertRaises(ValueError):
            harness.perf_tests_for("convolution", ElementKind.F32)


if __name__ == "__main__":
    unittest.main()
