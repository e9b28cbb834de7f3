from unittest import TestCase, mock
import contextlib
import io
import math
import unittest

import numpy as np

from kernelcheck.domain import (
    BlockSparse,
    ContractViolationError,
    ElementKind,
    NumericDivergenceError,
    UpperTriangular,
)
from kernelcheck.infrastructure.backends import ExecutionContext
from kernelcheck.infrastructure.config import HarnessSettings
import kernelcheck.infrastructure.harness as harness

QUIET = HarnessSettings(trials=1, reference_iteration_cap=2, log_progress=False)


def _assert_positive_finite(case, values):
    case.assertTrue(values)
    for v in values:
        case.assertTrue(math.isfinite(v))
        case.assertGreater(v, 0.0)


class TestGEMMPerf(TestCase):

    def test_square_sweep_agrees_and_reports_throughput(self):
        tests = harness.GEMMPerfTests(ElementKind.F32, ExecutionContext(seed=0), QUIET)
        extractions = tests.test_gemm_speed(
            granularity=16,
            trials_extension=1,
            segments=[harness.Segment(range(48, 65), 2)],
        )
        self.assertEqual([e.title for e in extractions], [c.name for c in harness.FAST_CONFIGS])
        for extraction in extractions:
            self.assertEqual(extraction.sizes, [48, 64])
            _assert_positive_finite(self, extraction.flops)

    def test_batched_transposed_bias_sweep(self):
        # size 15 is divisible by 3 and 5, so B and D are shared across the batch
        tests = harness.GEMMPerfTests(ElementKind.F16, ExecutionContext(seed=1), QUIET)
        extractions = tests.test_gemm_speed(
            granularity=1,
            trials_extension=1,
            transpose_a=True,
            transpose_b=True,
            transpose_d=True,
            batch_size=2,
            use_bias=True,
            segments=[harness.Segment(range(15, 16), 1)],
        )
        for extraction in extractions:
            self.assertEqual(extraction.sizes, [15])
            _assert_positive_finite(self, extraction.flops)

    def test_workload_shapes(self):
        workload = harness.GEMMWorkload(
            ElementKind.F32, batch_size=2, use_bias=True, transpose_d=True
        )
        a, b, c, d = workload.shapes(15)
        self.assertEqual(a, (2, 15, 15))
        self.assertEqual(b, (1, 15, 15))
        self.assertEqual(c, (2, 15, 15))
        self.assertEqual(d, (1, 15))
        _, b, _, d = workload.shapes(16)
        self.assertEqual(b, (16, 16))
        self.assertEqual(d, (16,))
        self.assertEqual(workload.label(16), "2x16x16x16xf32")
        self.assertEqual(workload.flop_count(16), 2 * 16**3 * 2)

    def test_bf16_falls_back_to_f32_reference(self):
        tests = harness.GEMMPerfTests(
            ElementKind.BF16, ExecutionContext(seed=2), QUIET, configs=[harness.REFERENCE]
        )
        with self.assertWarns(RuntimeWarning):
            extractions = tests.test_gemm_speed(
                granularity=16,
                trials_extension=1,
                segments=[harness.Segment(range(16, 17), 1)],
            )
        self.assertEqual(extractions[0].sizes, [16])

    def test_bf16_native_is_verified_against_f32_reference(self):
        tests = harness.GEMMPerfTests(
            ElementKind.BF16, ExecutionContext(seed=3), QUIET, configs=[harness.NATIVE_32X32]
        )
        extractions = tests.test_gemm_speed(
            granularity=16, trials_extension=1, segments=[harness.Segment(range(32, 33), 1)]
        )
        _assert_positive_finite(self, extractions[0].flops)

    def test_divergence_is_reported(self):
        def broken(a, b, d, params, tile_constants):
            return np.full(params.shape_c, 1e3, dtype=np.float32)

        tests = harness.GEMMPerfTests(
            ElementKind.F32, ExecutionContext(seed=4), QUIET, configs=[harness.NATIVE_32X32]
        )
        with mock.patch(
            "kernelcheck.infrastructure.backends._tiled_backend.gemm_tiled_cpu", broken
        ):
            with self.assertRaises(NumericDivergenceError) as ctx:
                tests.test_gemm_speed(
                    granularity=8,
                    trials_extension=1,
                    segments=[harness.Segment(range(8, 9), 1)],
                )
        self.assertGreater(ctx.exception.distance, ctx.exception.tolerance)
        self.assertIn("8x8x8xf32", str(ctx.exception))

    def test_nan_output_is_reported(self):
        def nan_kernel(a, b, d, params, tile_constants):
            return np.full(params.shape_c, np.nan, dtype=np.float32)

        tests = harness.GEMMPerfTests(
            ElementKind.F32, ExecutionContext(seed=5), QUIET, configs=[harness.NATIVE_32X32]
        )
        with mock.patch(
            "kernelcheck.infrastructure.backends._tiled_backend.gemm_tiled_cpu", nan_kernel
        ):
            with self.assertRaises(NumericDivergenceError):
                tests.test_gemm_speed(
                    granularity=8,
                    trials_extension=1,
                    segments=[harness.Segment(range(8, 9), 1)],
                )

    def test_granularity_must_be_power_of_two(self):
        tests = harness.GEMMPerfTests(ElementKind.F32, ExecutionContext(), QUIET)
        with self.assertRaises(ContractViolationError):
            tests.test_gemm_speed(granularity=12, trials_extension=1)

    def test_progress_lines(self):
        settings = HarnessSettings(trials=1, reference_iteration_cap=1, log_progress=True)
        tests = harness.GEMMPerfTests(
            ElementKind.F32, ExecutionContext(seed=6), settings, configs=[harness.REFERENCE]
        )
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            tests.test_gemm_speed(
                granularity=8, trials_extension=1, segments=[harness.Segment(range(8, 17), 1)]
            )
        lines = out.getvalue().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith("8x8x8xf32 - Reference "))
        self.assertTrue(lines[1].startswith("16x16x16xf32 - Reference "))


class TestAttentionPerf(TestCase):

    def test_causal_sweep(self):
        tests = harness.AttentionPerfTests(ElementKind.F32, ExecutionContext(seed=0), QUIET)
        extractions = tests.test_attention_speed(
            granularity=8,
            trials_extension=1,
            heads=2,
            head_dimension=8,
            batch_size=2,
            mask=UpperTriangular(),
            segments=[harness.Segment(range(16, 17), 1)],
        )
        self.assertEqual(len(extractions), 3)
        for extraction in extractions:
            self.assertEqual(extraction.sizes, [16])
            _assert_positive_finite(self, extraction.flops)

    def test_block_sparse_sweep_in_half_precision(self):
        tests = harness.AttentionPerfTests(ElementKind.F16, ExecutionContext(seed=1), QUIET)
        extractions = tests.test_attention_speed(
            granularity=8,
            trials_extension=1,
            heads=1,
            head_dimension=16,
            mask=BlockSparse(4, 1.0),
            block_sparse=True,
            segments=[harness.Segment(range(8, 9), 1)],
        )
        for extraction in extractions:
            _assert_positive_finite(self, extraction.flops)

    def test_transposed_layouts(self):
        tests = harness.AttentionPerfTests(
            ElementKind.F32, ExecutionContext(seed=2), QUIET, configs=[harness.NATIVE_48X48]
        )
        extractions = tests.test_attention_speed(
            granularity=8,
            trials_extension=1,
            head_dimension=4,
            transpose_q=True,
            transpose_k=False,
            transpose_v=True,
            transpose_o=True,
            segments=[harness.Segment(range(8, 9), 1)],
        )
        self.assertEqual(extractions[0].sizes, [8])

    def test_block_sparse_requires_mask(self):
        tests = harness.AttentionPerfTests(ElementKind.F32, ExecutionContext(), QUIET)
        with self.assertRaises(ContractViolationError):
            tests.test_attention_speed(
                granularity=8,
                trials_extension=1,
                block_sparse=True,
                segments=[harness.Segment(range(8, 9), 1)],
            )

    def test_workload_description(self):
        workload = harness.AttentionWorkload(
            ElementKind.BF16, heads=4, head_dimension=32, batch_size=3, mask=UpperTriangular()
        )
        q, k, v, o, mask = workload.shapes(64)
        self.assertEqual(q, (3, 64, 4, 32))
        self.assertEqual(mask, (1, 64, 64))
        self.assertEqual(workload.label(64), "3x64x64x4x32xbf16")
        self.assertEqual(workload.flop_count(64), 4 * 64 * 64 * 32 * 4 * 3)
        self.assertEqual(workload.distance_parameters(64).batch_size, 3)
        self.assertIsNone(
            harness.AttentionWorkload(ElementKind.F32, heads=4).distance_parameters(8).batch_size
        )


class TestDefaultContext(TestCase):

    def test_settings_seed_drives_operand_data(self):
        def operands(seed):
            tests = harness.GEMMPerfTests(
                ElementKind.F32, settings=HarnessSettings(seed=seed, log_progress=False)
            )
            workload = harness.GEMMWorkload(ElementKind.F32)
            return workload.allocate(8, ElementKind.F32, tests.context)["a"].to_numpy()

        self.assertEqual(operands(7).tolist(), operands(7).tolist())
        self.assertNotEqual(operands(7).tolist(), operands(8).tolist())

    def test_attention_default_context(self):
        tests = harness.AttentionPerfTests(ElementKind.F32, settings=QUIET)
        self.assertIsInstance(tests.context, ExecutionContext)
        extractions = tests.test_attention_speed(
            granularity=8,
            trials_extension=1,
            head_dimension=4,
            segments=[harness.Segment(range(8, 9), 1)],
            configs=[harness.REFERENCE],
        )
        self.assertEqual(extractions[0].sizes, [8])


if __name__ == "__main__":
    unittest.main()
