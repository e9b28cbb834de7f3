from unittest import TestCase
import math
import unittest

import numpy as np

from kernelcheck.domain import ContractViolationError, ElementKind, NumericDivergenceError
from kernelcheck.infrastructure.distance import (
    EuclideanDistanceParameters,
    check_agreement,
    coarser_element_kind,
    euclidean_distance,
)


class TestEuclideanDistance(TestCase):

    def test_distance(self):
        self.assertEqual(euclidean_distance([0.0, 0.0], [3.0, 4.0]), 5.0)
        self.assertEqual(euclidean_distance(np.ones((2, 2)), np.ones(4)), 0.0)

    def test_count_mismatch(self):
        with self.assertRaises(ContractViolationError):
            euclidean_distance(np.zeros(3), np.zeros(4))

    def test_nan_propagates(self):
        self.assertTrue(math.isnan(euclidean_distance([np.nan], [0.0])))


class TestTolerance(TestCase):

    def test_matrix_parameters(self):
        params = EuclideanDistanceParameters.for_matrix(64, batch_size=2)
        self.assertEqual(params.average_magnitude, 32.0)
        self.assertEqual(params.average_deviation, 8.0)
        self.assertEqual(params.batch_size, 2)
        self.assertAlmostEqual(params.tolerance(ElementKind.F32, 10), 10 * 0.002 * 32.0)
        self.assertAlmostEqual(params.tolerance(ElementKind.F16, 10), 10 * 0.02 * 32.0)

    def test_deviation_term_can_dominate(self):
        params = EuclideanDistanceParameters(average_magnitude=0.0, average_deviation=4.0)
        self.assertAlmostEqual(params.tolerance(ElementKind.BF16, 2), 2 * 1e-2 * 4.0)

    def test_monotonicity(self):
        params = EuclideanDistanceParameters.for_matrix(32)
        for kind in ElementKind:
            with self.subTest(kind=kind):
                self.assertLess(params.tolerance(kind, 10), params.tolerance(kind, 20))
                self.assertLess(
                    params.tolerance(kind, 10),
                    EuclideanDistanceParameters.for_matrix(64).tolerance(kind, 10),
                )
        self.assertLess(
            params.tolerance(ElementKind.F32, 10), params.tolerance(ElementKind.BF16, 10)
        )

    def test_coarser_kind(self):
        self.assertIs(coarser_element_kind(ElementKind.F32, ElementKind.BF16), ElementKind.BF16)
        self.assertIs(coarser_element_kind(ElementKind.F16, ElementKind.F32), ElementKind.F16)
        self.assertIs(coarser_element_kind(ElementKind.F32, ElementKind.F32), ElementKind.F32)


class TestAgreement(TestCase):

    def test_strictly_below_tolerance(self):
        self.assertTrue(check_agreement(0.5, 1.0))
        self.assertFalse(check_agreement(1.0, 1.0))

    def test_nan_is_never_agreement(self):
        with self.assertRaises(NumericDivergenceError) as ctx:
            check_agreement(float("nan"), 1.0, label="64x64x64xf32")
        self.assertTrue(math.isnan(ctx.exception.distance))
        self.assertEqual(ctx.exception.tolerance, 1.0)
        self.assertIn("64x64x64xf32", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
