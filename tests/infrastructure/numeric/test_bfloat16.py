from unittest import TestCase
import math
import sys
import unittest

import numpy as np

from kernelcheck.infrastructure.numeric import (
    BFloat16,
    RoundingRule,
    narrow_to_bfloat16_bits,
    widen_from_bfloat16_bits,
)


class TestBFloat16Conversion(TestCase):

    def test_exact_values_keep_their_bits(self):
        self.assertEqual(BFloat16(1.0).bits, 0x3F80)
        self.assertEqual(BFloat16(-2.0).bits, 0xC000)
        self.assertEqual(BFloat16(0.0).bits, 0x0000)
        self.assertEqual(BFloat16(-0.0).bits, 0x8000)

    def test_narrowing_rounds_ties_to_even(self):
        # 1 + 2^-8 lies halfway between 1.0 and 1.0078125; the even neighbour is 1.0
        self.assertEqual(BFloat16(1.0 + 2.0**-8).bits, 0x3F80)
        # 1 + 3 * 2^-8 lies halfway between 0x3F81 and 0x3F82; 0x3F82 is even
        self.assertEqual(BFloat16(1.0 + 3 * 2.0**-8).bits, 0x3F82)

    def test_pi_narrows_to_constant(self):
        self.assertEqual(BFloat16(math.pi).bits, BFloat16.pi.bits)
        self.assertEqual(BFloat16.pi.bits, 0x4049)

    def test_nan_and_infinities(self):
        self.assertEqual(BFloat16(float("nan")).bits, 0x7FC0)
        self.assertEqual(BFloat16(float("inf")).bits, 0x7F80)
        self.assertEqual(BFloat16(float("-inf")).bits, 0xFF80)

    def test_overflow_saturates_to_infinity(self):
        x = BFloat16(3.4e38)
        self.assertTrue(x.is_infinite)
        self.assertEqual(x.sign, 0)
        self.assertTrue(BFloat16(-3.4e38).is_infinite)
        self.assertEqual(BFloat16(-3.4e38).sign, 1)

    def test_decode_rejects_finite_overflow(self):
        with self.assertRaises(ValueError):
            BFloat16.decode(3.4e38)
        self.assertTrue(BFloat16.decode(float("inf")).is_infinite)
        self.assertEqual(BFloat16.decode(1.5), BFloat16(1.5))

    def test_from_bits_range(self):
        self.assertEqual(BFloat16.from_bits(0x3F80), BFloat16(1.0))
        with self.assertRaises(ValueError):
            BFloat16.from_bits(0x10000)
        with self.assertRaises(ValueError):
            BFloat16.from_bits(-1)

    def test_widening_is_exact(self):
        x = BFloat16.from_bits(0x3F81)
        self.assertEqual(x.to_float32(), np.float32(1.0078125))
        self.assertIsInstance(x.to_float32(), np.float32)
        self.assertEqual(float(BFloat16.greatest_finite_magnitude), 3.3895313892515355e38)

    def test_string_forms(self):
        self.assertEqual(str(BFloat16(1.5)), "1.5")
        self.assertEqual(repr(BFloat16(1.5)), "BFloat16(1.5)")
        self.assertEqual(f"{BFloat16(2.0):.2f}", "2.00")
        self.assertEqual(int(BFloat16(2.75)), 2)


class TestBFloat16Vectorized(TestCase):

    def test_every_non_nan_pattern_round_trips(self):
        bits = np.arange(0x10000, dtype=np.uint32).astype(np.uint16)
        widened = widen_from_bfloat16_bits(bits)
        narrowed = narrow_to_bfloat16_bits(widened)
        keep = ~np.isnan(widened)
        self.assertTrue(np.array_equal(narrowed[keep], bits[keep]))
        self.assertTrue(np.all(narrowed[~keep] == 0x7FC0))

    def test_narrowing_is_idempotent(self):
        values = np.random.default_rng(3).standard_normal(1024).astype(np.float32) * 1e3
        once = narrow_to_bfloat16_bits(values)
        twice = narrow_to_bfloat16_bits(widen_from_bfloat16_bits(once))
        self.assertTrue(np.array_equal(once, twice))

    def test_shapes_are_preserved(self):
        values = np.zeros((2, 3, 4), dtype=np.float32)
        self.assertEqual(narrow_to_bfloat16_bits(values).shape, (2, 3, 4))
        self.assertEqual(narrow_to_bfloat16_bits(values).dtype, np.uint16)
        self.assertEqual(widen_from_bfloat16_bits(np.zeros((5,), np.uint16)).dtype, np.float32)

    def test_special_values(self):
        out = narrow_to_bfloat16_bits([1.0, np.nan, np.inf, -np.inf, -0.0])
        self.assertEqual(out.tolist(), [0x3F80, 0x7FC0, 0x7F80, 0xFF80, 0x8000])


class TestBFloat16Classification(TestCase):

    def test_zero_signs_compare_and_hash_equal(self):
        self.assertEqual(BFloat16(0.0), BFloat16(-0.0))
        self.assertEqual(hash(BFloat16(0.0)), hash(BFloat16(-0.0)))
        self.assertEqual(len({BFloat16(0.0), BFloat16(-0.0)}), 1)
        self.assertFalse(bool(BFloat16(-0.0)))

    def test_nan_is_unordered(self):
        nan = BFloat16.nan
        self.assertTrue(nan.is_nan)
        self.assertFalse(nan == nan)
        self.assertTrue(nan != nan)
        self.assertFalse(nan < BFloat16(1.0))
        self.assertFalse(nan >= BFloat16(1.0))

    def test_signaling_nan(self):
        self.assertTrue(BFloat16.signaling_nan.is_nan)
        self.assertTrue(BFloat16.signaling_nan.is_signaling_nan)
        self.assertFalse(BFloat16.nan.is_signaling_nan)

    def test_subnormal_and_normal(self):
        self.assertTrue(BFloat16.least_nonzero_magnitude.is_subnormal)
        self.assertFalse(BFloat16.least_nonzero_magnitude.is_normal)
        self.assertTrue(BFloat16.least_normal_magnitude.is_normal)
        self.assertTrue(BFloat16(1.0).is_finite)
        self.assertFalse(BFloat16.infinity.is_finite)

    def test_hash_matches_float(self):
        self.assertEqual(hash(BFloat16(1.5)), hash(1.5))

    def test_comparison_with_unrelated_type(self):
        self.assertFalse(BFloat16(1.0) == "1.0")
        with self.assertRaises(TypeError):
            BFloat16(1.0) < "1.0"


class TestBFloat16Fields(TestCase):

    def test_exponent(self):
        self.assertEqual(BFloat16(1.0).exponent, 0)
        self.assertEqual(BFloat16(3.0).exponent, 1)
        self.assertEqual(BFloat16(0.25).exponent, -2)
        self.assertEqual(BFloat16.least_nonzero_magnitude.exponent, -133)
        self.assertEqual(BFloat16(0.0).exponent, -sys.maxsize - 1)
        self.assertEqual(BFloat16.infinity.exponent, sys.maxsize)

    def test_significand(self):
        self.assertEqual(BFloat16(3.0).significand, BFloat16(1.5))
        self.assertEqual(BFloat16(-6.0).significand, BFloat16(1.5))
        self.assertEqual(BFloat16.least_nonzero_magnitude.significand, BFloat16(1.0))
        self.assertTrue(BFloat16.nan.significand.is_nan)

    def test_significand_width(self):
        self.assertEqual(BFloat16(1.0).significand_width, 0)
        self.assertEqual(BFloat16(1.5).significand_width, 1)
        self.assertEqual(BFloat16.from_bits(0x3F81).significand_width, 7)
        self.assertEqual(BFloat16(0.0).significand_width, -1)

    def test_ulp_and_binade(self):
        self.assertEqual(BFloat16(1.0).ulp, BFloat16.ulp_of_one)
        self.assertEqual(float(BFloat16.ulp_of_one), 2.0**-7)
        self.assertEqual(BFloat16(2.0).ulp, BFloat16(2.0**-6))
        self.assertEqual(BFloat16(0.0).ulp, BFloat16.least_nonzero_magnitude)
        self.assertEqual(BFloat16(-3.0).binade, BFloat16(-2.0))
        self.assertTrue(BFloat16.infinity.ulp.is_nan)

    def test_magnitude(self):
        self.assertEqual(BFloat16(-2.5).magnitude, BFloat16(2.5))
        self.assertEqual(abs(BFloat16(-2.5)), BFloat16(2.5))
        self.assertEqual((-BFloat16(2.5)).bits, 0xC020)


class TestBFloat16Neighbours(TestCase):

    def test_next_up_and_down(self):
        one = BFloat16(1.0)
        self.assertEqual(one.next_up.bits, 0x3F81)
        self.assertEqual(one.next_down.bits, 0x3F7F)
        self.assertEqual(one.next_up.next_down, one)

    def test_around_zero(self):
        self.assertEqual(BFloat16(0.0).next_up, BFloat16.least_nonzero_magnitude)
        self.assertEqual(BFloat16(-0.0).next_up, BFloat16.least_nonzero_magnitude)
        self.assertEqual(BFloat16(0.0).next_down, -BFloat16.least_nonzero_magnitude)

    def test_at_the_ends(self):
        self.assertEqual(BFloat16.greatest_finite_magnitude.next_up, BFloat16.infinity)
        self.assertEqual(BFloat16.infinity.next_up, BFloat16.infinity)
        self.assertEqual(
            (-BFloat16.infinity).next_up, -BFloat16.greatest_finite_magnitude
        )
        self.assertEqual(
            (-BFloat16.greatest_finite_magnitude).next_down, -BFloat16.infinity
        )
        self.assertTrue(BFloat16.nan.next_up.is_nan)
        self.assertTrue(BFloat16.nan.next_down.is_nan)


class TestBFloat16Arithmetic(TestCase):

    def test_basic_operations(self):
        self.assertEqual(BFloat16(1.0) + BFloat16(2.0), BFloat16(3.0))
        self.assertEqual(BFloat16(1.0) + 2, BFloat16(3.0))
        self.assertEqual(2 * BFloat16(1.5), BFloat16(3.0))
        self.assertEqual(BFloat16(5.0) - 1, BFloat16(4.0))
        self.assertEqual(1 - BFloat16(5.0), BFloat16(-4.0))
        self.assertEqual(BFloat16(3.0) / 2, BFloat16(1.5))
        self.assertEqual(3 / BFloat16(2.0), BFloat16(1.5))
        self.assertIsInstance(BFloat16(1.0) + 1.0, BFloat16)

    def test_results_are_rounded(self):
        # 256 + 1 is not representable (8 significant bits); ties go to even
        self.assertEqual(BFloat16(256.0) + 1, BFloat16(256.0))
        self.assertEqual(BFloat16(256.0) + 3, BFloat16(260.0))

    def test_division_by_zero(self):
        self.assertEqual(BFloat16(1.0) / 0, BFloat16.infinity)
        self.assertTrue((BFloat16(0.0) / 0).is_nan)

    def test_truncating_and_ieee_remainder(self):
        self.assertEqual(BFloat16(7.0) % 3, BFloat16(1.0))
        self.assertEqual(BFloat16(-7.0) % 3, BFloat16(-1.0))
        self.assertEqual(BFloat16(5.0).remainder(3), BFloat16(-1.0))
        self.assertTrue(BFloat16(5.0).remainder(0).is_nan)
        self.assertEqual(BFloat16(5.0).remainder(BFloat16.infinity), BFloat16(5.0))

    def test_sqrt(self):
        self.assertEqual(BFloat16(4.0).sqrt(), BFloat16(2.0))
        self.assertTrue(BFloat16(-1.0).sqrt().is_nan)

    def test_add_product(self):
        self.assertEqual(BFloat16(1.0).add_product(2, 3), BFloat16(7.0))
        self.assertEqual(
            BFloat16(1.0).add_product(BFloat16(0.5), BFloat16(4.0)), BFloat16(3.0)
        )

    def test_distance_and_advance(self):
        self.assertEqual(BFloat16(1.0).distance_to(3.0), BFloat16(2.0))
        self.assertEqual(BFloat16(1.0).advanced_by(BFloat16(0.5)), BFloat16(1.5))

    def test_overflowing_operation_gives_infinity(self):
        big = BFloat16.greatest_finite_magnitude
        self.assertEqual(big * 2, BFloat16.infinity)


class TestBFloat16Rounding(TestCase):

    def test_rules_on_ties(self):
        x = BFloat16(2.5)
        self.assertEqual(x.round(RoundingRule.TO_NEAREST_OR_EVEN), BFloat16(2.0))
        self.assertEqual(x.round(RoundingRule.TO_NEAREST_OR_AWAY_FROM_ZERO), BFloat16(3.0))
        self.assertEqual(x.round(), BFloat16(3.0))

    def test_directed_rules(self):
        x = BFloat16(-2.5)
        self.assertEqual(x.round(RoundingRule.UP), BFloat16(-2.0))
        self.assertEqual(x.round(RoundingRule.DOWN), BFloat16(-3.0))
        self.assertEqual(x.round(RoundingRule.TOWARD_ZERO), BFloat16(-2.0))
        self.assertEqual(x.round(RoundingRule.AWAY_FROM_ZERO), BFloat16(-3.0))

    def test_sign_of_zero_is_kept(self):
        self.assertEqual(BFloat16(-0.25).round(RoundingRule.TO_NEAREST_OR_EVEN).sign, 1)
        self.assertEqual(BFloat16(-0.5).round(RoundingRule.TOWARD_ZERO).bits, 0x8000)

    def test_non_finite_values(self):
        self.assertEqual(BFloat16.infinity.round(), BFloat16.infinity)
        self.assertTrue(BFloat16.nan.round().is_nan)


if __name__ == "__main__":
    unittest.main()
