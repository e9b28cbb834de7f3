from unittest import TestCase
import itertools
import unittest

from kernelcheck.domain import (
    BlockSparse,
    ContractViolationError,
    OperationKind,
    ShapeMismatchError,
)
from kernelcheck.domain.shapes import (
    attention_operand_shapes,
    derive_attention_parameters,
)


class TestAttentionShapeDerivation(TestCase):

    def test_layouts_round_trip(self):
        for tq, tk, tv, to in itertools.product((False, True), repeat=4):
            flags = dict(transpose_q=tq, transpose_k=tk, transpose_v=tv, transpose_o=to)
            with self.subTest(**flags):
                shapes = attention_operand_shapes(
                    8, 16, 2, 4, batch_dimensions=(3,), masked=True, mask_heads=2, **flags
                )
                params = derive_attention_parameters(*shapes, **flags)
                self.assertEqual((params.R, params.C, params.H, params.D), (8, 16, 2, 4))
                self.assertTrue(params.batched)
                self.assertTrue(params.masked)
                self.assertEqual(
                    (
                        params.shape_q,
                        params.shape_k,
                        params.shape_v,
                        params.shape_o,
                        params.shape_mask,
                    ),
                    shapes,
                )

    def test_default_layout(self):
        q, k, v, o, mask = attention_operand_shapes(8, 16, 2, 4)
        self.assertEqual(q, (8, 2, 4))
        self.assertEqual(k, (16, 2, 4))
        self.assertEqual(v, (16, 2, 4))
        self.assertEqual(o, (8, 2, 4))
        self.assertIsNone(mask)

        params = derive_attention_parameters(q, k, v, o)
        self.assertIs(params.kind, OperationKind.ATTENTION)
        self.assertFalse(params.batched)
        self.assertEqual(params.flop_count, 4 * 8 * 16 * 4 * 2)

    def test_flop_count_includes_batch(self):
        shapes = attention_operand_shapes(8, 8, 2, 4, batch_dimensions=(3, 2))
        params = derive_attention_parameters(*shapes)
        self.assertEqual(params.batch_size, 6)
        self.assertEqual(params.flop_count, 4 * 8 * 8 * 4 * 2 * 6)

    def test_dimension_mismatches(self):
        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters((8, 2, 4), (16, 2, 5), (16, 2, 4), (8, 2, 4))
        self.assertEqual(ctx.exception.dimension, "D")

        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters((8, 2, 4), (16, 2, 4), (12, 2, 4), (8, 2, 4))
        self.assertEqual(ctx.exception.dimension, "C")

        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters((8, 2, 4), (16, 2, 4), (16, 2, 4), (9, 2, 4))
        self.assertEqual(ctx.exception.dimension, "R")

        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters((8, 2, 4), (16, 3, 4), (16, 2, 4), (8, 2, 4))
        self.assertEqual(ctx.exception.dimension, "H")

    def test_rank_and_batch_errors(self):
        with self.assertRaises(ContractViolationError):
            derive_attention_parameters((8, 4), (16, 4), (16, 4), (8, 4))
        with self.assertRaises(ContractViolationError):
            derive_attention_parameters(
                (2, 8, 2, 4), (16, 2, 4), (16, 2, 4), (8, 2, 4)
            )
        with self.assertRaises(ContractViolationError) as ctx:
            derive_attention_parameters(
                (2, 8, 2, 4), (3, 16, 2, 4), (2, 16, 2, 4), (2, 8, 2, 4)
            )
        self.assertEqual(ctx.exception.dimension, "batch")

    def test_mask_broadcast_rule(self):
        q, k, v, o, _ = attention_operand_shapes(8, 16, 2, 4, batch_dimensions=(3, 5))
        # mask batch rank is one less than the data batch rank
        params = derive_attention_parameters(q, k, v, o, (5, 1, 8, 16))
        self.assertEqual(params.batch_dimensions_mask, (5,))
        self.assertEqual(params.mask_heads, 1)
        derive_attention_parameters(q, k, v, o, (1, 2, 8, 16))

        with self.assertRaises(ContractViolationError) as ctx:
            derive_attention_parameters(q, k, v, o, (3, 5, 1, 8, 16))
        self.assertEqual(ctx.exception.dimension, "mask")
        with self.assertRaises(ContractViolationError):
            derive_attention_parameters(q, k, v, o, (4, 1, 8, 16))

    def test_unbatched_mask_has_no_batch_prefix(self):
        q, k, v, o, _ = attention_operand_shapes(8, 16, 2, 4)
        derive_attention_parameters(q, k, v, o, (2, 8, 16))
        with self.assertRaises(ContractViolationError):
            derive_attention_parameters(q, k, v, o, (1, 1, 8, 16))

    def test_mask_dimension_mismatches(self):
        q, k, v, o, _ = attention_operand_shapes(8, 16, 2, 4)
        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters(q, k, v, o, (3, 8, 16))
        self.assertEqual(ctx.exception.dimension, "H")
        with self.assertRaises(ShapeMismatchError) as ctx:
            derive_attention_parameters(q, k, v, o, (1, 8, 8))
        self.assertEqual(ctx.exception.dimension, "C")

    def test_block_sparse_requires_mask(self):
        q, k, v, o, mask = attention_operand_shapes(8, 8, 1, 4, masked=True)
        with self.assertRaises(ContractViolationError):
            derive_attention_parameters(q, k, v, o, block_sparse=True)
        params = derive_attention_parameters(q, k, v, o, mask, block_sparse=True)
        self.assertTrue(params.block_sparse)


class TestAttentionMaskVariants(TestCase):

    def test_block_sparse_validation(self):
        BlockSparse(16, 0.0)
        BlockSparse(16, 1.0)
        with self.assertRaises(ContractViolationError):
            BlockSparse(0, 0.5)
        with self.assertRaises(ContractViolationError):
            BlockSparse(16, 1.5)


if __name__ == "__main__":
    unittest.main()
