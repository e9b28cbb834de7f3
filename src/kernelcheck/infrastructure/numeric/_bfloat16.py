"""
Software-emulated brain float (bfloat16).

A bfloat16 value is the upper half of an IEEE-754 binary32 value: 1 sign bit,
8 exponent bits and 7 significand bits. This module provides:

- `BFloat16`: an immutable scalar wrapper around the raw 16-bit pattern with
  full floating-point semantics (arithmetic, comparisons, classification,
  rounding, stepping to neighbouring values)
- `RoundingRule`: rounding rules accepted by `BFloat16.round`
- `narrow_to_bfloat16_bits` / `widen_from_bfloat16_bits`: vectorized NumPy
  conversions used by tensor storage

Conversion rules
----------------
- Narrowing from float32 rounds to nearest, ties to even, on the 16 dropped
  bits. Finite values past the bfloat16 range saturate to signed infinity,
  infinities stay infinities and every NaN becomes the canonical quiet NaN
  `0x7FC0`. Narrowing never raises.
- Widening to float32 is exact (the bits are shifted into the upper half).
- All arithmetic widens both operands, computes in float32 and narrows the
  result.
"""

from __future__ import annotations

from enum import Enum
import math
import sys
from typing import Any, ClassVar, Union

import numpy as np

_SIGN_MASK = 0x8000
_EXPONENT_MASK = 0x7F80
_SIGNIFICAND_MASK = 0x007F
_QUIET_BIT = 0x0040
_EXPONENT_BIAS = 127
_SIGNIFICAND_BITS = 7

_CANONICAL_NAN = 0x7FC0
_SIGNALING_NAN = 0x7F81


def narrow_to_bfloat16_bits(values: Any) -> np.ndarray:
    """
    Narrow float32-convertible values to bfloat16 bit patterns.

    Parameters
    ----------
    values : Any
        Scalar or array-like of real values. Values are first converted to
        float32 (values beyond the float32 range become infinities).

    Returns
    -------
    np.ndarray
        `np.uint16` array of the same shape holding bfloat16 bit patterns,
        rounded to nearest even, with NaNs canonicalized to `0x7FC0`.
    """
    with np.errstate(all="ignore"):
        f = np.ascontiguousarray(np.asarray(values, dtype=np.float32))
    bits = f.view(np.uint32)
    lsb = (bits >> np.uint32(16)) & np.uint32(1)
    rounded = ((bits + np.uint32(0x7FFF) + lsb) >> np.uint32(16)).astype(np.uint16)
    return np.where(np.isnan(f), np.uint16(_CANONICAL_NAN), rounded).astype(
        np.uint16
    )


def widen_from_bfloat16_bits(bits: Any) -> np.ndarray:
    """
    Widen bfloat16 bit patterns to float32 values exactly.

    Parameters
    ----------
    bits : Any
        Scalar or array-like of 16-bit patterns.

    Returns
    -------
    np.ndarray
        `np.float32` array of the same shape.
    """
    u16 = np.ascontiguousarray(np.asarray(bits, dtype=np.uint16))
    return (u16.astype(np.uint32) << np.uint32(16)).view(np.float32)


class RoundingRule(Enum):
    """Rules for rounding a value to an integral value."""

    TO_NEAREST_OR_AWAY_FROM_ZERO = "to_nearest_or_away_from_zero"
    TO_NEAREST_OR_EVEN = "to_nearest_or_even"
    UP = "up"
    DOWN = "down"
    TOWARD_ZERO = "toward_zero"
    AWAY_FROM_ZERO = "away_from_zero"


def _round_integral(x: float, rule: RoundingRule) -> float:
    if not math.isfinite(x):
        return x
    if rule is RoundingRule.TO_NEAREST_OR_EVEN:
        r = float(round(x))
    elif rule is RoundingRule.TO_NEAREST_OR_AWAY_FROM_ZERO:
        t = float(math.trunc(x))
        r = t + math.copysign(1.0, x) if abs(x - t) >= 0.5 else t
    elif rule is RoundingRule.UP:
        r = float(math.ceil(x))
    elif rule is RoundingRule.DOWN:
        r = float(math.floor(x))
    elif rule is RoundingRule.TOWARD_ZERO:
        r = float(math.trunc(x))
    else:
        t = float(math.trunc(x))
        r = t if t == x else t + math.copysign(1.0, x)
    # keep the sign of zero results such as -0.3 -> -0.0
    return math.copysign(r, x)


Number = Union[int, float, np.integer, np.floating]


class BFloat16:
    """
    Immutable bfloat16 scalar.

    Parameters
    ----------
    value : int | float | np.number | BFloat16, optional
        Value to narrow to bfloat16 (round to nearest even). Defaults to 0.

    Notes
    -----
    - `+0` and `-0` compare equal and hash equal.
    - NaN is unordered: every comparison involving NaN is False, except `!=`.
    - Use `from_bits` to construct a value from a raw pattern without
      rounding, and `decode` for a strict conversion that rejects values
      outside the finite range.
    """

    __slots__ = ("_bits",)

    infinity: ClassVar["BFloat16"]
    nan: ClassVar["BFloat16"]
    signaling_nan: ClassVar["BFloat16"]
    greatest_finite_magnitude: ClassVar["BFloat16"]
    least_normal_magnitude: ClassVar["BFloat16"]
    least_nonzero_magnitude: ClassVar["BFloat16"]
    ulp_of_one: ClassVar["BFloat16"]
    pi: ClassVar["BFloat16"]

    def __init__(self, value: Union[Number, "BFloat16"] = 0.0) -> None:
        if isinstance(value, BFloat16):
            self._bits = value._bits
        else:
            self._bits = int(narrow_to_bfloat16_bits(value))

    # ------------------------------------------------------------------
    # Construction / conversion
    # ------------------------------------------------------------------
    @classmethod
    def from_bits(cls, bits: int) -> "BFloat16":
        """Wrap a raw 16-bit pattern without any rounding."""
        bits = int(bits)
        if not 0 <= bits <= 0xFFFF:
            raise ValueError(f"bfloat16 bit pattern out of range: {bits:#x}")
        out = cls.__new__(cls)
        out._bits = bits
        return out

    @classmethod
    def from_float32(cls, value: Number) -> "BFloat16":
        """Narrow a float32 value (round to nearest even)."""
        return cls(np.float32(value))

    @classmethod
    def decode(cls, value: Number) -> "BFloat16":
        """
        Strictly convert `value` to bfloat16.

        Raises
        ------
        ValueError
            If `value` is finite but rounds outside the finite bfloat16 range.
        """
        out = cls(value)
        if out.is_infinite and math.isfinite(float(value)):
            raise ValueError(
                f"{value!r} is not representable as a finite bfloat16 "
                f"(greatest finite magnitude is {float(cls.greatest_finite_magnitude)})"
            )
        return out

    @property
    def bits(self) -> int:
        """Raw 16-bit pattern."""
        return self._bits

    def to_float32(self) -> np.float32:
        """Exact widening to float32."""
        return widen_from_bfloat16_bits(self._bits)[()]

    def __float__(self) -> float:
        return float(self.to_float32())

    def __int__(self) -> int:
        return int(float(self))

    def __bool__(self) -> bool:
        return not self.is_zero

    def __repr__(self) -> str:
        return f"BFloat16({float(self)!r})"

    def __str__(self) -> str:
        return str(float(self))

    def __format__(self, format_spec: str) -> str:
        return format(float(self), format_spec)

    # ------------------------------------------------------------------
    # Bit fields and classification
    # ------------------------------------------------------------------
    @property
    def _exponent_bits(self) -> int:
        return (self._bits & _EXPONENT_MASK) >> _SIGNIFICAND_BITS

    @property
    def _significand_bits(self) -> int:
        return self._bits & _SIGNIFICAND_MASK

    @property
    def sign(self) -> int:
        """0 for plus, 1 for minus (NaN and zero included)."""
        return 1 if self._bits & _SIGN_MASK else 0

    @property
    def is_nan(self) -> bool:
        return self._exponent_bits == 0xFF and self._significand_bits != 0

    @property
    def is_signaling_nan(self) -> bool:
        return self.is_nan and not (self._bits & _QUIET_BIT)

    @property
    def is_infinite(self) -> bool:
        return self._exponent_bits == 0xFF and self._significand_bits == 0

    @property
    def is_finite(self) -> bool:
        return self._exponent_bits != 0xFF

    @property
    def is_zero(self) -> bool:
        return (self._bits & ~_SIGN_MASK) == 0

    @property
    def is_subnormal(self) -> bool:
        return self._exponent_bits == 0 and self._significand_bits != 0

    @property
    def is_normal(self) -> bool:
        return 0 < self._exponent_bits < 0xFF

    @property
    def exponent(self) -> int:
        """
        Unbiased exponent of the value.

        Subnormals report the exponent of their leading set bit. Zero reports
        the smallest machine integer and infinities/NaN the largest.
        """
        if self.is_zero:
            return -sys.maxsize - 1
        if not self.is_finite:
            return sys.maxsize
        if self.is_subnormal:
            lead = self._significand_bits.bit_length() - 1
            return 1 - _EXPONENT_BIAS - _SIGNIFICAND_BITS + lead
        return self._exponent_bits - _EXPONENT_BIAS

    @property
    def significand(self) -> "BFloat16":
        """Significand in [1, 2) (zero, infinity and NaN map to themselves)."""
        if self.is_nan:
            return BFloat16.nan
        if self.is_infinite:
            return BFloat16.infinity
        if self.is_zero:
            return BFloat16.from_bits(0)
        sig = self._significand_bits
        if self.is_subnormal:
            sig = (sig << (_SIGNIFICAND_BITS + 1 - sig.bit_length())) & _SIGNIFICAND_MASK
        return BFloat16.from_bits(0x3F80 | sig)

    @property
    def significand_width(self) -> int:
        """Number of fractional significand bits needed; -1 for zero/inf/NaN."""
        if self.is_zero or not self.is_finite:
            return -1
        sig = self._significand_bits
        if sig == 0:
            return 0
        trailing = (sig & -sig).bit_length() - 1
        if self.is_subnormal:
            return sig.bit_length() - 1 - trailing
        return _SIGNIFICAND_BITS - trailing

    @property
    def magnitude(self) -> "BFloat16":
        return BFloat16.from_bits(self._bits & ~_SIGN_MASK)

    @property
    def ulp(self) -> "BFloat16":
        """Distance to the next representable value of larger magnitude."""
        if not self.is_finite:
            return BFloat16.nan
        if self._exponent_bits <= 1:
            return BFloat16.least_nonzero_magnitude
        exp = self._exponent_bits - _EXPONENT_BIAS - _SIGNIFICAND_BITS
        return BFloat16(math.ldexp(1.0, exp))

    @property
    def binade(self) -> "BFloat16":
        """The value with this value's sign and exponent and a unit significand."""
        if not self.is_finite:
            return BFloat16.nan
        if self.is_zero:
            return self
        return BFloat16(math.copysign(math.ldexp(1.0, self.exponent), float(self)))

    @property
    def next_up(self) -> "BFloat16":
        """Least representable value that compares greater than this one."""
        if self.is_nan:
            return BFloat16.nan
        if self._bits == 0x7F80:
            return self
        if self.is_zero:
            return BFloat16.least_nonzero_magnitude
        if self.sign:
            return BFloat16.from_bits(self._bits - 1)
        return BFloat16.from_bits(self._bits + 1)

    @property
    def next_down(self) -> "BFloat16":
        """Greatest representable value that compares less than this one."""
        if self.is_nan:
            return BFloat16.nan
        return -((-self).next_up)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce(other: Any):
        if isinstance(other, BFloat16):
            return other.to_float32()
        if isinstance(other, bool):
            return None
        if isinstance(other, (int, float, np.integer, np.floating)):
            with np.errstate(all="ignore"):
                return np.float32(other)
        return None

    @staticmethod
    def _narrow(value: Any) -> "BFloat16":
        return BFloat16.from_bits(int(narrow_to_bfloat16_bits(value)))

    def _binary(self, other: Any, op, reflected: bool = False):
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        lhs = self.to_float32()
        if reflected:
            lhs, rhs = rhs, lhs
        with np.errstate(all="ignore"):
            return self._narrow(op(lhs, rhs))

    def __add__(self, other):
        return self._binary(other, np.add)

    def __radd__(self, other):
        return self._binary(other, np.add, reflected=True)

    def __sub__(self, other):
        return self._binary(other, np.subtract)

    def __rsub__(self, other):
        return self._binary(other, np.subtract, reflected=True)

    def __mul__(self, other):
        return self._binary(other, np.multiply)

    def __rmul__(self, other):
        return self._binary(other, np.multiply, reflected=True)

    def __truediv__(self, other):
        return self._binary(other, np.divide)

    def __rtruediv__(self, other):
        return self._binary(other, np.divide, reflected=True)

    def __mod__(self, other):
        # truncating remainder: the result has the sign of the dividend
        return self._binary(other, np.fmod)

    def __rmod__(self, other):
        return self._binary(other, np.fmod, reflected=True)

    def __neg__(self) -> "BFloat16":
        return BFloat16.from_bits(self._bits ^ _SIGN_MASK)

    def __pos__(self) -> "BFloat16":
        return self

    def __abs__(self) -> "BFloat16":
        return self.magnitude

    def remainder(self, other: Union[Number, "BFloat16"]) -> "BFloat16":
        """
        IEEE-754 remainder: `self - n * other` with `n` the integer nearest
        to `self / other` (ties to even).
        """
        rhs = self._coerce(other)
        if rhs is None:
            raise TypeError(f"unsupported operand type: {type(other).__name__}")
        x, y = float(self), float(rhs)
        if math.isnan(x) or math.isnan(y) or math.isinf(x) or y == 0.0:
            return BFloat16.nan
        if math.isinf(y):
            return self
        return self._narrow(math.remainder(x, y))

    def sqrt(self) -> "BFloat16":
        with np.errstate(all="ignore"):
            return self._narrow(np.sqrt(self.to_float32()))

    def add_product(
        self, lhs: Union[Number, "BFloat16"], rhs: Union[Number, "BFloat16"]
    ) -> "BFloat16":
        """Return `self + lhs * rhs` computed in float32 and narrowed once."""
        a = self._coerce(lhs)
        b = self._coerce(rhs)
        if a is None or b is None:
            raise TypeError("add_product expects numeric operands")
        with np.errstate(all="ignore"):
            return self._narrow(self.to_float32() + a * b)

    def round(
        self, rule: RoundingRule = RoundingRule.TO_NEAREST_OR_AWAY_FROM_ZERO
    ) -> "BFloat16":
        """Round to an integral value using `rule`."""
        if self.is_nan:
            return BFloat16.nan
        return BFloat16(_round_integral(float(self), rule))

    def distance_to(self, other: Union[Number, "BFloat16"]) -> "BFloat16":
        """Return `other - self`."""
        return BFloat16(other) - self

    def advanced_by(self, amount: Union[Number, "BFloat16"]) -> "BFloat16":
        """Return `self + amount`."""
        return self + amount

    # ------------------------------------------------------------------
    # Comparison / hashing
    # ------------------------------------------------------------------
    def _compare(self, other: Any, op):
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        return bool(op(self.to_float32(), rhs))

    def __eq__(self, other: object):
        return self._compare(other, np.equal)

    def __ne__(self, other: object):
        return self._compare(other, np.not_equal)

    def __lt__(self, other):
        return self._compare(other, np.less)

    def __le__(self, other):
        return self._compare(other, np.less_equal)

    def __gt__(self, other):
        return self._compare(other, np.greater)

    def __ge__(self, other):
        return self._compare(other, np.greater_equal)

    def __hash__(self) -> int:
        if self.is_nan:
            return hash(("bfloat16-nan", self._bits))
        return hash(float(self))


BFloat16.infinity = BFloat16.from_bits(0x7F80)
BFloat16.nan = BFloat16.from_bits(_CANONICAL_NAN)
BFloat16.signaling_nan = BFloat16.from_bits(_SIGNALING_NAN)
BFloat16.greatest_finite_magnitude = BFloat16.from_bits(0x7F7F)
BFloat16.least_normal_magnitude = BFloat16.from_bits(0x0080)
BFloat16.least_nonzero_magnitude = BFloat16.from_bits(0x0001)
BFloat16.ulp_of_one = BFloat16.from_bits(0x3C00)
BFloat16.pi = BFloat16.from_bits(0x4049)
