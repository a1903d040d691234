"""Tests for the decimal arithmetic layer."""

import decimal
from decimal import Decimal

import pytest

from sor.errors import DegenerateInvariantError
from sor.math.decimal_math import (
    MATH_CONTEXT,
    bnum,
    dpow,
    math_context,
    round_down,
    round_up,
    scale,
    smallest_unit,
    with_math_context,
)


class TestBnum:
    """Tests for bnum conversion."""

    def test_string(self):
        """Decimal strings convert exactly."""
        assert bnum("906.776") == Decimal("906.776")

    def test_float_uses_repr(self):
        """Floats keep their shortest representation."""
        assert bnum(0.3) == Decimal("0.3")

    def test_int(self):
        """Integers convert exactly."""
        assert bnum(42) == Decimal(42)

    def test_decimal_passthrough(self):
        """Decimals are returned unchanged."""
        value = Decimal("1.5")
        assert bnum(value) is value

    def test_garbage_rejected(self):
        """Non-numeric strings raise ValueError."""
        with pytest.raises(ValueError, match="Not a decimal number"):
            bnum("abc")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", float("inf")])
    def test_non_finite_rejected(self, value):
        """NaN and infinities raise ValueError."""
        with pytest.raises(ValueError, match="Not a finite number"):
            bnum(value)


class TestRounding:
    """Tests for directional rounding."""

    def test_smallest_unit(self):
        """Smallest unit of a 6-decimal token is 1e-6."""
        assert smallest_unit(6) == Decimal("0.000001")

    def test_round_down_truncates(self):
        """round_down never increases the amount."""
        assert round_down(Decimal("1.2345679"), 6) == Decimal("1.234567")

    def test_round_up_ceils(self):
        """round_up rounds any remainder up."""
        assert round_up(Decimal("1.2345671"), 6) == Decimal("1.234568")

    def test_exact_amount_unchanged(self):
        """Amounts already at the precision are unchanged both ways."""
        amount = Decimal("1.5")
        assert round_down(amount, 6) == amount
        assert round_up(amount, 6) == amount

    def test_zero_decimals(self):
        """Tokens with 0 decimals round to integers."""
        assert round_down(Decimal("7.99"), 0) == Decimal(7)
        assert round_up(Decimal("7.01"), 0) == Decimal(8)

    def test_scale(self):
        """scale shifts the decimal point."""
        assert scale(Decimal("1.5"), 18) == Decimal("1500000000000000000")
        assert scale(Decimal("1500000"), -6) == Decimal("1.5")


class TestDpow:
    """Tests for the domain-checked power."""

    def test_integer_exponent(self):
        """Integral exponents match plain exponentiation."""
        assert dpow(Decimal(2), Decimal(10)) == Decimal(1024)

    def test_fractional_exponent(self):
        """Fractional exponents work for positive bases."""
        with math_context():
            result = dpow(Decimal(4), Decimal("0.5"))
        assert abs(result - Decimal(2)) < Decimal("1e-40")

    def test_negative_base_fractional_exponent(self):
        """A negative radicand raises DegenerateInvariantError."""
        with pytest.raises(DegenerateInvariantError, match="Negative radicand"):
            dpow(Decimal(-1), Decimal("0.5"))

    def test_zero_base_negative_exponent(self):
        """Zero to a negative power raises DegenerateInvariantError."""
        with pytest.raises(DegenerateInvariantError, match="Zero base"):
            dpow(Decimal(0), Decimal(-2))

    def test_zero_base_positive_exponent(self):
        """Zero to a positive power is zero."""
        assert dpow(Decimal(0), Decimal("1.5")) == 0


class TestMathContext:
    """Tests for the shared context."""

    def test_decorator_applies_context(self):
        """Functions decorated with with_math_context see 50 digits."""

        @with_math_context
        def precision() -> int:
            return decimal.getcontext().prec

        assert precision() == MATH_CONTEXT.prec == 50

    def test_division_by_zero_traps(self):
        """Division by zero raises instead of returning infinity."""
        with math_context(), pytest.raises(decimal.DivisionByZero):
            Decimal(1) / Decimal(0)
