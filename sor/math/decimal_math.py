"""Decimal arithmetic layer.

All amounts handled by the router are normalized token amounts (``1.5`` means
one and a half tokens, whatever the token's decimals). They are kept as
``Decimal`` and evaluated under a single high-precision context; rounding to a
token's decimal places is always explicit and directional.
"""

from __future__ import annotations

import decimal
import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, ROUND_UP, Decimal
from typing import Any, ParamSpec, TypeVar

from sor.errors import DegenerateInvariantError

__all__ = [
    "MATH_CONTEXT",
    "ZERO",
    "ONE",
    "bnum",
    "dpow",
    "math_context",
    "with_math_context",
    "round_down",
    "round_up",
    "scale",
    "smallest_unit",
]

# 50 significant digits: 18 decimal places on balances up to 10^32 still fit
# without the quantize step overflowing the coefficient.
MATH_CONTEXT = decimal.Context(
    prec=50,
    rounding=ROUND_HALF_EVEN,
    Emax=999_999,
    Emin=-999_999,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
)

ZERO = Decimal(0)
ONE = Decimal(1)

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def math_context() -> Iterator[decimal.Context]:
    """Evaluate the enclosed block under MATH_CONTEXT."""
    with decimal.localcontext(MATH_CONTEXT) as ctx:
        yield ctx


def with_math_context(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator running ``func`` under MATH_CONTEXT."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with decimal.localcontext(MATH_CONTEXT):
            return func(*args, **kwargs)

    return wrapper


def bnum(value: Any) -> Decimal:
    """Convert a snapshot value to Decimal.

    Floats are converted through their shortest repr so ``0.3`` stays ``0.3``.

    Args:
        value: str, int, float or Decimal

    Returns:
        The value as Decimal

    Raises:
        ValueError: If the value cannot be parsed as a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except decimal.InvalidOperation as err:
            raise ValueError(f"Not a decimal number: {value!r}") from err
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def smallest_unit(decimals: int) -> Decimal:
    """Smallest representable amount of a token with ``decimals`` places."""
    return Decimal(1).scaleb(-decimals)


def round_down(amount: Decimal, decimals: int) -> Decimal:
    """Truncate ``amount`` to ``decimals`` places (never rounds up)."""
    with decimal.localcontext(MATH_CONTEXT):
        return amount.quantize(smallest_unit(decimals), rounding=ROUND_DOWN)


def round_up(amount: Decimal, decimals: int) -> Decimal:
    """Round ``amount`` away from zero to ``decimals`` places."""
    with decimal.localcontext(MATH_CONTEXT):
        return amount.quantize(smallest_unit(decimals), rounding=ROUND_UP)


def scale(amount: Decimal, decimals: int) -> Decimal:
    """Multiply by 10**decimals (negative ``decimals`` divides)."""
    with decimal.localcontext(MATH_CONTEXT):
        return amount.scaleb(decimals)


def dpow(base: Decimal, exponent: Decimal) -> Decimal:
    """Power with an invariant-domain check.

    Args:
        base: Base, must be non-negative when exponent is not integral
        exponent: Exponent

    Returns:
        base ** exponent under the current context

    Raises:
        DegenerateInvariantError: If the base is negative for a fractional
            exponent, or zero for a non-positive exponent
    """
    if base < 0 and exponent != exponent.to_integral_value():
        raise DegenerateInvariantError(f"Negative radicand {base} for exponent {exponent}")
    if base == 0:
        if exponent <= 0:
            raise DegenerateInvariantError(f"Zero base for exponent {exponent}")
        return ZERO
    if exponent == 1:
        return base
    return base**exponent
