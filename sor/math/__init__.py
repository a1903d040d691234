"""Mathematical utilities for the smart order router.

This package provides the decimal arithmetic layer used by every pricing
strategy: a shared high-precision context and directional rounding helpers.
"""

from sor.math.decimal_math import (
    MATH_CONTEXT,
    ONE,
    ZERO,
    bnum,
    dpow,
    math_context,
    round_down,
    round_up,
    scale,
    smallest_unit,
    with_math_context,
)

__all__ = [
    "MATH_CONTEXT",
    "ONE",
    "ZERO",
    "bnum",
    "dpow",
    "math_context",
    "round_down",
    "round_up",
    "scale",
    "smallest_unit",
    "with_math_context",
]
