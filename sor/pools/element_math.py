"""Element (yield-space) pool math.

Invariant between the base token and its principal token:

    Bi^(1-t) + Bo^(1-t) = K,    t = max(expiry - now, 0) / unit_seconds

``t`` shrinks to 0 at maturity, where the curve becomes the line
``Bi + Bo = K`` and principal trades 1:1 with base (less the fee). The fee
is charged on the input amount.
"""

from __future__ import annotations

from decimal import Decimal

from sor.errors import DegenerateInvariantError
from sor.math.decimal_math import ONE, ZERO, dpow


def time_to_maturity(expiry_time: int, current_timestamp: int, unit_seconds: int) -> Decimal:
    """Normalized time left until expiry, clamped at 0."""
    remaining = max(expiry_time - current_timestamp, 0)
    return Decimal(remaining) / Decimal(unit_seconds)


def _exponent(t: Decimal) -> Decimal:
    if t >= ONE:
        raise DegenerateInvariantError(f"Time to maturity {t} must be below 1")
    return ONE - t


def _balance_out_after(
    balance_in: Decimal, balance_out: Decimal, amount_in: Decimal, swap_fee: Decimal, t: Decimal
) -> tuple[Decimal, Decimal]:
    """(new balance out, new balance in) after selling ``amount_in``."""
    e = _exponent(t)
    k = dpow(balance_in, e) + dpow(balance_out, e)
    x = balance_in + (ONE - swap_fee) * amount_in
    y = k - dpow(x, e)
    if y < 0:
        raise DegenerateInvariantError("Amount in exceeds the invariant domain")
    return dpow(y, ONE / e), x


def _balance_in_after(
    balance_in: Decimal, balance_out: Decimal, amount_out: Decimal, t: Decimal
) -> tuple[Decimal, Decimal]:
    """(new balance in, new balance out) after buying ``amount_out``."""
    if amount_out >= balance_out:
        raise DegenerateInvariantError("Amount out must be below balance out")
    e = _exponent(t)
    k = dpow(balance_in, e) + dpow(balance_out, e)
    w = balance_out - amount_out
    return dpow(k - dpow(w, e), ONE / e), w


def calc_out_given_in(
    balance_in: Decimal, balance_out: Decimal, amount_in: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    new_out, _ = _balance_out_after(balance_in, balance_out, amount_in, swap_fee, t)
    return balance_out - new_out


def calc_in_given_out(
    balance_in: Decimal, balance_out: Decimal, amount_out: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    new_in, _ = _balance_in_after(balance_in, balance_out, amount_out, t)
    return (new_in - balance_in) / (ONE - swap_fee)


def spot_price_after_swap_exact_in(
    balance_in: Decimal, balance_out: Decimal, amount_in: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    gamma = ONE - swap_fee
    if t == 0:
        return gamma
    new_out, x = _balance_out_after(balance_in, balance_out, amount_in, swap_fee, t)
    return gamma * dpow(new_out / x, t)


def derivative_spot_price_after_swap_exact_in(
    balance_in: Decimal, balance_out: Decimal, amount_in: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    if t == 0:
        return ZERO
    gamma = ONE - swap_fee
    new_out, x = _balance_out_after(balance_in, balance_out, amount_in, swap_fee, t)
    rate = gamma * dpow(new_out / x, t)
    return -t * rate * (rate / new_out + gamma / x)


def spot_price_after_swap_exact_out(
    balance_in: Decimal, balance_out: Decimal, amount_out: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    gamma = ONE - swap_fee
    if t == 0:
        if amount_out >= balance_out:
            raise DegenerateInvariantError("Amount out must be below balance out")
        return gamma
    new_in, w = _balance_in_after(balance_in, balance_out, amount_out, t)
    return gamma * dpow(w / new_in, t)


def derivative_spot_price_after_swap_exact_out(
    balance_in: Decimal, balance_out: Decimal, amount_out: Decimal, swap_fee: Decimal, t: Decimal
) -> Decimal:
    if t == 0:
        return ZERO
    gamma = ONE - swap_fee
    new_in, w = _balance_in_after(balance_in, balance_out, amount_out, t)
    rate = gamma * dpow(w / new_in, t)
    return -t * rate * (ONE / w + dpow(new_in / w, t) / new_in)


def max_amount_in(balance_in: Decimal, balance_out: Decimal, t: Decimal) -> Decimal:
    """Largest input keeping the root base non-negative: K^(1/(1-t)) - Bi."""
    e = _exponent(t)
    k = dpow(balance_in, e) + dpow(balance_out, e)
    return dpow(k, ONE / e) - balance_in
