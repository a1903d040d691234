"""Linear pool math.

A linear pool holds a main token and a wrapped (yield-bearing) version of it
and mints share tokens against ``invariant = nominal(main) + wrapped·rate``.
Swap fees are expressed through "nominal" main balances: below the lower
target adding main is rewarded, above the upper target it is charged.

    nominal(x) = x·(1 + f) - f·L    x < L
               = x                  L <= x <= U
               = x·(1 - f) + f·U    x > U

All amounts are normalized; the wrapped token is converted with its rate.
Pricing is piecewise linear, so marginal rates are piecewise constant.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sor.math.decimal_math import ONE


@dataclass(frozen=True)
class LinearParams:
    """Fee and targets of a linear pool.

    Attributes:
        fee: Swap fee
        lower_target: Lower main-balance target (L)
        upper_target: Upper main-balance target (U)
        rate: Price rate of the wrapped token in main units
    """

    fee: Decimal
    lower_target: Decimal
    upper_target: Decimal
    rate: Decimal


def to_nominal(real: Decimal, params: LinearParams) -> Decimal:
    """Nominal value of a real main balance."""
    if real < params.lower_target:
        return real - (params.lower_target - real) * params.fee
    if real <= params.upper_target:
        return real
    return real - (real - params.upper_target) * params.fee


def from_nominal(nominal: Decimal, params: LinearParams) -> Decimal:
    """Real main balance for a nominal value (inverse of ``to_nominal``)."""
    if nominal < params.lower_target:
        return (nominal + params.fee * params.lower_target) / (ONE + params.fee)
    if nominal <= params.upper_target:
        return nominal
    return (nominal - params.fee * params.upper_target) / (ONE - params.fee)


def nominal_slope(real: Decimal, params: LinearParams) -> Decimal:
    """d nominal / d real at a real main balance."""
    if real < params.lower_target:
        return ONE + params.fee
    if real <= params.upper_target:
        return ONE
    return ONE - params.fee


def calc_invariant(
    main_balance: Decimal, wrapped_balance: Decimal, params: LinearParams
) -> Decimal:
    return to_nominal(main_balance, params) + wrapped_balance * params.rate


def shares_per_nominal(
    main_balance: Decimal, wrapped_balance: Decimal, supply: Decimal, params: LinearParams
) -> Decimal:
    """Shares minted per unit of invariant growth (1 for an empty pool)."""
    if supply == 0:
        return ONE
    return supply / calc_invariant(main_balance, wrapped_balance, params)


# ----------------------------------------------------------------------
# Main / wrapped
# ----------------------------------------------------------------------


def calc_wrapped_out_per_main_in(
    main_in: Decimal, main_balance: Decimal, params: LinearParams
) -> Decimal:
    delta = to_nominal(main_balance + main_in, params) - to_nominal(main_balance, params)
    return delta / params.rate


def calc_wrapped_in_per_main_out(
    main_out: Decimal, main_balance: Decimal, params: LinearParams
) -> Decimal:
    delta = to_nominal(main_balance, params) - to_nominal(main_balance - main_out, params)
    return delta / params.rate


def calc_main_in_per_wrapped_out(
    wrapped_out: Decimal, main_balance: Decimal, params: LinearParams
) -> Decimal:
    after = to_nominal(main_balance, params) + wrapped_out * params.rate
    return from_nominal(after, params) - main_balance


def calc_main_out_per_wrapped_in(
    wrapped_in: Decimal, main_balance: Decimal, params: LinearParams
) -> Decimal:
    after = to_nominal(main_balance, params) - wrapped_in * params.rate
    return main_balance - from_nominal(after, params)


# ----------------------------------------------------------------------
# Main / BPT
# ----------------------------------------------------------------------


def calc_bpt_out_per_main_in(
    main_in: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    delta = to_nominal(main_balance + main_in, params) - to_nominal(main_balance, params)
    return delta * shares_per_nominal(main_balance, wrapped_balance, supply, params)


def calc_bpt_in_per_main_out(
    main_out: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    delta = to_nominal(main_balance, params) - to_nominal(main_balance - main_out, params)
    return delta * shares_per_nominal(main_balance, wrapped_balance, supply, params)


def calc_main_in_per_bpt_out(
    bpt_out: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    after = to_nominal(main_balance, params) + bpt_out / k
    return from_nominal(after, params) - main_balance


def calc_main_out_per_bpt_in(
    bpt_in: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    after = to_nominal(main_balance, params) - bpt_in / k
    return main_balance - from_nominal(after, params)


# ----------------------------------------------------------------------
# Wrapped / BPT
# ----------------------------------------------------------------------


def calc_bpt_out_per_wrapped_in(
    wrapped_in: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    return wrapped_in * params.rate * k


def calc_wrapped_in_per_bpt_out(
    bpt_out: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    return bpt_out / (k * params.rate)


def calc_wrapped_out_per_bpt_in(
    bpt_in: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    return bpt_in / (k * params.rate)


def calc_bpt_in_per_wrapped_out(
    wrapped_out: Decimal,
    main_balance: Decimal,
    wrapped_balance: Decimal,
    supply: Decimal,
    params: LinearParams,
) -> Decimal:
    k = shares_per_nominal(main_balance, wrapped_balance, supply, params)
    return wrapped_out * params.rate * k
