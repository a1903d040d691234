"""Balancer weighted pool math.

Closed-form quotes, marginal rates and rate derivatives for weighted
product pools, on normalized Decimal amounts.

Token/token swaps charge the fee on the input amount. Single-asset joins and
exits (token/BPT) charge it only on the non-proportional share of the
amount, so the effective fee factor is ``1 - fee * (1 - w)`` with ``w`` the
token's normalized weight.

All rates are tokenOut per tokenIn, fee included. Callers run these under
the shared math context.
"""

from decimal import Decimal

from sor.math.decimal_math import ONE, dpow


def _single_asset_fee_factor(normalized_weight: Decimal, swap_fee: Decimal) -> Decimal:
    return ONE - swap_fee * (ONE - normalized_weight)


# ----------------------------------------------------------------------
# Token / token
# ----------------------------------------------------------------------


def calc_out_given_in(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_in: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Calculate output amount for a given input (sell order).

    Formula:
        amount_out = Bo * (1 - (Bi / (Bi + γ·a_in))^(wi / wo))

    Args:
        balance_in: Balance of input token
        weight_in: Weight of input token
        balance_out: Balance of output token
        weight_out: Weight of output token
        amount_in: Input amount, fee not yet deducted
        swap_fee: Pool swap fee

    Returns:
        Output amount (unrounded)
    """
    gamma = ONE - swap_fee
    base = balance_in / (balance_in + gamma * amount_in)
    return balance_out * (ONE - dpow(base, weight_in / weight_out))


def calc_in_given_out(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_out: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Calculate input amount for a given output (buy order).

    Formula:
        amount_in = Bi / γ * ((Bo / (Bo - a_out))^(wo / wi) - 1)

    Caller guarantees ``amount_out < balance_out``.
    """
    gamma = ONE - swap_fee
    base = balance_out / (balance_out - amount_out)
    return balance_in / gamma * (dpow(base, weight_out / weight_in) - ONE)


def spot_price_after_swap_exact_in(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_in: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Marginal rate after selling ``amount_in``."""
    gamma = ONE - swap_fee
    p = weight_in / weight_out
    x = balance_in + gamma * amount_in
    return gamma * balance_out * p * dpow(balance_in, p) * dpow(x, -p - ONE)


def derivative_spot_price_after_swap_exact_in(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_in: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    gamma = ONE - swap_fee
    p = weight_in / weight_out
    x = balance_in + gamma * amount_in
    rate = spot_price_after_swap_exact_in(
        balance_in, weight_in, balance_out, weight_out, amount_in, swap_fee
    )
    return -(p + ONE) * gamma * rate / x


def spot_price_after_swap_exact_out(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_out: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Marginal rate after buying ``amount_out``."""
    gamma = ONE - swap_fee
    q = weight_out / weight_in
    remaining = balance_out - amount_out
    return gamma * dpow(remaining, q + ONE) / (balance_in * q * dpow(balance_out, q))


def derivative_spot_price_after_swap_exact_out(
    balance_in: Decimal,
    weight_in: Decimal,
    balance_out: Decimal,
    weight_out: Decimal,
    amount_out: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    q = weight_out / weight_in
    rate = spot_price_after_swap_exact_out(
        balance_in, weight_in, balance_out, weight_out, amount_out, swap_fee
    )
    return -(q + ONE) * rate / (balance_out - amount_out)


# ----------------------------------------------------------------------
# Token -> BPT (single-asset join)
# ----------------------------------------------------------------------


def calc_bpt_out_given_exact_token_in(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Shares minted for a single-token join of ``amount_in``."""
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    ratio = (balance + amount_in * g) / balance
    return total_shares * (dpow(ratio, normalized_weight) - ONE)


def calc_token_in_given_exact_bpt_out(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Token amount a single-token join needs to mint ``bpt_out`` shares."""
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    ratio = ONE + bpt_out / total_shares
    return balance * (dpow(ratio, ONE / normalized_weight) - ONE) / g


def spot_price_token_to_bpt_exact_in(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    x = balance + amount_in * g
    w = normalized_weight
    return total_shares * w * g * dpow(x, w - ONE) / dpow(balance, w)


def derivative_token_to_bpt_exact_in(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    x = balance + amount_in * g
    rate = spot_price_token_to_bpt_exact_in(
        balance, normalized_weight, amount_in, total_shares, swap_fee
    )
    return (normalized_weight - ONE) * g * rate / x


def spot_price_token_to_bpt_exact_out(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    w = normalized_weight
    ratio = ONE + bpt_out / total_shares
    return g * w * total_shares / (balance * dpow(ratio, ONE / w - ONE))


def derivative_token_to_bpt_exact_out(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    rate = spot_price_token_to_bpt_exact_out(
        balance, normalized_weight, bpt_out, total_shares, swap_fee
    )
    return -(ONE / normalized_weight - ONE) * rate / (total_shares + bpt_out)


# ----------------------------------------------------------------------
# BPT -> token (single-asset exit)
# ----------------------------------------------------------------------


def calc_token_out_given_exact_bpt_in(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Tokens received for burning ``bpt_in`` shares. Caller guarantees bpt_in < supply."""
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    ratio = ONE - bpt_in / total_shares
    return g * balance * (ONE - dpow(ratio, ONE / normalized_weight))


def calc_bpt_in_given_exact_token_out(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Shares to burn to receive ``amount_out``. Caller guarantees amount_out < g·balance."""
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    ratio = ONE - amount_out / (g * balance)
    return total_shares * (ONE - dpow(ratio, normalized_weight))


def spot_price_bpt_to_token_exact_in(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    inv_w = ONE / normalized_weight
    ratio = ONE - bpt_in / total_shares
    return balance * g * inv_w * dpow(ratio, inv_w - ONE) / total_shares


def derivative_bpt_to_token_exact_in(
    balance: Decimal,
    normalized_weight: Decimal,
    bpt_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    rate = spot_price_bpt_to_token_exact_in(
        balance, normalized_weight, bpt_in, total_shares, swap_fee
    )
    return -(ONE / normalized_weight - ONE) * rate / (total_shares - bpt_in)


def spot_price_bpt_to_token_exact_out(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    w = normalized_weight
    effective = g * balance
    ratio = ONE - amount_out / effective
    return effective * dpow(ratio, ONE - w) / (total_shares * w)


def derivative_bpt_to_token_exact_out(
    balance: Decimal,
    normalized_weight: Decimal,
    amount_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    g = _single_asset_fee_factor(normalized_weight, swap_fee)
    rate = spot_price_bpt_to_token_exact_out(
        balance, normalized_weight, amount_out, total_shares, swap_fee
    )
    return -(ONE - normalized_weight) * rate / (g * balance - amount_out)
