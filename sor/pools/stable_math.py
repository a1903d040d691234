"""Stable pool math.

StableSwap invariant on normalized Decimal balances:

    α·Σx + D = α·D + D^(n+1) / (nⁿ·Πx),    α = A·nⁿ

Uses Newton-Raphson iteration for the invariant D and for a single balance
given D. Marginal rates and their derivatives come from implicit
differentiation of the invariant with D held fixed (token/token) or with D
as a function of one balance (token/BPT).
"""

from __future__ import annotations

from decimal import Decimal

from sor.constants import STABLE_MAX_ITERATIONS
from sor.errors import DegenerateInvariantError, StableInvariantDidNotConverge
from sor.math.decimal_math import ONE, ZERO

# Relative step size at which Newton iteration is considered converged
_CONVERGENCE = Decimal("1e-36")

TWO = Decimal(2)


def _alpha(amp: Decimal, n_coins: int) -> Decimal:
    return amp * Decimal(n_coins) ** n_coins


def _check_balances(balances: list[Decimal]) -> None:
    for i, bal in enumerate(balances):
        if bal <= 0:
            raise DegenerateInvariantError(f"Balance at index {i} must be positive")


def calculate_invariant(amp: Decimal, balances: list[Decimal]) -> Decimal:
    """Calculate the invariant D using Newton-Raphson iteration.

    Algorithm:
        1. Initial guess: D = sum(balances)
        2. D_p = D^(n+1) / (nⁿ·Πx), built one balance at a time
        3. D <- (α·S + n·D_p)·D / ((α - 1)·D + (n + 1)·D_p)
        4. Stop when the step is below the convergence threshold

    Args:
        amp: Amplification parameter A
        balances: Normalized token balances

    Returns:
        The invariant D

    Raises:
        StableInvariantDidNotConverge: If the iteration cap is hit
        DegenerateInvariantError: If any balance is not positive
    """
    n_coins = len(balances)
    if n_coins == 0:
        return ZERO
    _check_balances(balances)

    n = Decimal(n_coins)
    alpha = _alpha(amp, n_coins)
    sum_balances = sum(balances, ZERO)
    d_prev = sum_balances

    for _ in range(STABLE_MAX_ITERATIONS):
        d_p = d_prev
        for bal in balances:
            d_p = d_p * d_prev / (n * bal)
        numerator = (alpha * sum_balances + n * d_p) * d_prev
        denominator = (alpha - ONE) * d_prev + (n + ONE) * d_p
        d_new = numerator / denominator

        if abs(d_new - d_prev) <= d_new * _CONVERGENCE:
            return d_new
        d_prev = d_new

    raise StableInvariantDidNotConverge(
        f"Stable invariant did not converge after {STABLE_MAX_ITERATIONS} iterations"
    )


def get_token_balance_given_invariant_and_all_other_balances(
    amp: Decimal,
    balances: list[Decimal],
    invariant: Decimal,
    token_index: int,
) -> Decimal:
    """Solve for balances[token_index] given D and all other balances.

    Solves y² + (S' + D/α - D)·y = D^(n+1) / (nⁿ·P'·α) by Newton iteration,
    where S' and P' are the sum and product of the other balances.

    Args:
        amp: Amplification parameter A
        balances: Token balances (the value at token_index is ignored)
        invariant: The invariant D to preserve
        token_index: Index of the balance to solve for

    Returns:
        The balance as Decimal

    Raises:
        StableInvariantDidNotConverge: If iteration doesn't converge
        IndexError: If token_index is out of range
    """
    n_coins = len(balances)
    if token_index < 0 or token_index >= n_coins:
        raise IndexError(f"token_index {token_index} out of range for {n_coins} tokens")

    n = Decimal(n_coins)
    alpha = _alpha(amp, n_coins)
    d = invariant

    sum_others = ZERO
    c = d
    for j, bal in enumerate(balances):
        if j == token_index:
            continue
        if bal <= 0:
            raise DegenerateInvariantError(f"Balance at index {j} must be positive")
        sum_others += bal
        c = c * d / (n * bal)
    c = c * d / (n * alpha)
    b = sum_others + d / alpha

    y = d
    for _ in range(STABLE_MAX_ITERATIONS):
        denominator = TWO * y + b - d
        if denominator <= 0:
            raise StableInvariantDidNotConverge("Denominator became non-positive")
        y_new = (y * y + c) / denominator
        if abs(y_new - y) <= y_new * _CONVERGENCE:
            return y_new
        y = y_new

    raise StableInvariantDidNotConverge(
        f"Stable get_balance did not converge after {STABLE_MAX_ITERATIONS} iterations"
    )


def _with_balance(balances: list[Decimal], index: int, value: Decimal) -> list[Decimal]:
    updated = list(balances)
    updated[index] = value
    return updated


def _c_term(invariant: Decimal, balances: list[Decimal]) -> Decimal:
    """D^(n+1) / (nⁿ·Πx)."""
    n = Decimal(len(balances))
    c = invariant
    for bal in balances:
        c = c * invariant / (n * bal)
    return c


# ----------------------------------------------------------------------
# Token / token
# ----------------------------------------------------------------------


def stable_calc_out_given_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index_in: int,
    token_index_out: int,
    amount_in: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Calculate output amount for a given input; fee taken from the input."""
    invariant = calculate_invariant(amp, balances)
    new_in = balances[token_index_in] + amount_in * (ONE - swap_fee)
    y = get_token_balance_given_invariant_and_all_other_balances(
        amp, _with_balance(balances, token_index_in, new_in), invariant, token_index_out
    )
    return balances[token_index_out] - y


def stable_calc_in_given_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index_in: int,
    token_index_out: int,
    amount_out: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Calculate input amount (fee included) for a given output.

    Caller guarantees ``amount_out < balances[token_index_out]``.
    """
    invariant = calculate_invariant(amp, balances)
    new_out = balances[token_index_out] - amount_out
    y = get_token_balance_given_invariant_and_all_other_balances(
        amp, _with_balance(balances, token_index_out, new_out), invariant, token_index_in
    )
    return (y - balances[token_index_in]) / (ONE - swap_fee)


def _pair_rate_and_slope(
    amp: Decimal,
    balances: list[Decimal],
    invariant: Decimal,
    token_index_in: int,
    token_index_out: int,
) -> tuple[Decimal, Decimal]:
    """Fee-less rate -dx_out/dx_in and its total derivative along the curve.

    Returns:
        (rate, d rate / d x_in) at ``balances`` with D fixed
    """
    alpha = _alpha(amp, len(balances))
    c = _c_term(invariant, balances)
    x_i = balances[token_index_in]
    x_o = balances[token_index_out]

    u = alpha + c / x_i
    v = alpha + c / x_o
    rate = u / v

    du_di = -TWO * c / (x_i * x_i)
    du_do = -c / (x_i * x_o)
    dv_di = -c / (x_i * x_o)
    dv_do = -TWO * c / (x_o * x_o)

    # x_out moves by -rate per unit of x_in
    du = du_di - du_do * rate
    dv = dv_di - dv_do * rate
    return rate, (du * v - u * dv) / (v * v)


def stable_spot_price_exact_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index_in: int,
    token_index_out: int,
    amount_in: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    """Marginal rate and its derivative after selling ``amount_in``."""
    gamma = ONE - swap_fee
    invariant = calculate_invariant(amp, balances)
    new_in = balances[token_index_in] + amount_in * gamma
    updated = _with_balance(balances, token_index_in, new_in)
    updated[token_index_out] = get_token_balance_given_invariant_and_all_other_balances(
        amp, updated, invariant, token_index_out
    )
    rate, slope = _pair_rate_and_slope(amp, updated, invariant, token_index_in, token_index_out)
    return gamma * rate, gamma * gamma * slope


def stable_spot_price_exact_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index_in: int,
    token_index_out: int,
    amount_out: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    """Marginal rate and its derivative after buying ``amount_out``."""
    gamma = ONE - swap_fee
    invariant = calculate_invariant(amp, balances)
    new_out = balances[token_index_out] - amount_out
    updated = _with_balance(balances, token_index_out, new_out)
    updated[token_index_in] = get_token_balance_given_invariant_and_all_other_balances(
        amp, updated, invariant, token_index_in
    )
    rate, slope = _pair_rate_and_slope(amp, updated, invariant, token_index_in, token_index_out)
    return gamma * rate, gamma * slope / rate


# ----------------------------------------------------------------------
# Token / BPT
# ----------------------------------------------------------------------


def _single_asset_fee_factor(
    balances: list[Decimal], token_index: int, swap_fee: Decimal
) -> Decimal:
    """Fee only applies to the share of the amount beyond a proportional join/exit."""
    total = sum(balances, ZERO)
    return ONE - swap_fee * (ONE - balances[token_index] / total)


def invariant_derivatives(
    amp: Decimal,
    balances: list[Decimal],
    invariant: Decimal,
    token_index: int,
) -> tuple[Decimal, Decimal]:
    """First and second derivative of D with respect to one balance.

    Returns:
        (dD/dx, d²D/dx²) at ``balances``, where ``invariant`` is D(balances)
    """
    n_coins = len(balances)
    n = Decimal(n_coins)
    alpha = _alpha(amp, n_coins)
    c = _c_term(invariant, balances)
    x = balances[token_index]
    d = invariant

    f_d = ONE - alpha - (n + ONE) * c / d
    d_x = (alpha + c / x) / -f_d
    f_xx = -TWO * c / (x * x)
    f_xd = (n + ONE) * c / (d * x)
    f_dd = -(n + ONE) * n * c / (d * d)
    d_xx = -(f_xx + TWO * f_xd * d_x + f_dd * d_x * d_x) / f_d
    return d_x, d_xx


def calc_bpt_out_given_exact_token_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    amount_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Shares minted for a single-token join of ``amount_in``."""
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    new_balance = balances[token_index] + amount_in * g
    d1 = calculate_invariant(amp, _with_balance(balances, token_index, new_balance))
    return total_shares * (d1 / d0 - ONE)


def calc_token_in_given_exact_bpt_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    bpt_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Token amount a single-token join needs to mint ``bpt_out`` shares."""
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    d1 = d0 * (ONE + bpt_out / total_shares)
    new_balance = get_token_balance_given_invariant_and_all_other_balances(
        amp, balances, d1, token_index
    )
    return (new_balance - balances[token_index]) / g


def calc_token_out_given_exact_bpt_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    bpt_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Tokens received for burning ``bpt_in`` shares. Caller guarantees bpt_in < supply."""
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    d1 = d0 * (ONE - bpt_in / total_shares)
    new_balance = get_token_balance_given_invariant_and_all_other_balances(
        amp, balances, d1, token_index
    )
    return (balances[token_index] - new_balance) * g


def calc_bpt_in_given_exact_token_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    amount_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> Decimal:
    """Shares to burn to receive ``amount_out``. Caller guarantees the exit is feasible."""
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    new_balance = balances[token_index] - amount_out / g
    d1 = calculate_invariant(amp, _with_balance(balances, token_index, new_balance))
    return total_shares * (ONE - d1 / d0)


def spot_price_token_to_bpt_exact_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    amount_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    updated = _with_balance(balances, token_index, balances[token_index] + amount_in * g)
    d1 = calculate_invariant(amp, updated)
    d_x, d_xx = invariant_derivatives(amp, updated, d1, token_index)
    return total_shares * g * d_x / d0, total_shares * g * g * d_xx / d0


def spot_price_token_to_bpt_exact_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    bpt_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    d1 = d0 * (ONE + bpt_out / total_shares)
    updated = _with_balance(
        balances,
        token_index,
        get_token_balance_given_invariant_and_all_other_balances(amp, balances, d1, token_index),
    )
    d_x, d_xx = invariant_derivatives(amp, updated, d1, token_index)
    return g * total_shares * d_x / d0, g * d_xx / d_x


def spot_price_bpt_to_token_exact_in(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    bpt_in: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    d1 = d0 * (ONE - bpt_in / total_shares)
    updated = _with_balance(
        balances,
        token_index,
        get_token_balance_given_invariant_and_all_other_balances(amp, balances, d1, token_index),
    )
    d_x, d_xx = invariant_derivatives(amp, updated, d1, token_index)
    k = d0 / total_shares
    return g * k / d_x, g * k * k * d_xx / (d_x * d_x * d_x)


def spot_price_bpt_to_token_exact_out(
    amp: Decimal,
    balances: list[Decimal],
    token_index: int,
    amount_out: Decimal,
    total_shares: Decimal,
    swap_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    g = _single_asset_fee_factor(balances, token_index, swap_fee)
    d0 = calculate_invariant(amp, balances)
    updated = _with_balance(balances, token_index, balances[token_index] - amount_out / g)
    d1 = calculate_invariant(amp, updated)
    d_x, d_xx = invariant_derivatives(amp, updated, d1, token_index)
    k = d0 / total_shares
    return g * k / d_x, k * d_xx / (d_x * d_x)
