"""Marginal-price equalization.

Splitting an amount optimally over paths with non-increasing marginal rates
means giving every used path the same marginal rate λ (paths at their limit
may have a higher rate, unused ones a lower one). Each path's amount is a
monotone function of λ, so the split reduces to a one-dimensional search:

    find λ such that Σ amount_i(λ) = total

Both the outer search on λ and the per-path inversion of the rate use a
bracketed Newton step with bisection fallback and a hard iteration cap.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from sor.constants import (
    DEFAULT_TOLERANCE,
    PATH_INVERSION_MAX_ITERATIONS,
    ROOT_SEARCH_MAX_ITERATIONS,
)
from sor.math.decimal_math import ONE, ZERO, with_math_context
from sor.pools.base import SwapType
from sor.routing.paths import Path

logger = structlog.get_logger()

TWO = Decimal(2)

# Relative step or bracket width at which a search counts as converged
_EPSILON = Decimal("1e-30")


def _bisect(lo: Decimal, hi: Decimal) -> Decimal:
    return (lo + hi) / TWO


@with_math_context
def amount_for_rate(
    path: Path,
    target_rate: Decimal,
    swap_type: SwapType,
    *,
    max_iterations: int = PATH_INVERSION_MAX_ITERATIONS,
) -> Decimal:
    """Amount in [0, limit] at which the path's marginal rate equals ``target_rate``.

    Args:
        path: Path with its limit set
        target_rate: Marginal rate λ to reach
        swap_type: Swap type
        max_iterations: Iteration cap

    Returns:
        The amount; 0 if the path starts below λ, the limit if it never drops to λ
    """
    limit = path.limit_amount
    if path.spot_price(ZERO, swap_type) <= target_rate:
        return ZERO
    if path.spot_price(limit, swap_type) >= target_rate:
        return limit

    lo, hi = ZERO, limit
    amount = _bisect(lo, hi)
    for _ in range(max_iterations):
        rate, slope = path.spot_price_and_derivative(amount, swap_type)
        error = rate - target_rate
        if error == 0:
            return amount
        if error > 0:
            lo = amount
        else:
            hi = amount

        candidate = amount - error / slope if slope < 0 else None
        if candidate is None or not lo < candidate < hi:
            candidate = _bisect(lo, hi)
        if abs(candidate - amount) <= limit * _EPSILON or hi - lo <= limit * _EPSILON:
            return candidate
        amount = candidate

    logger.debug("rate_inversion_cap_reached", path_id=path.id, iterations=max_iterations)
    return lo


@with_math_context
def equalize_marginal_prices(
    paths: list[Path],
    total: Decimal,
    swap_type: SwapType,
    *,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    max_iterations: int = ROOT_SEARCH_MAX_ITERATIONS,
) -> list[Decimal]:
    """Split ``total`` over ``paths`` so that used paths share one marginal rate.

    Paths must be ordered best first; any residual left by the search goes to
    paths with headroom in that order, so the result always sums to
    ``total`` and never exceeds a path's limit.

    Args:
        paths: Candidate paths, limits set, best first
        total: Amount to split (Σ limits must cover it)
        swap_type: Swap type
        tolerance: Relative tolerance on Σ amounts
        max_iterations: Iteration cap of the λ search

    Returns:
        One amount per path, in path order
    """
    if not paths or total <= 0:
        return [ZERO] * len(paths)
    if len(paths) == 1:
        return [min(total, paths[0].limit_amount)]

    lam_lo = min(p.spot_price(p.limit_amount, swap_type) for p in paths)
    lam_hi = max(p.spot_price(ZERO, swap_type) for p in paths)

    def amounts_at(lam: Decimal) -> list[Decimal]:
        return [amount_for_rate(p, lam, swap_type) for p in paths]

    best_amounts = [ZERO] * len(paths)
    best_error = total
    lam = _bisect(lam_lo, lam_hi)

    for iteration in range(max_iterations):
        amounts = amounts_at(lam)
        excess = sum(amounts, ZERO) - total
        if abs(excess) < best_error:
            best_amounts, best_error = amounts, abs(excess)
        if abs(excess) <= tolerance * total:
            break

        if excess > 0:
            lam_lo = lam
        else:
            lam_hi = lam
        if lam_hi - lam_lo <= lam_hi * _EPSILON:
            break

        # dΣ/dλ = Σ 1/r'_i over paths strictly inside their range
        slope = ZERO
        for path, amount in zip(paths, amounts, strict=True):
            if ZERO < amount < path.limit_amount:
                derivative = path.derivative(amount, swap_type)
                if derivative < 0:
                    slope += ONE / derivative

        candidate = lam - excess / slope if slope < 0 else None
        if candidate is None or not lam_lo < candidate < lam_hi:
            candidate = _bisect(lam_lo, lam_hi)
        lam = candidate
    else:
        logger.debug("price_search_cap_reached", iterations=max_iterations, error=str(best_error))

    logger.debug("price_search_done", paths=len(paths), iterations=iteration + 1)
    return distribute_residual(best_amounts, paths, total)


def distribute_residual(amounts: list[Decimal], paths: list[Path], total: Decimal) -> list[Decimal]:
    """Adjust amounts so they sum to ``total`` within path limits.

    A shortfall is added to paths with headroom, first path first; an excess
    is taken from the last path first.
    """
    result = [min(a, p.limit_amount) for a, p in zip(amounts, paths, strict=True)]
    residual = total - sum(result, ZERO)
    if residual > 0:
        for i, path in enumerate(paths):
            room = path.limit_amount - result[i]
            take = min(room, residual)
            if take > 0:
                result[i] += take
                residual -= take
            if residual <= 0:
                break
    elif residual < 0:
        for i in reversed(range(len(result))):
            take = min(result[i], -residual)
            if take > 0:
                result[i] -= take
                residual += take
            if residual >= 0:
                break
    return result
