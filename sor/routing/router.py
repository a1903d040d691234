"""Smart order router.

Chooses how many paths to use and how much to send down each one. For a
growing number of best paths it splits the amount by marginal-price
equalization, simulates the split and compares the proceeds net of the
per-path execution cost.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from sor.config import DEFAULT_CONFIG, SorConfig
from sor.errors import InsufficientLiquidityError
from sor.math.decimal_math import ZERO, round_down, round_up, with_math_context
from sor.pools.base import PoolBase, SwapType
from sor.routing.assembler import Simulation, simulate_allocation
from sor.routing.optimizer import equalize_marginal_prices
from sor.routing.paths import Path

logger = structlog.get_logger()


@dataclass
class RouterResult:
    """Best allocation found by the router.

    Attributes:
        simulation: Executed steps and the return amount
        swap_amount: The routed total, in whole units of the swap-amount token
        net_return: Return amount net of execution cost (minus for exact-in,
            plus for exact-out)
        market_spot_price: Best zero-amount rate among the used paths
    """

    simulation: Simulation = field(default_factory=Simulation)
    swap_amount: Decimal = ZERO
    net_return: Decimal = ZERO
    market_spot_price: Decimal = ZERO


def _order_paths(paths: list[Path], swap_type: SwapType) -> tuple[list[Path], dict[str, Decimal]]:
    """Best zero-amount rate first, then liquidity, then pool ids."""
    rates = {p.id: p.spot_price(ZERO, swap_type) for p in paths}
    ordered = sorted(paths, key=lambda p: (-rates[p.id], -p.liquidity, p.pool_ids))
    return ordered, rates


def _candidate_sets(ordered: list[Path], total: Decimal, max_pools: int) -> list[list[Path]]:
    """Path sets to evaluate, smallest first.

    The first set is the shortest prefix whose limits cover ``total``; each
    following set adds the next best path, up to ``max_pools``. If no prefix
    within ``max_pools`` covers the amount, the ``max_pools`` largest limits
    are the only candidate.

    Raises:
        InsufficientLiquidityError: If no admissible set covers ``total``
    """
    upper = min(max_pools, len(ordered))
    covered = ZERO
    for n in range(1, upper + 1):
        covered += ordered[n - 1].limit_amount
        if covered >= total:
            return [ordered[:k] for k in range(n, upper + 1)]

    largest = sorted(ordered, key=lambda p: p.limit_amount, reverse=True)[:max_pools]
    if sum((p.limit_amount for p in largest), ZERO) < total:
        first = ordered[0]
        raise InsufficientLiquidityError(
            f"Amount {total} exceeds the capacity of the best {max_pools} paths",
            token_in=first.token_in,
            token_out=first.token_out,
        )
    chosen = {p.id for p in largest}
    return [[p for p in ordered if p.id in chosen]]


def quantize_amounts(
    amounts: list[Decimal], paths: list[Path], total: Decimal, decimals: int
) -> list[Decimal]:
    """Round amounts down to ``decimals`` and hand the remainder back.

    The remainder goes to the path with the most headroom first. Paths
    allocated nothing stay at zero. ``total`` must already be a multiple of
    the smallest unit.
    """
    result = [round_down(a, decimals) for a in amounts]
    remainder = total - sum(result, ZERO)
    if remainder <= 0:
        return result

    funded = [i for i, amount in enumerate(amounts) if amount > 0]
    by_headroom = sorted(funded, key=lambda i: paths[i].limit_amount - result[i], reverse=True)
    for i in by_headroom:
        take = min(remainder, paths[i].limit_amount - result[i])
        if take > 0:
            result[i] += take
            remainder -= take
        if remainder <= 0:
            break
    return result


def quantize_total(total: Decimal, decimals: int, swap_type: SwapType) -> Decimal:
    """Express ``total`` in whole units of the swap-amount token.

    Exact-in rounds down so no more than requested is sold; exact-out rounds
    up so no less than requested is bought.
    """
    if swap_type is SwapType.EXACT_IN:
        return round_down(total, decimals)
    return round_up(total, decimals)


def _net(return_amount: Decimal, used: int, cost: Decimal, swap_type: SwapType) -> Decimal:
    if swap_type is SwapType.EXACT_IN:
        return return_amount - used * cost
    return return_amount + used * cost


def _improves(candidate: Decimal, best: Decimal, swap_type: SwapType) -> bool:
    if swap_type is SwapType.EXACT_IN:
        return candidate > best
    return candidate < best


@with_math_context
def smart_order_router(
    total: Decimal,
    paths: list[Path],
    swap_type: SwapType,
    pools: dict[str, PoolBase],
    *,
    max_pools: int,
    cost_per_path: Decimal = ZERO,
    config: SorConfig = DEFAULT_CONFIG,
) -> RouterResult:
    """Find the best split of ``total`` over ``paths``.

    Args:
        total: Amount to swap (input for exact-in, output for exact-out)
        paths: Paths with limits and liquidity set
        swap_type: Swap type
        pools: Pools keyed by id, used for the simulation
        max_pools: Maximum number of paths in the split
        cost_per_path: Execution cost of one path, in return-amount units
        config: Search tolerance and iteration cap

    Returns:
        The best allocation; empty if ``total`` is zero or there are no paths

    Raises:
        InsufficientLiquidityError: If the paths cannot absorb ``total``
    """
    if total <= 0 or not paths:
        return RouterResult()

    ordered, rates = _order_paths(paths, swap_type)
    decimals = ordered[0].swap_decimals(swap_type)
    total = quantize_total(total, decimals, swap_type)
    if total == 0:
        return RouterResult()

    capacity = sum((p.limit_amount for p in ordered), ZERO)
    if capacity < total:
        raise InsufficientLiquidityError(
            f"Amount {total} exceeds total path capacity {capacity}",
            token_in=ordered[0].token_in,
            token_out=ordered[0].token_out,
        )

    best: RouterResult | None = None
    for candidate in _candidate_sets(ordered, total, max_pools):
        amounts = equalize_marginal_prices(
            candidate,
            total,
            swap_type,
            tolerance=config.tolerance,
            max_iterations=config.max_iterations,
        )
        amounts = quantize_amounts(amounts, candidate, total, decimals)
        simulation = simulate_allocation(candidate, amounts, swap_type, pools)
        net = _net(simulation.return_amount, len(simulation.paths), cost_per_path, swap_type)
        logger.debug(
            "split_evaluated",
            paths=len(candidate),
            used=len(simulation.paths),
            return_amount=str(simulation.return_amount),
            net=str(net),
        )

        if best is not None and not _improves(net, best.net_return, swap_type):
            break
        best = RouterResult(
            simulation=simulation,
            swap_amount=total,
            net_return=net,
            market_spot_price=max((rates[p.id] for p in simulation.paths), default=ZERO),
        )

    assert best is not None  # At least one candidate set is always evaluated
    return best


__all__ = ["RouterResult", "quantize_amounts", "quantize_total", "smart_order_router"]
