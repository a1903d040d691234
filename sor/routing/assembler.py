"""Sequential simulation of an allocation.

Turns (path, amount) pairs into concrete swap steps by executing them one
after another against a private copy of the pools, so later paths see the
balances left by earlier ones. This is the only place pool balances change.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from sor.math.decimal_math import ZERO, with_math_context
from sor.pools.base import PoolBase, SwapType
from sor.routing.paths import Path

logger = structlog.get_logger()


@dataclass(frozen=True)
class SwapStep:
    """One executed hop.

    Attributes:
        pool_id: Pool swapped through
        token_in: Token sold to the pool
        token_out: Token bought from the pool
        swap_amount: Amount fixed by the swap direction (input for exact-in,
            output for exact-out)
        return_amount: The other side (output for exact-in, input for exact-out)
    """

    pool_id: str
    token_in: str
    token_out: str
    swap_amount: Decimal
    return_amount: Decimal


@dataclass
class Simulation:
    """Outcome of simulating an allocation.

    Attributes:
        swaps: One group of steps per used path, in tokenIn -> tokenOut order
        amounts: Amount allocated to each used path
        paths: The used paths
        return_amount: Total output (exact-in) or total input (exact-out)
    """

    swaps: list[list[SwapStep]] = field(default_factory=list)
    amounts: list[Decimal] = field(default_factory=list)
    paths: list[Path] = field(default_factory=list)
    return_amount: Decimal = ZERO


def _apply_swap(
    pool: PoolBase, token_in: str, token_out: str, amount_in: Decimal, amount_out: Decimal
) -> None:
    """Move balances after a hop; the share token's supply moves the other way."""
    if pool.is_share_token(token_in):
        pool.apply_balance_update(token_in, pool.balance_of(token_in) - amount_in)
    else:
        pool.apply_balance_update(token_in, pool.balance_of(token_in) + amount_in)

    if pool.is_share_token(token_out):
        pool.apply_balance_update(token_out, pool.balance_of(token_out) + amount_out)
    else:
        pool.apply_balance_update(token_out, pool.balance_of(token_out) - amount_out)


def _run_exact_in(path: Path, amount: Decimal, arena: dict[str, PoolBase]) -> list[SwapStep]:
    steps: list[SwapStep] = []
    for hop in path.hops:
        pool = arena[hop.pool_id]
        pair = pool.parse_pool_pair_data(hop.pair.token_in, hop.pair.token_out)
        amount_out = pool.quote_exact_in(pair, amount)
        steps.append(SwapStep(pool.id, pair.token_in, pair.token_out, amount, amount_out))
        _apply_swap(pool, pair.token_in, pair.token_out, amount, amount_out)
        amount = amount_out
    return steps


def _run_exact_out(path: Path, amount: Decimal, arena: dict[str, PoolBase]) -> list[SwapStep]:
    steps: list[SwapStep] = []
    for hop in reversed(path.hops):
        pool = arena[hop.pool_id]
        pair = pool.parse_pool_pair_data(hop.pair.token_in, hop.pair.token_out)
        amount_in = pool.quote_exact_out(pair, amount)
        steps.append(SwapStep(pool.id, pair.token_in, pair.token_out, amount, amount_in))
        _apply_swap(pool, pair.token_in, pair.token_out, amount_in, amount)
        amount = amount_in
    steps.reverse()
    return steps


@with_math_context
def simulate_allocation(
    paths: Sequence[Path],
    amounts: Sequence[Decimal],
    swap_type: SwapType,
    pools: dict[str, PoolBase],
) -> Simulation:
    """Execute an allocation path by path on a copy of the pools.

    Exact-in pushes each amount forward, rounding outputs down. Exact-out
    walks each path backwards from the requested output, rounding required
    inputs up. Paths with a zero amount are skipped.

    Args:
        paths: Candidate paths
        amounts: Amount per path, in path order
        swap_type: Swap type
        pools: Pools keyed by id; never mutated

    Returns:
        Steps per used path and the summed return amount
    """
    arena = copy.deepcopy({pid: pools[pid] for path in paths for pid in path.pool_ids})
    run = _run_exact_in if swap_type is SwapType.EXACT_IN else _run_exact_out

    result = Simulation()
    for path, amount in zip(paths, amounts, strict=True):
        if amount <= 0:
            continue
        steps = run(path, amount, arena)
        result.swaps.append(steps)
        result.amounts.append(amount)
        result.paths.append(path)
        if swap_type is SwapType.EXACT_IN:
            result.return_amount += steps[-1].return_amount
        else:
            result.return_amount += steps[0].return_amount

    logger.debug(
        "allocation_simulated",
        swap_type=swap_type.value,
        paths=len(result.paths),
        return_amount=str(result.return_amount),
    )
    return result


def token_addresses(swaps: list[list[SwapStep]]) -> list[str]:
    """Distinct tokens touched by the swaps, in order of first appearance."""
    seen: dict[str, None] = {}
    for group in swaps:
        for step in group:
            seen.setdefault(step.token_in)
            seen.setdefault(step.token_out)
    return list(seen)


__all__ = ["Simulation", "SwapStep", "simulate_allocation", "token_addresses"]
