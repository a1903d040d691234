"""Routing entry point.

``route`` takes a pool snapshot and a swap request and returns the best
split as concrete swap steps:

    snapshot -> pools -> paths (filter, bound, limits) -> router -> steps

The work up to and including path limits depends only on the token pair,
swap type, pool filter and timestamp, so it is exposed separately as
``prepare_paths`` for callers that cache it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from sor.config import DEFAULT_CONFIG, SorConfig
from sor.constants import DEFAULT_MAX_POOLS
from sor.errors import EmptyPoolSetError
from sor.math.decimal_math import ZERO, with_math_context
from sor.models.snapshot import PoolSnapshot
from sor.pools.base import PoolBase, PoolFilter, SwapType
from sor.pools.parsing import parse_pools
from sor.routing.assembler import SwapStep, token_addresses
from sor.routing.filter import bound_pools, filter_hop_pools, filter_pools_of_interest
from sor.routing.paths import Path, calculate_path_limits
from sor.routing.router import smart_order_router

logger = structlog.get_logger()


@dataclass(frozen=True)
class RouteOptions:
    """Per-request routing options.

    Attributes:
        max_pools: Maximum number of pools (and paths) in the route
        pool_type_filter: Restrict routing to one pool family
        disabled_tokens: Tokens that may not appear anywhere on a path
        execution_cost_per_path: Cost of one extra path, in return-amount units
        current_timestamp: Block timestamp for time-dependent pools
            (defaults to the wall clock)
        allow_add_remove: Route through pool share tokens; None uses the
            config value
    """

    max_pools: int = DEFAULT_MAX_POOLS
    pool_type_filter: PoolFilter = PoolFilter.ALL
    disabled_tokens: frozenset[str] = frozenset()
    execution_cost_per_path: Decimal = ZERO
    current_timestamp: int | None = None
    allow_add_remove: bool | None = None

    def __post_init__(self) -> None:
        if self.max_pools < 1:
            raise ValueError(f"max_pools must be >= 1, got {self.max_pools}")
        if self.execution_cost_per_path < 0:
            raise ValueError(
                f"execution_cost_per_path cannot be negative: {self.execution_cost_per_path}"
            )

    def timestamp(self) -> int:
        """The block timestamp to price with."""
        if self.current_timestamp is not None:
            return self.current_timestamp
        return int(time.time())


@dataclass
class RouteResult:
    """Outcome of a routing request.

    Attributes:
        token_in: Token sold
        token_out: Token bought
        swap_type: Which side was fixed
        swap_amount: The fixed amount
        return_amount: Total output (exact-in) or total input (exact-out)
        return_amount_considering_fees: ``return_amount`` minus (exact-in) or
            plus (exact-out) the execution cost of the used paths
        market_spot_price: Best zero-amount rate among the used paths
        swaps: One group of steps per used path
        token_addresses: Tokens touched by the swaps
    """

    token_in: str
    token_out: str
    swap_type: SwapType
    swap_amount: Decimal = ZERO
    return_amount: Decimal = ZERO
    return_amount_considering_fees: Decimal = ZERO
    market_spot_price: Decimal = ZERO
    swaps: list[list[SwapStep]] = field(default_factory=list)
    token_addresses: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls, token_in: str, token_out: str, swap_type: SwapType) -> RouteResult:
        """Result for a request with nothing to route."""
        return cls(token_in=token_in, token_out=token_out, swap_type=swap_type)

    @property
    def is_empty(self) -> bool:
        """Whether the result contains no swaps."""
        return not self.swaps


@dataclass
class PreparedPaths:
    """Pools and limited paths for one token pair and swap type.

    Attributes:
        pools: Pools used by at least one path, keyed by id
        paths: Paths with liquidity and limit set
        max_limit: Largest single path limit
    """

    pools: dict[str, PoolBase] = field(default_factory=dict)
    paths: list[Path] = field(default_factory=list)
    max_limit: Decimal = ZERO


def prepare_paths(
    token_in: str,
    token_out: str,
    swap_type: SwapType,
    pools: dict[str, PoolBase],
    options: RouteOptions,
    *,
    config: SorConfig = DEFAULT_CONFIG,
) -> PreparedPaths:
    """Build, prune and limit the paths for a token pair.

    Args:
        token_in: Token sold
        token_out: Token bought
        swap_type: Swap type
        pools: Parsed pools keyed by id
        options: Routing options (filter, disabled tokens, max pools)
        config: Router configuration

    Returns:
        The retained pools and their paths
    """
    allow_add_remove = (
        config.allow_add_remove if options.allow_add_remove is None else options.allow_add_remove
    )
    poi = filter_pools_of_interest(
        pools,
        token_in,
        token_out,
        options.max_pools,
        pool_filter=options.pool_type_filter,
        disabled_tokens=options.disabled_tokens,
        allow_add_remove=allow_add_remove,
    )
    paths = filter_hop_pools(token_in, token_out, poi, swap_type)
    paths, retained = bound_pools(paths, options.max_pools)
    paths, max_limit = calculate_path_limits(paths, swap_type)
    used = {pid for path in paths for pid in path.pool_ids}
    return PreparedPaths(
        pools={pid: poi.pools[pid] for pid in sorted(retained & used)},
        paths=paths,
        max_limit=max_limit,
    )


@with_math_context
def route_prepared(
    token_in: str,
    token_out: str,
    swap_type: SwapType,
    amount: Decimal,
    prepared: PreparedPaths,
    options: RouteOptions,
    *,
    config: SorConfig = DEFAULT_CONFIG,
) -> RouteResult:
    """Route ``amount`` over already prepared paths.

    ``amount`` is first expressed in whole units of the swap-amount token:
    rounded down for exact-in and up for exact-out.

    Raises:
        InsufficientLiquidityError: If the paths cannot absorb ``amount``
    """
    if amount == 0 or not prepared.paths:
        logger.debug(
            "nothing_to_route",
            token_in=token_in,
            token_out=token_out,
            amount=str(amount),
            paths=len(prepared.paths),
        )
        return RouteResult.empty(token_in, token_out, swap_type)

    best = smart_order_router(
        amount,
        prepared.paths,
        swap_type,
        prepared.pools,
        max_pools=options.max_pools,
        cost_per_path=options.execution_cost_per_path,
        config=config,
    )
    swaps = best.simulation.swaps
    if not swaps:
        logger.debug("amount_below_smallest_unit", token_in=token_in, amount=str(amount))
        return RouteResult.empty(token_in, token_out, swap_type)

    result = RouteResult(
        token_in=token_in,
        token_out=token_out,
        swap_type=swap_type,
        swap_amount=best.swap_amount,
        return_amount=best.simulation.return_amount,
        return_amount_considering_fees=best.net_return,
        market_spot_price=best.market_spot_price,
        swaps=swaps,
        token_addresses=token_addresses(swaps),
    )

    logger.info(
        "route_found",
        token_in=token_in,
        token_out=token_out,
        swap_type=swap_type.value,
        swap_amount=str(result.swap_amount),
        return_amount=str(result.return_amount),
        paths=len(swaps),
    )
    return result


def validate_request(token_in: str, token_out: str, amount: Decimal) -> tuple[str, str]:
    """Check a swap request and return the lowercased token pair.

    Raises:
        ValueError: If ``amount`` is negative or the tokens are equal
    """
    if amount < 0:
        raise ValueError(f"Swap amount cannot be negative: {amount}")
    token_in = token_in.lower()
    token_out = token_out.lower()
    if token_in == token_out:
        raise ValueError(f"token_in and token_out must differ, got {token_in}")
    return token_in, token_out


def route(
    token_in: str,
    token_out: str,
    swap_type: SwapType,
    amount: Decimal,
    pool_snapshot: PoolSnapshot,
    options: RouteOptions | None = None,
    *,
    config: SorConfig = DEFAULT_CONFIG,
) -> RouteResult:
    """Find the best way to swap ``amount`` between two tokens.

    Args:
        token_in: Token sold
        token_out: Token bought
        swap_type: EXACT_IN fixes the input amount, EXACT_OUT the output
        amount: The fixed amount, as a normalized token amount
        pool_snapshot: Pool state to route over; never mutated
        options: Routing options (defaults: 4 pools, all families, no cost)
        config: Router configuration

    Returns:
        The route; empty when ``amount`` is zero or no path connects the tokens

    Raises:
        ValueError: If ``amount`` is negative or the tokens are equal
        EmptyPoolSetError: If the snapshot holds no pools
        InsufficientLiquidityError: If the usable paths cannot absorb ``amount``
        DegenerateInvariantError: If a pool's math leaves its valid domain
    """
    token_in, token_out = validate_request(token_in, token_out, amount)
    if pool_snapshot.pool_count == 0:
        raise EmptyPoolSetError("No pools supplied", token_in=token_in, token_out=token_out)

    options = options or RouteOptions()
    pools = parse_pools(pool_snapshot, config=config, timestamp=options.timestamp())
    prepared = prepare_paths(token_in, token_out, swap_type, pools, options, config=config)
    return route_prepared(token_in, token_out, swap_type, amount, prepared, options, config=config)


__all__ = [
    "PreparedPaths",
    "RouteOptions",
    "RouteResult",
    "prepare_paths",
    "route",
    "route_prepared",
    "validate_request",
]
