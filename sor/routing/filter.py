"""Path discovery and pool pruning.

Finds the pools that can take part in a tokenIn -> tokenOut swap (directly
or through one hop token), builds one- and two-hop paths from them and keeps
only the ``max_pools`` most liquid pools.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from sor.math.decimal_math import ZERO, with_math_context
from sor.pools.base import PoolBase, PoolFilter, PoolPairData, SwapType
from sor.routing.paths import Hop, Path, path_liquidity

logger = structlog.get_logger()


@dataclass
class PoolsOfInterest:
    """Pools relevant to one token pair.

    Attributes:
        pools: Usable pools keyed by id
        tradable: Tradable token set of each usable pool
        direct: Ids of pools holding both tokenIn and tokenOut
        hop_in: Ids of pools holding tokenIn but not tokenOut
        hop_out: Ids of pools holding tokenOut but not tokenIn
        hop_tokens: Tokens reachable from tokenIn and reaching tokenOut
    """

    pools: dict[str, PoolBase] = field(default_factory=dict)
    tradable: dict[str, frozenset[str]] = field(default_factory=dict)
    direct: list[str] = field(default_factory=list)
    hop_in: list[str] = field(default_factory=list)
    hop_out: list[str] = field(default_factory=list)
    hop_tokens: list[str] = field(default_factory=list)


def tradable_tokens(
    pool: PoolBase, disabled_tokens: frozenset[str], allow_add_remove: bool
) -> frozenset[str]:
    """Tokens a pool can trade: its token list, optionally its share token, minus disabled."""
    tokens = set(pool.tokens_list)
    if allow_add_remove and pool.supports_share_token:
        tokens.add(pool.address)
    if not pool.supports_share_token:
        tokens.discard(pool.address)
    return frozenset(tokens - disabled_tokens)


def filter_pools_of_interest(
    pools: dict[str, PoolBase],
    token_in: str,
    token_out: str,
    max_pools: int,
    *,
    pool_filter: PoolFilter = PoolFilter.ALL,
    disabled_tokens: Iterable[str] = (),
    allow_add_remove: bool = False,
) -> PoolsOfInterest:
    """Classify pools into direct, hop-in and hop-out pools.

    Pools with no tokens, an empty first balance or a type excluded by
    ``pool_filter`` are skipped.

    Args:
        pools: All parsed pools keyed by id
        token_in: Token sold
        token_out: Token bought
        max_pools: Maximum pools per route (hop pools are only collected when > 1)
        pool_filter: Pool family restriction
        disabled_tokens: Tokens that may not appear anywhere on a path
        allow_add_remove: Whether share tokens are tradable

    Returns:
        The pools of interest with sorted hop tokens
    """
    token_in = token_in.lower()
    token_out = token_out.lower()
    disabled = frozenset(t.lower() for t in disabled_tokens)
    result = PoolsOfInterest()
    if token_in in disabled or token_out in disabled:
        logger.debug("swap_token_disabled", token_in=token_in, token_out=token_out)
        return result

    hop_in_tokens: set[str] = set()
    hop_out_tokens: set[str] = set()

    for pool_id in sorted(pools):
        pool = pools[pool_id]
        if not pool.tokens or pool.tokens[0].balance == 0:
            logger.debug("pool_skipped_empty", pool_id=pool_id)
            continue
        if not pool_filter.allows(pool.pool_type.value):
            continue

        tokens = tradable_tokens(pool, disabled, allow_add_remove)
        has_in = token_in in tokens
        has_out = token_out in tokens
        if has_in and has_out:
            result.direct.append(pool_id)
        elif max_pools > 1 and has_in:
            result.hop_in.append(pool_id)
            hop_in_tokens |= tokens
        elif max_pools > 1 and has_out:
            result.hop_out.append(pool_id)
            hop_out_tokens |= tokens
        else:
            continue
        result.pools[pool_id] = pool
        result.tradable[pool_id] = tokens

    result.hop_tokens = sorted((hop_in_tokens & hop_out_tokens) - {token_in, token_out})
    return result


def _usable_pair(pool: PoolBase, token_in: str, token_out: str) -> PoolPairData | None:
    pair = pool.parse_pool_pair_data(token_in, token_out)
    if pair.balance_in <= 0 or pair.balance_out <= 0:
        return None
    return pair


@with_math_context
def _most_liquid(
    poi: PoolsOfInterest, pool_ids: list[str], token_in: str, token_out: str
) -> Hop | None:
    """Most liquid pool for a pair; ties go to the smaller pool id."""
    best: Hop | None = None
    best_liquidity = ZERO
    for pool_id in sorted(pool_ids):
        tokens = poi.tradable[pool_id]
        if token_in not in tokens or token_out not in tokens:
            continue
        pool = poi.pools[pool_id]
        pair = _usable_pair(pool, token_in, token_out)
        if pair is None:
            continue
        liquidity = pool.get_normalized_liquidity(pair)
        if best is None or liquidity > best_liquidity:
            best = Hop(pool=pool, pair=pair)
            best_liquidity = liquidity
    return best


def filter_hop_pools(
    token_in: str, token_out: str, poi: PoolsOfInterest, swap_type: SwapType
) -> list[Path]:
    """Build one-hop paths through direct pools and two-hop paths via hop tokens.

    For each hop token only the most liquid hop-in and hop-out pool are used.
    Each path gets its liquidity proxy set.
    """
    token_in = token_in.lower()
    token_out = token_out.lower()
    paths: list[Path] = []
    seen: set[str] = set()

    for pool_id in poi.direct:
        pool = poi.pools[pool_id]
        pair = _usable_pair(pool, token_in, token_out)
        if pair is None:
            continue
        paths.append(Path.from_hops(Hop(pool=pool, pair=pair)))
        seen.add(paths[-1].id)

    for hop_token in poi.hop_tokens:
        first = _most_liquid(poi, poi.hop_in, token_in, hop_token)
        second = _most_liquid(poi, poi.hop_out, hop_token, token_out)
        if first is None or second is None:
            continue
        path = Path.from_hops(first, second)
        if path.id in seen:
            continue
        seen.add(path.id)
        paths.append(path)

    for path in paths:
        path.liquidity = path_liquidity(path, swap_type)

    logger.debug(
        "paths_built",
        token_in=token_in,
        token_out=token_out,
        direct=len(poi.direct),
        hop_tokens=len(poi.hop_tokens),
        paths=len(paths),
    )
    return paths


def bound_pools(paths: list[Path], max_pools: int) -> tuple[list[Path], set[str]]:
    """Keep the ``max_pools`` best pools and the paths that only use them.

    Each pool is scored by the most liquid path using it.

    Returns:
        (surviving paths, ids of the retained pools)
    """
    scores: dict[str, Decimal] = {}
    for path in paths:
        for pool_id in path.pool_ids:
            if pool_id not in scores or path.liquidity > scores[pool_id]:
                scores[pool_id] = path.liquidity

    ranked = sorted(scores, key=lambda pid: (-scores[pid], pid))
    retained = set(ranked[:max_pools])
    kept = [p for p in paths if all(pid in retained for pid in p.pool_ids)]
    if len(kept) < len(paths):
        logger.debug("paths_pruned", kept=len(kept), dropped=len(paths) - len(kept))
    return kept, retained
