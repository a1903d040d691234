"""Pool snapshot parsing.

Builds pool pricing objects from a validated snapshot, dispatching on the
pool type tag. Entries that cannot be priced are logged and skipped.
"""

from __future__ import annotations

import structlog

from sor.config import DEFAULT_CONFIG, SorConfig
from sor.models.snapshot import PoolModel, PoolSnapshot
from sor.pools.base import PoolBase, PoolType
from sor.pools.element import ElementPool
from sor.pools.linear import LinearPool
from sor.pools.stable import StablePool
from sor.pools.weighted import WeightedPool

logger = structlog.get_logger()

POOL_CLASSES: dict[PoolType, type[PoolBase]] = {
    PoolType.WEIGHTED: WeightedPool,
    PoolType.STABLE: StablePool,
    PoolType.LINEAR: LinearPool,
    PoolType.ELEMENT: ElementPool,
}


def parse_pool(
    model: PoolModel,
    *,
    config: SorConfig = DEFAULT_CONFIG,
    timestamp: int | None = None,
) -> PoolBase | None:
    """Parse one snapshot entry into a pool.

    Args:
        model: Validated snapshot entry
        config: Router configuration (limit ratios)
        timestamp: Current block timestamp for time-dependent pools

    Returns:
        The pool, or None if the type is unknown or the entry is malformed
    """
    try:
        pool_type = PoolType(model.pool_type)
    except ValueError:
        logger.warning("unknown_pool_type", pool_id=model.id, pool_type=model.pool_type)
        return None

    pool_class = POOL_CLASSES[pool_type]
    try:
        return pool_class.from_model(
            model,
            limit_ratios=config.ratios_for(pool_type.value),
            timestamp=timestamp,
        )
    except ValueError as err:
        logger.warning(
            "invalid_pool",
            pool_id=model.id,
            pool_type=pool_type.value,
            error=str(err),
        )
        return None


def parse_pools(
    snapshot: PoolSnapshot,
    *,
    config: SorConfig = DEFAULT_CONFIG,
    timestamp: int | None = None,
) -> dict[str, PoolBase]:
    """Parse every snapshot entry, keyed by pool id.

    Later entries with a duplicate id replace earlier ones.
    """
    pools: dict[str, PoolBase] = {}
    for model in snapshot.pools:
        pool = parse_pool(model, config=config, timestamp=timestamp)
        if pool is None:
            continue
        if pool.id in pools:
            logger.debug("duplicate_pool_id", pool_id=pool.id)
        pools[pool.id] = pool

    logger.debug("pools_parsed", total=snapshot.pool_count, parsed=len(pools))
    return pools
