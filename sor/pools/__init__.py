"""Pool pricing strategies.

One pricing class per pool family, sharing the PoolBase surface:
- WeightedPool: weighted product pools
- StablePool: StableSwap pools for like-valued assets
- LinearPool: main/wrapped pools with target-based fees
- ElementPool: yield-space principal token pools
"""

from sor.pools.base import (
    PairType,
    PoolBase,
    PoolFilter,
    PoolPairData,
    PoolToken,
    PoolType,
    SwapType,
)
from sor.pools.element import ElementPool, ElementPoolPairData
from sor.pools.linear import LinearPool, LinearPoolPairData, LinearRole
from sor.pools.parsing import POOL_CLASSES, parse_pool, parse_pools
from sor.pools.stable import StablePool, StablePoolPairData
from sor.pools.weighted import WeightedPool, WeightedPoolPairData

__all__ = [
    "POOL_CLASSES",
    "ElementPool",
    "ElementPoolPairData",
    "LinearPool",
    "LinearPoolPairData",
    "LinearRole",
    "PairType",
    "PoolBase",
    "PoolFilter",
    "PoolPairData",
    "PoolToken",
    "PoolType",
    "StablePool",
    "StablePoolPairData",
    "SwapType",
    "WeightedPool",
    "WeightedPoolPairData",
    "parse_pool",
    "parse_pools",
]
