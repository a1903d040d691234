"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token and pool addresses
- factories: Pool entry and snapshot factory functions
"""

from tests.helpers.constants import (
    DAI,
    ETH,
    POOL_A,
    POOL_B,
    PRINCIPAL_DAI,
    USDC,
    USDT,
    WETH,
    WRAPPED_DAI,
)
from tests.helpers.factories import (
    element_pool,
    linear_pool,
    make_pool,
    make_snapshot,
    stable_pool,
    token,
    weighted_pool,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "ETH",
    "WRAPPED_DAI",
    "PRINCIPAL_DAI",
    "POOL_A",
    "POOL_B",
    # Factories
    "token",
    "weighted_pool",
    "stable_pool",
    "linear_pool",
    "element_pool",
    "make_snapshot",
    "make_pool",
]
