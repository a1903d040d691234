"""Configuration for the smart order router."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal

from sor.constants import (
    DEFAULT_LIMIT_RATIO,
    DEFAULT_MAX_POOLS,
    DEFAULT_SWAP_COST,
    DEFAULT_TOLERANCE,
    ROOT_SEARCH_MAX_ITERATIONS,
    WETH_ADDRESS,
    ZERO_ADDRESS,
)


@dataclass(frozen=True)
class LimitRatios:
    """Fraction of a pool balance a single swap may consume.

    Attributes:
        max_in: Cap on the input amount as a share of the input balance
        max_out: Cap on the output amount as a share of the output balance
    """

    max_in: Decimal = DEFAULT_LIMIT_RATIO
    max_out: Decimal = DEFAULT_LIMIT_RATIO


DEFAULT_LIMIT_RATIOS = LimitRatios()


@dataclass(frozen=True)
class SorConfig:
    """Centralized configuration for routing.

    Holds every tunable so tests can run with different settings and the
    service, the HTTP layer and the core read the same values.

    Attributes:
        max_pools: Maximum number of distinct pools (and paths) in a route
        allow_add_remove: If True, pool share tokens take part in path
            discovery, enabling single-asset joins and exits
        limit_ratios: Per pool type limit ratios, keyed by type tag
            ("Weighted", "Stable", "Linear", "Element"); missing types use
            the default ratios
        tolerance: Relative convergence tolerance of the marginal-price search
        max_iterations: Iteration cap of the outer marginal-price search
        wrapped_native_token: Address substituted for the native asset
        native_token: Address denoting the native asset in requests
        default_execution_cost: Per-path cost used when no cost is known for
            the output token
        gas_price: Gas price in wei, used to price a path in the native token
        swap_cost: Gas consumed by one path
    """

    max_pools: int = DEFAULT_MAX_POOLS
    allow_add_remove: bool = False
    limit_ratios: dict[str, LimitRatios] = field(default_factory=dict)
    tolerance: Decimal = DEFAULT_TOLERANCE
    max_iterations: int = ROOT_SEARCH_MAX_ITERATIONS
    wrapped_native_token: str = WETH_ADDRESS
    native_token: str = ZERO_ADDRESS
    default_execution_cost: Decimal = Decimal(0)
    gas_price: Decimal = Decimal(0)
    swap_cost: int = DEFAULT_SWAP_COST

    def __post_init__(self) -> None:
        if self.max_pools < 1:
            raise ValueError(f"max_pools must be >= 1, got {self.max_pools}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.gas_price < 0 or self.swap_cost < 0:
            raise ValueError("gas_price and swap_cost cannot be negative")
        for pool_type, ratios in self.limit_ratios.items():
            for ratio in (ratios.max_in, ratios.max_out):
                if not Decimal(0) < ratio <= Decimal(1):
                    raise ValueError(f"Limit ratio for {pool_type} must be in (0, 1], got {ratio}")

    def ratios_for(self, pool_type: str) -> LimitRatios:
        """Limit ratios for a pool type tag."""
        return self.limit_ratios.get(pool_type, DEFAULT_LIMIT_RATIOS)

    @classmethod
    def from_env(cls) -> SorConfig:
        """Build a config from SOR_* environment variables.

        Recognized variables:
        - SOR_MAX_POOLS: Maximum pools per route (default: 4)
        - SOR_ALLOW_ADD_REMOVE: Route through share tokens (default: false)
        - SOR_LIMIT_RATIO: Limit ratio applied to every pool type (default: 0.3)
        - SOR_TOLERANCE: Search tolerance (default: 1e-18)
        - SOR_MAX_ITERATIONS: Outer search iteration cap (default: 100)
        - SOR_WRAPPED_NATIVE_TOKEN: Wrapped native token address
        - SOR_DEFAULT_EXECUTION_COST: Per-path cost (default: 0)
        - SOR_GAS_PRICE: Gas price in wei (default: 0)
        - SOR_SWAP_COST: Gas per path (default: 100000)
        """
        ratio_env = os.environ.get("SOR_LIMIT_RATIO")
        limit_ratios: dict[str, LimitRatios] = {}
        if ratio_env:
            ratio = Decimal(ratio_env)
            limit_ratios = {
                pool_type: LimitRatios(ratio, ratio)
                for pool_type in ("Weighted", "Stable", "Linear", "Element")
            }
        return cls(
            max_pools=int(os.environ.get("SOR_MAX_POOLS", str(DEFAULT_MAX_POOLS))),
            allow_add_remove=os.environ.get("SOR_ALLOW_ADD_REMOVE", "false").lower()
            in ("true", "1", "yes"),
            limit_ratios=limit_ratios,
            tolerance=Decimal(os.environ.get("SOR_TOLERANCE", str(DEFAULT_TOLERANCE))),
            max_iterations=int(
                os.environ.get("SOR_MAX_ITERATIONS", str(ROOT_SEARCH_MAX_ITERATIONS))
            ),
            wrapped_native_token=os.environ.get(
                "SOR_WRAPPED_NATIVE_TOKEN", WETH_ADDRESS
            ).lower(),
            default_execution_cost=Decimal(os.environ.get("SOR_DEFAULT_EXECUTION_COST", "0")),
            gas_price=Decimal(os.environ.get("SOR_GAS_PRICE", "0")),
            swap_cost=int(os.environ.get("SOR_SWAP_COST", str(DEFAULT_SWAP_COST))),
        )


# Default configuration instance
DEFAULT_CONFIG = SorConfig()
