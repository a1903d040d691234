"""Stateful router service.

``SOR`` keeps the latest pool snapshot, a cache of prepared paths and
per-token execution costs between requests, and handles the native asset:
requests naming the native token are routed through the wrapped token and
the result is reported back in terms of the native token.
"""

from __future__ import annotations

import dataclasses
import os
from decimal import Decimal

import structlog

from sor.cache import RouteCache, RouteCacheKey
from sor.config import DEFAULT_CONFIG, SorConfig
from sor.core import (
    PreparedPaths,
    RouteOptions,
    RouteResult,
    prepare_paths,
    route_prepared,
    validate_request,
)
from sor.errors import EmptyPoolSetError
from sor.models.snapshot import PoolSnapshot
from sor.models.types import normalize_address
from sor.pools.base import SwapType
from sor.pools.parsing import parse_pools
from sor.providers import JsonFileSnapshotProvider, PoolSnapshotProvider

logger = structlog.get_logger()

# Wei per native token
NATIVE_UNIT = Decimal(10) ** 18


class SOR:
    """Smart order router with pool state and caches.

    Usage:
        sor = SOR(provider=JsonFileSnapshotProvider("pools.json"))
        sor.fetch_pools()
        result = sor.get_swaps(dai, usdc, SwapType.EXACT_IN, Decimal("100"))

    Args:
        provider: Source of pool snapshots; optional when snapshots are
            passed to ``fetch_pools`` directly
        config: Router configuration
        cache: Prepared-path cache (a fresh one by default)
    """

    def __init__(
        self,
        provider: PoolSnapshotProvider | None = None,
        config: SorConfig = DEFAULT_CONFIG,
        cache: RouteCache | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.cache = cache if cache is not None else RouteCache()
        self.snapshot: PoolSnapshot | None = None
        self._execution_costs: dict[str, Decimal] = {}

    @property
    def has_pools(self) -> bool:
        """Whether a snapshot has been fetched successfully."""
        return self.snapshot is not None

    def fetch_pools(self, snapshot: PoolSnapshot | None = None) -> bool:
        """Load pool state from ``snapshot`` or the provider.

        Cached paths are dropped whenever the new snapshot differs from the
        previous one.

        Args:
            snapshot: Snapshot to use instead of asking the provider

        Returns:
            True on success; False if the provider failed, in which case the
            previous state and all caches are dropped

        Raises:
            ValueError: If neither a snapshot nor a provider is available
        """
        if snapshot is None:
            if self.provider is None:
                raise ValueError("No snapshot given and no provider configured")
            try:
                snapshot = self.provider.get_snapshot()
            except (OSError, ValueError) as err:
                logger.warning("fetch_pools_failed", error=str(err))
                self.snapshot = None
                self.cache.clear()
                return False

        if snapshot != self.snapshot:
            self.cache.clear()
        self.snapshot = snapshot
        logger.info("pools_fetched", pools=snapshot.pool_count)
        return True

    def set_cost_output_token(self, token: str, cost: Decimal | None = None) -> Decimal:
        """Set the per-path execution cost expressed in ``token``.

        The cost applies to requests whose return amount is in ``token``:
        exact-in requests buying it and exact-out requests selling it.

        Without ``cost`` the native token and its wrapper are priced from the
        configured gas price and swap cost; other tokens need an explicit cost.

        Returns:
            The stored cost
        """
        token = self._wrap(normalize_address(token))
        if cost is None:
            if token != self.config.wrapped_native_token:
                raise ValueError(f"No execution cost given for {token}")
            cost = self.config.gas_price * self.config.swap_cost / NATIVE_UNIT
        if cost < 0:
            raise ValueError(f"Execution cost cannot be negative: {cost}")
        self._execution_costs[token] = cost
        logger.debug("execution_cost_set", token=token, cost=str(cost))
        return cost

    def execution_cost(self, token: str) -> Decimal:
        """Per-path execution cost in ``token``, falling back to the config default."""
        return self._execution_costs.get(
            self._wrap(normalize_address(token)), self.config.default_execution_cost
        )

    def get_swaps(
        self,
        token_in: str,
        token_out: str,
        swap_type: SwapType,
        amount: Decimal,
        options: RouteOptions | None = None,
    ) -> RouteResult:
        """Route a swap over the fetched pools.

        Args:
            token_in: Token sold (the native token is routed as its wrapper)
            token_out: Token bought (likewise)
            swap_type: Swap type
            amount: The fixed amount
            options: Routing options; defaults to the config's max pools and
                the stored execution cost of the return-amount token

        Returns:
            The route, empty if no pools have been fetched yet

        Raises:
            ValueError: If the request is malformed
            EmptyPoolSetError: If the fetched snapshot holds no pools
            InsufficientLiquidityError: If the paths cannot absorb ``amount``
        """
        token_in, token_out = validate_request(token_in, token_out, amount)
        if self.snapshot is None:
            logger.warning("pools_not_fetched", token_in=token_in, token_out=token_out)
            return RouteResult.empty(token_in, token_out, swap_type)
        if self.snapshot.pool_count == 0:
            raise EmptyPoolSetError("No pools fetched", token_in=token_in, token_out=token_out)

        routed_in, routed_out = self._wrap(token_in), self._wrap(token_out)
        validate_request(routed_in, routed_out, amount)
        if options is None:
            cost_token = routed_out if swap_type is SwapType.EXACT_IN else routed_in
            options = RouteOptions(
                max_pools=self.config.max_pools,
                execution_cost_per_path=self.execution_cost(cost_token),
            )

        prepared = self._prepared_paths(routed_in, routed_out, swap_type, options)
        result = route_prepared(
            routed_in, routed_out, swap_type, amount, prepared, options, config=self.config
        )
        return self._unwrap(result, token_in, token_out)

    def _prepared_paths(
        self, token_in: str, token_out: str, swap_type: SwapType, options: RouteOptions
    ) -> PreparedPaths:
        assert self.snapshot is not None  # Checked by caller
        timestamp = options.timestamp()
        key = RouteCacheKey(
            token_in=token_in,
            token_out=token_out,
            swap_type=swap_type,
            timestamp=timestamp,
            pool_filter=options.pool_type_filter,
            max_pools=options.max_pools,
            disabled_tokens=frozenset(t.lower() for t in options.disabled_tokens),
            allow_add_remove=(
                self.config.allow_add_remove
                if options.allow_add_remove is None
                else options.allow_add_remove
            ),
        )
        prepared = self.cache.get(key)
        if prepared is not None:
            return prepared

        pools = parse_pools(self.snapshot, config=self.config, timestamp=timestamp)
        prepared = prepare_paths(token_in, token_out, swap_type, pools, options, config=self.config)
        self.cache.put(key, prepared)
        return prepared

    def _wrap(self, token: str) -> str:
        if token == self.config.native_token:
            return self.config.wrapped_native_token
        return token

    def _unwrap(self, result: RouteResult, token_in: str, token_out: str) -> RouteResult:
        """Report a result routed through the wrapper in terms of the native token."""
        native = self.config.native_token
        if native not in (token_in, token_out):
            return result
        wrapped = self.config.wrapped_native_token

        def swap_token(token: str) -> str:
            return native if token == wrapped else token

        swaps = [
            [
                dataclasses.replace(
                    step, token_in=swap_token(step.token_in), token_out=swap_token(step.token_out)
                )
                for step in group
            ]
            for group in result.swaps
        ]
        return dataclasses.replace(
            result,
            token_in=token_in,
            token_out=token_out,
            swaps=swaps,
            token_addresses=[swap_token(t) for t in result.token_addresses],
        )


def create_default_sor(config: SorConfig | None = None) -> SOR:
    """Build the service from the environment.

    Reads the router settings via ``SorConfig.from_env`` and, if
    SOR_POOLS_FILE is set, serves pools from that JSON file.
    """
    config = config if config is not None else SorConfig.from_env()
    pools_file = os.environ.get("SOR_POOLS_FILE")
    if not pools_file:
        logger.info("pools_file_not_configured", reason="SOR_POOLS_FILE not set")
        return SOR(config=config)

    sor = SOR(provider=JsonFileSnapshotProvider(pools_file), config=config)
    sor.fetch_pools()
    return sor


__all__ = ["SOR", "create_default_sor"]
