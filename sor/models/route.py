"""Pydantic models for the HTTP routing surface.

Imported directly (not re-exported from ``sor.models``) since they depend on
the routing core.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from sor.core import RouteOptions, RouteResult
from sor.models.snapshot import PoolModel, PoolSnapshot
from sor.models.types import Address, Amount, DecimalStr
from sor.pools.base import PoolFilter, SwapType


class RouteRequest(BaseModel):
    """A swap to route.

    When ``pools`` is given the request is routed over exactly those pools;
    otherwise over the service's fetched snapshot.
    """

    model_config = {"populate_by_name": True}

    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    swap_type: SwapType = Field(alias="swapType")
    amount: Amount
    pools: list[PoolModel] | None = None
    max_pools: int | None = Field(default=None, alias="maxPools", ge=1)
    pool_type_filter: PoolFilter = Field(default=PoolFilter.ALL, alias="poolTypeFilter")
    disabled_tokens: list[Address] = Field(default_factory=list, alias="disabledTokens")
    execution_cost_per_path: Amount | None = Field(default=None, alias="executionCostPerPath")
    timestamp: int | None = Field(default=None, ge=0)

    @property
    def snapshot(self) -> PoolSnapshot | None:
        """The inline snapshot, if the request carries one."""
        if self.pools is None:
            return None
        return PoolSnapshot(pools=self.pools)

    def to_options(self, *, default_max_pools: int, default_cost: Decimal) -> RouteOptions:
        """Routing options, filling unset fields from the given defaults."""
        return RouteOptions(
            max_pools=self.max_pools if self.max_pools is not None else default_max_pools,
            pool_type_filter=self.pool_type_filter,
            disabled_tokens=frozenset(self.disabled_tokens),
            execution_cost_per_path=(
                self.execution_cost_per_path
                if self.execution_cost_per_path is not None
                else default_cost
            ),
            current_timestamp=self.timestamp,
        )


class SwapStepModel(BaseModel):
    """One hop of a route."""

    model_config = {"populate_by_name": True}

    pool_id: str = Field(alias="poolId")
    token_in: str = Field(alias="tokenIn")
    token_out: str = Field(alias="tokenOut")
    swap_amount: DecimalStr = Field(alias="swapAmount")
    return_amount: DecimalStr = Field(alias="returnAmount")


class RouteResponse(BaseModel):
    """A routed swap."""

    model_config = {"populate_by_name": True}

    token_in: str = Field(alias="tokenIn")
    token_out: str = Field(alias="tokenOut")
    swap_type: SwapType = Field(alias="swapType")
    swap_amount: DecimalStr = Field(alias="swapAmount")
    return_amount: DecimalStr = Field(alias="returnAmount")
    return_amount_considering_fees: DecimalStr = Field(alias="returnAmountConsideringFees")
    market_spot_price: DecimalStr = Field(alias="marketSpotPrice")
    swaps: list[list[SwapStepModel]] = Field(default_factory=list)
    token_addresses: list[str] = Field(default_factory=list, alias="tokenAddresses")

    @classmethod
    def from_result(cls, result: RouteResult) -> RouteResponse:
        """Build the response from a core result."""
        return cls(
            token_in=result.token_in,
            token_out=result.token_out,
            swap_type=result.swap_type,
            swap_amount=result.swap_amount,
            return_amount=result.return_amount,
            return_amount_considering_fees=result.return_amount_considering_fees,
            market_spot_price=result.market_spot_price,
            swaps=[
                [
                    SwapStepModel(
                        pool_id=step.pool_id,
                        token_in=step.token_in,
                        token_out=step.token_out,
                        swap_amount=step.swap_amount,
                        return_amount=step.return_amount,
                    )
                    for step in group
                ]
                for group in result.swaps
            ],
            token_addresses=result.token_addresses,
        )


class ErrorResponse(BaseModel):
    """Body of a routing failure."""

    error: str
    message: str
    context: dict[str, str] = Field(default_factory=dict)
