"""Pydantic models for pool-state snapshots.

Field names follow the Balancer subgraph JSON (camelCase aliases), so a
snapshot exported from the subgraph or a pools JSON file validates directly.
Amounts are normalized token amounts (not raw on-chain integers).
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from sor.models.types import Address, Amount, DecimalStr


class TokenModel(BaseModel):
    """A token held by a pool."""

    model_config = {"populate_by_name": True}

    address: Address
    balance: Amount
    # Some exotic tokens use more than 18 decimals; uint256 caps at 77
    decimals: int = Field(default=18, ge=0, le=77)
    weight: Amount | None = None
    price_rate: Amount = Field(default=Decimal(1), alias="priceRate")


class PoolModel(BaseModel):
    """One pool in a snapshot.

    Type-specific fields are optional here; the pool class for ``pool_type``
    decides which of them it requires.
    """

    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1)
    address: Address
    pool_type: str = Field(alias="poolType")
    swap_fee: DecimalStr = Field(alias="swapFee")
    total_shares: Amount = Field(default=Decimal(0), alias="totalShares")
    tokens: list[TokenModel] = Field(default_factory=list)
    tokens_list: list[Address] | None = Field(default=None, alias="tokensList")

    # Stable
    amp: Amount | None = None

    # Linear
    wrapped_index: int | None = Field(default=None, alias="wrappedIndex", ge=0)
    main_index: int | None = Field(default=None, alias="mainIndex", ge=0)
    lower_target: Amount | None = Field(
        default=None,
        validation_alias=AliasChoices("lowerTarget", "lower_target", "target1"),
    )
    upper_target: Amount | None = Field(
        default=None,
        validation_alias=AliasChoices("upperTarget", "upper_target", "target2"),
    )

    # Element
    expiry_time: int | None = Field(default=None, alias="expiryTime")
    unit_seconds: int | None = Field(default=None, alias="unitSeconds", gt=0)
    principal_token: Address | None = Field(default=None, alias="principalToken")
    base_token: Address | None = Field(default=None, alias="baseToken")

    @field_validator("swap_fee")
    @classmethod
    def fee_in_range(cls, v: Decimal) -> Decimal:
        """Swap fee must satisfy 0 <= fee < 1."""
        if not Decimal(0) <= v < Decimal(1):
            raise ValueError(f"swapFee must be in [0, 1), got {v}")
        return v

    @model_validator(mode="after")
    def default_tokens_list(self) -> PoolModel:
        """Derive tokensList from tokens when the snapshot omits it."""
        if self.tokens_list is None:
            self.tokens_list = [t.address for t in self.tokens]
        return self


class PoolSnapshot(BaseModel):
    """A point-in-time set of pools."""

    pools: list[PoolModel] = Field(default_factory=list)

    @property
    def pool_count(self) -> int:
        """Number of pools in the snapshot."""
        return len(self.pools)
