"""Element (principal token) pool pricing strategy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar, Self

from sor.config import DEFAULT_LIMIT_RATIOS, LimitRatios
from sor.errors import UnsupportedOperationError
from sor.math.decimal_math import with_math_context
from sor.pools import element_math as em
from sor.pools.base import PairType, PoolBase, PoolPairData, PoolType, SwapType

if TYPE_CHECKING:
    from sor.models.snapshot import PoolModel


@dataclass(frozen=True)
class ElementPoolPairData(PoolPairData):
    """Pair view of an element pool.

    The principal-token side already includes the pool's share supply.

    Attributes:
        total_shares: Share supply of the pool
        time_to_maturity: Normalized time left until expiry (t)
        principal_token: Principal token address
        base_token: Base token address
    """

    total_shares: Decimal
    time_to_maturity: Decimal
    principal_token: str
    base_token: str


class ElementPool(PoolBase):
    """Yield-space pool between a base token and its principal token."""

    pool_type = PoolType.ELEMENT
    supports_share_token: ClassVar[bool] = False

    def __init__(  # type: ignore[no-untyped-def]
        self,
        *args,
        expiry_time: int,
        unit_seconds: int,
        principal_token: str,
        base_token: str,
        current_block_timestamp: int = 0,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        if unit_seconds <= 0:
            raise ValueError(f"Element pool {self.id} needs positive unitSeconds")
        self.expiry_time = expiry_time
        self.unit_seconds = unit_seconds
        self.principal_token = principal_token.lower()
        self.base_token = base_token.lower()
        self.current_block_timestamp = current_block_timestamp

    @classmethod
    def from_model(
        cls,
        model: PoolModel,
        *,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
        timestamp: int | None = None,
    ) -> Self:
        if (
            model.expiry_time is None
            or model.unit_seconds is None
            or model.principal_token is None
            or model.base_token is None
        ):
            raise ValueError(
                f"Element pool {model.id} needs expiryTime, unitSeconds, "
                "principalToken and baseToken"
            )
        return cls(
            **cls._base_kwargs(model, limit_ratios),
            expiry_time=model.expiry_time,
            unit_seconds=model.unit_seconds,
            principal_token=model.principal_token,
            base_token=model.base_token,
            current_block_timestamp=timestamp or 0,
        )

    def set_current_block_timestamp(self, timestamp: int) -> None:
        self.current_block_timestamp = timestamp

    @with_math_context
    def parse_pool_pair_data(self, token_in: str, token_out: str) -> ElementPoolPairData:
        token_in = token_in.lower()
        token_out = token_out.lower()
        if self.is_share_token(token_in) or self.is_share_token(token_out):
            raise UnsupportedOperationError(
                "Element pools do not support share token swaps",
                pool_id=self.id,
                pool_type=self.pool_type.value,
                token_in=token_in,
                token_out=token_out,
            )
        t_in = self.tokens[self._require_index(token_in, token_in, token_out)]
        t_out = self.tokens[self._require_index(token_out, token_in, token_out)]

        balance_in = t_in.balance
        balance_out = t_out.balance
        if token_in == self.principal_token:
            balance_in += self.total_shares
        elif token_out == self.principal_token:
            balance_out += self.total_shares

        return ElementPoolPairData(
            pool_id=self.id,
            pool_type=self.pool_type,
            pair_type=PairType.TOKEN_TO_TOKEN,
            token_in=token_in,
            token_out=token_out,
            balance_in=balance_in,
            balance_out=balance_out,
            decimals_in=t_in.decimals,
            decimals_out=t_out.decimals,
            swap_fee=self.swap_fee,
            total_shares=self.total_shares,
            time_to_maturity=em.time_to_maturity(
                self.expiry_time, self.current_block_timestamp, self.unit_seconds
            ),
            principal_token=self.principal_token,
            base_token=self.base_token,
        )

    @with_math_context
    def get_normalized_liquidity(self, pair: ElementPoolPairData) -> Decimal:  # type: ignore[override]
        return pair.balance_out

    def _limit_amount(self, pair: ElementPoolPairData, swap_type: SwapType) -> Decimal:  # type: ignore[override]
        if swap_type is SwapType.EXACT_IN:
            return em.max_amount_in(pair.balance_in, pair.balance_out, pair.time_to_maturity)
        return pair.balance_out * self.limit_ratios.max_out

    # ------------------------------------------------------------------

    def _args(self, pair: ElementPoolPairData, amount: Decimal) -> tuple[Decimal, ...]:
        return pair.balance_in, pair.balance_out, amount, pair.swap_fee, pair.time_to_maturity

    def _exact_in(self, pair: ElementPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return em.calc_out_given_in(*self._args(pair, amount_in))

    def _exact_out(self, pair: ElementPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return em.calc_in_given_out(*self._args(pair, amount_out))

    def _spot_price_exact_in(self, pair: ElementPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return em.spot_price_after_swap_exact_in(*self._args(pair, amount_in))

    def _spot_price_exact_out(self, pair: ElementPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return em.spot_price_after_swap_exact_out(*self._args(pair, amount_out))

    def _derivative_exact_in(self, pair: ElementPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return em.derivative_spot_price_after_swap_exact_in(*self._args(pair, amount_in))

    def _derivative_exact_out(self, pair: ElementPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return em.derivative_spot_price_after_swap_exact_out(*self._args(pair, amount_out))
