"""Stable pool pricing strategy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Self

from sor.config import DEFAULT_LIMIT_RATIOS, LimitRatios
from sor.errors import UnsupportedOperationError
from sor.math.decimal_math import ONE, with_math_context
from sor.pools import stable_math as sm
from sor.pools.base import PairType, PoolBase, PoolPairData, PoolType
from sor.pools.weighted import BPT_DECIMALS

if TYPE_CHECKING:
    from sor.models.snapshot import PoolModel


@dataclass(frozen=True)
class StablePoolPairData(PoolPairData):
    """Pair view of a stable pool.

    Attributes:
        amp: Amplification parameter
        all_balances: Every token balance, in pool order
        token_index_in: Index of tokenIn, -1 for the share token
        token_index_out: Index of tokenOut, -1 for the share token
    """

    amp: Decimal
    all_balances: tuple[Decimal, ...]
    token_index_in: int
    token_index_out: int


class StablePool(PoolBase):
    """StableSwap pool for like-valued assets."""

    pool_type = PoolType.STABLE

    def __init__(self, *args, amp: Decimal, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.amp = amp

    @classmethod
    def from_model(
        cls,
        model: PoolModel,
        *,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
        timestamp: int | None = None,
    ) -> Self:
        if model.amp is None or model.amp <= 0:
            raise ValueError(f"Stable pool {model.id} has no positive amp")
        return cls(**cls._base_kwargs(model, limit_ratios), amp=model.amp)

    @with_math_context
    def parse_pool_pair_data(self, token_in: str, token_out: str) -> StablePoolPairData:
        token_in = token_in.lower()
        token_out = token_out.lower()
        bpt_in = self.is_share_token(token_in)
        bpt_out = self.is_share_token(token_out)
        if bpt_in and bpt_out:
            raise UnsupportedOperationError(
                "Cannot swap a share token for itself",
                pool_id=self.id,
                pool_type=self.pool_type.value,
                token_in=token_in,
                token_out=token_out,
            )

        if bpt_in:
            index_in = -1
            balance_in, decimals_in = self.total_shares, BPT_DECIMALS
        else:
            index_in = self._require_index(token_in, token_in, token_out)
            balance_in = self.tokens[index_in].balance
            decimals_in = self.tokens[index_in].decimals

        if bpt_out:
            index_out = -1
            balance_out, decimals_out = self.total_shares, BPT_DECIMALS
        else:
            index_out = self._require_index(token_out, token_in, token_out)
            balance_out = self.tokens[index_out].balance
            decimals_out = self.tokens[index_out].decimals

        if bpt_in:
            pair_type = PairType.BPT_TO_TOKEN
        elif bpt_out:
            pair_type = PairType.TOKEN_TO_BPT
        else:
            pair_type = PairType.TOKEN_TO_TOKEN

        return StablePoolPairData(
            pool_id=self.id,
            pool_type=self.pool_type,
            pair_type=pair_type,
            token_in=token_in,
            token_out=token_out,
            balance_in=balance_in,
            balance_out=balance_out,
            decimals_in=decimals_in,
            decimals_out=decimals_out,
            swap_fee=self.swap_fee,
            amp=self.amp,
            all_balances=tuple(t.balance for t in self.tokens),
            token_index_in=index_in,
            token_index_out=index_out,
        )

    @with_math_context
    def get_normalized_liquidity(self, pair: StablePoolPairData) -> Decimal:  # type: ignore[override]
        return pair.balance_out * pair.amp

    # ------------------------------------------------------------------

    def _check_amount_out(self, pair: StablePoolPairData, amount_out: Decimal) -> None:
        if pair.pair_type is PairType.BPT_TO_TOKEN:
            total = sum(pair.all_balances, Decimal(0))
            g = ONE - pair.swap_fee * (ONE - pair.balance_out / total)
            if amount_out >= pair.balance_out * g:
                raise self._domain_error("Amount out exceeds exit capacity", pair)
        elif pair.pair_type is PairType.TOKEN_TO_TOKEN and amount_out >= pair.balance_out:
            raise self._domain_error("Amount out must be below balance out", pair)

    def _check_exit_in(self, pair: StablePoolPairData, bpt_in: Decimal) -> None:
        if pair.pair_type is PairType.BPT_TO_TOKEN and bpt_in >= pair.balance_in:
            raise self._domain_error("Share amount in must be below total supply", pair)

    def _token_index(self, pair: StablePoolPairData) -> int:
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return pair.token_index_in
        return pair.token_index_out

    def _shares(self, pair: StablePoolPairData) -> Decimal:
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return pair.balance_out
        return pair.balance_in

    def _exact_in(self, pair: StablePoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        balances = list(pair.all_balances)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return sm.stable_calc_out_given_in(
                pair.amp, balances, pair.token_index_in, pair.token_index_out,
                amount_in, pair.swap_fee,
            )
        args = (
            pair.amp, balances, self._token_index(pair), amount_in, self._shares(pair),
            pair.swap_fee,
        )
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return sm.calc_bpt_out_given_exact_token_in(*args)
        self._check_exit_in(pair, amount_in)
        return sm.calc_token_out_given_exact_bpt_in(*args)

    def _exact_out(self, pair: StablePoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        self._check_amount_out(pair, amount_out)
        balances = list(pair.all_balances)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return sm.stable_calc_in_given_out(
                pair.amp, balances, pair.token_index_in, pair.token_index_out,
                amount_out, pair.swap_fee,
            )
        args = (
            pair.amp, balances, self._token_index(pair), amount_out, self._shares(pair),
            pair.swap_fee,
        )
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return sm.calc_token_in_given_exact_bpt_out(*args)
        return sm.calc_bpt_in_given_exact_token_out(*args)

    def _rate_and_slope(
        self, pair: StablePoolPairData, amount: Decimal, exact_in: bool
    ) -> tuple[Decimal, Decimal]:
        balances = list(pair.all_balances)
        if exact_in:
            self._check_exit_in(pair, amount)
        else:
            self._check_amount_out(pair, amount)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            fn = sm.stable_spot_price_exact_in if exact_in else sm.stable_spot_price_exact_out
            return fn(
                pair.amp, balances, pair.token_index_in, pair.token_index_out,
                amount, pair.swap_fee,
            )
        args = (
            pair.amp, balances, self._token_index(pair), amount, self._shares(pair),
            pair.swap_fee,
        )
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            if exact_in:
                return sm.spot_price_token_to_bpt_exact_in(*args)
            return sm.spot_price_token_to_bpt_exact_out(*args)
        if exact_in:
            return sm.spot_price_bpt_to_token_exact_in(*args)
        return sm.spot_price_bpt_to_token_exact_out(*args)

    def _spot_price_exact_in(self, pair: StablePoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate_and_slope(pair, amount_in, exact_in=True)[0]

    def _spot_price_exact_out(self, pair: StablePoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate_and_slope(pair, amount_out, exact_in=False)[0]

    def _derivative_exact_in(self, pair: StablePoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate_and_slope(pair, amount_in, exact_in=True)[1]

    def _derivative_exact_out(self, pair: StablePoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate_and_slope(pair, amount_out, exact_in=False)[1]
