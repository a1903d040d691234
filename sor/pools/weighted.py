"""Weighted pool pricing strategy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Self

from sor.config import DEFAULT_LIMIT_RATIOS, LimitRatios
from sor.errors import UnsupportedOperationError
from sor.math.decimal_math import ONE, with_math_context
from sor.pools import weighted_math as wm
from sor.pools.base import PairType, PoolBase, PoolPairData, PoolType

if TYPE_CHECKING:
    from sor.models.snapshot import PoolModel

# Share tokens always have 18 decimals
BPT_DECIMALS = 18


@dataclass(frozen=True)
class WeightedPoolPairData(PoolPairData):
    """Pair view of a weighted pool.

    Weights are normalized (sum over the pool's tokens is 1); the share
    token side carries weight 1.
    """

    weight_in: Decimal
    weight_out: Decimal


class WeightedPool(PoolBase):
    """Balancer weighted product pool."""

    pool_type = PoolType.WEIGHTED

    @classmethod
    def from_model(
        cls,
        model: PoolModel,
        *,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
        timestamp: int | None = None,
    ) -> Self:
        for token in model.tokens:
            if token.weight is None or token.weight <= 0:
                raise ValueError(f"Weighted pool token {token.address} has no positive weight")
        return cls(**cls._base_kwargs(model, limit_ratios))

    @property
    def total_weight(self) -> Decimal:
        return sum((t.weight or Decimal(0) for t in self.tokens), Decimal(0))

    @with_math_context
    def parse_pool_pair_data(self, token_in: str, token_out: str) -> WeightedPoolPairData:
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

        total_weight = self.total_weight
        if bpt_in:
            pair_type = PairType.BPT_TO_TOKEN
            balance_in, decimals_in, weight_in = self.total_shares, BPT_DECIMALS, ONE
        else:
            t_in = self.tokens[self._require_index(token_in, token_in, token_out)]
            balance_in, decimals_in = t_in.balance, t_in.decimals
            weight_in = (t_in.weight or Decimal(0)) / total_weight

        if bpt_out:
            pair_type = PairType.TOKEN_TO_BPT
            balance_out, decimals_out, weight_out = self.total_shares, BPT_DECIMALS, ONE
        else:
            t_out = self.tokens[self._require_index(token_out, token_in, token_out)]
            balance_out, decimals_out = t_out.balance, t_out.decimals
            weight_out = (t_out.weight or Decimal(0)) / total_weight

        if not bpt_in and not bpt_out:
            pair_type = PairType.TOKEN_TO_TOKEN

        return WeightedPoolPairData(
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
            weight_in=weight_in,
            weight_out=weight_out,
        )

    @with_math_context
    def get_normalized_liquidity(self, pair: WeightedPoolPairData) -> Decimal:  # type: ignore[override]
        return pair.balance_out * pair.weight_in / (pair.weight_in + pair.weight_out)

    # ------------------------------------------------------------------

    def _single_asset_args(
        self, pair: WeightedPoolPairData
    ) -> tuple[Decimal, Decimal, Decimal, Decimal]:
        """(token balance, normalized weight, share supply, fee) for a join or exit."""
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return pair.balance_in, pair.weight_in, pair.balance_out, pair.swap_fee
        return pair.balance_out, pair.weight_out, pair.balance_in, pair.swap_fee

    def _pair_args(
        self, pair: WeightedPoolPairData
    ) -> tuple[Decimal, Decimal, Decimal, Decimal]:
        return pair.balance_in, pair.weight_in, pair.balance_out, pair.weight_out

    def _check_exit_in(self, pair: WeightedPoolPairData, bpt_in: Decimal) -> None:
        if bpt_in >= pair.balance_in:
            raise self._domain_error("Share amount in must be below total supply", pair)

    def _check_amount_out(self, pair: WeightedPoolPairData, amount_out: Decimal) -> None:
        if pair.pair_type is PairType.BPT_TO_TOKEN:
            g = ONE - pair.swap_fee * (ONE - pair.weight_out)
            if amount_out >= g * pair.balance_out:
                raise self._domain_error("Amount out exceeds exit capacity", pair)
        elif pair.pair_type is PairType.TOKEN_TO_TOKEN and amount_out >= pair.balance_out:
            raise self._domain_error("Amount out must be below balance out", pair)

    def _exact_in(self, pair: WeightedPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.calc_out_given_in(*self._pair_args(pair), amount_in, pair.swap_fee)
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.calc_bpt_out_given_exact_token_in(balance, weight, amount_in, shares, fee)
        self._check_exit_in(pair, amount_in)
        return wm.calc_token_out_given_exact_bpt_in(balance, weight, amount_in, shares, fee)

    def _exact_out(self, pair: WeightedPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        self._check_amount_out(pair, amount_out)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.calc_in_given_out(*self._pair_args(pair), amount_out, pair.swap_fee)
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.calc_token_in_given_exact_bpt_out(balance, weight, amount_out, shares, fee)
        return wm.calc_bpt_in_given_exact_token_out(balance, weight, amount_out, shares, fee)

    def _spot_price_exact_in(self, pair: WeightedPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.spot_price_after_swap_exact_in(
                *self._pair_args(pair), amount_in, pair.swap_fee
            )
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.spot_price_token_to_bpt_exact_in(balance, weight, amount_in, shares, fee)
        self._check_exit_in(pair, amount_in)
        return wm.spot_price_bpt_to_token_exact_in(balance, weight, amount_in, shares, fee)

    def _spot_price_exact_out(self, pair: WeightedPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        self._check_amount_out(pair, amount_out)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.spot_price_after_swap_exact_out(
                *self._pair_args(pair), amount_out, pair.swap_fee
            )
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.spot_price_token_to_bpt_exact_out(balance, weight, amount_out, shares, fee)
        return wm.spot_price_bpt_to_token_exact_out(balance, weight, amount_out, shares, fee)

    def _derivative_exact_in(self, pair: WeightedPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.derivative_spot_price_after_swap_exact_in(
                *self._pair_args(pair), amount_in, pair.swap_fee
            )
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.derivative_token_to_bpt_exact_in(balance, weight, amount_in, shares, fee)
        self._check_exit_in(pair, amount_in)
        return wm.derivative_bpt_to_token_exact_in(balance, weight, amount_in, shares, fee)

    def _derivative_exact_out(self, pair: WeightedPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        self._check_amount_out(pair, amount_out)
        if pair.pair_type is PairType.TOKEN_TO_TOKEN:
            return wm.derivative_spot_price_after_swap_exact_out(
                *self._pair_args(pair), amount_out, pair.swap_fee
            )
        balance, weight, shares, fee = self._single_asset_args(pair)
        if pair.pair_type is PairType.TOKEN_TO_BPT:
            return wm.derivative_token_to_bpt_exact_out(balance, weight, amount_out, shares, fee)
        return wm.derivative_bpt_to_token_exact_out(balance, weight, amount_out, shares, fee)
