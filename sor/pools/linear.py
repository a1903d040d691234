"""Linear pool pricing strategy."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Self

from sor.config import DEFAULT_LIMIT_RATIOS, LimitRatios
from sor.errors import UnsupportedOperationError
from sor.math.decimal_math import ONE, ZERO, with_math_context
from sor.pools import linear_math as lm
from sor.pools.base import PairType, PoolBase, PoolPairData, PoolToken, PoolType
from sor.pools.weighted import BPT_DECIMALS

if TYPE_CHECKING:
    from sor.models.snapshot import PoolModel


class LinearRole(str, Enum):
    """Role of a token in a linear pool."""

    MAIN = "main"
    WRAPPED = "wrapped"
    BPT = "bpt"


@dataclass(frozen=True)
class LinearPoolPairData(PoolPairData):
    role_in: LinearRole
    role_out: LinearRole
    main_balance: Decimal
    wrapped_balance: Decimal
    virtual_supply: Decimal
    params: lm.LinearParams


class LinearPool(PoolBase):
    """Main/wrapped pool with target-based nominal fees.

    ``tokens`` holds exactly the main and wrapped token; the share token is
    the pool address and is always tradable.
    """

    pool_type = PoolType.LINEAR

    def __init__(  # type: ignore[no-untyped-def]
        self,
        *args,
        wrapped_index: int,
        lower_target: Decimal,
        upper_target: Decimal,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        if len(self.tokens) != 2:
            raise ValueError(f"Linear pool {self.id} must hold a main and a wrapped token")
        if wrapped_index not in (0, 1):
            raise ValueError(f"Linear pool {self.id} has invalid wrapped index {wrapped_index}")
        if lower_target > upper_target:
            raise ValueError(f"Linear pool {self.id} lower target exceeds upper target")
        self.wrapped_index = wrapped_index
        self.main_index = 1 - wrapped_index
        self.lower_target = lower_target
        self.upper_target = upper_target
        if self.address not in self.tokens_list:
            self.tokens_list.append(self.address)

    @classmethod
    def from_model(
        cls,
        model: PoolModel,
        *,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
        timestamp: int | None = None,
    ) -> Self:
        if model.wrapped_index is None or model.wrapped_index >= len(model.tokens):
            raise ValueError(f"Linear pool {model.id} has no valid wrappedIndex")
        kwargs = cls._base_kwargs(model, limit_ratios)
        # Snapshots may list the share token among the pool tokens
        wrapped_address = model.tokens[model.wrapped_index].address
        tokens: list[PoolToken] = [t for t in kwargs["tokens"] if t.address != model.address]
        wrapped_index = next(
            (i for i, t in enumerate(tokens) if t.address == wrapped_address), -1
        )
        kwargs["tokens"] = tokens
        return cls(
            **kwargs,
            wrapped_index=wrapped_index,
            lower_target=model.lower_target if model.lower_target is not None else ZERO,
            upper_target=model.upper_target if model.upper_target is not None else ZERO,
        )

    @property
    def main_token(self) -> PoolToken:
        return self.tokens[self.main_index]

    @property
    def wrapped_token(self) -> PoolToken:
        return self.tokens[self.wrapped_index]

    def _role(self, token: str, token_in: str, token_out: str) -> LinearRole:
        if self.is_share_token(token):
            return LinearRole.BPT
        index = self._require_index(token, token_in, token_out)
        return LinearRole.WRAPPED if index == self.wrapped_index else LinearRole.MAIN

    def _side(self, role: LinearRole) -> tuple[Decimal, int]:
        if role is LinearRole.BPT:
            return self.total_shares, BPT_DECIMALS
        token = self.wrapped_token if role is LinearRole.WRAPPED else self.main_token
        return token.balance, token.decimals

    @with_math_context
    def parse_pool_pair_data(self, token_in: str, token_out: str) -> LinearPoolPairData:
        token_in = token_in.lower()
        token_out = token_out.lower()
        role_in = self._role(token_in, token_in, token_out)
        role_out = self._role(token_out, token_in, token_out)
        if role_in is role_out:
            raise UnsupportedOperationError(
                "Cannot swap a token for itself",
                pool_id=self.id,
                pool_type=self.pool_type.value,
                token_in=token_in,
                token_out=token_out,
            )

        if role_in is LinearRole.BPT:
            pair_type = PairType.BPT_TO_TOKEN
        elif role_out is LinearRole.BPT:
            pair_type = PairType.TOKEN_TO_BPT
        else:
            pair_type = PairType.TOKEN_TO_TOKEN

        balance_in, decimals_in = self._side(role_in)
        balance_out, decimals_out = self._side(role_out)
        return LinearPoolPairData(
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
            role_in=role_in,
            role_out=role_out,
            main_balance=self.main_token.balance,
            wrapped_balance=self.wrapped_token.balance,
            virtual_supply=self.total_shares,
            params=lm.LinearParams(
                fee=self.swap_fee,
                lower_target=self.lower_target,
                upper_target=self.upper_target,
                rate=self.wrapped_token.price_rate,
            ),
        )

    @with_math_context
    def get_normalized_liquidity(self, pair: LinearPoolPairData) -> Decimal:  # type: ignore[override]
        return pair.balance_out

    # ------------------------------------------------------------------

    def _check_out(self, pair: LinearPoolPairData, amount_out: Decimal) -> None:
        if pair.role_out is not LinearRole.BPT and amount_out >= pair.balance_out:
            raise self._domain_error("Amount out must be below balance out", pair)

    def _k(self, pair: LinearPoolPairData) -> Decimal:
        return lm.shares_per_nominal(
            pair.main_balance, pair.wrapped_balance, pair.virtual_supply, pair.params
        )

    def _exact_in(self, pair: LinearPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        m, w, s, p = pair.main_balance, pair.wrapped_balance, pair.virtual_supply, pair.params
        match (pair.role_in, pair.role_out):
            case (LinearRole.MAIN, LinearRole.WRAPPED):
                out = lm.calc_wrapped_out_per_main_in(amount_in, m, p)
            case (LinearRole.WRAPPED, LinearRole.MAIN):
                out = lm.calc_main_out_per_wrapped_in(amount_in, m, p)
            case (LinearRole.MAIN, LinearRole.BPT):
                out = lm.calc_bpt_out_per_main_in(amount_in, m, w, s, p)
            case (LinearRole.BPT, LinearRole.MAIN):
                out = lm.calc_main_out_per_bpt_in(amount_in, m, w, s, p)
            case (LinearRole.WRAPPED, LinearRole.BPT):
                out = lm.calc_bpt_out_per_wrapped_in(amount_in, m, w, s, p)
            case _:
                out = lm.calc_wrapped_out_per_bpt_in(amount_in, m, w, s, p)
        self._check_out(pair, out)
        return out

    def _exact_out(self, pair: LinearPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        self._check_out(pair, amount_out)
        m, w, s, p = pair.main_balance, pair.wrapped_balance, pair.virtual_supply, pair.params
        match (pair.role_in, pair.role_out):
            case (LinearRole.MAIN, LinearRole.WRAPPED):
                return lm.calc_main_in_per_wrapped_out(amount_out, m, p)
            case (LinearRole.WRAPPED, LinearRole.MAIN):
                return lm.calc_wrapped_in_per_main_out(amount_out, m, p)
            case (LinearRole.MAIN, LinearRole.BPT):
                return lm.calc_main_in_per_bpt_out(amount_out, m, w, s, p)
            case (LinearRole.BPT, LinearRole.MAIN):
                return lm.calc_bpt_in_per_main_out(amount_out, m, w, s, p)
            case (LinearRole.WRAPPED, LinearRole.BPT):
                return lm.calc_wrapped_in_per_bpt_out(amount_out, m, w, s, p)
            case _:
                return lm.calc_bpt_in_per_wrapped_out(amount_out, m, w, s, p)

    def _main_after(self, pair: LinearPoolPairData, amount: Decimal, exact_in: bool) -> Decimal:
        """Main balance after the swap, or the current one if main is not traded."""
        if pair.role_in is LinearRole.MAIN:
            main_in = amount if exact_in else self._exact_out(pair, amount)
            return pair.main_balance + main_in
        if pair.role_out is LinearRole.MAIN:
            main_out = self._exact_in(pair, amount) if exact_in else amount
            return pair.main_balance - main_out
        return pair.main_balance

    def _rate(self, pair: LinearPoolPairData, amount: Decimal, exact_in: bool) -> Decimal:
        p = pair.params
        if pair.role_in is LinearRole.WRAPPED and pair.role_out is LinearRole.BPT:
            return self._k(pair) * p.rate
        if pair.role_in is LinearRole.BPT and pair.role_out is LinearRole.WRAPPED:
            return ONE / (self._k(pair) * p.rate)

        slope = lm.nominal_slope(self._main_after(pair, amount, exact_in), p)
        match (pair.role_in, pair.role_out):
            case (LinearRole.MAIN, LinearRole.WRAPPED):
                return slope / p.rate
            case (LinearRole.WRAPPED, LinearRole.MAIN):
                return p.rate / slope
            case (LinearRole.MAIN, LinearRole.BPT):
                return self._k(pair) * slope
            case _:
                return ONE / (self._k(pair) * slope)

    def _spot_price_exact_in(self, pair: LinearPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate(pair, amount_in, exact_in=True)

    def _spot_price_exact_out(self, pair: LinearPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return self._rate(pair, amount_out, exact_in=False)

    def _derivative_exact_in(self, pair: LinearPoolPairData, amount_in: Decimal) -> Decimal:  # type: ignore[override]
        return ZERO

    def _derivative_exact_out(self, pair: LinearPoolPairData, amount_out: Decimal) -> Decimal:  # type: ignore[override]
        return ZERO
