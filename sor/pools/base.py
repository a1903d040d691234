"""Base types for pool pricing strategies.

Every pool family exposes the same surface: pair data for a token pair,
exact-in / exact-out quotes, the marginal rate after a swap and its
derivative, per-pair limits and in-place balance updates.

Spot price convention: the rate is tokenOut per tokenIn including the fee,
evaluated after a hypothetical swap of ``amount`` (the input amount for
exact-in, the output amount for exact-out). It is non-increasing in
``amount``, so its derivative is <= 0.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Self

from sor.config import DEFAULT_LIMIT_RATIOS, LimitRatios
from sor.errors import DegenerateInvariantError, SorError, UnknownTokenError
from sor.math.decimal_math import ZERO, round_down, round_up, with_math_context

if TYPE_CHECKING:
    from sor.models.snapshot import PoolModel


class PoolType(str, Enum):
    """Supported pool families (snapshot type tags)."""

    WEIGHTED = "Weighted"
    STABLE = "Stable"
    LINEAR = "Linear"
    ELEMENT = "Element"


class SwapType(str, Enum):
    """Which side of the swap is fixed."""

    EXACT_IN = "swapExactIn"
    EXACT_OUT = "swapExactOut"


class PairType(str, Enum):
    """Kind of a token pair relative to the pool's share token."""

    TOKEN_TO_TOKEN = "TokenToToken"
    TOKEN_TO_BPT = "TokenToBpt"
    BPT_TO_TOKEN = "BptToToken"


class PoolFilter(str, Enum):
    """Restricts routing to one pool family, or allows all of them."""

    ALL = "All"
    WEIGHTED = "Weighted"
    STABLE = "Stable"
    LINEAR = "Linear"
    ELEMENT = "Element"

    def allows(self, pool_type: str) -> bool:
        """Whether pools tagged ``pool_type`` pass this filter."""
        return self is PoolFilter.ALL or self.value == pool_type


@dataclass
class PoolToken:
    """A token held by a pool.

    Attributes:
        address: Token address (lowercase)
        balance: Normalized balance
        decimals: Token decimals
        weight: Weight for weighted pools, None otherwise
        price_rate: Rate of the token (used by linear pools' wrapped token)
    """

    address: str
    balance: Decimal
    decimals: int
    weight: Decimal | None = None
    price_rate: Decimal = Decimal(1)


@dataclass(frozen=True)
class PoolPairData:
    """Immutable view of a pool for one (tokenIn, tokenOut) pair.

    The side that is the pool's own share token carries the total share
    supply as its balance.
    """

    pool_id: str
    pool_type: PoolType
    pair_type: PairType
    token_in: str
    token_out: str
    balance_in: Decimal
    balance_out: Decimal
    decimals_in: int
    decimals_out: int
    swap_fee: Decimal


class PoolBase(ABC):
    """Abstract pool pricing strategy.

    Subclasses implement the unrounded pricing primitives (``_exact_in``,
    ``_exact_out``, ``_spot_price_*``, ``_derivative_*``); this class adds
    rounding, zero-amount handling and the decimal context.
    """

    pool_type: ClassVar[PoolType]
    # Whether the share token can be traded against the pool tokens
    supports_share_token: ClassVar[bool] = True

    def __init__(
        self,
        id: str,
        address: str,
        swap_fee: Decimal,
        tokens: list[PoolToken],
        total_shares: Decimal = ZERO,
        tokens_list: list[str] | None = None,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
    ) -> None:
        self.id = id
        self.address = address.lower()
        self.swap_fee = swap_fee
        self.tokens = tokens
        self.total_shares = total_shares
        self.tokens_list = (
            [t.lower() for t in tokens_list]
            if tokens_list is not None
            else [t.address for t in tokens]
        )
        self.limit_ratios = limit_ratios

    @classmethod
    def from_model(
        cls,
        model: PoolModel,
        *,
        limit_ratios: LimitRatios = DEFAULT_LIMIT_RATIOS,
        timestamp: int | None = None,
    ) -> Self:
        """Build a pool from a validated snapshot entry.

        Args:
            model: Snapshot entry
            limit_ratios: Limit ratios for this pool family
            timestamp: Current block timestamp (used by time-dependent pools)

        Raises:
            ValueError: If a required type-specific field is missing
        """
        return cls(**cls._base_kwargs(model, limit_ratios))

    @staticmethod
    def _base_kwargs(model: PoolModel, limit_ratios: LimitRatios) -> dict[str, Any]:
        return {
            "id": model.id,
            "address": model.address,
            "swap_fee": model.swap_fee,
            "tokens": [
                PoolToken(
                    address=t.address,
                    balance=t.balance,
                    decimals=t.decimals,
                    weight=t.weight,
                    price_rate=t.price_rate,
                )
                for t in model.tokens
            ],
            "total_shares": model.total_shares,
            "tokens_list": model.tokens_list,
            "limit_ratios": limit_ratios,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, tokens={self.tokens_list!r})"

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def token_index(self, token: str) -> int | None:
        """Index of ``token`` in the pool's tokens, None if absent."""
        token = token.lower()
        for i, t in enumerate(self.tokens):
            if t.address == token:
                return i
        return None

    def is_share_token(self, token: str) -> bool:
        """Whether ``token`` is this pool's share token (BPT)."""
        return token.lower() == self.address

    def _require_index(self, token: str, token_in: str, token_out: str) -> int:
        index = self.token_index(token)
        if index is None:
            raise UnknownTokenError(
                "Token not in pool",
                pool_id=self.id,
                pool_type=self.pool_type.value,
                token_in=token_in,
                token_out=token_out,
            )
        return index

    def _domain_error(self, message: str, pair: PoolPairData) -> DegenerateInvariantError:
        return DegenerateInvariantError(
            message,
            pool_id=self.id,
            pool_type=self.pool_type.value,
            token_in=pair.token_in,
            token_out=pair.token_out,
        )

    def apply_balance_update(self, token: str, new_balance: Decimal) -> None:
        """Replace a token balance, or the share supply for the share token.

        Raises:
            UnknownTokenError: If the token is neither held nor the share token
        """
        if self.is_share_token(token):
            self.total_shares = new_balance
            return
        index = self._require_index(token, token, token)
        self.tokens[index].balance = new_balance

    def balance_of(self, token: str) -> Decimal:
        """Current balance of ``token`` (share supply for the share token)."""
        if self.is_share_token(token):
            return self.total_shares
        return self.tokens[self._require_index(token, token, token)].balance

    # ------------------------------------------------------------------
    # Public pricing surface
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_pool_pair_data(self, token_in: str, token_out: str) -> PoolPairData:
        """Build the pair view for (token_in, token_out).

        Raises:
            UnknownTokenError: If either token is not in the pool
        """
        ...

    @abstractmethod
    def get_normalized_liquidity(self, pair: PoolPairData) -> Decimal:
        """Liquidity proxy in tokenOut units, used to rank pools and paths."""
        ...

    @contextmanager
    def _error_context(self, pair: PoolPairData) -> Iterator[None]:
        """Attach this pool's identity to errors raised by the family math."""
        try:
            yield
        except SorError as err:
            if err.pool_id is not None:
                raise
            raise type(err)(
                err.message,
                pool_id=self.id,
                pool_type=self.pool_type.value,
                token_in=pair.token_in,
                token_out=pair.token_out,
            ) from err

    @with_math_context
    def limit_amount(self, pair: PoolPairData, swap_type: SwapType) -> Decimal:
        """Maximum input (exact-in) or output (exact-out) for the pair."""
        with self._error_context(pair):
            return self._limit_amount(pair, swap_type)

    def _limit_amount(self, pair: PoolPairData, swap_type: SwapType) -> Decimal:
        if swap_type is SwapType.EXACT_IN:
            return pair.balance_in * self.limit_ratios.max_in
        return pair.balance_out * self.limit_ratios.max_out

    @with_math_context
    def quote_exact_in(
        self, pair: PoolPairData, amount_in: Decimal, *, round_result: bool = True
    ) -> Decimal:
        """Amount of tokenOut received for ``amount_in`` of tokenIn.

        Args:
            pair: Pair view
            amount_in: Input amount
            round_result: Round down to tokenOut decimals (off for the optimizer)

        Returns:
            Output amount
        """
        if amount_in <= 0:
            return ZERO
        with self._error_context(pair):
            amount_out = self._exact_in(pair, amount_in)
        if amount_out < 0:
            amount_out = ZERO
        return round_down(amount_out, pair.decimals_out) if round_result else amount_out

    @with_math_context
    def quote_exact_out(
        self, pair: PoolPairData, amount_out: Decimal, *, round_result: bool = True
    ) -> Decimal:
        """Amount of tokenIn required to receive ``amount_out`` of tokenOut.

        Args:
            pair: Pair view
            amount_out: Desired output amount
            round_result: Round up to tokenIn decimals (off for the optimizer)

        Returns:
            Input amount

        Raises:
            DegenerateInvariantError: If the output cannot be delivered
        """
        if amount_out <= 0:
            return ZERO
        with self._error_context(pair):
            amount_in = self._exact_out(pair, amount_out)
        return round_up(amount_in, pair.decimals_in) if round_result else amount_in

    @with_math_context
    def spot_price_after_swap(
        self, pair: PoolPairData, amount: Decimal, swap_type: SwapType
    ) -> Decimal:
        """Marginal rate (tokenOut per tokenIn, fee included) after a swap."""
        with self._error_context(pair):
            if swap_type is SwapType.EXACT_IN:
                return self._spot_price_exact_in(pair, amount)
            return self._spot_price_exact_out(pair, amount)

    @with_math_context
    def derivative_spot_price_after_swap(
        self, pair: PoolPairData, amount: Decimal, swap_type: SwapType
    ) -> Decimal:
        """Derivative of ``spot_price_after_swap`` with respect to ``amount``."""
        with self._error_context(pair):
            if swap_type is SwapType.EXACT_IN:
                return self._derivative_exact_in(pair, amount)
            return self._derivative_exact_out(pair, amount)

    # ------------------------------------------------------------------
    # Family primitives (unrounded, called under the math context)
    # ------------------------------------------------------------------

    @abstractmethod
    def _exact_in(self, pair: PoolPairData, amount_in: Decimal) -> Decimal: ...

    @abstractmethod
    def _exact_out(self, pair: PoolPairData, amount_out: Decimal) -> Decimal: ...

    @abstractmethod
    def _spot_price_exact_in(self, pair: PoolPairData, amount_in: Decimal) -> Decimal: ...

    @abstractmethod
    def _spot_price_exact_out(self, pair: PoolPairData, amount_out: Decimal) -> Decimal: ...

    @abstractmethod
    def _derivative_exact_in(self, pair: PoolPairData, amount_in: Decimal) -> Decimal: ...

    @abstractmethod
    def _derivative_exact_out(self, pair: PoolPairData, amount_out: Decimal) -> Decimal: ...
