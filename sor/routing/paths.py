"""Swap paths and their limits.

A path is one or two hops from tokenIn to tokenOut. Its marginal rate and
rate derivative are composed from the hops by the chain rule; the optimizer
only ever talks to paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from sor.math.decimal_math import ZERO, round_down, with_math_context
from sor.pools.base import PoolBase, PoolPairData, SwapType

logger = structlog.get_logger()


@dataclass(frozen=True)
class Hop:
    """One swap through one pool."""

    pool: PoolBase
    pair: PoolPairData

    @property
    def pool_id(self) -> str:
        return self.pool.id


@dataclass
class Path:
    """A route from tokenIn to tokenOut through one or two pools.

    Attributes:
        id: Concatenated pool ids
        hops: The hops, in swap order
        limit_amount: Maximum amount in the swap-amount token (set by
            ``calculate_path_limits``)
    """

    id: str
    hops: tuple[Hop, ...]
    limit_amount: Decimal = ZERO
    liquidity: Decimal = field(default=ZERO, compare=False)

    @classmethod
    def from_hops(cls, *hops: Hop) -> Path:
        return cls(id="".join(h.pool_id for h in hops), hops=tuple(hops))

    @property
    def token_in(self) -> str:
        return self.hops[0].pair.token_in

    @property
    def token_out(self) -> str:
        return self.hops[-1].pair.token_out

    @property
    def pool_ids(self) -> tuple[str, ...]:
        return tuple(h.pool_id for h in self.hops)

    def swap_decimals(self, swap_type: SwapType) -> int:
        """Decimals of the token whose amount the swap fixes."""
        if swap_type is SwapType.EXACT_IN:
            return self.hops[0].pair.decimals_in
        return self.hops[-1].pair.decimals_out

    def return_decimals(self, swap_type: SwapType) -> int:
        """Decimals of the token the swap returns."""
        if swap_type is SwapType.EXACT_IN:
            return self.hops[-1].pair.decimals_out
        return self.hops[0].pair.decimals_in

    # ------------------------------------------------------------------
    # Composed pricing (unrounded)
    # ------------------------------------------------------------------

    @with_math_context
    def quote(self, amount: Decimal, swap_type: SwapType) -> Decimal:
        """Unrounded output (exact-in) or input (exact-out) for ``amount``."""
        if swap_type is SwapType.EXACT_IN:
            for hop in self.hops:
                amount = hop.pool.quote_exact_in(hop.pair, amount, round_result=False)
            return amount
        for hop in reversed(self.hops):
            amount = hop.pool.quote_exact_out(hop.pair, amount, round_result=False)
        return amount

    @with_math_context
    def spot_price(self, amount: Decimal, swap_type: SwapType) -> Decimal:
        """Marginal rate of the whole path after swapping ``amount``."""
        return self.spot_price_and_derivative(amount, swap_type)[0]

    @with_math_context
    def derivative(self, amount: Decimal, swap_type: SwapType) -> Decimal:
        return self.spot_price_and_derivative(amount, swap_type)[1]

    @with_math_context
    def spot_price_and_derivative(
        self, amount: Decimal, swap_type: SwapType
    ) -> tuple[Decimal, Decimal]:
        """Marginal rate and its derivative after swapping ``amount``.

        For two hops with rates r1, r2:
        - exact-in, mid = out1(a): r = r1(a)·r2(mid),
          r' = r2'(mid)·r1(a)² + r2(mid)·r1'(a)
        - exact-out, mid = in2(b): r = r1(mid)·r2(b),
          r' = r1'(mid) + r1(mid)·r2'(b)
        """
        first = self.hops[0]
        if len(self.hops) == 1:
            return (
                first.pool.spot_price_after_swap(first.pair, amount, swap_type),
                first.pool.derivative_spot_price_after_swap(first.pair, amount, swap_type),
            )

        second = self.hops[1]
        if swap_type is SwapType.EXACT_IN:
            mid = first.pool.quote_exact_in(first.pair, amount, round_result=False)
            r1 = first.pool.spot_price_after_swap(first.pair, amount, swap_type)
            d1 = first.pool.derivative_spot_price_after_swap(first.pair, amount, swap_type)
            r2 = second.pool.spot_price_after_swap(second.pair, mid, swap_type)
            d2 = second.pool.derivative_spot_price_after_swap(second.pair, mid, swap_type)
            return r1 * r2, d2 * r1 * r1 + r2 * d1

        mid = second.pool.quote_exact_out(second.pair, amount, round_result=False)
        r1 = first.pool.spot_price_after_swap(first.pair, mid, swap_type)
        d1 = first.pool.derivative_spot_price_after_swap(first.pair, mid, swap_type)
        r2 = second.pool.spot_price_after_swap(second.pair, amount, swap_type)
        d2 = second.pool.derivative_spot_price_after_swap(second.pair, amount, swap_type)
        return r1 * r2, d1 + r1 * d2


def _hop_limit(hop: Hop, swap_type: SwapType) -> Decimal:
    return hop.pool.limit_amount(hop.pair, swap_type)


@with_math_context
def get_limit_amount_swap_for_path(path: Path, swap_type: SwapType) -> Decimal:
    """Maximum amount a path accepts, before rounding.

    Two-hop paths are bounded by whichever hop saturates first: if hop 1
    can produce more than hop 2 accepts (exact-in), the limit is the hop 1
    input producing exactly hop 2's limit; symmetrically for exact-out.
    """
    if len(path.hops) == 1:
        return _hop_limit(path.hops[0], swap_type)

    first, second = path.hops
    limit_1 = _hop_limit(first, swap_type)
    limit_2 = _hop_limit(second, swap_type)
    if swap_type is SwapType.EXACT_IN:
        if first.pool.quote_exact_in(first.pair, limit_1) > limit_2:
            if limit_2 == 0:
                return ZERO
            return first.pool.quote_exact_out(first.pair, limit_2)
        return limit_1

    if second.pool.quote_exact_out(second.pair, limit_2) > limit_1:
        return second.pool.quote_exact_in(second.pair, limit_1)
    return limit_2


def calculate_path_limits(paths: list[Path], swap_type: SwapType) -> tuple[list[Path], Decimal]:
    """Set each path's limit and drop paths that cannot take any amount.

    Limits are rounded down to the decimals of the swap-amount token.

    Returns:
        (paths with a positive limit, largest single limit)
    """
    kept: list[Path] = []
    max_limit = ZERO
    for path in paths:
        limit = round_down(
            get_limit_amount_swap_for_path(path, swap_type), path.swap_decimals(swap_type)
        )
        if limit <= 0:
            logger.debug("path_limit_zero", path_id=path.id)
            continue
        path.limit_amount = limit
        kept.append(path)
        max_limit = max(max_limit, limit)
    return kept, max_limit


@with_math_context
def path_liquidity(path: Path, swap_type: SwapType) -> Decimal:
    """Liquidity proxy of a path in tokenOut units.

    One hop: the pool's normalized liquidity. Two hops: the hop 1 liquidity
    converted at hop 2's zero-amount rate, capped by hop 2's liquidity.
    """
    first = path.hops[0]
    liquidity = first.pool.get_normalized_liquidity(first.pair)
    if len(path.hops) == 1:
        return liquidity
    second = path.hops[1]
    rate = second.pool.spot_price_after_swap(second.pair, ZERO, swap_type)
    return min(liquidity * rate, second.pool.get_normalized_liquidity(second.pair))


__all__ = [
    "Hop",
    "Path",
    "calculate_path_limits",
    "get_limit_amount_swap_for_path",
    "path_liquidity",
]
