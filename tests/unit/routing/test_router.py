"""Tests for the smart order router."""

from decimal import Decimal

import pytest

from sor.errors import InsufficientLiquidityError
from sor.pools import SwapType, parse_pools
from sor.routing.filter import filter_hop_pools, filter_pools_of_interest
from sor.routing.paths import calculate_path_limits
from sor.routing.router import (
    _candidate_sets,
    _order_paths,
    quantize_amounts,
    quantize_total,
    smart_order_router,
)
from tests.helpers import DAI, USDC, make_snapshot, token, weighted_pool

DEEP = "0x" + "1" * 40
SHALLOW = "0x" + "2" * 40


def _prepare(pools, swap_type=SwapType.EXACT_IN):
    poi = filter_pools_of_interest(pools, DAI, USDC, 4)
    paths, _ = calculate_path_limits(filter_hop_pools(DAI, USDC, poi, swap_type), swap_type)
    return paths


@pytest.fixture
def pools(two_pool_snapshot):
    return parse_pools(two_pool_snapshot)


class TestOrdering:
    """Tests for path ordering and candidate sets."""

    def test_equal_rates_order_by_liquidity(self, pools):
        """Paths with the same starting rate are ordered deepest first."""
        ordered, rates = _order_paths(list(reversed(_prepare(pools))), SwapType.EXACT_IN)
        assert [p.id for p in ordered] == [DEEP, SHALLOW]
        assert rates[DEEP] == rates[SHALLOW]

    def test_better_rate_first(self):
        """A cheaper pool is tried first even when it is shallower."""
        pools = parse_pools(
            make_snapshot(
                weighted_pool(
                    DEEP, [token(DAI, "1000", 18, "0.5"), token(USDC, "1000", 6, "0.5")]
                ),
                weighted_pool(
                    SHALLOW,
                    [token(DAI, "100", 18, "0.5"), token(USDC, "100", 6, "0.5")],
                    fee="0.001",
                ),
            )
        )
        ordered, _ = _order_paths(_prepare(pools), SwapType.EXACT_IN)
        assert [p.id for p in ordered] == [SHALLOW, DEEP]

    def test_candidate_sets_grow_from_covering_prefix(self, pools):
        """Sets start at the shortest covering prefix and grow to max_pools."""
        ordered, _ = _order_paths(_prepare(pools), SwapType.EXACT_IN)
        sets = _candidate_sets(ordered, Decimal(10), 4)
        assert [[p.id for p in s] for s in sets] == [[DEEP], [DEEP, SHALLOW]]

    def test_candidate_sets_need_both_paths(self, pools):
        """An amount above the best limit starts with two paths."""
        ordered, _ = _order_paths(_prepare(pools), SwapType.EXACT_IN)
        sets = _candidate_sets(ordered, Decimal(310), 4)
        assert [len(s) for s in sets] == [2]

    def test_candidate_sets_fall_back_to_largest_limits(self):
        """When the best prefix cannot cover the amount the largest limits are used."""
        pools = parse_pools(
            make_snapshot(
                weighted_pool(
                    DEEP, [token(DAI, "1000", 18, "0.5"), token(USDC, "1000", 6, "0.5")]
                ),
                weighted_pool(
                    SHALLOW,
                    [token(DAI, "100", 18, "0.5"), token(USDC, "100", 6, "0.5")],
                    fee="0.001",
                ),
            )
        )
        ordered, _ = _order_paths(_prepare(pools), SwapType.EXACT_IN)
        sets = _candidate_sets(ordered, Decimal(100), 1)
        assert [[p.id for p in s] for s in sets] == [[DEEP]]

    def test_candidate_sets_insufficient(self, pools):
        """No admissible set covering the amount raises."""
        ordered, _ = _order_paths(_prepare(pools), SwapType.EXACT_IN)
        with pytest.raises(InsufficientLiquidityError):
            _candidate_sets(ordered, Decimal(301), 1)


class TestQuantize:
    """Tests for quantize_amounts."""

    def test_remainder_to_most_headroom(self, pools):
        """Rounding dust goes to the path with the most room."""
        paths = _prepare(pools)
        amounts = [Decimal("9.0909091234567"), Decimal("0.9090908765433")]
        result = quantize_amounts(amounts, paths, Decimal(10), 6)
        assert result == [Decimal("9.090910"), Decimal("0.909090")]
        assert sum(result) == Decimal(10)

    def test_exact_amounts_unchanged(self, pools):
        """Amounts already at the precision are kept."""
        paths = _prepare(pools)
        result = quantize_amounts([Decimal("9.5"), Decimal("0.5")], paths, Decimal(10), 6)
        assert result == [Decimal("9.5"), Decimal("0.5")]

    def test_unfunded_path_gets_no_remainder(self, pools):
        """Dust goes to a funded path even when an unfunded one has more room."""
        by_id = {p.id: p for p in _prepare(pools)}
        paths = [by_id[SHALLOW], by_id[DEEP]]
        result = quantize_amounts([Decimal("9.9999995"), Decimal(0)], paths, Decimal(10), 6)
        assert result == [Decimal(10), Decimal(0)]

    @pytest.mark.parametrize(
        "swap_type,total,expected",
        [
            (SwapType.EXACT_IN, Decimal("1.2345678"), Decimal("1.234567")),
            (SwapType.EXACT_OUT, Decimal("1.2345671"), Decimal("1.234568")),
            (SwapType.EXACT_IN, Decimal("1.5"), Decimal("1.5")),
        ],
    )
    def test_total_to_smallest_unit(self, swap_type, total, expected):
        """Exact-in totals round down, exact-out totals round up."""
        assert quantize_total(total, 6, swap_type) == expected


class TestSmartOrderRouter:
    """Tests for smart_order_router."""

    def test_split_beats_single_pool(self, pools):
        """Without execution cost both pools are used."""
        result = smart_order_router(
            Decimal(10), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
        )
        assert len(result.simulation.paths) == 2
        assert abs(result.simulation.return_amount - Decimal("9.880444")) <= Decimal("0.000002")
        assert result.net_return == result.simulation.return_amount
        assert sum(result.simulation.amounts) == Decimal(10)

    def test_split_is_better_than_single(self, pools):
        """The chosen split returns more than the deep pool alone."""
        single = smart_order_router(
            Decimal(10), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=1
        )
        split = smart_order_router(
            Decimal(10), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
        )
        assert single.simulation.return_amount == Decimal("9.871580")
        assert split.simulation.return_amount > single.simulation.return_amount

    def test_small_cost_keeps_split(self, pools):
        """A cost below the split gain keeps two paths."""
        result = smart_order_router(
            Decimal(10),
            _prepare(pools),
            SwapType.EXACT_IN,
            pools,
            max_pools=4,
            cost_per_path=Decimal("0.001"),
        )
        assert len(result.simulation.paths) == 2
        assert result.net_return == result.simulation.return_amount - Decimal("0.002")

    def test_large_cost_prefers_single_path(self, pools):
        """A cost above the split gain keeps one path."""
        result = smart_order_router(
            Decimal(10),
            _prepare(pools),
            SwapType.EXACT_IN,
            pools,
            max_pools=4,
            cost_per_path=Decimal("0.1"),
        )
        assert [p.id for p in result.simulation.paths] == [DEEP]
        assert result.simulation.return_amount == Decimal("9.871580")

    def test_exact_out_split(self, pools):
        """Exact-out splits to pay less input."""
        paths = _prepare(pools, SwapType.EXACT_OUT)
        result = smart_order_router(Decimal(10), paths, SwapType.EXACT_OUT, pools, max_pools=4)
        assert len(result.simulation.paths) == 2
        assert Decimal(10) < result.simulation.return_amount < Decimal("10.1314043")
        assert sum(result.simulation.amounts) == Decimal(10)

    def test_exact_out_cost_added(self, pools):
        """Exact-out execution cost is added to the input."""
        paths = _prepare(pools, SwapType.EXACT_OUT)
        result = smart_order_router(
            Decimal(10),
            paths,
            SwapType.EXACT_OUT,
            pools,
            max_pools=4,
            cost_per_path=Decimal("0.1"),
        )
        assert len(result.simulation.paths) == 1
        assert result.net_return == result.simulation.return_amount + Decimal("0.1")

    def test_market_spot_price(self, pools):
        """The market price is the best zero-amount rate of the used paths."""
        result = smart_order_router(
            Decimal(10), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
        )
        assert abs(result.market_spot_price - Decimal("0.997")) < Decimal("1e-30")

    def test_insufficient_liquidity(self, pools):
        """More than the combined path limits raises."""
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            smart_order_router(
                Decimal(331), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
            )
        assert exc_info.value.token_in == DAI
        assert exc_info.value.token_out == USDC

    def test_zero_amount(self, pools):
        """Nothing to route gives an empty result."""
        result = smart_order_router(
            Decimal(0), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
        )
        assert result.simulation.swaps == []
        assert result.net_return == 0

    def test_no_paths(self, pools):
        """No paths gives an empty result."""
        result = smart_order_router(Decimal(10), [], SwapType.EXACT_IN, pools, max_pools=4)
        assert result.simulation.paths == []

    @pytest.mark.parametrize("amount,used", [(Decimal("0.5"), 1), (Decimal(20), 2)])
    def test_path_count_grows_with_amount(self, pools, amount, used):
        """At a fixed cost small trades stay on one path and large ones split."""
        result = smart_order_router(
            amount,
            _prepare(pools),
            SwapType.EXACT_IN,
            pools,
            max_pools=4,
            cost_per_path=Decimal("0.001"),
        )
        assert len(result.simulation.paths) == used

    def test_exact_in_total_rounded_down(self, pools):
        """Input finer than the input token's decimals is not sold."""
        total = Decimal("10.0000000000000000004")
        result = smart_order_router(total, _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4)
        assert result.swap_amount == Decimal(10)
        assert sum(result.simulation.amounts) == Decimal(10)

    def test_exact_out_total_rounded_up(self, pools):
        """Exact-out buys at least the requested output in whole units."""
        paths = _prepare(pools, SwapType.EXACT_OUT)
        result = smart_order_router(
            Decimal("9.9999991"), paths, SwapType.EXACT_OUT, pools, max_pools=4
        )
        assert result.swap_amount == Decimal(10)
        assert sum(result.simulation.amounts) == Decimal(10)
        for amount in result.simulation.amounts:
            assert amount == amount.quantize(Decimal("0.000001"))

    def test_total_below_smallest_unit(self, pools):
        """An exact-in total that rounds to zero routes nothing."""
        result = smart_order_router(
            Decimal("1e-19"), _prepare(pools), SwapType.EXACT_IN, pools, max_pools=4
        )
        assert result.simulation.swaps == []
        assert result.swap_amount == 0
