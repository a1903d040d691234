"""Tests for the routing entry point."""

from decimal import Decimal

import pytest

from sor.core import (
    RouteOptions,
    RouteResult,
    prepare_paths,
    route,
    route_prepared,
    validate_request,
)
from sor.errors import EmptyPoolSetError, InsufficientLiquidityError
from sor.pools import PoolFilter, SwapType, parse_pools
from tests.helpers import DAI, POOL_A, POOL_B, USDC, USDT, WETH, make_snapshot


class TestValidateRequest:
    """Tests for validate_request."""

    def test_lowercases_tokens(self):
        """Tokens come back lowercased."""
        token_in, token_out = validate_request(DAI.upper(), USDC, Decimal(1))
        assert (token_in, token_out) == (DAI, USDC)

    def test_negative_amount(self):
        """Negative amounts are rejected."""
        with pytest.raises(ValueError, match="negative"):
            validate_request(DAI, USDC, Decimal(-1))

    def test_equal_tokens(self):
        """Swapping a token for itself is rejected, whatever the case."""
        with pytest.raises(ValueError, match="differ"):
            validate_request(DAI, DAI.upper().replace("0X", "0x"), Decimal(1))


class TestRouteOptions:
    """Tests for RouteOptions."""

    def test_defaults(self):
        """Defaults route over up to four pools of every family at no cost."""
        options = RouteOptions()
        assert options.max_pools == 4
        assert options.pool_type_filter is PoolFilter.ALL
        assert options.execution_cost_per_path == 0

    def test_max_pools_must_be_positive(self):
        """A route needs at least one pool."""
        with pytest.raises(ValueError, match="max_pools"):
            RouteOptions(max_pools=0)

    def test_negative_cost(self):
        """Execution cost cannot be negative."""
        with pytest.raises(ValueError, match="negative"):
            RouteOptions(execution_cost_per_path=Decimal("-0.1"))

    def test_explicit_timestamp(self):
        """An explicit timestamp wins over the wall clock."""
        assert RouteOptions(current_timestamp=123).timestamp() == 123


class TestRoute:
    """Tests for route."""

    def test_two_pool_split(self, dai_usdc_snapshot):
        """0.1 DAI is split over both pools, deeper pool first."""
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal("0.1"), dai_usdc_snapshot)
        assert abs(result.return_amount - Decimal("0.100754")) <= Decimal("0.000002")
        assert len(result.swaps) == 2
        assert result.swaps[0][0].pool_id == POOL_A
        assert result.swaps[1][0].pool_id == POOL_B
        assert sum(group[0].swap_amount for group in result.swaps) == Decimal("0.1")
        assert result.token_addresses == [DAI, USDC]
        assert result.return_amount_considering_fees == result.return_amount

    def test_return_rounded_to_output_decimals(self, dai_usdc_snapshot):
        """Exact-in returns are expressed in USDC's six decimals."""
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal("0.1"), dai_usdc_snapshot)
        assert result.return_amount == result.return_amount.quantize(Decimal("0.000001"))

    def test_exact_out(self, dai_usdc_snapshot):
        """Exact-out reports the DAI needed for 0.1 USDC."""
        result = route(DAI, USDC, SwapType.EXACT_OUT, Decimal("0.1"), dai_usdc_snapshot)
        assert Decimal("0.0992") < result.return_amount < Decimal("0.0993")
        assert result.swap_type is SwapType.EXACT_OUT
        assert sum(group[0].swap_amount for group in result.swaps) == Decimal("0.1")

    def test_execution_cost_limits_paths(self, dai_usdc_snapshot):
        """A per-path cost larger than the split gain keeps one path."""
        options = RouteOptions(execution_cost_per_path=Decimal("0.001"))
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal("0.1"), dai_usdc_snapshot, options)
        assert len(result.swaps) == 1
        assert result.return_amount_considering_fees == result.return_amount - Decimal("0.001")

    def test_zero_amount(self, dai_usdc_snapshot):
        """Nothing to route gives an empty result."""
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal(0), dai_usdc_snapshot)
        assert result.is_empty
        assert result.return_amount == 0
        assert result.token_addresses == []

    def test_unconnected_tokens(self, dai_usdc_snapshot):
        """No path between the tokens gives an empty result."""
        result = route(WETH, USDT, SwapType.EXACT_IN, Decimal(1), dai_usdc_snapshot)
        assert result == RouteResult.empty(WETH, USDT, SwapType.EXACT_IN)

    def test_empty_snapshot(self):
        """A snapshot without pools is an error."""
        with pytest.raises(EmptyPoolSetError):
            route(DAI, USDC, SwapType.EXACT_IN, Decimal(1), make_snapshot())

    def test_insufficient_liquidity(self, dai_usdc_snapshot):
        """More than every path can take raises with the token pair attached."""
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            route(DAI, USDC, SwapType.EXACT_IN, Decimal(10000), dai_usdc_snapshot)
        assert exc_info.value.context["token_in"] == DAI

    def test_snapshot_not_mutated(self, dai_usdc_snapshot):
        """Routing leaves the caller's snapshot untouched."""
        before = dai_usdc_snapshot.model_dump()
        route(DAI, USDC, SwapType.EXACT_IN, Decimal(50), dai_usdc_snapshot)
        assert dai_usdc_snapshot.model_dump() == before

    def test_deterministic(self, dai_usdc_snapshot):
        """The same request gives the same result."""
        first = route(DAI, USDC, SwapType.EXACT_IN, Decimal("12.5"), dai_usdc_snapshot)
        second = route(DAI, USDC, SwapType.EXACT_IN, Decimal("12.5"), dai_usdc_snapshot)
        assert first == second

    def test_pool_type_filter(self, dai_usdc_snapshot):
        """Filtering out every pool family present gives an empty result."""
        options = RouteOptions(pool_type_filter=PoolFilter.STABLE)
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal(1), dai_usdc_snapshot, options)
        assert result.is_empty

    def test_disabled_token(self, dai_usdc_snapshot):
        """Disabling a swap token leaves nothing to route."""
        options = RouteOptions(disabled_tokens=frozenset({USDC}))
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal(1), dai_usdc_snapshot, options)
        assert result.is_empty

    def test_single_pool(self, dai_usdc_snapshot):
        """max_pools 1 uses the best pool only."""
        options = RouteOptions(max_pools=1)
        result = route(DAI, USDC, SwapType.EXACT_IN, Decimal("0.1"), dai_usdc_snapshot, options)
        assert [group[0].pool_id for group in result.swaps] == [POOL_A]

    def test_exact_in_amount_in_token_units(self, dai_usdc_snapshot):
        """USDC input finer than six decimals is rounded down before splitting."""
        result = route(USDC, DAI, SwapType.EXACT_IN, Decimal("100.1234567"), dai_usdc_snapshot)
        assert result.swap_amount == Decimal("100.123456")
        amounts = [group[0].swap_amount for group in result.swaps]
        assert sum(amounts) == Decimal("100.123456")
        for amount in amounts:
            assert amount == amount.quantize(Decimal("0.000001"))

    def test_exact_out_amount_in_token_units(self, dai_usdc_snapshot):
        """USDC output finer than six decimals is rounded up before splitting."""
        result = route(DAI, USDC, SwapType.EXACT_OUT, Decimal("0.1000001"), dai_usdc_snapshot)
        assert result.swap_amount == Decimal("0.100001")
        assert sum(group[-1].swap_amount for group in result.swaps) == Decimal("0.100001")

    def test_amount_below_smallest_unit(self, dai_usdc_snapshot):
        """Less than one unit of the input token routes nothing."""
        result = route(USDC, DAI, SwapType.EXACT_IN, Decimal("0.0000004"), dai_usdc_snapshot)
        assert result == RouteResult.empty(USDC, DAI, SwapType.EXACT_IN)


class TestPreparedPaths:
    """Tests for prepare_paths and route_prepared."""

    def test_prepare(self, dai_usdc_snapshot):
        """Both pools are retained and the largest limit is 30% of the DAI balance."""
        pools = parse_pools(dai_usdc_snapshot)
        prepared = prepare_paths(DAI, USDC, SwapType.EXACT_IN, pools, RouteOptions())
        assert set(prepared.pools) == {POOL_A, POOL_B}
        assert len(prepared.paths) == 2
        assert prepared.max_limit == Decimal("269.7")

    def test_route_prepared_matches_route(self, dai_usdc_snapshot):
        """Routing over prepared paths equals a full route."""
        options = RouteOptions()
        pools = parse_pools(dai_usdc_snapshot)
        prepared = prepare_paths(DAI, USDC, SwapType.EXACT_IN, pools, options)
        result = route_prepared(DAI, USDC, SwapType.EXACT_IN, Decimal(5), prepared, options)
        assert result == route(DAI, USDC, SwapType.EXACT_IN, Decimal(5), dai_usdc_snapshot)

    def test_prepared_paths_reusable(self, dai_usdc_snapshot):
        """Prepared paths can serve several amounts."""
        options = RouteOptions()
        pools = parse_pools(dai_usdc_snapshot)
        prepared = prepare_paths(DAI, USDC, SwapType.EXACT_IN, pools, options)
        small = route_prepared(DAI, USDC, SwapType.EXACT_IN, Decimal(1), prepared, options)
        large = route_prepared(DAI, USDC, SwapType.EXACT_IN, Decimal(100), prepared, options)
        assert small.return_amount < large.return_amount
        assert prepared.pools[POOL_A].balance_of(DAI) == Decimal(899)
