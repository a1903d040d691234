"""Tests for stable pool pricing."""

from decimal import Decimal

import pytest

from sor.errors import DegenerateInvariantError, UnknownTokenError
from sor.math.decimal_math import math_context
from sor.models.snapshot import PoolModel
from sor.pools import stable_math as sm
from sor.pools.base import PairType, SwapType
from sor.pools.stable import StablePool
from tests.helpers import DAI, POOL_B, USDC, USDT, WETH, make_pool, stable_pool, token


@pytest.fixture
def pool():
    """A balanced DAI/USDC stable pool, amp 200, fee 0.04%."""
    return make_pool(
        stable_pool(
            POOL_B, [token(DAI, "1000"), token(USDC, "1000", 6)], total_shares="2000"
        )
    )


@pytest.fixture
def pair(pool):
    return pool.parse_pool_pair_data(DAI, USDC)


class TestInvariant:
    """Tests for the Newton-Raphson invariant."""

    def test_balanced_invariant_is_sum(self):
        """For equal balances D equals the sum of balances."""
        with math_context():
            d = sm.calculate_invariant(Decimal(200), [Decimal(1000)] * 3)
        assert abs(d - Decimal(3000)) < Decimal("1e-30")

    def test_imbalanced_invariant_below_sum(self):
        """Imbalance pulls D below the sum of balances."""
        with math_context():
            d = sm.calculate_invariant(Decimal(200), [Decimal(1500), Decimal(500)])
        assert Decimal(1990) < d < Decimal(2000)

    def test_balance_given_invariant_recovers_balance(self):
        """Solving for one balance at the current D returns that balance."""
        balances = [Decimal(1500), Decimal(500), Decimal(1000)]
        with math_context():
            d = sm.calculate_invariant(Decimal(100), balances)
            solved = sm.get_token_balance_given_invariant_and_all_other_balances(
                Decimal(100), balances, d, 1
            )
        assert abs(solved - Decimal(500)) < Decimal("1e-25")

    def test_zero_balance_rejected(self):
        """A zero balance is outside the invariant domain."""
        with math_context(), pytest.raises(DegenerateInvariantError):
            sm.calculate_invariant(Decimal(200), [Decimal(1000), Decimal(0)])


class TestPairData:
    """Tests for stable pair views."""

    def test_token_to_token(self, pair):
        """Pair view carries every balance and both indices."""
        assert pair.pair_type is PairType.TOKEN_TO_TOKEN
        assert pair.all_balances == (Decimal(1000), Decimal(1000))
        assert (pair.token_index_in, pair.token_index_out) == (0, 1)

    def test_share_token_index(self, pool):
        """The share token side has index -1."""
        pair = pool.parse_pool_pair_data(DAI, POOL_B)
        assert pair.pair_type is PairType.TOKEN_TO_BPT
        assert pair.token_index_out == -1

    def test_unknown_token(self, pool):
        """Tokens outside the pool raise UnknownTokenError."""
        with pytest.raises(UnknownTokenError):
            pool.parse_pool_pair_data(WETH, DAI)

    def test_normalized_liquidity(self, pool, pair):
        """Liquidity is balance out times amp."""
        assert pool.get_normalized_liquidity(pair) == Decimal(200_000)

    def test_missing_amp_rejected(self):
        """Stable entries need a positive amp."""
        data = stable_pool(POOL_B, [token(DAI, "1"), token(USDC, "1", 6)])
        del data["amp"]
        with pytest.raises(ValueError, match="amp"):
            StablePool.from_model(PoolModel.model_validate(data))


class TestQuotes:
    """Tests for stable quotes."""

    def test_exact_in_near_par(self, pool, pair):
        """10 DAI buys just under 10 * (1 - fee) USDC."""
        out = pool.quote_exact_in(pair, Decimal(10))
        assert Decimal("9.99") < out < Decimal("9.996")

    def test_exact_out_near_par(self, pool, pair):
        """10 USDC costs just over 10 / (1 - fee) DAI."""
        amount_in = pool.quote_exact_out(pair, Decimal(10))
        assert Decimal("10.004") < amount_in < Decimal("10.01")

    def test_exact_out_inverts_exact_in(self, pool, pair):
        """Buying the quoted output costs the original input."""
        out = pool.quote_exact_in(pair, Decimal(10), round_result=False)
        amount_in = pool.quote_exact_out(pair, out, round_result=False)
        assert abs(amount_in - Decimal(10)) < Decimal("1e-20")

    def test_three_token_pool(self):
        """Pools with more than two tokens price any pair."""
        pool = make_pool(
            stable_pool(
                POOL_B, [token(DAI, "1000"), token(USDC, "1000", 6), token(USDT, "1000", 6)]
            )
        )
        pair = pool.parse_pool_pair_data(USDT, DAI)
        out = pool.quote_exact_in(pair, Decimal(5))
        assert Decimal("4.99") < out < Decimal(5)

    def test_exact_out_at_balance_rejected(self, pool, pair):
        """The whole output balance cannot be bought."""
        with pytest.raises(DegenerateInvariantError):
            pool.quote_exact_out(pair, Decimal(1000))

    def test_join(self, pool):
        """Joining 1 DAI into a balanced pool mints about 1 share."""
        pair = pool.parse_pool_pair_data(DAI, POOL_B)
        shares = pool.quote_exact_in(pair, Decimal(1))
        assert Decimal("0.99") < shares < Decimal(1)

    def test_exit(self, pool):
        """Burning 1 share returns about 1 USDC."""
        pair = pool.parse_pool_pair_data(POOL_B, USDC)
        out = pool.quote_exact_in(pair, Decimal(1))
        assert Decimal("0.99") < out < Decimal(1)


class TestSpotPrice:
    """Tests for stable marginal rates."""

    @pytest.mark.parametrize("swap_type", [SwapType.EXACT_IN, SwapType.EXACT_OUT])
    def test_balanced_rate_is_one_minus_fee(self, pool, pair, swap_type):
        """A balanced pool prices at par less the fee."""
        rate = pool.spot_price_after_swap(pair, Decimal(0), swap_type)
        assert abs(rate - Decimal("0.9996")) < Decimal("1e-20")

    @pytest.mark.parametrize("swap_type", [SwapType.EXACT_IN, SwapType.EXACT_OUT])
    def test_derivative_matches_finite_difference(self, pool, pair, swap_type):
        """The implicit derivative agrees with a central difference."""
        amount = Decimal(200)
        h = Decimal("1e-8")
        numeric = (
            pool.spot_price_after_swap(pair, amount + h, swap_type)
            - pool.spot_price_after_swap(pair, amount - h, swap_type)
        ) / (2 * h)
        analytic = pool.derivative_spot_price_after_swap(pair, amount, swap_type)
        assert analytic < 0
        assert abs(analytic - numeric) <= abs(analytic) * Decimal("1e-5")

    def test_rate_is_slope_of_quote(self, pool, pair):
        """The exact-in rate is the slope of the exact-in quote."""
        amount = Decimal(100)
        h = Decimal("1e-12")
        slope = (
            pool.quote_exact_in(pair, amount + h, round_result=False)
            - pool.quote_exact_in(pair, amount, round_result=False)
        ) / h
        rate = pool.spot_price_after_swap(pair, amount, SwapType.EXACT_IN)
        assert abs(slope - rate) < Decimal("1e-9")

    def test_join_rate_is_positive(self, pool):
        """Join rates are positive and fall with size."""
        pair = pool.parse_pool_pair_data(DAI, POOL_B)
        small = pool.spot_price_after_swap(pair, Decimal(1), SwapType.EXACT_IN)
        large = pool.spot_price_after_swap(pair, Decimal(200), SwapType.EXACT_IN)
        assert Decimal(0) < large < small
