"""Tests for snapshot parsing and the shared pool surface."""

from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from sor.config import LimitRatios, SorConfig
from sor.errors import DegenerateInvariantError, SorError, UnknownTokenError
from sor.pools import PoolFilter, StablePool, SwapType, WeightedPool, parse_pools
from tests.helpers import DAI, POOL_A, USDC, WETH, make_pool, make_snapshot, token, weighted_pool


class TestParsePools:
    """Tests for parse_pools."""

    def test_mixed_snapshot(self, mixed_snapshot):
        """Known families parse, the unknown type is skipped."""
        pools = parse_pools(mixed_snapshot)
        assert len(pools) == 4
        assert "0xunknown" not in pools
        kinds = sorted(type(p).__name__ for p in pools.values())
        assert kinds == ["LinearPool", "StablePool", "WeightedPool", "WeightedPool"]

    def test_unknown_type_logged(self, mixed_snapshot):
        """Skipped entries are logged with their id and tag."""
        with capture_logs() as logs:
            parse_pools(mixed_snapshot)
        skipped = [e for e in logs if e["event"] == "unknown_pool_type"]
        assert skipped == [
            {
                "event": "unknown_pool_type",
                "log_level": "warning",
                "pool_id": "0xunknown",
                "pool_type": "MetaStable",
            }
        ]

    def test_keyed_by_id(self, dai_usdc_snapshot):
        """Pools are keyed by their snapshot id."""
        pools = parse_pools(dai_usdc_snapshot)
        for pool_id, pool in pools.items():
            assert pool.id == pool_id

    def test_duplicate_id_last_wins(self):
        """A repeated id replaces the earlier entry."""
        snapshot = make_snapshot(
            weighted_pool(POOL_A, [token(DAI, "1", 18, "0.5"), token(USDC, "1", 6, "0.5")]),
            weighted_pool(POOL_A, [token(DAI, "2", 18, "0.5"), token(USDC, "2", 6, "0.5")]),
        )
        pools = parse_pools(snapshot)
        assert len(pools) == 1
        assert pools[POOL_A].balance_of(DAI) == Decimal(2)

    def test_limit_ratios_from_config(self, mixed_snapshot):
        """Per-family limit ratios come from the config."""
        config = SorConfig(limit_ratios={"Stable": LimitRatios(Decimal("0.5"), Decimal("0.5"))})
        pools = parse_pools(mixed_snapshot, config=config)
        for pool in pools.values():
            expected = Decimal("0.5") if isinstance(pool, StablePool) else Decimal("0.3")
            assert pool.limit_ratios.max_in == expected

    def test_empty_snapshot(self):
        """No entries parse to no pools."""
        assert parse_pools(make_snapshot()) == {}


class TestPoolSurface:
    """Tests for behavior shared by every pool family."""

    def test_errors_carry_pool_context(self):
        """Math errors are tagged with the pool and pair that raised them."""
        pool = make_pool(
            weighted_pool(POOL_A, [token(DAI, "10", 18, "0.5"), token(USDC, "10", 6, "0.5")])
        )
        pair = pool.parse_pool_pair_data(DAI, USDC)
        with pytest.raises(DegenerateInvariantError) as exc_info:
            pool.quote_exact_out(pair, Decimal(20))
        err = exc_info.value
        assert isinstance(err, SorError)
        assert err.context == {
            "pool_id": POOL_A,
            "pool_type": "Weighted",
            "token_in": DAI,
            "token_out": USDC,
        }
        assert POOL_A in str(err)

    def test_balance_of_unknown_token(self):
        """balance_of rejects tokens the pool does not hold."""
        pool = make_pool(
            weighted_pool(POOL_A, [token(DAI, "10", 18, "0.5"), token(USDC, "10", 6, "0.5")])
        )
        with pytest.raises(UnknownTokenError):
            pool.balance_of(WETH)

    def test_repr(self):
        """repr names the class and id."""
        pool = make_pool(
            weighted_pool(POOL_A, [token(DAI, "10", 18, "0.5"), token(USDC, "10", 6, "0.5")])
        )
        assert isinstance(pool, WeightedPool)
        assert repr(pool).startswith(f"WeightedPool(id='{POOL_A}'")

    def test_limit_uses_pool_ratios(self):
        """Limits scale with the configured ratios."""
        pool = make_pool(
            weighted_pool(POOL_A, [token(DAI, "10", 18, "0.5"), token(USDC, "10", 6, "0.5")])
        )
        pool.limit_ratios = LimitRatios(Decimal("0.5"), Decimal("0.1"))
        pair = pool.parse_pool_pair_data(DAI, USDC)
        assert pool.limit_amount(pair, SwapType.EXACT_IN) == Decimal(5)
        assert pool.limit_amount(pair, SwapType.EXACT_OUT) == Decimal(1)


class TestPoolFilter:
    """Tests for PoolFilter.allows."""

    def test_all(self):
        """ALL admits every family."""
        assert PoolFilter.ALL.allows("Element")

    def test_single_family(self):
        """A family filter admits only its own tag."""
        assert PoolFilter.STABLE.allows("Stable")
        assert not PoolFilter.STABLE.allows("Weighted")
