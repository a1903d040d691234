"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from sor.models.snapshot import PoolSnapshot
from sor.service import SOR
from tests.helpers import DAI, USDC, WETH, make_snapshot, token, weighted_pool

FIXTURES_DIR = Path(__file__).parent / "fixtures"
POOLS_DIR = FIXTURES_DIR / "pools"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return FIXTURES_DIR


def load_snapshot_fixture(name: str) -> PoolSnapshot:
    """Load a pool snapshot fixture by name.

    Args:
        name: Fixture name without extension (e.g., "dai_usdc_weighted")

    Returns:
        Parsed PoolSnapshot
    """
    path = POOLS_DIR / f"{name}.json"
    with open(path) as f:
        data = json.load(f)
    return PoolSnapshot.model_validate(data)


@pytest.fixture
def dai_usdc_snapshot() -> PoolSnapshot:
    """Two 50/50 DAI/USDC weighted pools with a 0.1% fee."""
    return load_snapshot_fixture("dai_usdc_weighted")


@pytest.fixture
def mixed_snapshot() -> PoolSnapshot:
    """Weighted, stable and linear pools around DAI, USDC and WETH."""
    return load_snapshot_fixture("mixed_pools")


@pytest.fixture
def two_pool_snapshot() -> PoolSnapshot:
    """A deep and a shallow 50/50 DAI/USDC pool with a 0.3% fee.

    Splitting 10 DAI over both gains about 0.0089 USDC over the deep pool
    alone.
    """
    return make_snapshot(
        weighted_pool(
            "0x" + "1" * 40,
            [token(DAI, "1000", 18, "0.5"), token(USDC, "1000", 6, "0.5")],
        ),
        weighted_pool(
            "0x" + "2" * 40,
            [token(DAI, "100", 18, "0.5"), token(USDC, "100", 6, "0.5")],
        ),
    )


@pytest.fixture
def multihop_snapshot() -> PoolSnapshot:
    """DAI -> WETH -> USDC through two weighted pools, no direct pool."""
    return make_snapshot(
        weighted_pool(
            "0x" + "3" * 40,
            [token(DAI, "200000", 18, "0.5"), token(WETH, "100", 18, "0.5")],
        ),
        weighted_pool(
            "0x" + "4" * 40,
            [token(WETH, "100", 18, "0.5"), token(USDC, "200000", 6, "0.5")],
        ),
    )


@pytest.fixture
def sor(dai_usdc_snapshot: PoolSnapshot) -> SOR:
    """Router service with the DAI/USDC pools fetched."""
    service = SOR()
    service.fetch_pools(dai_usdc_snapshot)
    return service
