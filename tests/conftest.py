"""
Pytest configuration and fixtures for fund allocator tests.
"""

import pytest

from fund_allocator.core import TimeoutConfig, get_timeout_config, set_timeout_config
from fund_allocator.pools import AssetLedger, SimulatedPool
from fund_allocator.fund.core import PoolRegistry
from tests.mocks import MockPool


# =============================================================================
# Ledger and Pool Fixtures
# =============================================================================


@pytest.fixture
def ledger() -> AssetLedger:
    """Empty USDC ledger."""
    return AssetLedger("USDC")


@pytest.fixture
def simulated_pools(ledger: AssetLedger) -> list[SimulatedPool]:
    """Three 1:1 simulated pools over the shared ledger."""
    return [SimulatedPool(f"pool-{name}", ledger, decimals=0) for name in "abc"]


@pytest.fixture
def mock_pools() -> list[MockPool]:
    """Three scripted pools at share price 1."""
    return [MockPool(f"pool-{name}") for name in "abc"]


@pytest.fixture
def registry(mock_pools: list[MockPool]) -> PoolRegistry:
    """Registry holding the mock pools, all at weight 0."""
    registry = PoolRegistry(max_pools=10)
    for pool in mock_pools:
        registry.add(pool)
    return registry


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def restore_timeout_config():
    """Keep global timeout changes local to a test."""
    saved = get_timeout_config()
    yield
    set_timeout_config(saved)


@pytest.fixture
def short_timeouts():
    """Pool calls time out after 10ms."""
    set_timeout_config(TimeoutConfig(pool_call=0.01))
