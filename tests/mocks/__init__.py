# Mock classes for testing
"""Mock pools and fund builders for testing."""

from .fund_factory import ADMIN, KEEPER, build_fund, fund_account
from .pool_mock import FailingPool, MockPool, SlowPool

__all__ = [
    "MockPool",
    "FailingPool",
    "SlowPool",
    "build_fund",
    "fund_account",
    "ADMIN",
    "KEEPER",
]
