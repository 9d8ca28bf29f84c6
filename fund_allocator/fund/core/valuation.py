"""
Valuation Service.

Converts the fund's share balance in each pool into asset value and
aggregates assets under management.
"""

from dataclasses import dataclass, field
from typing import List

from fund_allocator.core import get_logger
from fund_allocator.pools import PoolProtocol

from .calls import call_pool
from .registry import PoolRegistry

logger = get_logger(__name__)


@dataclass
class PoolValuation:
    """Fund position in one pool at snapshot time."""

    pool: PoolProtocol
    weight: int
    share_balance: int
    value: int

    @property
    def address(self) -> str:
        return self.pool.address


@dataclass
class ValuationSnapshot:
    """Per-pool positions plus their total, read in one pass."""

    positions: List[PoolValuation] = field(default_factory=list)

    @property
    def total_assets(self) -> int:
        return sum(p.value for p in self.positions)


class ValuationService:
    """
    Read-only valuation over the registry.

    Cost of total_assets() and snapshot() is linear in the pool count.

    Example:
        >>> valuation = ValuationService(registry, holder="fund")
        >>> await valuation.pool_value(pool)
        600
        >>> await valuation.total_assets()
        800
    """

    def __init__(self, registry: PoolRegistry, holder: str):
        """
        Initialize ValuationService.

        Args:
            registry: Pool registry to value
            holder: Address whose pool shares are valued (the fund)
        """
        self._registry = registry
        self._holder = holder

    async def share_balance(self, pool: PoolProtocol) -> int:
        """Pool shares held by the fund."""
        return await call_pool(pool.address, "balance_of", pool.balance_of(self._holder))

    async def share_price(self, pool: PoolProtocol) -> int:
        return await call_pool(pool.address, "share_price", pool.share_price())

    async def pool_value(self, pool: PoolProtocol) -> int:
        """balance * share_price // 10**decimals; 0 for an empty balance."""
        balance = await self.share_balance(pool)
        return await self._value_of(pool, balance)

    async def total_assets(self) -> int:
        """Sum of pool values over every registry member."""
        total = 0
        for pool in self._registry.pools:
            total += await self.pool_value(pool)
        return total

    async def snapshot(self) -> ValuationSnapshot:
        """Read balance and value for every member in registry order."""
        snapshot = ValuationSnapshot()
        for pool, weight in self._registry.items():
            balance = await self.share_balance(pool)
            value = await self._value_of(pool, balance)
            snapshot.positions.append(
                PoolValuation(pool=pool, weight=weight, share_balance=balance, value=value)
            )
        logger.debug(
            f"Valuation snapshot: {len(snapshot.positions)} pools, "
            f"total {snapshot.total_assets}"
        )
        return snapshot

    async def _value_of(self, pool: PoolProtocol, balance: int) -> int:
        if balance == 0:
            return 0
        price = await self.share_price(pool)
        decimals = await call_pool(pool.address, "decimals", pool.decimals())
        return balance * price // 10**decimals
