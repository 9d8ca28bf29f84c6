"""
Allocation Engine.

Routes a net deposit across pools proportional to weight. Integer
division leaves a remainder; it is given to the first pool whose weight
exhausts the running weight total, so the pools receive exactly the net
deposit.
"""

from fund_allocator.core import InvalidAmountError, NoPoolsError, get_logger

from ..models.records import DepositPlan, PoolAllocation
from .calls import call_pool
from .registry import PoolRegistry
from .slippage import SlippageGuard

logger = get_logger(__name__)


class AllocationEngine:
    """
    Weighted deposit router.

    Example:
        >>> engine = AllocationEngine(registry, holder="fund")
        >>> plan = engine.plan(1000)  # weights [50, 30, 20]
        >>> [a.amount for a in plan.allocations]
        [500, 300, 200]
        >>> await engine.execute(plan)
    """

    def __init__(
        self,
        registry: PoolRegistry,
        holder: str,
        slippage: SlippageGuard | None = None,
    ):
        """
        Initialize AllocationEngine.

        Args:
            registry: Pool registry supplying order and weights
            holder: Address depositing into pools and receiving pool shares
            slippage: Minimum-output guard
        """
        self._registry = registry
        self._holder = holder
        self._slippage = slippage or SlippageGuard()

    def plan(self, net_assets: int) -> DepositPlan:
        """
        Split net_assets across registry members.

        Raises:
            InvalidAmountError: If net_assets is not positive
            NoPoolsError: If total weight is zero
        """
        if net_assets <= 0:
            raise InvalidAmountError(f"Net assets must be positive: {net_assets}")

        total_weight = self._registry.total_weight
        if total_weight == 0:
            raise NoPoolsError(
                "Cannot allocate: total pool weight is zero",
                details={"pools": len(self._registry)},
            )

        plan = DepositPlan(net_assets=net_assets, total_weight=total_weight)
        remaining_shares = total_weight
        unassigned = net_assets

        for pool, weight in self._registry.items():
            remaining_shares -= weight
            if remaining_shares == 0:
                amount = unassigned
                if plan.remainder_pool is None and weight > 0:
                    plan.remainder_pool = pool.address
            else:
                amount = net_assets * weight // total_weight
            unassigned -= amount
            plan.allocations.append(
                PoolAllocation(pool=pool.address, weight=weight, amount=amount)
            )

        logger.debug(
            f"Deposit plan for {net_assets}: "
            f"{[(a.pool, a.amount) for a in plan.allocations]}"
        )
        return plan

    async def execute(self, plan: DepositPlan) -> DepositPlan:
        """Deposit each nonzero allocation into its pool."""
        for allocation in plan.allocations:
            if allocation.amount == 0:
                continue
            pool = self._registry.get(allocation.pool)
            minimum = await self._slippage.min_shares_for_deposit(pool, allocation.amount)
            shares = await call_pool(
                pool.address,
                "deposit",
                pool.deposit(allocation.amount, self._holder, minimum),
            )
            self._slippage.check(shares, minimum, pool.address, "deposit")
            allocation.shares_issued = shares
            logger.debug(f"Deposited {allocation.amount} into {pool.address} ({shares} shares)")

        logger.info(
            f"Allocated {plan.total_allocated} across "
            f"{sum(1 for a in plan.allocations if a.amount)} pools"
        )
        return plan

    async def allocate(self, net_assets: int) -> DepositPlan:
        """Plan and execute in one step."""
        return await self.execute(self.plan(net_assets))
