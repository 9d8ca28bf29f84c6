"""
Rebalance Engine.

Two passes over one valuation snapshot:

1. Pools above their target value redeem the excess; pools below it are
   queued, in registry order, with their deficit.
2. The redeemed assets, together with any idle balance the fund already
   holds, are spread over the queued pools in proportion to their
   deficits. Whatever integer division leaves over goes to the last
   queued pool.

When no pool is below target the proceeds stay idle in the fund until a
later rebalance sweeps them.
"""

from fund_allocator.core import InvalidAmountError, NoPoolsError, get_logger
from fund_allocator.pools import PoolProtocol

from ..models.records import RebalanceLeg, RebalancePlan
from .calls import call_pool
from .registry import PoolRegistry
from .slippage import SlippageGuard
from .valuation import ValuationService

logger = get_logger(__name__)


class RebalanceEngine:
    """
    Redeem-then-redistribute rebalancer.

    Example:
        >>> engine = RebalanceEngine(registry, valuation, holder="fund")
        >>> plan = await engine.rebalance()
        >>> plan.leg_for("pool-a").deviation
        100
    """

    def __init__(
        self,
        registry: PoolRegistry,
        valuation: ValuationService,
        holder: str,
        slippage: SlippageGuard | None = None,
    ):
        """
        Initialize RebalanceEngine.

        Args:
            registry: Pool registry supplying order and weights
            valuation: Valuation service for the snapshot
            holder: Fund address that owns pool shares and receives proceeds
            slippage: Minimum-output guard
        """
        self._registry = registry
        self._valuation = valuation
        self._holder = holder
        self._slippage = slippage or SlippageGuard()

    async def rebalance(self, idle_assets: int = 0) -> RebalancePlan:
        """
        Move pool holdings back toward target weights.

        Args:
            idle_assets: Asset balance already held by the fund, added to
                the redeemed proceeds before redistribution

        Raises:
            NoPoolsError: If total weight is zero
        """
        total_weight = self._registry.total_weight
        if total_weight == 0:
            raise NoPoolsError(
                "Cannot rebalance: total pool weight is zero",
                details={"pools": len(self._registry)},
            )
        if idle_assets < 0:
            raise InvalidAmountError(f"Idle assets cannot be negative: {idle_assets}")

        snapshot = await self._valuation.snapshot()
        total_assets = snapshot.total_assets
        plan = RebalancePlan(
            total_assets=total_assets,
            total_weight=total_weight,
            idle_swept=idle_assets,
            total_to_redistribute=idle_assets,
        )

        # Pass 1: pull excess out of over-allocated pools
        for position in snapshot.positions:
            leg = RebalanceLeg(
                pool=position.address,
                weight=position.weight,
                actual_value=position.value,
                target_value=total_assets * position.weight // total_weight,
            )
            plan.legs.append(leg)
            deviation = leg.deviation

            if deviation > 0:
                shares = deviation * position.share_balance // position.value
                if shares > 0:
                    assets = await self._redeem(position.pool, shares)
                    leg.shares_redeemed = shares
                    leg.assets_redeemed = assets
                    plan.total_to_redistribute += assets
            elif deviation < 0:
                plan.deficits.append((position.address, -deviation))
                plan.total_to_deposit += -deviation

        logger.debug(
            f"Rebalance pass 1: redeemed {plan.total_to_redistribute - plan.idle_swept} "
            f"(plus {plan.idle_swept} idle), "
            f"deficit {plan.total_to_deposit} over {len(plan.deficits)} pools"
        )

        # Pass 2: redistribute into under-allocated pools
        if plan.total_to_deposit == 0:
            plan.idle_assets = plan.total_to_redistribute
            if plan.idle_assets:
                logger.warning(
                    f"No under-allocated pool; {plan.idle_assets} assets left idle"
                )
            return self._finish(plan)

        deposited = 0
        for address, deficit in plan.deficits:
            amount = deficit * plan.total_to_redistribute // plan.total_to_deposit
            if amount > 0:
                await self._deposit(address, amount, plan)
                deposited += amount

        leftover = plan.total_to_redistribute - deposited
        if leftover > 0:
            if plan.deficits:
                last_address = plan.deficits[-1][0]
                await self._deposit(last_address, leftover, plan)
                plan.leftover_pool = last_address
                plan.leftover = leftover
            else:
                plan.idle_assets = leftover
                logger.warning(f"Leftover {leftover} has no deficit pool; left idle")

        return self._finish(plan)

    async def _redeem(self, pool: PoolProtocol, shares: int) -> int:
        minimum = await self._slippage.min_assets_for_redeem(pool, shares)
        assets = await call_pool(
            pool.address,
            "redeem",
            pool.redeem(shares, self._holder, self._holder, minimum),
        )
        self._slippage.check(assets, minimum, pool.address, "redeem")
        logger.debug(f"Rebalance redeemed {shares} shares from {pool.address} -> {assets}")
        return assets

    async def _deposit(self, address: str, amount: int, plan: RebalancePlan) -> None:
        pool = self._registry.get(address)
        minimum = await self._slippage.min_shares_for_deposit(pool, amount)
        shares = await call_pool(
            address,
            "deposit",
            pool.deposit(amount, self._holder, minimum),
        )
        self._slippage.check(shares, minimum, address, "deposit")
        leg = plan.leg_for(address)
        if leg is not None:
            leg.assets_deposited += amount
        logger.debug(f"Rebalance deposited {amount} into {address}")

    @staticmethod
    def _finish(plan: RebalancePlan) -> RebalancePlan:
        logger.info(
            f"Rebalance complete: total {plan.total_assets}, "
            f"moved {plan.total_deposited}, idle {plan.idle_assets}"
        )
        return plan
