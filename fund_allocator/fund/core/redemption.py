"""
Redemption Engine.

Routes a fund share redemption to every pool: each pool gives up the
same fraction of the fund's position in it as the fraction of fund
shares being redeemed.
"""

from fund_allocator.core import (
    AllocationArithmeticError,
    InvalidAmountError,
    NoPoolsError,
    NothingRedeemedError,
    get_logger,
)

from ..models.records import RedemptionLeg, RedemptionPlan
from .calls import call_pool
from .registry import PoolRegistry
from .slippage import SlippageGuard
from .valuation import ValuationService

logger = get_logger(__name__)


class RedemptionEngine:
    """
    Proportional redemption router.

    pool_shares = shares_to_redeem * fund_pool_balance // total_shares_outstanding

    Rounding is always down, so the assets returned never exceed the
    caller's proportional claim.
    """

    def __init__(
        self,
        registry: PoolRegistry,
        valuation: ValuationService,
        holder: str,
        slippage: SlippageGuard | None = None,
    ):
        self._registry = registry
        self._valuation = valuation
        self._holder = holder
        self._slippage = slippage or SlippageGuard()

    async def plan(
        self,
        shares_to_redeem: int,
        total_shares_outstanding: int,
    ) -> RedemptionPlan:
        """
        Compute pool shares to redeem from each pool.

        Raises:
            InvalidAmountError: If shares_to_redeem is not within 1..total
            NoPoolsError: If the registry is empty
            AllocationArithmeticError: If no fund shares are outstanding
        """
        if shares_to_redeem <= 0:
            raise InvalidAmountError(f"Shares to redeem must be positive: {shares_to_redeem}")
        if len(self._registry) == 0:
            raise NoPoolsError("Cannot redeem: no pools registered")
        if total_shares_outstanding == 0:
            raise AllocationArithmeticError("Cannot redeem: no fund shares outstanding")
        if shares_to_redeem > total_shares_outstanding:
            raise InvalidAmountError(
                f"Cannot redeem {shares_to_redeem} of {total_shares_outstanding} shares"
            )

        plan = RedemptionPlan(
            shares_to_redeem=shares_to_redeem,
            total_shares_outstanding=total_shares_outstanding,
        )
        for pool in self._registry.pools:
            balance = await self._valuation.share_balance(pool)
            plan.legs.append(
                RedemptionLeg(
                    pool=pool.address,
                    pool_share_balance=balance,
                    shares=shares_to_redeem * balance // total_shares_outstanding,
                )
            )
        return plan

    async def execute(self, plan: RedemptionPlan, receiver: str) -> RedemptionPlan:
        """
        Redeem every nonzero leg, sending assets to receiver.

        Raises:
            NothingRedeemedError: If the legs return no assets in total
        """
        for leg in plan.legs:
            if leg.shares == 0:
                continue
            pool = self._registry.get(leg.pool)
            minimum = await self._slippage.min_assets_for_redeem(pool, leg.shares)
            assets = await call_pool(
                pool.address,
                "redeem",
                pool.redeem(leg.shares, receiver, self._holder, minimum),
            )
            self._slippage.check(assets, minimum, pool.address, "redeem")
            leg.assets_returned = assets

        if plan.total_assets_returned == 0:
            raise NothingRedeemedError(
                f"Redeeming {plan.shares_to_redeem} of {plan.total_shares_outstanding} "
                f"fund shares returns no assets",
                details={"shares": plan.shares_to_redeem},
            )

        logger.info(
            f"Redeemed {plan.total_assets_returned} assets for "
            f"{plan.shares_to_redeem} fund shares"
        )
        return plan

    async def redeem(
        self,
        shares_to_redeem: int,
        total_shares_outstanding: int,
        receiver: str,
    ) -> RedemptionPlan:
        """Plan and execute in one step."""
        plan = await self.plan(shares_to_redeem, total_shares_outstanding)
        return await self.execute(plan, receiver)
