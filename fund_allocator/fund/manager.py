"""
Fund.

Public surface of the allocator: owns the pool registry, the engines, the
operation guard and the collaborators, and exposes the privileged, public
and read-only operations.
"""

import inspect
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional, Sequence

from fund_allocator.config import BPS_DENOMINATOR, FundConfig
from fund_allocator.core import (
    AssetMismatchError,
    InsufficientSharesError,
    InvalidAmountError,
    TimeoutConfig,
    ValidationError,
    get_logger,
    set_timeout_config,
)
from fund_allocator.pools import UNLIMITED, AssetLedger, PoolProtocol, SimulatedPool

from .core.access import AccessController, Permission
from .core.allocation import AllocationEngine
from .core.calls import call_pool
from .core.guard import OperationGuard
from .core.rebalance import RebalanceEngine
from .core.redemption import RedemptionEngine
from .core.registry import PoolRegistry, WeightChange
from .core.shares import ShareLedger
from .core.slippage import SlippageGuard
from .core.valuation import ValuationService
from .models.records import (
    DepositReceipt,
    EventType,
    FundEvent,
    OperationRecord,
    OperationStatus,
    RebalancePlan,
    RedeemReceipt,
)

logger = get_logger(__name__)

EventCallback = Callable[[FundEvent], Any]


class Fund:
    """
    Fund-of-funds allocator.

    Every state-mutating operation runs inside one fund-wide guard and is
    all-or-nothing: registry, ledgers, fee settings and snapshottable pools
    are restored if any step raises.

    Example:
        >>> fund = Fund(FundConfig(asset="USDC", admins=["admin"]))
        >>> await fund.add_pool("admin", pool_a)
        >>> await fund.add_pool("admin", pool_b)
        >>> await fund.set_weights("admin", ["pool-a", "pool-b"], [60, 40])
        >>> receipt = await fund.deposit("alice", 1_000)
        >>> receipt.plan.amount_for("pool-a")
        600
    """

    def __init__(
        self,
        config: Optional[FundConfig] = None,
        ledger: Optional[AssetLedger] = None,
        access: Optional[AccessController] = None,
        shares: Optional[ShareLedger] = None,
    ):
        """
        Initialize Fund.

        Args:
            config: Fund configuration
            ledger: Ledger of the underlying asset (created if omitted)
            access: Access controller (built from config roles if omitted)
            shares: Fund share ledger (empty if omitted)
        """
        self._config = config or FundConfig()
        self._address = self._config.fund_address
        self._asset = self._config.asset

        self._ledger = ledger or AssetLedger(self._asset)
        if self._ledger.asset != self._asset:
            raise AssetMismatchError(
                f"Ledger asset {self._ledger.asset} differs from fund asset {self._asset}"
            )
        self._access = access or AccessController(
            admins=self._config.admins,
            rebalancers=self._config.rebalancers,
        )
        self._shares = shares or ShareLedger()

        # Core components
        self._registry = PoolRegistry(self._config.max_pools)
        self._valuation = ValuationService(self._registry, self._address)
        self._slippage = SlippageGuard(self._config.max_slippage_bps)
        self._allocation = AllocationEngine(self._registry, self._address, self._slippage)
        self._redemption = RedemptionEngine(
            self._registry, self._valuation, self._address, self._slippage
        )
        self._rebalance = RebalanceEngine(
            self._registry, self._valuation, self._address, self._slippage
        )
        self._guard = OperationGuard()

        # Fee settings
        self._deposit_fee_bps = self._config.deposit_fee_bps
        self._fee_recipient = self._config.fee_recipient

        # Events
        self._events: List[FundEvent] = []
        self._max_events: int = 1000
        self._pending_events: Optional[List[FundEvent]] = None
        self._event_callbacks: List[EventCallback] = []

        logger.info(f"Fund initialized: {self._address} ({self._asset})")

    @classmethod
    async def from_config(
        cls,
        config: FundConfig,
        ledger: Optional[AssetLedger] = None,
    ) -> "Fund":
        """
        Build a fund with the simulated pools described in config.

        Pools are registered and weighted by the first configured admin.
        Also installs the configured pool call timeouts.
        """
        set_timeout_config(TimeoutConfig(pool_call=config.timeouts.pool_call))
        ledger = ledger or AssetLedger(config.asset)
        fund = cls(config, ledger=ledger)

        if not config.pools:
            return fund
        if not config.admins:
            raise ValidationError("Pools are configured but no admin can register them")

        admin = config.admins[0]
        for pool_config in config.pools:
            pool = SimulatedPool(
                pool_config.address,
                ledger,
                decimals=pool_config.decimals,
                initial_share_price=pool_config.share_price,
            )
            await fund.add_pool(admin, pool)
        await fund.set_weights(
            admin,
            [p.address for p in config.pools],
            [p.weight for p in config.pools],
        )
        return fund

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def address(self) -> str:
        return self._address

    @property
    def asset(self) -> str:
        return self._asset

    @property
    def config(self) -> FundConfig:
        return self._config

    @property
    def ledger(self) -> AssetLedger:
        return self._ledger

    @property
    def access(self) -> AccessController:
        return self._access

    @property
    def registry(self) -> PoolRegistry:
        return self._registry

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    @property
    def deposit_fee_bps(self) -> int:
        return self._deposit_fee_bps

    @property
    def fee_recipient(self) -> Optional[str]:
        return self._fee_recipient

    # =========================================================================
    # Privileged Operations
    # =========================================================================

    async def add_pool(self, caller: str, pool: PoolProtocol) -> None:
        """
        Register a pool with weight 0 and grant it an unlimited allowance.

        Raises:
            UnauthorizedError: If caller may not manage pools
            AssetMismatchError: If the pool takes a different asset
            DuplicatePoolError: If already registered
            CapacityExceededError: If the registry is full
        """
        self._access.require(caller, Permission.MANAGE_POOLS)
        async with self._operation("add_pool", caller):
            if pool.address == self._address:
                raise ValidationError(f"Pool address {pool.address} is the fund address")
            pool_asset = await call_pool(pool.address, "asset", pool.asset())
            if pool_asset != self._asset:
                raise AssetMismatchError(
                    f"Pool {pool.address} takes {pool_asset}, fund asset is {self._asset}",
                    details={"pool": pool.address, "pool_asset": pool_asset},
                )

            self._registry.add(pool)
            self._ledger.approve(self._address, pool.address, UNLIMITED)
            self._emit(
                EventType.POOL_ADDED,
                pool=pool.address,
                data={"pool_count": len(self._registry)},
            )

    async def remove_pool(self, caller: str, address: str) -> PoolProtocol:
        """
        Remove a pool, drop its weight and revoke its allowance.

        Pool shares the fund still holds stay with the fund but are no
        longer valued or routed.

        Returns:
            The removed pool
        """
        self._access.require(caller, Permission.MANAGE_POOLS)
        async with self._operation("remove_pool", caller):
            pool = self._registry.get(address)
            weight = self._registry.weight_of(address)
            balance = await self._valuation.share_balance(pool)
            if balance:
                logger.warning(f"Removing {address} while the fund holds {balance} of its shares")

            self._registry.remove(address)
            self._ledger.approve(self._address, address, 0)
            self._emit(
                EventType.POOL_REMOVED,
                pool=address,
                data={"weight": weight, "share_balance": balance},
            )
            return pool

    async def set_weights(
        self,
        caller: str,
        addresses: Sequence[str],
        weights: Sequence[int],
    ) -> List[WeightChange]:
        """Set target weights; one weight_changed event per pool."""
        self._access.require(caller, Permission.SET_WEIGHTS)
        async with self._operation("set_weights", caller):
            changes = self._registry.set_weights(addresses, weights)
            for address, old, new in changes:
                self._emit(
                    EventType.WEIGHT_CHANGED,
                    pool=address,
                    data={
                        "old_weight": old,
                        "new_weight": new,
                        "total_weight": self._registry.total_weight,
                    },
                )
            return changes

    async def set_deposit_fee(self, caller: str, fee_bps: int) -> None:
        """
        Raises:
            ValidationError: If fee_bps is outside 0..max_deposit_fee_bps
        """
        self._access.require(caller, Permission.SET_FEE)
        maximum = self._config.max_deposit_fee_bps
        if not isinstance(fee_bps, int) or isinstance(fee_bps, bool) or not 0 <= fee_bps <= maximum:
            raise ValidationError(
                f"Deposit fee must be within 0..{maximum} bps: {fee_bps!r}",
                details={"fee_bps": fee_bps, "max_fee_bps": maximum},
            )

        async with self._operation("set_deposit_fee", caller):
            old = self._deposit_fee_bps
            self._deposit_fee_bps = fee_bps
            self._emit(EventType.FEE_CHANGED, data={"old_fee_bps": old, "new_fee_bps": fee_bps})
            logger.info(f"Deposit fee: {old} -> {fee_bps} bps")

    async def rebalance(self, caller: str) -> RebalancePlan:
        """
        Move pool holdings back toward target weights.

        The fund's idle balance is redistributed along with the redeemed
        surpluses, so proceeds parked by an earlier rebalance (or a fee
        kept without a recipient) are deployed once a pool is below target.
        """
        self._access.require(caller, Permission.REBALANCE)
        async with self._operation("rebalance", caller):
            plan = await self._rebalance.rebalance(idle_assets=self.idle_balance())
            self._emit(
                EventType.REBALANCE,
                data={
                    "total_assets": plan.total_assets,
                    "idle_swept": plan.idle_swept,
                    "redistributed": plan.total_to_redistribute,
                    "deposited": plan.total_deposited,
                    "idle": plan.idle_assets,
                    "leftover_pool": plan.leftover_pool,
                },
            )
            return plan

    # =========================================================================
    # Public Operations
    # =========================================================================

    async def deposit(
        self,
        caller: str,
        assets: int,
        receiver: Optional[str] = None,
    ) -> DepositReceipt:
        """
        Pull assets from caller, take the fee, route the rest to pools and
        mint fund shares to receiver.

        Caller must have approved the fund on the asset ledger.

        Raises:
            InvalidAmountError: If assets is not positive or mints no shares
            NoPoolsError: If total weight is zero (nothing moves)
        """
        if not isinstance(assets, int) or isinstance(assets, bool) or assets <= 0:
            raise InvalidAmountError(f"Deposit must be a positive integer: {assets!r}")
        receiver = receiver or caller

        async with self._operation("deposit", caller):
            fee = assets * self._deposit_fee_bps // BPS_DENOMINATOR
            net_assets = assets - fee
            shares = await self._shares_for(net_assets)

            plan = self._allocation.plan(net_assets)

            self._ledger.transfer_from(self._address, caller, self._address, assets)
            if fee and self._fee_recipient:
                self._ledger.transfer(self._address, self._fee_recipient, fee)

            await self._allocation.execute(plan)
            self._shares.mint(receiver, shares)

            receipt = DepositReceipt(
                caller=caller,
                receiver=receiver,
                assets=assets,
                fee=fee,
                shares_minted=shares,
                plan=plan,
            )
            self._emit(EventType.DEPOSIT, data=receipt.to_dict())
            logger.info(
                f"Deposit {assets} from {caller} (fee {fee}) -> {shares} shares to {receiver}"
            )
            return receipt

    async def redeem(
        self,
        caller: str,
        shares: int,
        receiver: Optional[str] = None,
    ) -> RedeemReceipt:
        """
        Burn caller's fund shares and return the proportional pool assets.

        Raises:
            InvalidAmountError: If shares is not positive
            InsufficientSharesError: If caller holds fewer shares
            NothingRedeemedError: If every pool leg rounds down to zero
        """
        if not isinstance(shares, int) or isinstance(shares, bool) or shares <= 0:
            raise InvalidAmountError(f"Redeem must be a positive integer: {shares!r}")
        receiver = receiver or caller

        async with self._operation("redeem", caller):
            balance = self._shares.balance_of(caller)
            if shares > balance:
                raise InsufficientSharesError(
                    f"{caller} holds {balance} fund shares, cannot redeem {shares}",
                    details={"balance": balance, "shares": shares},
                )

            plan = await self._redemption.redeem(shares, self._shares.total_supply, receiver)
            self._shares.burn(caller, shares)

            receipt = RedeemReceipt(
                caller=caller,
                receiver=receiver,
                shares_burned=shares,
                plan=plan,
            )
            self._emit(EventType.REDEEM, data=receipt.to_dict())
            logger.info(
                f"Redeem {shares} shares from {caller} -> "
                f"{receipt.assets_returned} to {receiver}"
            )
            return receipt

    # =========================================================================
    # Query Methods
    # =========================================================================

    @property
    def pools(self) -> List[str]:
        """Registered pool addresses in registry order."""
        return self._registry.addresses

    @property
    def pool_count(self) -> int:
        return len(self._registry)

    @property
    def total_weight(self) -> int:
        return self._registry.total_weight

    def weight_of(self, address: str) -> int:
        return self._registry.weight_of(address)

    async def pool_balance(self, address: str) -> int:
        """Pool shares held by the fund."""
        return await self._valuation.share_balance(self._registry.get(address))

    async def pool_value(self, address: str) -> int:
        return await self._valuation.pool_value(self._registry.get(address))

    async def pool_share_price(self, address: str) -> int:
        return await self._valuation.share_price(self._registry.get(address))

    async def total_assets(self) -> int:
        """Sum of pool values; idle assets are reported separately."""
        return await self._valuation.total_assets()

    def idle_balance(self) -> int:
        """Underlying asset held at the fund address."""
        return self._ledger.balance_of(self._address)

    def balance_of(self, holder: str) -> int:
        """Fund shares held by holder."""
        return self._shares.balance_of(holder)

    @property
    def total_supply(self) -> int:
        return self._shares.total_supply

    async def get_status(self) -> Dict[str, Any]:
        """
        Get fund status.

        Returns:
            Dictionary with fund totals and one entry per pool
        """
        snapshot = await self._valuation.snapshot()
        pools = []
        for position in snapshot.positions:
            pools.append(
                {
                    "address": position.address,
                    "weight": position.weight,
                    "share_balance": position.share_balance,
                    "share_price": await self._valuation.share_price(position.pool),
                    "value": position.value,
                }
            )
        return {
            "address": self._address,
            "asset": self._asset,
            "pool_count": len(self._registry),
            "max_pools": self._registry.max_pools,
            "total_weight": self._registry.total_weight,
            "total_assets": snapshot.total_assets,
            "idle_balance": self.idle_balance(),
            "total_supply": self._shares.total_supply,
            "deposit_fee_bps": self._deposit_fee_bps,
            "fee_recipient": self._fee_recipient,
            "pools": pools,
        }

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        limit: int = 100,
    ) -> List[FundEvent]:
        """Committed events, oldest first."""
        events = self._events
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events[-limit:]

    def get_history(
        self,
        limit: int = 50,
        status: Optional[OperationStatus] = None,
    ) -> List[OperationRecord]:
        """Operation records, newest first."""
        return self._guard.get_history(limit=limit, status=status)

    # =========================================================================
    # Callback Registration
    # =========================================================================

    def on_event(self, callback: EventCallback) -> None:
        """
        Register callback for committed events.

        Args:
            callback: Function or coroutine function taking a FundEvent
        """
        self._event_callbacks.append(callback)

    def remove_event_callback(self, callback: EventCallback) -> None:
        if callback in self._event_callbacks:
            self._event_callbacks.remove(callback)

    # =========================================================================
    # Snapshot Methods (for Atomic Operations)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "deposit_fee_bps": self._deposit_fee_bps,
            "fee_recipient": self._fee_recipient,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._deposit_fee_bps = state["deposit_fee_bps"]
        self._fee_recipient = state["fee_recipient"]

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _shares_for(self, net_assets: int) -> int:
        supply = self._shares.total_supply
        total_assets = await self._valuation.total_assets()
        if supply == 0 or total_assets == 0:
            shares = net_assets
        else:
            shares = net_assets * supply // total_assets
        if shares <= 0:
            raise InvalidAmountError(
                f"Deposit of {net_assets} net assets mints no fund shares",
                details={"total_supply": supply, "total_assets": total_assets},
            )
        return shares

    def _participants(self) -> Iterator[Any]:
        # Iterated by the guard only once the lock is held
        yield self
        yield self._registry
        yield self._shares
        yield self._ledger
        yield from self._registry.pools

    @asynccontextmanager
    async def _operation(self, name: str, caller: str) -> AsyncIterator[OperationRecord]:
        """Guarded scope; events are published only after commit."""
        record: Optional[OperationRecord] = None
        events: List[FundEvent] = []
        try:
            async with self._guard.atomic(name, self._participants(), caller=caller) as record:
                self._pending_events = events
                try:
                    yield record
                finally:
                    self._pending_events = None
        except BaseException:
            if record is not None and record.status == OperationStatus.ROLLED_BACK:
                await self._publish(
                    [
                        FundEvent(
                            EventType.ROLLBACK,
                            data={
                                "operation": name,
                                "operation_id": record.operation_id,
                                "caller": caller,
                                "error": record.error_message,
                            },
                        )
                    ]
                )
            raise
        await self._publish(events)

    def _emit(
        self,
        event_type: EventType,
        pool: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._pending_events is None:
            raise RuntimeError(f"{event_type.value} emitted outside a fund operation")
        self._pending_events.append(FundEvent(event_type, pool=pool, data=data or {}))

    async def _publish(self, events: List[FundEvent]) -> None:
        for event in events:
            self._events.append(event)
            for callback in list(self._event_callbacks):
                try:
                    result = callback(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.warning(f"Event callback failed for {event.event_type.value}: {e}")
        if len(self._events) > self._max_events:
            self._events = self._events[-self._max_events:]
