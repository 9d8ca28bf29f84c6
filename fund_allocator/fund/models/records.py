"""
Fund Record Models.

Transient plans produced by the allocation, redemption and rebalance
engines, plus the event and operation records the fund keeps in memory.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


class EventType(Enum):
    """Fund event types."""

    POOL_ADDED = "pool_added"
    POOL_REMOVED = "pool_removed"
    WEIGHT_CHANGED = "weight_changed"
    FEE_CHANGED = "fee_changed"
    DEPOSIT = "deposit"
    REDEEM = "redeem"
    REBALANCE = "rebalance"
    ROLLBACK = "rollback"


class OperationStatus(Enum):
    """
    Outcome of a guarded fund operation.

    Lifecycle: EXECUTING -> COMMITTED or ROLLED_BACK
    """

    EXECUTING = "executing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PoolAllocation:
    """
    Amount routed to a single pool by a deposit plan.

    Attributes:
        pool: Pool address
        weight: Pool weight when the plan was made
        amount: Assets assigned to the pool
        shares_issued: Pool shares received once executed
    """

    pool: str
    weight: int
    amount: int
    shares_issued: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool,
            "weight": self.weight,
            "amount": self.amount,
            "shares_issued": self.shares_issued,
        }


@dataclass
class DepositPlan:
    """
    Split of a net deposit across pools.

    Attributes:
        net_assets: Assets being allocated (after fees)
        total_weight: Registry weight sum used as denominator
        allocations: One entry per registry member, in registry order
        remainder_pool: Pool that absorbed the rounding remainder
    """

    net_assets: int
    total_weight: int
    allocations: List[PoolAllocation] = field(default_factory=list)
    remainder_pool: Optional[str] = None

    @property
    def total_allocated(self) -> int:
        return sum(a.amount for a in self.allocations)

    def amount_for(self, pool: str) -> int:
        """Assets assigned to `pool` (0 if absent)."""
        for allocation in self.allocations:
            if allocation.pool == pool:
                return allocation.amount
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "net_assets": self.net_assets,
            "total_weight": self.total_weight,
            "remainder_pool": self.remainder_pool,
            "allocations": [a.to_dict() for a in self.allocations],
        }


@dataclass
class RedemptionLeg:
    """Pool shares redeemed from one pool and the assets returned."""

    pool: str
    pool_share_balance: int
    shares: int
    assets_returned: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool,
            "pool_share_balance": self.pool_share_balance,
            "shares": self.shares,
            "assets_returned": self.assets_returned,
        }


@dataclass
class RedemptionPlan:
    """
    Split of a fund share redemption across pools.

    Attributes:
        shares_to_redeem: Fund shares being redeemed
        total_shares_outstanding: Fund share supply before the burn
        legs: One entry per registry member, in registry order
    """

    shares_to_redeem: int
    total_shares_outstanding: int
    legs: List[RedemptionLeg] = field(default_factory=list)

    @property
    def total_assets_returned(self) -> int:
        return sum(leg.assets_returned for leg in self.legs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shares_to_redeem": self.shares_to_redeem,
            "total_shares_outstanding": self.total_shares_outstanding,
            "total_assets_returned": self.total_assets_returned,
            "legs": [leg.to_dict() for leg in self.legs],
        }


@dataclass
class RebalanceLeg:
    """
    Per-pool view of a rebalance.

    Attributes:
        pool: Pool address
        weight: Pool weight
        actual_value: Asset value at snapshot time
        target_value: Value implied by weight and snapshot total
        shares_redeemed: Pool shares pulled out in pass 1
        assets_redeemed: Assets returned by that redemption
        assets_deposited: Assets deposited in pass 2 (including leftover)
    """

    pool: str
    weight: int
    actual_value: int
    target_value: int
    shares_redeemed: int = 0
    assets_redeemed: int = 0
    assets_deposited: int = 0

    @property
    def deviation(self) -> int:
        """Signed difference between actual and target value."""
        return self.actual_value - self.target_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool,
            "weight": self.weight,
            "actual_value": self.actual_value,
            "target_value": self.target_value,
            "deviation": self.deviation,
            "shares_redeemed": self.shares_redeemed,
            "assets_redeemed": self.assets_redeemed,
            "assets_deposited": self.assets_deposited,
        }


@dataclass
class RebalancePlan:
    """
    Result of a two-pass rebalance.

    Attributes:
        total_assets: Snapshot total all targets are computed against
        total_weight: Registry weight sum
        legs: One entry per registry member, in registry order
        deficits: Ordered (pool, deficit) list built in pass 1
        idle_swept: Idle fund balance added to the redistribution
        total_to_redistribute: Assets redistributed in pass 2 (idle plus redeemed)
        total_to_deposit: Sum of deficits
        leftover_pool: Pool that received the rounding leftover
        leftover: Amount of that leftover
        idle_assets: Proceeds left idle in the fund
    """

    total_assets: int
    total_weight: int
    legs: List[RebalanceLeg] = field(default_factory=list)
    deficits: List[tuple[str, int]] = field(default_factory=list)
    idle_swept: int = 0
    total_to_redistribute: int = 0
    total_to_deposit: int = 0
    leftover_pool: Optional[str] = None
    leftover: int = 0
    idle_assets: int = 0

    @property
    def redistribution_skipped(self) -> bool:
        return self.total_to_deposit == 0

    @property
    def total_deposited(self) -> int:
        return sum(leg.assets_deposited for leg in self.legs)

    def leg_for(self, pool: str) -> Optional[RebalanceLeg]:
        for leg in self.legs:
            if leg.pool == pool:
                return leg
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_assets": self.total_assets,
            "total_weight": self.total_weight,
            "idle_swept": self.idle_swept,
            "total_to_redistribute": self.total_to_redistribute,
            "total_to_deposit": self.total_to_deposit,
            "total_deposited": self.total_deposited,
            "leftover_pool": self.leftover_pool,
            "leftover": self.leftover,
            "idle_assets": self.idle_assets,
            "redistribution_skipped": self.redistribution_skipped,
            "legs": [leg.to_dict() for leg in self.legs],
        }


@dataclass
class FundEvent:
    """
    Notification emitted by a fund operation.

    Attributes:
        id: Unique event identifier
        timestamp: When the event was emitted
        event_type: Kind of event
        pool: Pool address, when the event concerns one pool
        data: Event payload
    """

    event_type: EventType
    pool: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if isinstance(self.event_type, str):
            self.event_type = EventType(self.event_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "pool": self.pool,
            "data": self.data,
        }


@dataclass
class OperationRecord:
    """
    Record of one guarded fund operation.

    Attributes:
        operation_id: Unique identifier
        name: Operation name (deposit, redeem, rebalance, ...)
        caller: Address that invoked the operation
        status: Current status
        started_at: When the guard was acquired
        completed_at: When the operation committed or rolled back
        error_message: Error that triggered a rollback
    """

    name: str
    caller: Optional[str] = None
    operation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: OperationStatus = OperationStatus.EXECUTING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status in (OperationStatus.COMMITTED, OperationStatus.ROLLED_BACK)

    def mark_committed(self) -> None:
        self.status = OperationStatus.COMMITTED
        self.completed_at = datetime.now(timezone.utc)

    def mark_rolled_back(self, error: str) -> None:
        self.status = OperationStatus.ROLLED_BACK
        self.completed_at = datetime.now(timezone.utc)
        self.error_message = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "name": self.name,
            "caller": self.caller,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }


@dataclass
class DepositReceipt:
    """
    Outcome of a fund deposit.

    Attributes:
        caller: Address the assets were pulled from
        receiver: Address credited with fund shares
        assets: Gross assets deposited
        fee: Deposit fee taken from assets
        shares_minted: Fund shares issued to receiver
        plan: Executed pool allocation of the net assets
    """

    caller: str
    receiver: str
    assets: int
    fee: int
    shares_minted: int
    plan: DepositPlan

    @property
    def net_assets(self) -> int:
        return self.assets - self.fee

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caller": self.caller,
            "receiver": self.receiver,
            "assets": self.assets,
            "fee": self.fee,
            "net_assets": self.net_assets,
            "shares_minted": self.shares_minted,
            "plan": self.plan.to_dict(),
        }


@dataclass
class RedeemReceipt:
    """Outcome of a fund redemption."""

    caller: str
    receiver: str
    shares_burned: int
    plan: RedemptionPlan

    @property
    def assets_returned(self) -> int:
        return self.plan.total_assets_returned

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caller": self.caller,
            "receiver": self.receiver,
            "shares_burned": self.shares_burned,
            "assets_returned": self.assets_returned,
            "plan": self.plan.to_dict(),
        }
