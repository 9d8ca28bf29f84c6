# Fund models
from .records import (
    DepositPlan,
    DepositReceipt,
    EventType,
    FundEvent,
    OperationRecord,
    OperationStatus,
    PoolAllocation,
    RebalanceLeg,
    RebalancePlan,
    RedeemReceipt,
    RedemptionLeg,
    RedemptionPlan,
)

__all__ = [
    "DepositPlan",
    "PoolAllocation",
    "DepositReceipt",
    "RedemptionPlan",
    "RedemptionLeg",
    "RedeemReceipt",
    "RebalancePlan",
    "RebalanceLeg",
    "FundEvent",
    "EventType",
    "OperationRecord",
    "OperationStatus",
]
