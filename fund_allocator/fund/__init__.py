"""
Fund Module.

Fund-of-funds allocation across external yield-bearing pools.

Includes:
- Fund: guarded public surface (deposit, redeem, rebalance, registry admin)
- Allocation, redemption and rebalance engines over one pool registry
- OperationGuard: fund-wide lock with snapshot rollback
"""

from .cli import FundCLI, create_cli
from .core.access import AccessController, Permission, Role
from .core.allocation import AllocationEngine
from .core.guard import OperationGuard
from .core.rebalance import RebalanceEngine
from .core.redemption import RedemptionEngine
from .core.registry import PoolRegistry
from .core.shares import ShareLedger
from .core.slippage import SlippageGuard
from .core.valuation import ValuationService
from .manager import Fund
from .models.records import (
    DepositPlan,
    DepositReceipt,
    EventType,
    FundEvent,
    OperationRecord,
    OperationStatus,
    RebalancePlan,
    RedeemReceipt,
    RedemptionPlan,
)

__all__ = [
    # Fund
    "Fund",
    # CLI
    "FundCLI",
    "create_cli",
    # Core
    "PoolRegistry",
    "ValuationService",
    "AllocationEngine",
    "RedemptionEngine",
    "RebalanceEngine",
    "SlippageGuard",
    "OperationGuard",
    "ShareLedger",
    "AccessController",
    "Permission",
    "Role",
    # Models
    "DepositPlan",
    "DepositReceipt",
    "RedemptionPlan",
    "RedeemReceipt",
    "RebalancePlan",
    "FundEvent",
    "EventType",
    "OperationRecord",
    "OperationStatus",
]
