"""
Fund Core Components.

Registry, valuation, the three routing engines and the operation guard.
"""

from .access import ROLE_PERMISSIONS, AccessController, Permission, Role
from .allocation import AllocationEngine
from .calls import call_pool
from .guard import OperationGuard
from .rebalance import RebalanceEngine
from .redemption import RedemptionEngine
from .registry import DEFAULT_MAX_POOLS, PoolRegistry
from .shares import ShareLedger
from .slippage import SlippageGuard
from .valuation import PoolValuation, ValuationService, ValuationSnapshot

__all__ = [
    # Registry
    "PoolRegistry",
    "DEFAULT_MAX_POOLS",
    # Valuation
    "ValuationService",
    "ValuationSnapshot",
    "PoolValuation",
    # Engines
    "AllocationEngine",
    "RedemptionEngine",
    "RebalanceEngine",
    "SlippageGuard",
    "call_pool",
    # Guard
    "OperationGuard",
    # Collaborators
    "ShareLedger",
    "AccessController",
    "Permission",
    "Role",
    "ROLE_PERMISSIONS",
]
