"""
Pools Module.

The pool capability contract, the in-memory asset ledger and the
simulated pool adapter.
"""

from .base import PoolProtocol, Snapshottable
from .ledger import UNLIMITED, AssetLedger
from .simulated import SimulatedPool

__all__ = [
    "PoolProtocol",
    "Snapshottable",
    "AssetLedger",
    "UNLIMITED",
    "SimulatedPool",
]
