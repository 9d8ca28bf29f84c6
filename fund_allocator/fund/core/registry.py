"""
Pool Registry.

Ordered collection of the pools a fund allocates into, with target
weights and a cached weight sum. Insertion order decides where rounding
remainders land, so it is preserved exactly.
"""

from typing import Any, Dict, Iterator, List, Sequence, Set, Tuple

from fund_allocator.core import (
    CapacityExceededError,
    DuplicatePoolError,
    LengthMismatchError,
    PoolNotFoundError,
    ValidationError,
    get_logger,
)
from fund_allocator.pools import PoolProtocol

logger = get_logger(__name__)

DEFAULT_MAX_POOLS = 1000

WeightChange = Tuple[str, int, int]


class PoolRegistry:
    """
    Ordered pool set with weights.

    Invariants:
        total_weight == sum of every member's weight (zero weights included)
        len(registry) <= max_pools

    Example:
        >>> registry = PoolRegistry(max_pools=10)
        >>> registry.add(pool_a)
        >>> registry.add(pool_b)
        >>> registry.set_weights(["pool-a", "pool-b"], [60, 40])
        >>> registry.total_weight
        100
    """

    def __init__(self, max_pools: int = DEFAULT_MAX_POOLS):
        if max_pools < 1:
            raise ValidationError(f"max_pools must be at least 1: {max_pools}")
        self._max_pools = max_pools
        self._order: List[str] = []
        self._members: Set[str] = set()
        self._pools: Dict[str, PoolProtocol] = {}
        self._weights: Dict[str, int] = {}
        self._total_weight: int = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def max_pools(self) -> int:
        return self._max_pools

    @property
    def total_weight(self) -> int:
        return self._total_weight

    @property
    def addresses(self) -> List[str]:
        """Member addresses in registry order."""
        return list(self._order)

    @property
    def pools(self) -> List[PoolProtocol]:
        """Member pools in registry order."""
        return [self._pools[address] for address in self._order]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, address: object) -> bool:
        return address in self._members

    def __iter__(self) -> Iterator[PoolProtocol]:
        return iter(self.pools)

    def items(self) -> List[Tuple[PoolProtocol, int]]:
        """(pool, weight) pairs in registry order."""
        return [(self._pools[a], self._weights[a]) for a in self._order]

    def get(self, address: str) -> PoolProtocol:
        self._require_member(address)
        return self._pools[address]

    def weight_of(self, address: str) -> int:
        self._require_member(address)
        return self._weights[address]

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, pool: PoolProtocol) -> None:
        """
        Append a pool with weight 0.

        Raises:
            DuplicatePoolError: If the pool is already a member
            CapacityExceededError: If the registry holds max_pools pools
        """
        address = pool.address
        if address in self._members:
            raise DuplicatePoolError(f"Pool {address} already registered")
        if len(self._order) >= self._max_pools:
            raise CapacityExceededError(
                f"Registry holds {len(self._order)} pools (max {self._max_pools})"
            )

        self._order.append(address)
        self._members.add(address)
        self._pools[address] = pool
        self._weights[address] = 0
        logger.info(f"Pool added: {address} ({len(self._order)}/{self._max_pools})")

    def remove(self, address: str) -> PoolProtocol:
        """
        Remove a pool and its weight contribution.

        Returns:
            The removed pool

        Raises:
            PoolNotFoundError: If the pool is not a member
        """
        self._require_member(address)

        weight = self._weights.pop(address)
        self._total_weight -= weight
        self._order.remove(address)
        self._members.discard(address)
        pool = self._pools.pop(address)

        logger.info(f"Pool removed: {address} (weight {weight}, total {self._total_weight})")
        return pool

    def set_weights(
        self,
        addresses: Sequence[str],
        weights: Sequence[int],
    ) -> List[WeightChange]:
        """
        Update weights for the given pools.

        Every pair is validated before anything is written.

        Returns:
            (address, old_weight, new_weight) per pair, in input order

        Raises:
            LengthMismatchError: If the sequences differ in length
            PoolNotFoundError: If an address is not a member
            ValidationError: If a weight is not a non-negative integer
        """
        if len(addresses) != len(weights):
            raise LengthMismatchError(
                f"{len(addresses)} pools but {len(weights)} weights",
                details={"pools": len(addresses), "weights": len(weights)},
            )
        for address, weight in zip(addresses, weights):
            self._require_member(address)
            if not isinstance(weight, int) or isinstance(weight, bool) or weight < 0:
                raise ValidationError(
                    f"Weight for {address} must be a non-negative integer: {weight!r}"
                )

        changes: List[WeightChange] = []
        for address, weight in zip(addresses, weights):
            old = self._weights[address]
            self._total_weight = self._total_weight - old + weight
            self._weights[address] = weight
            changes.append((address, old, weight))
            logger.debug(f"Weight {address}: {old} -> {weight}")

        logger.info(f"Weights updated for {len(changes)} pools (total {self._total_weight})")
        return changes

    def _require_member(self, address: str) -> None:
        if address not in self._members:
            raise PoolNotFoundError(f"Pool {address} is not registered")

    # =========================================================================
    # Snapshot Methods (for Atomic Operations)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "order": list(self._order),
            "pools": self._pools.copy(),
            "weights": self._weights.copy(),
            "total_weight": self._total_weight,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._order = list(state["order"])
        self._members = set(self._order)
        self._pools = state["pools"].copy()
        self._weights = state["weights"].copy()
        self._total_weight = state["total_weight"]
