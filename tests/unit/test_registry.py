"""
Pool Registry Unit Tests.

Tests for membership, capacity and weight bookkeeping.
"""

import pytest

from fund_allocator.core import (
    CapacityExceededError,
    DuplicatePoolError,
    LengthMismatchError,
    PoolNotFoundError,
    StateError,
    UnknownPoolError,
    ValidationError,
)
from fund_allocator.fund.core import PoolRegistry
from tests.mocks import MockPool


class TestRegistryMembership:
    """Test add/remove."""

    def test_add_keeps_insertion_order(self, registry):
        """Test pools keep insertion order and start at weight 0."""
        assert registry.addresses == ["pool-a", "pool-b", "pool-c"]
        assert len(registry) == 3
        assert "pool-b" in registry
        assert registry.weight_of("pool-b") == 0
        assert registry.total_weight == 0

    def test_add_duplicate_rejected(self, registry, mock_pools):
        """Test adding a member twice fails."""
        with pytest.raises(DuplicatePoolError):
            registry.add(mock_pools[0])
        assert len(registry) == 3

    def test_capacity_bound(self):
        """Test the registry refuses pools beyond max_pools."""
        registry = PoolRegistry(max_pools=2)
        registry.add(MockPool("pool-a"))
        registry.add(MockPool("pool-b"))

        with pytest.raises(CapacityExceededError):
            registry.add(MockPool("pool-c"))
        assert registry.addresses == ["pool-a", "pool-b"]

    def test_max_pools_must_be_positive(self):
        """Test a zero capacity is rejected."""
        with pytest.raises(ValidationError):
            PoolRegistry(max_pools=0)

    def test_remove_subtracts_weight(self, registry, mock_pools):
        """Test remove drops the weight from the total."""
        registry.set_weights(registry.addresses, [50, 30, 20])

        removed = registry.remove("pool-b")

        assert removed is mock_pools[1]
        assert registry.total_weight == 70
        assert registry.addresses == ["pool-a", "pool-c"]
        assert "pool-b" not in registry

    def test_remove_unknown_pool(self, registry):
        """Test removing a non-member fails."""
        with pytest.raises(PoolNotFoundError):
            registry.remove("pool-z")

    def test_readd_goes_to_end_with_zero_weight(self, registry, mock_pools):
        """Test a re-added pool is appended with weight 0."""
        registry.set_weights(["pool-a"], [10])
        registry.remove("pool-a")
        registry.add(mock_pools[0])

        assert registry.addresses == ["pool-b", "pool-c", "pool-a"]
        assert registry.weight_of("pool-a") == 0
        assert registry.total_weight == 0


class TestRegistryWeights:
    """Test set_weights."""

    def test_set_weights_tracks_total(self, registry):
        """Test total_weight follows old -> new for each pair."""
        changes = registry.set_weights(["pool-a", "pool-c"], [60, 40])

        assert changes == [("pool-a", 0, 60), ("pool-c", 0, 40)]
        assert registry.total_weight == 100

        registry.set_weights(["pool-a"], [10])
        assert registry.total_weight == 50
        assert registry.items()[0][1] == 10

    def test_length_mismatch(self, registry):
        """Test differing sequence lengths are a validation error."""
        with pytest.raises(LengthMismatchError) as exc_info:
            registry.set_weights(["pool-a", "pool-b"], [1])

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.details == {"pools": 2, "weights": 1}

    def test_unknown_pool_is_state_error_and_nothing_changes(self, registry):
        """Test an unknown id aborts the whole update."""
        with pytest.raises(UnknownPoolError) as exc_info:
            registry.set_weights(["pool-a", "pool-z"], [10, 10])

        assert isinstance(exc_info.value, StateError)
        assert registry.weight_of("pool-a") == 0
        assert registry.total_weight == 0

    @pytest.mark.parametrize("bad_weight", [-1, 1.5, True, "3"])
    def test_invalid_weight_rejected(self, registry, bad_weight):
        """Test weights must be non-negative integers."""
        with pytest.raises(ValidationError):
            registry.set_weights(["pool-a", "pool-b"], [5, bad_weight])
        assert registry.weight_of("pool-a") == 0

    def test_zero_weights_count_toward_membership_only(self, registry):
        """Test zero weights are legal and keep the total consistent."""
        registry.set_weights(registry.addresses, [0, 5, 0])
        assert registry.total_weight == 5
        assert len(registry) == 3


class TestRegistrySnapshot:
    """Test snapshot/restore."""

    def test_restore_undoes_changes(self, registry):
        """Test restore returns order, members and weights."""
        registry.set_weights(registry.addresses, [1, 2, 3])
        state = registry.snapshot()

        registry.remove("pool-a")
        registry.set_weights(["pool-b"], [9])

        registry.restore(state)

        assert registry.addresses == ["pool-a", "pool-b", "pool-c"]
        assert "pool-a" in registry
        assert registry.weight_of("pool-b") == 2
        assert registry.total_weight == 6
