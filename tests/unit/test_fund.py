"""
Fund Unit Tests.

End-to-end tests of the fund surface over simulated pools.
"""

import asyncio
import logging

import pytest

from fund_allocator.config import FundConfig, PoolConfig
from fund_allocator.core import (
    AssetMismatchError,
    ExternalCallError,
    InsufficientSharesError,
    InvalidAmountError,
    NoPoolsError,
    NothingRedeemedError,
    PoolCallTimeoutError,
    ReentrancyError,
    UnauthorizedError,
    ValidationError,
    get_timeout_config,
)
from fund_allocator.fund import EventType, Fund, OperationStatus, Role
from fund_allocator.pools import UNLIMITED, AssetLedger, SimulatedPool
from tests.mocks import ADMIN, KEEPER, FailingPool, SlowPool, build_fund, fund_account


class TestFundDeposit:
    """Test deposit()."""

    @pytest.mark.asyncio
    async def test_deposit_routes_by_weight(self):
        """Test 1000 over weights [50, 30, 20] lands as 500/300/200."""
        fund = await build_fund([50, 30, 20])
        fund_account(fund, "alice", 1_000)

        receipt = await fund.deposit("alice", 1_000)

        assert [a.amount for a in receipt.plan.allocations] == [500, 300, 200]
        assert receipt.shares_minted == 1_000
        assert fund.balance_of("alice") == 1_000
        assert fund.total_supply == 1_000
        assert await fund.pool_value("pool-a") == 500
        assert await fund.pool_balance("pool-b") == 300
        assert await fund.total_assets() == 1_000
        assert fund.idle_balance() == 0
        assert fund.ledger.balance_of("alice") == 0

    @pytest.mark.asyncio
    async def test_zero_total_weight_moves_nothing(self):
        """Test a deposit with total weight 0 fails and nothing moves."""
        fund = await build_fund([0, 0])
        fund_account(fund, "alice", 100)

        with pytest.raises(NoPoolsError):
            await fund.deposit("alice", 100)

        assert fund.ledger.balance_of("alice") == 100
        assert fund.idle_balance() == 0
        assert fund.total_supply == 0
        assert fund.get_history(limit=1)[0].status == OperationStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_fee_sent_to_recipient(self):
        """Test the deposit fee goes to the fee recipient."""
        fund = await build_fund([1], deposit_fee_bps=100, fee_recipient="treasury")
        fund_account(fund, "alice", 1_000)

        receipt = await fund.deposit("alice", 1_000)

        assert receipt.fee == 10
        assert receipt.net_assets == 990
        assert receipt.shares_minted == 990
        assert fund.ledger.balance_of("treasury") == 10
        assert await fund.total_assets() == 990

    @pytest.mark.asyncio
    async def test_fee_without_recipient_stays_idle(self):
        """Test the fee stays in the fund when no recipient is set."""
        fund = await build_fund([1], deposit_fee_bps=100)
        fund_account(fund, "alice", 1_000)

        await fund.deposit("alice", 1_000)

        assert fund.idle_balance() == 10

    @pytest.mark.asyncio
    async def test_shares_priced_against_total_assets(self):
        """Test later deposits mint shares at the current share value."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 1_000)
        fund_account(fund, "bob", 1_000)
        await fund.deposit("alice", 1_000)

        fund.registry.get("pool-a").accrue(1_000)
        receipt = await fund.deposit("bob", 1_000)

        assert receipt.shares_minted == 500
        assert fund.total_supply == 1_500

    @pytest.mark.asyncio
    async def test_deposit_minting_no_shares_rejected(self):
        """Test a deposit worth less than one fund share fails."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 1)
        fund_account(fund, "bob", 1)
        await fund.deposit("alice", 1)
        fund.registry.get("pool-a").accrue(1_000)

        with pytest.raises(InvalidAmountError):
            await fund.deposit("bob", 1)
        assert fund.ledger.balance_of("bob") == 1

    @pytest.mark.asyncio
    async def test_receiver_gets_shares(self):
        """Test shares can be minted to another address."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 10)

        receipt = await fund.deposit("alice", 10, receiver="bob")

        assert receipt.receiver == "bob"
        assert fund.balance_of("bob") == 10
        assert fund.balance_of("alice") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, 2.5])
    async def test_invalid_amount(self, amount):
        """Test non-positive or non-integer deposits fail."""
        fund = await build_fund([1])
        with pytest.raises(InvalidAmountError):
            await fund.deposit("alice", amount)

    @pytest.mark.asyncio
    async def test_concurrent_deposits_serialized(self):
        """Test deposits from separate tasks both complete."""
        fund = await build_fund([1, 1])
        fund_account(fund, "alice", 100)
        fund_account(fund, "bob", 100)

        await asyncio.gather(fund.deposit("alice", 100), fund.deposit("bob", 100))

        assert fund.total_supply == 200
        assert await fund.total_assets() == 200


class TestFundRedeem:
    """Test redeem()."""

    @pytest.mark.asyncio
    async def test_redeem_returns_proportional_assets(self):
        """Test redeeming 40% of the shares returns 40% of each position."""
        fund = await build_fund([50, 50])
        fund_account(fund, "alice", 1_000)
        await fund.deposit("alice", 1_000)

        receipt = await fund.redeem("alice", 400)

        assert receipt.assets_returned == 400
        assert fund.ledger.balance_of("alice") == 400
        assert fund.balance_of("alice") == 600
        assert await fund.pool_balance("pool-a") == 300
        assert await fund.pool_balance("pool-b") == 300

    @pytest.mark.asyncio
    async def test_redeem_more_than_held(self):
        """Test redeeming beyond the caller's balance fails."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 10)
        await fund.deposit("alice", 10)

        with pytest.raises(InsufficientSharesError):
            await fund.redeem("alice", 11)
        assert fund.balance_of("alice") == 10

    @pytest.mark.asyncio
    async def test_dust_redemption_rejected(self):
        """Test a redemption rounding to zero everywhere fails and burns nothing."""
        fund = await build_fund([1, 1])
        fund_account(fund, "alice", 1_000)
        fund_account(fund, "bob", 1)
        await fund.deposit("alice", 1_000)
        await fund.deposit("bob", 1)

        with pytest.raises(NothingRedeemedError):
            await fund.redeem("bob", 1)
        assert fund.balance_of("bob") == 1
        assert fund.total_supply == 1_001


class TestFundRebalance:
    """Test rebalance()."""

    @pytest.mark.asyncio
    async def test_rebalance_to_new_weights(self):
        """Test A 600 -> 500 and B 200 -> 300 after a weight change."""
        fund = await build_fund([75, 25])
        fund_account(fund, "alice", 800)
        await fund.deposit("alice", 800)
        await fund.set_weights(ADMIN, ["pool-a", "pool-b"], [5, 3])

        plan = await fund.rebalance(KEEPER)

        assert plan.total_assets == 800
        assert await fund.pool_value("pool-a") == 500
        assert await fund.pool_value("pool-b") == 300
        assert fund.idle_balance() == 0

    @pytest.mark.asyncio
    async def test_surplus_without_deficit_left_idle(self):
        """Test rebalance proceeds with no deficit stay idle."""
        fund = await build_fund([1, 1])
        fund_account(fund, "alice", 101)
        await fund.deposit("alice", 101)

        plan = await fund.rebalance(KEEPER)

        assert plan.idle_assets == 1
        assert fund.idle_balance() == 1
        assert await fund.total_assets() + fund.idle_balance() == 101

    @pytest.mark.asyncio
    async def test_idle_deployed_by_later_rebalance(self):
        """Test idle proceeds are swept into a deficit on the next rebalance."""
        fund = await build_fund([1, 1])
        fund_account(fund, "alice", 101)
        await fund.deposit("alice", 101)
        await fund.rebalance(KEEPER)
        assert fund.idle_balance() == 1

        await fund.set_weights(ADMIN, ["pool-a", "pool-b"], [1, 3])
        plan = await fund.rebalance(KEEPER)

        assert plan.idle_swept == 1
        assert plan.total_to_redistribute == 26
        assert fund.idle_balance() == 0
        assert await fund.pool_value("pool-a") == 25
        assert await fund.pool_value("pool-b") == 76

        receipt = await fund.redeem("alice", 101)

        assert receipt.assets_returned == 101
        assert fund.ledger.balance_of("alice") == 101
        assert fund.idle_balance() == 0

    @pytest.mark.asyncio
    async def test_kept_fee_deployed_by_rebalance(self):
        """Test a fee kept by the fund is invested once a pool is below target."""
        fund = await build_fund([1, 1], deposit_fee_bps=100)
        fund_account(fund, "alice", 1_000)
        await fund.deposit("alice", 1_000)
        assert fund.idle_balance() == 10

        await fund.set_weights(ADMIN, ["pool-a", "pool-b"], [1, 4])
        plan = await fund.rebalance(KEEPER)

        assert plan.idle_swept == 10
        assert fund.idle_balance() == 0
        assert await fund.total_assets() == 1_000
        events = fund.get_events(EventType.REBALANCE)
        assert events[-1].data["idle_swept"] == 10

    @pytest.mark.asyncio
    async def test_rebalance_conserves_assets_after_yield(self):
        """Test pool assets plus idle equal the pre-rebalance total."""
        ledger = AssetLedger("USDC")
        pools = [SimulatedPool(f"pool-{n}", ledger, decimals=6) for n in "abc"]
        fund = await build_fund([50, 30, 20], pools=pools, ledger=ledger)
        fund_account(fund, "alice", 1_000)
        await fund.deposit("alice", 1_000)
        pools[0].accrue(300)

        plan = await fund.rebalance(KEEPER)

        held = sum(pool.total_assets for pool in pools) + fund.idle_balance()
        assert held == 1_300
        valued = await fund.total_assets() + fund.idle_balance()
        assert 1_300 - len(pools) <= valued <= 1_300
        assert plan.leftover_pool == "pool-c"

    @pytest.mark.asyncio
    async def test_rebalance_requires_permission(self):
        """Test only admins and rebalancers can rebalance."""
        fund = await build_fund([1])

        with pytest.raises(UnauthorizedError):
            await fund.rebalance("alice")

        await fund.rebalance(KEEPER)
        await fund.rebalance(ADMIN)


class TestFundRegistryAdmin:
    """Test privileged registry operations."""

    @pytest.mark.asyncio
    async def test_add_pool_grants_unlimited_allowance(self):
        """Test add_pool registers at weight 0 with an unlimited allowance."""
        fund = await build_fund([])
        pool = SimulatedPool("pool-a", fund.ledger)

        await fund.add_pool(ADMIN, pool)

        assert fund.pools == ["pool-a"]
        assert fund.weight_of("pool-a") == 0
        assert fund.ledger.allowance(fund.address, "pool-a") == UNLIMITED

    @pytest.mark.asyncio
    async def test_remove_pool_revokes_allowance(self):
        """Test remove_pool drops weight and allowance."""
        fund = await build_fund([60, 40])

        removed = await fund.remove_pool(ADMIN, "pool-a")

        assert removed.address == "pool-a"
        assert fund.pools == ["pool-b"]
        assert fund.total_weight == 40
        assert fund.ledger.allowance(fund.address, "pool-a") == 0

    @pytest.mark.asyncio
    async def test_remove_pool_with_position_warns(self, caplog):
        """Test removing a pool the fund still holds shares in is logged."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 10)
        await fund.deposit("alice", 10)

        with caplog.at_level(logging.WARNING):
            await fund.remove_pool(ADMIN, "pool-a")

        assert "holds 10 of its shares" in caplog.text

    @pytest.mark.asyncio
    async def test_asset_mismatch(self):
        """Test a pool over another asset is rejected."""
        fund = await build_fund([])

        with pytest.raises(AssetMismatchError):
            await fund.add_pool(ADMIN, SimulatedPool("pool-dai", AssetLedger("DAI")))
        assert fund.pool_count == 0

    @pytest.mark.asyncio
    async def test_fund_address_cannot_be_a_pool(self):
        """Test the fund cannot register itself."""
        fund = await build_fund([])

        with pytest.raises(ValidationError):
            await fund.add_pool(ADMIN, SimulatedPool(fund.address, fund.ledger))

    @pytest.mark.asyncio
    async def test_privileged_operations_require_admin(self):
        """Test non-admins cannot change the registry or fee."""
        fund = await build_fund([1])
        pool = SimulatedPool("pool-z", fund.ledger)

        with pytest.raises(UnauthorizedError):
            await fund.add_pool("alice", pool)
        with pytest.raises(UnauthorizedError):
            await fund.remove_pool(KEEPER, "pool-a")
        with pytest.raises(UnauthorizedError):
            await fund.set_weights(KEEPER, ["pool-a"], [2])
        with pytest.raises(UnauthorizedError):
            await fund.set_deposit_fee("alice", 10)

        fund.access.grant("alice", Role.ADMIN)
        await fund.add_pool("alice", pool)
        assert fund.pool_count == 2

    @pytest.mark.asyncio
    async def test_set_deposit_fee_bounds(self):
        """Test the fee cannot exceed the configured maximum."""
        fund = await build_fund([1], max_deposit_fee_bps=500)

        await fund.set_deposit_fee(ADMIN, 500)
        assert fund.deposit_fee_bps == 500

        with pytest.raises(ValidationError):
            await fund.set_deposit_fee(ADMIN, 501)
        assert fund.deposit_fee_bps == 500


class TestFundAtomicity:
    """Test rollback and re-entrancy."""

    @pytest.mark.asyncio
    async def test_failing_pool_rolls_back_everything(self):
        """Test a pool failure after earlier deposits undoes the whole deposit."""
        ledger = AssetLedger("USDC")
        healthy = SimulatedPool("pool-a", ledger, decimals=0)
        failing = FailingPool("pool-b", ledger, fail_on="deposit")
        fund = await build_fund([1, 1], pools=[healthy, failing], ledger=ledger)
        fund_account(fund, "alice", 100)

        with pytest.raises(ExternalCallError) as exc_info:
            await fund.deposit("alice", 100)

        assert exc_info.value.pool == "pool-b"
        assert ledger.balance_of("alice") == 100
        assert ledger.balance_of(fund.address) == 0
        assert healthy.total_shares == 0
        assert failing.total_shares == 0
        assert healthy.total_assets == 0
        assert fund.total_supply == 0

    @pytest.mark.asyncio
    async def test_rollback_discards_events(self):
        """Test a rolled-back operation publishes only a rollback event."""
        ledger = AssetLedger("USDC")
        failing = FailingPool("pool-a", ledger, fail_on="deposit")
        fund = await build_fund([1], pools=[failing], ledger=ledger)
        fund_account(fund, "alice", 100)
        seen = []
        fund.on_event(seen.append)

        with pytest.raises(ExternalCallError):
            await fund.deposit("alice", 100)

        assert [e.event_type for e in seen] == [EventType.ROLLBACK]
        assert seen[0].data["operation"] == "deposit"
        assert fund.get_events(event_type=EventType.DEPOSIT) == []

    @pytest.mark.asyncio
    async def test_pool_callback_reentry_rejected(self):
        """Test a pool calling back into the fund mid-deposit is rejected."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 200)
        pool = fund.registry.get("pool-a")

        async def reenter(pool, assets, shares):
            await fund.deposit("alice", 10)

        pool.on_deposit = reenter

        with pytest.raises(ReentrancyError):
            await fund.deposit("alice", 100)

        assert fund.ledger.balance_of("alice") == 200
        assert fund.total_supply == 0
        assert fund.guard.locked is False

    @pytest.mark.asyncio
    async def test_slow_pool_times_out(self, short_timeouts):
        """Test an unresponsive pool aborts the deposit."""
        ledger = AssetLedger("USDC")
        fund = await build_fund([1], pools=[SlowPool("pool-a", ledger)], ledger=ledger)
        fund_account(fund, "alice", 100)

        with pytest.raises(PoolCallTimeoutError) as exc_info:
            await fund.deposit("alice", 100)

        assert exc_info.value.operation == "deposit"
        assert ledger.balance_of("alice") == 100


class TestFundEventsAndStatus:
    """Test events, history and status."""

    @pytest.mark.asyncio
    async def test_events_published_after_commit(self):
        """Test registry and deposit events with async subscribers."""
        fund = await build_fund([])
        seen = []

        async def subscriber(event):
            seen.append(event)

        fund.on_event(subscriber)
        await fund.add_pool(ADMIN, SimulatedPool("pool-a", fund.ledger, decimals=0))
        await fund.add_pool(ADMIN, SimulatedPool("pool-b", fund.ledger, decimals=0))
        await fund.set_weights(ADMIN, ["pool-a", "pool-b"], [3, 1])

        assert [e.event_type for e in seen] == [
            EventType.POOL_ADDED,
            EventType.POOL_ADDED,
            EventType.WEIGHT_CHANGED,
            EventType.WEIGHT_CHANGED,
        ]
        assert seen[3].pool == "pool-b"
        assert seen[3].data == {"old_weight": 0, "new_weight": 1, "total_weight": 4}

        fund.remove_event_callback(subscriber)
        await fund.set_deposit_fee(ADMIN, 5)
        assert len(seen) == 4
        assert fund.get_events(limit=1)[0].event_type == EventType.FEE_CHANGED

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_undo_operation(self, caplog):
        """Test subscriber errors are logged after the commit."""
        fund = await build_fund([1])
        fund_account(fund, "alice", 10)

        def broken(event):
            raise RuntimeError("subscriber down")

        fund.on_event(broken)
        with caplog.at_level(logging.WARNING):
            await fund.deposit("alice", 10)

        assert fund.total_supply == 10
        assert "subscriber down" in caplog.text

    @pytest.mark.asyncio
    async def test_status(self):
        """Test get_status reports per-pool positions."""
        fund = await build_fund([3, 1])
        fund_account(fund, "alice", 400)
        await fund.deposit("alice", 400)

        status = await fund.get_status()

        assert status["asset"] == "USDC"
        assert status["pool_count"] == 2
        assert status["total_weight"] == 4
        assert status["total_assets"] == 400
        assert status["total_supply"] == 400
        assert status["pools"][0] == {
            "address": "pool-a",
            "weight": 3,
            "share_balance": 300,
            "share_price": 1,
            "value": 300,
        }

    @pytest.mark.asyncio
    async def test_history_records_operations(self):
        """Test committed and rolled-back operations are recorded."""
        fund = await build_fund([1])

        with pytest.raises(InvalidAmountError):
            await fund.redeem("alice", 0)
        with pytest.raises(InsufficientSharesError):
            await fund.redeem("alice", 1)

        latest = fund.get_history(limit=1)[0]
        assert latest.name == "redeem"
        assert latest.status == OperationStatus.ROLLED_BACK
        assert [r.name for r in fund.get_history(status=OperationStatus.COMMITTED)] == [
            "set_weights",
            "add_pool",
        ]


class TestFundFromConfig:
    """Test Fund.from_config()."""

    @pytest.mark.asyncio
    async def test_builds_weighted_simulated_pools(self):
        """Test configured pools are registered with their weights."""
        config = FundConfig(
            asset="USDC",
            pools=[
                PoolConfig(address="pool-a", weight=2, decimals=6),
                PoolConfig(address="pool-b", weight=1, decimals=6, share_price=2_000_000),
            ],
            timeouts={"pool_call": 3.0},
        )

        fund = await Fund.from_config(config)

        assert fund.pools == ["pool-a", "pool-b"]
        assert fund.total_weight == 3
        assert await fund.pool_share_price("pool-b") == 2_000_000
        assert get_timeout_config().pool_call == 3.0

    @pytest.mark.asyncio
    async def test_pools_without_admin_rejected(self):
        """Test pools cannot be registered without an admin."""
        config = FundConfig(admins=[], pools=[PoolConfig(address="pool-a", weight=1)])

        with pytest.raises(ValidationError):
            await Fund.from_config(config)
