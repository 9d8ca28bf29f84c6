"""
Simulated Pool.

Vault-style pool over an AssetLedger. Issues its own shares against the
assets it holds, so its share price moves when yield accrues or losses
are booked.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from fund_allocator.core import (
    ExternalCallError,
    InvalidAmountError,
    SlippageExceededError,
    get_logger,
)

from .ledger import AssetLedger

logger = get_logger(__name__)

PoolHook = Callable[["SimulatedPool", int, int], Awaitable[None]]


class SimulatedPool:
    """
    In-memory pool satisfying PoolProtocol.

    Share price starts at `initial_share_price` (default 1:1, i.e.
    10**decimals) and afterwards follows held assets / issued shares.

    Example:
        >>> ledger = AssetLedger("USDC")
        >>> pool = SimulatedPool("pool-a", ledger, decimals=6)
        >>> ledger.mint("fund", 1_000)
        >>> ledger.approve("fund", pool.address, 1_000)
        >>> await pool.deposit(1_000, "fund", 0)
        1000
        >>> pool.accrue(100)  # +10% yield
        >>> await pool.share_price()
        1100000
    """

    def __init__(
        self,
        address: str,
        ledger: AssetLedger,
        decimals: int = 18,
        initial_share_price: Optional[int] = None,
        on_deposit: Optional[PoolHook] = None,
        on_redeem: Optional[PoolHook] = None,
    ):
        """
        Initialize SimulatedPool.

        Args:
            address: Pool address/handle
            ledger: Ledger of the underlying asset
            decimals: Share price scale
            initial_share_price: Price used while no shares exist
            on_deposit: Awaited after each deposit with (pool, assets, shares)
            on_redeem: Awaited after each redeem with (pool, shares, assets)
        """
        if initial_share_price is not None and initial_share_price <= 0:
            raise InvalidAmountError(f"Share price must be positive: {initial_share_price}")

        self._address = address
        self._ledger = ledger
        self._decimals = decimals
        self._initial_share_price = initial_share_price or 10**decimals
        self._shares: Dict[str, int] = {}
        self._total_shares: int = 0
        self.on_deposit = on_deposit
        self.on_redeem = on_redeem

    def __repr__(self) -> str:
        return (
            f"SimulatedPool(address={self._address!r}, "
            f"total_assets={self.total_assets}, total_shares={self._total_shares})"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def address(self) -> str:
        return self._address

    @property
    def total_assets(self) -> int:
        """Assets held by the pool."""
        return self._ledger.balance_of(self._address)

    @property
    def total_shares(self) -> int:
        return self._total_shares

    # =========================================================================
    # Capability Interface
    # =========================================================================

    async def deposit(self, assets: int, receiver: str, min_shares_out: int) -> int:
        if assets <= 0:
            raise InvalidAmountError(f"Deposit must be positive: {assets}")

        shares = self._convert_to_shares(assets)
        if shares == 0:
            raise ExternalCallError(
                f"Deposit of {assets} would issue zero shares",
                pool=self._address,
                operation="deposit",
            )
        if shares < min_shares_out:
            raise SlippageExceededError(
                f"Deposit issues {shares} shares, minimum {min_shares_out}",
                pool=self._address,
                operation="deposit",
            )

        self._ledger.transfer_from(self._address, receiver, self._address, assets)
        self._shares[receiver] = self._shares.get(receiver, 0) + shares
        self._total_shares += shares

        logger.debug(f"{self._address}: deposit {assets} -> {shares} shares for {receiver}")

        if self.on_deposit is not None:
            await self.on_deposit(self, assets, shares)
        return shares

    async def redeem(
        self,
        shares: int,
        receiver: str,
        owner: str,
        min_assets_out: int,
    ) -> int:
        if shares <= 0:
            raise InvalidAmountError(f"Redeem must be positive: {shares}")

        held = self._shares.get(owner, 0)
        if shares > held:
            raise ExternalCallError(
                f"{owner} holds {held} shares, cannot redeem {shares}",
                pool=self._address,
                operation="redeem",
            )

        assets = self._convert_to_assets(shares)
        if assets < min_assets_out:
            raise SlippageExceededError(
                f"Redeem returns {assets} assets, minimum {min_assets_out}",
                pool=self._address,
                operation="redeem",
            )

        remaining = held - shares
        if remaining:
            self._shares[owner] = remaining
        else:
            self._shares.pop(owner, None)
        self._total_shares -= shares
        if assets:
            self._ledger.transfer(self._address, receiver, assets)

        logger.debug(f"{self._address}: redeem {shares} shares -> {assets} for {receiver}")

        if self.on_redeem is not None:
            await self.on_redeem(self, shares, assets)
        return assets

    async def balance_of(self, holder: str) -> int:
        return self._shares.get(holder, 0)

    async def share_price(self) -> int:
        if self._total_shares == 0:
            return self._initial_share_price
        return self.total_assets * 10**self._decimals // self._total_shares

    async def asset(self) -> str:
        return self._ledger.asset

    async def decimals(self) -> int:
        return self._decimals

    # =========================================================================
    # Simulation Controls
    # =========================================================================

    def accrue(self, amount: int) -> None:
        """Book yield: assets appear in the pool without new shares."""
        self._ledger.mint(self._address, amount)
        logger.debug(f"{self._address}: accrued {amount}")

    def book_loss(self, amount: int) -> None:
        """Book a loss: assets leave the pool without burning shares."""
        self._ledger.burn(self._address, amount)
        logger.debug(f"{self._address}: lost {amount}")

    def set_share_price(self, price: int) -> None:
        """Move held assets so the share price equals `price`."""
        if price <= 0:
            raise InvalidAmountError(f"Share price must be positive: {price}")
        if self._total_shares == 0:
            self._initial_share_price = price
            return
        target = self._total_shares * price // 10**self._decimals
        current = self.total_assets
        if target > current:
            self.accrue(target - current)
        elif target < current:
            self.book_loss(current - target)

    def _convert_to_shares(self, assets: int) -> int:
        total_assets = self.total_assets
        if self._total_shares == 0 or total_assets == 0:
            return assets * 10**self._decimals // self._initial_share_price
        return assets * self._total_shares // total_assets

    def _convert_to_assets(self, shares: int) -> int:
        if self._total_shares == 0:
            return 0
        return shares * self.total_assets // self._total_shares

    # =========================================================================
    # Snapshot Methods (for Atomic Operations)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "shares": self._shares.copy(),
            "total_shares": self._total_shares,
            "initial_share_price": self._initial_share_price,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._shares = state["shares"].copy()
        self._total_shares = state["total_shares"]
        self._initial_share_price = state["initial_share_price"]
