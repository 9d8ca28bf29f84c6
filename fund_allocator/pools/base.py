"""
Pool Capability Contract.

Every external yield-bearing pool the fund allocates into satisfies
PoolProtocol. Concrete adapters are interchangeable.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class PoolProtocol(Protocol):
    """Protocol for pool capability interface."""

    @property
    def address(self) -> str:
        """Pool identity."""
        ...

    async def deposit(self, assets: int, receiver: str, min_shares_out: int) -> int:
        """
        Deposit assets and issue pool shares to receiver.

        Assets are pulled from the receiver's balance through the allowance
        the receiver granted the pool.

        Returns:
            Pool shares issued
        """
        ...

    async def redeem(
        self,
        shares: int,
        receiver: str,
        owner: str,
        min_assets_out: int,
    ) -> int:
        """
        Burn owner's pool shares and send the assets to receiver.

        Returns:
            Assets returned
        """
        ...

    async def balance_of(self, holder: str) -> int:
        """Pool shares held by holder."""
        ...

    async def share_price(self) -> int:
        """Asset units per share, scaled by 10**decimals()."""
        ...

    async def asset(self) -> str:
        """Underlying asset id."""
        ...

    async def decimals(self) -> int:
        """Fixed-point scale of share_price()."""
        ...


@runtime_checkable
class Snapshottable(Protocol):
    """State holder that can be captured and restored for rollback."""

    def snapshot(self) -> Any:
        """Capture current state."""
        ...

    def restore(self, state: Any) -> None:
        """Restore state captured by snapshot()."""
        ...
