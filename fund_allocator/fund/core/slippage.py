"""
Minimum-output guard for pool calls.

With max_slippage_bps unset every call carries a zero minimum. With it
set, the minimum is the output implied by the pool's current share price
less the tolerated slippage.

Share prices are floored by the pool, so the true price lies in
[price, price + 1). Expected outputs are taken at the end of that range
that favours the pool: deposits at price + 1, redeems at price. At small
decimals this loosens the deposit minimum noticeably.
"""

from typing import Optional

from fund_allocator.config import BPS_DENOMINATOR
from fund_allocator.core import SlippageExceededError, ValidationError
from fund_allocator.pools import PoolProtocol

from .calls import call_pool


class SlippageGuard:
    """
    Computes and enforces per-call minimum outputs.

    Example:
        >>> guard = SlippageGuard(max_slippage_bps=50)  # 0.5%
        >>> await guard.min_shares_for_deposit(pool, 1_000)  # price 10**6
        994
    """

    def __init__(self, max_slippage_bps: Optional[int] = None):
        if max_slippage_bps is not None and not 0 <= max_slippage_bps <= BPS_DENOMINATOR:
            raise ValidationError(
                f"max_slippage_bps must be within 0..{BPS_DENOMINATOR}: {max_slippage_bps}"
            )
        self._max_slippage_bps = max_slippage_bps

    @property
    def enabled(self) -> bool:
        return self._max_slippage_bps is not None

    @property
    def max_slippage_bps(self) -> Optional[int]:
        return self._max_slippage_bps

    async def min_shares_for_deposit(self, pool: PoolProtocol, assets: int) -> int:
        if self._max_slippage_bps is None:
            return 0
        price, scale = await self._price(pool)
        expected = assets * scale // (price + 1)
        return self._apply_tolerance(expected)

    async def min_assets_for_redeem(self, pool: PoolProtocol, shares: int) -> int:
        if self._max_slippage_bps is None:
            return 0
        price, scale = await self._price(pool)
        expected = shares * price // scale
        return self._apply_tolerance(expected)

    def check(self, received: int, minimum: int, pool: str, operation: str) -> None:
        """Reject a pool result below the minimum the pool was given."""
        if received < minimum:
            raise SlippageExceededError(
                f"{operation} on {pool} returned {received}, minimum {minimum}",
                pool=pool,
                operation=operation,
                details={"received": received, "minimum": minimum},
            )

    def _apply_tolerance(self, expected: int) -> int:
        return expected * (BPS_DENOMINATOR - self._max_slippage_bps) // BPS_DENOMINATOR

    async def _price(self, pool: PoolProtocol) -> tuple[int, int]:
        price = await call_pool(pool.address, "share_price", pool.share_price())
        decimals = await call_pool(pool.address, "decimals", pool.decimals())
        if price <= 0:
            raise SlippageExceededError(
                f"Pool reported non-positive share price {price}",
                pool=pool.address,
                operation="share_price",
            )
        return price, 10**decimals
