"""
Fund Share Ledger.

Fund-level ownership units, minted on deposit and burned on redeem.
"""

from typing import Any, Dict

from fund_allocator.core import InsufficientSharesError, InvalidAmountError


class ShareLedger:
    """Mint/burn book of fund shares."""

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self._total_supply: int = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def holders(self) -> Dict[str, int]:
        return self._balances.copy()

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Mint amount must be positive: {amount}")
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def burn(self, holder: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Burn amount must be positive: {amount}")
        balance = self.balance_of(holder)
        if amount > balance:
            raise InsufficientSharesError(
                f"{holder} holds {balance} shares, cannot burn {amount}",
                details={"holder": holder, "balance": balance, "amount": amount},
            )
        if amount == balance:
            self._balances.pop(holder)
        else:
            self._balances[holder] = balance - amount
        self._total_supply -= amount

    # =========================================================================
    # Snapshot Methods (for Atomic Operations)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {"balances": self._balances.copy(), "total_supply": self._total_supply}

    def restore(self, state: Dict[str, Any]) -> None:
        self._balances = state["balances"].copy()
        self._total_supply = state["total_supply"]
