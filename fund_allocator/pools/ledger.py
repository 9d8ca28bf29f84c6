"""
Asset Ledger.

In-memory fungible asset with balances and allowances. The fund, its
depositors and every simulated pool hold the underlying asset here.
"""

from typing import Any, Dict, Tuple

from fund_allocator.core import InsufficientBalanceError, InvalidAmountError, get_logger

logger = get_logger(__name__)

# Allowance that is never decremented by transfer_from
UNLIMITED = 2**256 - 1


class AssetLedger:
    """
    Balance and allowance book for a single asset.

    Example:
        >>> ledger = AssetLedger("USDC")
        >>> ledger.mint("alice", 1_000)
        >>> ledger.approve("alice", "fund", UNLIMITED)
        >>> ledger.transfer_from("fund", "alice", "fund", 400)
        >>> ledger.balance_of("fund")
        400
    """

    def __init__(self, asset: str):
        self._asset = asset
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply: int = 0

    @property
    def asset(self) -> str:
        """Asset id."""
        return self._asset

    @property
    def total_supply(self) -> int:
        """Total units in existence."""
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set spender's allowance on owner's balance (0 revokes)."""
        if amount < 0:
            raise InvalidAmountError(f"Allowance cannot be negative: {amount}")
        if amount == 0:
            self._allowances.pop((owner, spender), None)
        else:
            self._allowances[(owner, spender)] = amount
        logger.debug(f"{self._asset} allowance {owner} -> {spender}: {amount}")

    def mint(self, to: str, amount: int) -> None:
        """Create new units (seeding balances, simulated yield)."""
        self._check_amount(amount)
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def burn(self, holder: str, amount: int) -> None:
        """Destroy units (simulated loss)."""
        self._check_amount(amount)
        balance = self.balance_of(holder)
        if amount > balance:
            raise InsufficientBalanceError(
                f"Cannot burn {amount} {self._asset} from {holder}",
                details={"balance": balance},
            )
        self._set_balance(holder, balance - amount)
        self._total_supply -= amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move units from sender to recipient."""
        self._check_amount(amount)
        balance = self.balance_of(sender)
        if amount > balance:
            raise InsufficientBalanceError(
                f"{sender} has {balance} {self._asset}, needs {amount}",
                details={"sender": sender, "balance": balance, "amount": amount},
            )
        self._set_balance(sender, balance - amount)
        self._balances[recipient] = self.balance_of(recipient) + amount

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        """Move units from owner to recipient using spender's allowance."""
        self._check_amount(amount)
        allowed = self.allowance(owner, spender)
        if amount > allowed:
            raise InsufficientBalanceError(
                f"{spender} allowance on {owner} is {allowed}, needs {amount}",
                details={"owner": owner, "spender": spender, "allowance": allowed},
            )
        self.transfer(owner, recipient, amount)
        if allowed != UNLIMITED:
            self.approve(owner, spender, allowed - amount)

    def _set_balance(self, holder: str, amount: int) -> None:
        if amount == 0:
            self._balances.pop(holder, None)
        else:
            self._balances[holder] = amount

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmountError(f"Amount must be a non-negative integer: {amount!r}")

    # =========================================================================
    # Snapshot Methods (for Atomic Operations)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "balances": self._balances.copy(),
            "allowances": self._allowances.copy(),
            "total_supply": self._total_supply,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._balances = state["balances"].copy()
        self._allowances = state["allowances"].copy()
        self._total_supply = state["total_supply"]
