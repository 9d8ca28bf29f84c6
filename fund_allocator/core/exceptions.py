"""
Custom exceptions for Fund Allocator.

Exception hierarchy:
    FundError (base)
    ├── ValidationError
    │   ├── InvalidAmountError
    │   ├── LengthMismatchError
    │   ├── InsufficientSharesError
    │   └── AssetMismatchError
    ├── StateError
    │   ├── PoolNotFoundError (UnknownPoolError)
    │   ├── DuplicatePoolError
    │   ├── CapacityExceededError
    │   ├── NoPoolsError
    │   ├── NothingRedeemedError
    │   └── ReentrancyError
    ├── AllocationArithmeticError
    ├── ExternalCallError
    │   ├── SlippageExceededError
    │   └── PoolCallTimeoutError
    ├── InsufficientBalanceError
    └── UnauthorizedError
"""

from typing import Any


class FundError(Exception):
    """Base exception for all fund allocator errors."""

    default_message = "Fund allocator error occurred"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )


# Validation errors
class ValidationError(FundError):
    """Input validation failed."""

    default_message = "Validation failed"


class InvalidAmountError(ValidationError):
    """Amount is zero, negative, or otherwise out of range."""

    default_message = "Invalid amount"


class LengthMismatchError(ValidationError):
    """Paired input sequences differ in length."""

    default_message = "Input lengths do not match"


class InsufficientSharesError(ValidationError):
    """Caller tried to redeem more fund shares than it owns."""

    default_message = "Insufficient fund shares"


class AssetMismatchError(ValidationError):
    """Pool accepts a different underlying asset than the fund."""

    default_message = "Pool asset does not match fund asset"


# State errors
class StateError(FundError):
    """Operation is not valid in the current fund state."""

    default_message = "Invalid fund state"


class PoolNotFoundError(StateError):
    """Pool is not a registry member."""

    default_message = "Pool not found"


UnknownPoolError = PoolNotFoundError


class DuplicatePoolError(StateError):
    """Pool is already a registry member."""

    default_message = "Pool already registered"


class CapacityExceededError(StateError):
    """Registry already holds the maximum number of pools."""

    default_message = "Pool registry is at capacity"


class NoPoolsError(StateError):
    """No pool can receive or return assets."""

    default_message = "No pools available"


class NothingRedeemedError(StateError):
    """Every per-pool redemption rounded down to zero."""

    default_message = "Redemption returned no assets"


class ReentrancyError(StateError):
    """A guarded operation was re-entered while already in progress."""

    default_message = "Re-entrant call rejected"


# Arithmetic error
class AllocationArithmeticError(FundError):
    """A proportional division would have a zero denominator."""

    default_message = "Division by zero in allocation"


# External call errors
class ExternalCallError(FundError):
    """A pool capability call failed."""

    default_message = "Pool call failed"

    def __init__(
        self,
        message: str | None = None,
        pool: str | None = None,
        operation: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.pool = pool
        self.operation = operation

    def __str__(self) -> str:
        base = super().__str__()
        parts = [base]
        if self.pool:
            parts.append(f"pool={self.pool}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        return " ".join(parts)


class SlippageExceededError(ExternalCallError):
    """Pool returned less than the caller's minimum output."""

    default_message = "Output below minimum"


class PoolCallTimeoutError(ExternalCallError):
    """Pool did not answer within the configured timeout."""

    default_message = "Pool call timed out"


# Ledger error
class InsufficientBalanceError(FundError):
    """Asset transfer exceeds balance or allowance."""

    default_message = "Insufficient balance"


# Access control error
class UnauthorizedError(FundError):
    """Caller lacks the permission required for an operation."""

    default_message = "Unauthorized"
