"""
Core module for Fund Allocator.

Provides logging utilities, the exception hierarchy and timeout mechanisms.
"""

from .exceptions import (
    AllocationArithmeticError,
    AssetMismatchError,
    CapacityExceededError,
    DuplicatePoolError,
    ExternalCallError,
    FundError,
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidAmountError,
    LengthMismatchError,
    NoPoolsError,
    NothingRedeemedError,
    PoolCallTimeoutError,
    PoolNotFoundError,
    ReentrancyError,
    SlippageExceededError,
    StateError,
    UnauthorizedError,
    UnknownPoolError,
    ValidationError,
)
from .logger import get_logger, set_log_level, setup_logger
from .timeout import (
    TimeoutConfig,
    get_timeout_config,
    pool_timeout,
    set_timeout_config,
    with_timeout,
)

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "set_log_level",
    # Exceptions
    "FundError",
    "ValidationError",
    "InvalidAmountError",
    "LengthMismatchError",
    "InsufficientSharesError",
    "AssetMismatchError",
    "StateError",
    "PoolNotFoundError",
    "UnknownPoolError",
    "DuplicatePoolError",
    "CapacityExceededError",
    "NoPoolsError",
    "NothingRedeemedError",
    "ReentrancyError",
    "AllocationArithmeticError",
    "ExternalCallError",
    "SlippageExceededError",
    "PoolCallTimeoutError",
    "InsufficientBalanceError",
    "UnauthorizedError",
    # Timeout utilities
    "TimeoutConfig",
    "get_timeout_config",
    "set_timeout_config",
    "with_timeout",
    "pool_timeout",
]
