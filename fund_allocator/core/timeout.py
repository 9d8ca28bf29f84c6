"""
Unified Timeout Mechanism.

Provides centralized timeout handling for pool capability calls.
Prevents an unresponsive pool from holding the fund guard forever.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

from .exceptions import PoolCallTimeoutError
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class TimeoutConfig:
    """
    Centralized timeout configuration.

    Attributes:
        pool_call: Timeout for a single pool capability call (seconds)
    """

    pool_call: float = 15.0


# Global timeout config instance
_timeout_config: Optional[TimeoutConfig] = None


def get_timeout_config() -> TimeoutConfig:
    """Get global timeout configuration."""
    global _timeout_config
    if _timeout_config is None:
        _timeout_config = TimeoutConfig()
    return _timeout_config


def set_timeout_config(config: TimeoutConfig) -> None:
    """Set global timeout configuration."""
    global _timeout_config
    _timeout_config = config


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    operation_name: str,
    pool: Optional[str] = None,
) -> T:
    """
    Execute a coroutine with timeout protection.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Name for logging/error messages
        pool: Pool address, recorded on the raised error

    Returns:
        Result of the coroutine

    Raises:
        PoolCallTimeoutError: If the operation times out

    Example:
        >>> shares = await with_timeout(
        ...     pool.deposit(1000, "fund", 0),
        ...     timeout=15.0,
        ...     operation_name="deposit",
        ...     pool=pool.address,
        ... )
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Timeout: {operation_name} exceeded {timeout}s")
        raise PoolCallTimeoutError(
            f"Operation '{operation_name}' timed out after {timeout}s",
            pool=pool,
            operation=operation_name,
        )


async def pool_timeout(
    coro: Awaitable[T],
    operation_name: str,
    pool: Optional[str] = None,
) -> T:
    """Execute with pool_call timeout."""
    config = get_timeout_config()
    return await with_timeout(coro, config.pool_call, operation_name, pool=pool)
