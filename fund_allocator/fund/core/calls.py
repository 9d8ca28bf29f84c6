"""
Pool call wrapper.

Every capability call goes through call_pool so that timeouts and pool
failures surface as ExternalCallError carrying the pool and operation.
"""

from typing import Awaitable, TypeVar

from fund_allocator.core import ExternalCallError, FundError, get_logger, pool_timeout

logger = get_logger(__name__)

T = TypeVar("T")


async def call_pool(pool_address: str, operation: str, coro: Awaitable[T]) -> T:
    """
    Await a pool capability call with the configured pool timeout.

    FundError subclasses raised by the pool propagate unchanged; any other
    exception is wrapped in ExternalCallError.
    """
    try:
        return await pool_timeout(coro, operation, pool=pool_address)
    except FundError:
        raise
    except Exception as e:
        logger.error(f"Pool {pool_address} failed on {operation}: {e}")
        raise ExternalCallError(
            f"Pool call failed: {e}",
            pool=pool_address,
            operation=operation,
            details={"error_type": type(e).__name__},
        ) from e
