"""
Operation Guard.

Fund-wide mutual exclusion plus all-or-nothing execution for every
state-mutating fund operation.

- Operations from different tasks are serialized on one asyncio.Lock.
- A call made while the same guard is already held in the calling
  context (a pool calling back into the fund) fails with ReentrancyError.
- Participant state is snapshotted after the lock is taken and restored
  if the operation raises.
"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Iterable, List, Optional

from fund_allocator.core import ReentrancyError, get_logger
from fund_allocator.pools import Snapshottable

from ..models.records import OperationRecord, OperationStatus

logger = get_logger(__name__)

# ids of the guards held by the current execution context; child tasks
# inherit a copy, so callbacks scheduled by a pool are still recognised
_held_guards: ContextVar[frozenset[int]] = ContextVar("held_guards", default=frozenset())


class OperationGuard:
    """
    Re-entrancy guard and transaction scope.

    Example:
        >>> guard = OperationGuard()
        >>> async with guard.atomic("deposit", [registry, ledger]) as record:
        ...     await engine.allocate(1000)
        >>> record.status
        <OperationStatus.COMMITTED: 'committed'>
    """

    def __init__(self, max_history: int = 100):
        self._lock = asyncio.Lock()
        self._current: Optional[str] = None
        self._history: List[OperationRecord] = []
        self._max_history = max_history

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def current_operation(self) -> Optional[str]:
        """Name of the operation holding the guard."""
        return self._current

    @property
    def history(self) -> List[OperationRecord]:
        return list(self._history)

    def is_held_here(self) -> bool:
        """True when the calling context already holds this guard."""
        return id(self) in _held_guards.get()

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[None]:
        """
        Acquire the guard for `operation`.

        Raises:
            ReentrancyError: If the calling context already holds the guard
        """
        if self.is_held_here():
            logger.warning(f"Re-entrant {operation} rejected during {self._current}")
            raise ReentrancyError(
                f"{operation} called while {self._current} is in progress",
                details={"operation": operation, "in_progress": self._current},
            )

        async with self._lock:
            token = _held_guards.set(_held_guards.get() | {id(self)})
            self._current = operation
            try:
                yield
            finally:
                self._current = None
                _held_guards.reset(token)

    @asynccontextmanager
    async def atomic(
        self,
        operation: str,
        participants: Iterable[Any],
        caller: Optional[str] = None,
    ) -> AsyncIterator[OperationRecord]:
        """
        Hold the guard and roll participants back if the body raises.

        Participants without snapshot()/restore() cannot be rolled back;
        they are named in the rollback log.

        Yields:
            OperationRecord for this operation
        """
        async with self.hold(operation):
            record = OperationRecord(name=operation, caller=caller)
            saved = []
            unrecoverable = []
            for participant in participants:
                if isinstance(participant, Snapshottable):
                    saved.append((participant, participant.snapshot()))
                else:
                    unrecoverable.append(participant)

            try:
                yield record
            except BaseException as e:
                for participant, state in reversed(saved):
                    participant.restore(state)
                record.mark_rolled_back(str(e) or type(e).__name__)
                logger.error(
                    f"Operation {operation} ({record.operation_id[:8]}) rolled back: {e}"
                )
                if unrecoverable:
                    names = [getattr(p, "address", repr(p)) for p in unrecoverable]
                    logger.warning(f"State of {names} could not be restored")
                self._remember(record)
                raise

            record.mark_committed()
            self._remember(record)
            logger.debug(f"Operation {operation} ({record.operation_id[:8]}) committed")

    def get_history(
        self,
        limit: int = 50,
        status: Optional[OperationStatus] = None,
    ) -> List[OperationRecord]:
        """Operation records, newest first."""
        history = self._history
        if status:
            history = [r for r in history if r.status == status]
        return history[-limit:][::-1]

    def _remember(self, record: OperationRecord) -> None:
        self._history.append(record)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]
