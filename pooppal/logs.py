"""Log synchronization: one user's in-memory log list kept in step with the store.

Reads replace the list wholesale. Deletes and restores are optimistic: the
local list changes first and is rolled back if the store refuses. Each
optimistic change is recorded as a ``PendingOperation`` so the outcome of a
call can be inspected after the fact.

Operations on the same log id are serialised with a per-id lock, so a
restore issued while the delete of the same entry is still in flight waits
for the delete to settle before it starts.
"""

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from .constants import MAX_STOOL_TYPE, MIN_STOOL_TYPE
from .database import StoreError
from .logging_config import get_logger, log_log_operation
from .models import LogEntry
from .results import ErrorKind, OperationResult

logger = get_logger("logs")

# How many settled operations to keep for inspection
OPERATION_HISTORY_SIZE = 50


class OperationState(str, Enum):
    in_flight = "in_flight"
    committed = "committed"
    rolled_back = "rolled_back"


@dataclass
class PendingOperation:
    """An optimistic change awaiting confirmation from the store."""

    action: str
    log: LogEntry
    state: OperationState = OperationState.in_flight
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def commit(self) -> None:
        if self.state is not OperationState.in_flight:
            raise RuntimeError(f"Cannot commit a {self.state.value} operation")
        self.state = OperationState.committed

    def roll_back(self, error: str) -> None:
        if self.state is not OperationState.in_flight:
            raise RuntimeError(f"Cannot roll back a {self.state.value} operation")
        self.state = OperationState.rolled_back
        self.error = error


class LogStore(Protocol):
    async def list_logs(self, user_id: str) -> list[LogEntry]: ...

    async def create_log(
        self, user_id: str, type: int, notes: Optional[str], occurred_at: datetime
    ) -> LogEntry: ...

    async def recreate_log(self, log: LogEntry) -> LogEntry: ...

    async def delete_log(self, log_id: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _EntryLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class LogSync:
    """In-memory log list for the signed-in user.

    Args:
        store: Data-access collaborator (``SupabaseStore`` in production).
        undo_window_seconds: How long a deleted entry can be brought back
            with ``undo_delete``.
        clock: Monotonic clock used for the undo window.
        now: Wall clock used to stamp new entries.
    """

    def __init__(
        self,
        store: LogStore,
        undo_window_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.undo_window_seconds = undo_window_seconds
        self._clock = clock
        self._now = now

        self.user_id: Optional[str] = None
        self.logs: list[LogEntry] = []
        self.loading = False
        self.saving = False
        self.error: Optional[str] = None
        self.operations: deque[PendingOperation] = deque(maxlen=OPERATION_HISTORY_SIZE)
        self.recently_deleted: dict[str, tuple[LogEntry, float]] = {}
        self._locks: dict[str, _EntryLock] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise RuntimeError("Log operation called without a signed-in user")
        return user_id

    @asynccontextmanager
    async def _entry_lock(self, log_id: str):
        """Serialise operations on one log id; the lock is dropped once nobody holds or awaits it."""
        entry = self._locks.get(log_id)
        if entry is None:
            entry = self._locks[log_id] = _EntryLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(log_id) is entry:
                del self._locks[log_id]

    def _track(self, action: str, log: LogEntry) -> PendingOperation:
        op = PendingOperation(action=action, log=log)
        self.operations.append(op)
        return op

    def _insert_sorted(self, log: LogEntry) -> None:
        """Insert keeping newest-first order; ties go after existing entries.

        No-op if an entry with the same id is already listed (a reload landed
        while the operation was in flight).
        """
        if self.find(log.id) is not None:
            return
        logs = list(self.logs)
        index = len(logs)
        for i, existing in enumerate(logs):
            if existing.occurred_at < log.occurred_at:
                index = i
                break
        logs.insert(index, log)
        self.logs = logs

    def _remove(self, log: LogEntry) -> None:
        self.logs = [entry for entry in self.logs if entry is not log]

    def find(self, log_id: str) -> Optional[LogEntry]:
        return next((entry for entry in self.logs if entry.id == log_id), None)

    @property
    def in_flight(self) -> list[PendingOperation]:
        return [op for op in self.operations if op.state is OperationState.in_flight]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load(self, user_id: str) -> OperationResult:
        """Fetch the user's logs; on failure the previous list is kept."""
        user_id = self._require_user(user_id)
        self.user_id = user_id
        self.loading = True
        self.error = None
        try:
            logs = await self.store.list_logs(user_id)
        except StoreError as e:
            self.error = e.message
            logger.warning(f"LOAD | {user_id} | FAILED ({e.message})")
            return OperationResult.failure(e.message)
        finally:
            self.loading = False

        self.logs = list(logs)
        logger.debug(f"LOAD | {user_id} | {len(self.logs)} logs")
        return OperationResult.success(self.logs)

    async def refresh(self) -> OperationResult:
        return await self.load(self._require_user(self.user_id))

    async def add_log(self, user_id: str, type: int, notes: str = "") -> OperationResult:
        """Create a log stamped now and prepend the stored record."""
        user_id = self._require_user(user_id)
        if isinstance(type, bool) or not isinstance(type, int) or not MIN_STOOL_TYPE <= type <= MAX_STOOL_TYPE:
            message = f"Pick a stool type between {MIN_STOOL_TYPE} and {MAX_STOOL_TYPE}."
            self.error = message
            return OperationResult.failure(message, ErrorKind.validation)

        self.saving = True
        self.error = None
        try:
            created = await self.store.create_log(user_id, type, notes, self._now())
        except StoreError as e:
            self.error = e.message
            log_log_operation(user_id, "add", None, False, e.message)
            return OperationResult.failure(e.message)
        finally:
            self.saving = False

        self.logs = [created, *self.logs]
        log_log_operation(user_id, "add", created.id, True)
        return OperationResult.success(created)

    async def delete_log(self, log_id: str) -> OperationResult:
        """Remove locally, then delete in the store; reinsert on failure."""
        user_id = self.user_id or "-"
        async with self._entry_lock(log_id):
            log = self.find(log_id)
            if log is None:
                return OperationResult.failure("Log not found", ErrorKind.not_found)

            op = self._track("delete", log)
            self._remove(log)
            try:
                await self.store.delete_log(log_id)
            except StoreError as e:
                self._insert_sorted(log)
                op.roll_back(e.message)
                self.error = e.message
                log_log_operation(user_id, "delete", log_id, False, e.message)
                return OperationResult.failure(e.message)

            op.commit()
            self.error = None
            # Only the latest delete can be undone
            self.recently_deleted = {log_id: (log, self._clock())}
            log_log_operation(user_id, "delete", log_id, True)
            return OperationResult.success(log)

    async def restore_log(self, log: LogEntry) -> OperationResult:
        """Reinsert a deleted log, preserving its id when the store allows it."""
        user_id = self.user_id or log.user_id
        async with self._entry_lock(log.id):
            if self.find(log.id) is not None:
                return OperationResult.failure("Log is already present", ErrorKind.validation)

            op = self._track("restore", log)
            self._insert_sorted(log)
            try:
                await self.store.recreate_log(log)
            except StoreError as e:
                logger.info(f"RESTORE | {user_id} | log={log.id} | id reuse rejected ({e.message}), creating new")
                try:
                    stored = await self.store.create_log(log.user_id, log.type, log.notes, log.occurred_at)
                except StoreError as retry_error:
                    self._remove(log)
                    op.roll_back(retry_error.message)
                    self.error = retry_error.message
                    log_log_operation(user_id, "restore", log.id, False, retry_error.message)
                    return OperationResult.failure(retry_error.message)

                self.logs = [stored if entry is log else entry for entry in self.logs]
                op.commit()
                self.recently_deleted.pop(log.id, None)
                self.error = None
                log_log_operation(user_id, "restore", stored.id, True)
                return OperationResult.success(stored)

            op.commit()
            self.recently_deleted.pop(log.id, None)
            self.error = None
            log_log_operation(user_id, "restore", log.id, True)
            return OperationResult.success(log)

    async def undo_delete(self, log_id: str) -> OperationResult:
        """Restore the most recently deleted log if still inside the undo window."""
        entry = self.recently_deleted.get(log_id)
        if entry is None:
            return OperationResult.failure("Nothing to undo for this log", ErrorKind.not_found)
        log, deleted_at = entry
        if self._clock() - deleted_at > self.undo_window_seconds:
            self.recently_deleted.pop(log_id, None)
            return OperationResult.failure("Undo window has expired", ErrorKind.expired)
        return await self.restore_log(log)

    def undo_deadline(self, log_id: str) -> Optional[float]:
        """Clock value after which ``undo_delete`` for this id will fail."""
        entry = self.recently_deleted.get(log_id)
        if entry is None:
            return None
        return entry[1] + self.undo_window_seconds

    def clear(self) -> None:
        """Drop all state (sign-out)."""
        self.user_id = None
        self.logs = []
        self.loading = False
        self.saving = False
        self.error = None
        self.operations.clear()
        self.recently_deleted = {}
        self._locks = {}
