"""
Durable offline operation queue.

Buffers mutating operations produced while disconnected (or while a write is
in flight), replays them in FIFO order, retries failures a bounded number of
times and survives restarts through a QueueStorage backend.

Concurrency model: single event loop, no parallel execution of operations.
The only suspension points are the awaited operation actions and the
storage flush that follows every state change. Overlapping process_queue()
calls share one in-flight pass, so an action never runs twice concurrently.

Usage:
    queue = await OfflineQueue.open(
        config=OfflineQueueConfig(max_queue_size=100, max_retries=5),
        storage=JsonFileQueueStorage(base_path, "docsync_offline_queue"),
        connectivity=monitor,
    )

    op_id = await queue.enqueue(
        type="create",
        collection="quizzes",
        data=quiz,
        operation=lambda data: store.create_quiz(data),
    )

    await queue.process_queue()
    print(queue.get_state().failed)
"""

import asyncio
import inspect
import json
from datetime import datetime
from typing import Optional, List, Any, Callable, Set, Union
import logging

from ..errors import QueueFullError, QueueStorageError, is_offline_error
from ..event_bus import EventBus, get_event_bus
from ..events import (
    OperationQueuedEvent,
    OperationCompletedEvent,
    OperationFailedEvent,
    QueueStateChangedEvent,
)
from .connectivity import ConnectivityMonitor
from .handlers import OperationHandlerRegistry
from .models import (
    OfflineQueueConfig,
    OfflineQueueState,
    OperationAction,
    OperationStatus,
    OperationType,
    QueuedOperation,
)
from .runtime import QueueRuntime
from .storage import QueueStorage, MemoryQueueStorage

logger = logging.getLogger(__name__)


ORPHANED_ERROR = "No handler bound for this operation (orphaned after reload)"


class OfflineQueue:
    """
    Capacity-bounded FIFO buffer of queued operations with retry and persistence.

    Completed operations count toward capacity until clear_completed() or
    clear_queue() removes them. Failed operations stay until removed.
    """

    def __init__(
        self,
        config: Optional[OfflineQueueConfig] = None,
        storage: Optional[QueueStorage] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        handlers: Optional[OperationHandlerRegistry] = None,
        on_state_change: Optional[Callable[[OfflineQueueState], None]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            config: Queue settings (defaults: 100 operations, 5 attempts, auto-process)
            storage: Persistence backend (default: in-memory)
            connectivity: Online/offline signal gating automatic drains;
                          without one the queue assumes it is online
            handlers: Registry used to re-bind actions after reload
            on_state_change: Called with an OfflineQueueState after each change
            event_bus: Bus for queue events (default: the global bus)
        """
        self.config = config or OfflineQueueConfig()
        self.storage = storage or MemoryQueueStorage()
        self.handlers = handlers or OperationHandlerRegistry()
        self._on_state_change = on_state_change
        self._event_bus = event_bus

        self._operations: List[QueuedOperation] = []
        self._pass_task: Optional[asyncio.Task] = None
        self._is_processing = False
        self._destroyed = False
        self._persistence_error: Optional[str] = None

        self.runtime = QueueRuntime(self, connectivity, enabled=self.config.auto_process)
        self.runtime.start()

    @classmethod
    async def open(cls, **kwargs) -> "OfflineQueue":
        """Create a queue and load its persisted operations."""
        queue = cls(**kwargs)
        await queue.load()
        return queue

    async def __aenter__(self) -> "OfflineQueue":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def operations(self) -> List[QueuedOperation]:
        """Snapshot of the queued operations in FIFO order."""
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    # ==================== Persistence ====================

    async def load(self) -> int:
        """
        Restore persisted operations.

        - completed operations are dropped
        - operations interrupted mid-flight ('processing') go back to 'pending'
        - actions are re-bound from the handler registry; operations without a
          handler stay queued as orphans

        Calling load() on a queue that already holds operations merges the
        stored ones in front of them and rewrites storage. This is how a queue
        recovers after another writer changed its file (see
        OfflineQueueState.persistence_error).

        Returns:
            Number of operations restored
        """
        try:
            snapshots = await self.storage.load()
        except QueueStorageError as e:
            logger.error(f"Failed to load offline queue '{self.config.storage_key}': {e}")
            snapshots = []

        known_ids = {op.id for op in self._operations}
        restored = []
        orphans = 0
        changed = False

        for snapshot in snapshots:
            try:
                op = QueuedOperation.from_dict(snapshot)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed queued operation {snapshot!r}: {e}")
                changed = True
                continue

            if op.status == OperationStatus.COMPLETED or op.id in known_ids:
                changed = True
                continue
            if op.status == OperationStatus.PROCESSING:
                op.mark(OperationStatus.PENDING)
                changed = True

            op.operation = self.handlers.resolve(op.collection, op.type)
            if op.operation is None and not op.is_terminal:
                orphans += 1
            restored.append(op)

        if self._operations:
            # In-memory operations are not all in the stored snapshot
            changed = True
        self._operations = restored + self._operations
        logger.info(
            f"Offline queue '{self.config.storage_key}' loaded: "
            f"{len(restored)} operations ({orphans} without a handler)"
        )

        if changed:
            await self._persist()
        else:
            self._notify_state_change()
        if any(op.is_retryable for op in restored):
            self.runtime.schedule_drain("loaded")
        return len(restored)

    async def _persist(self) -> None:
        """Flush to storage. Failures are logged; memory stays authoritative."""
        snapshot = [op.to_dict() for op in self._operations]
        try:
            await self.storage.save(snapshot)
            self._persistence_error = None
        except Exception as e:
            self._persistence_error = str(e) or type(e).__name__
            logger.error(f"Failed to save offline queue '{self.config.storage_key}': {e}")
        self._notify_state_change()

    def _notify_state_change(self) -> None:
        state = self.get_state()
        self.event_bus.publish(
            QueueStateChangedEvent(
                storage_key=self.config.storage_key,
                state=state.to_dict(include_operations=False),
            )
        )
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception as e:
                logger.error(f"Error in queue state change callback: {e}", exc_info=True)

    # ==================== Enqueue ====================

    async def enqueue(
        self,
        type: Union[OperationType, str],
        collection: str,
        data: Any,
        operation: Optional[OperationAction] = None,
        max_retries: Optional[int] = None,
    ) -> str:
        """
        Queue an operation.

        Args:
            type: create | update | delete | batch
            collection: Target resource category
            data: JSON-serializable description of the mutation; passed to
                  the action when it runs
            operation: async callable performing the mutation; if omitted the
                       handler registry supplies one
            max_retries: Attempts before the operation is marked failed
                         (default: config.max_retries)

        Returns:
            The new operation's ID

        Raises:
            QueueFullError: If the queue holds max_queue_size operations
            ValueError: If data is not JSON-serializable or max_retries < 1
        """
        if len(self._operations) >= self.config.max_queue_size:
            logger.warning(
                f"Offline queue '{self.config.storage_key}' is full "
                f"({len(self._operations)}/{self.config.max_queue_size})"
            )
            raise QueueFullError(self.config.max_queue_size)

        try:
            json.dumps(data)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Queued operation data must be JSON-serializable: {e}") from e

        retries = self.config.max_retries if max_retries is None else max_retries
        if retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {retries}")

        op_type = OperationType(type)
        op = QueuedOperation(
            type=op_type,
            collection=collection,
            data=data,
            max_retries=retries,
            operation=operation or self.handlers.resolve(collection, op_type),
        )
        self._operations.append(op)

        logger.info(f"Operation queued: {op.id} ({op.type.value} {op.collection})")
        self.event_bus.publish(
            OperationQueuedEvent(
                operation_id=op.id,
                operation_type=op.type.value,
                collection=op.collection,
            )
        )

        await self._persist()
        self.runtime.schedule_drain("enqueue")
        return op.id

    # ==================== Processing ====================

    async def process_queue(self) -> None:
        """
        Run one drain pass, or wait for the pass already in progress.

        Operations run one at a time in enqueue order. Failures are retried
        immediately up to max_retries, then recorded as 'failed'; a failed
        operation never aborts the pass. The pass stops early when the
        connectivity monitor reports offline.
        """
        if self._pass_task is not None and asyncio.current_task() is self._pass_task:
            # Called from inside a running action; the current pass picks up new work
            return
        if self._pass_task is None or self._pass_task.done():
            self._pass_task = asyncio.get_running_loop().create_task(self._run_pass())
        await asyncio.shield(self._pass_task)

    async def _run_pass(self) -> None:
        attempted: Set[str] = set()
        processed = 0

        self._is_processing = True
        self._notify_state_change()
        logger.info(
            f"Processing offline queue '{self.config.storage_key}' "
            f"({sum(1 for op in self._operations if op.is_retryable)} eligible)"
        )

        try:
            while True:
                if not self.runtime.is_online:
                    logger.warning("Offline, stopping queue pass")
                    break
                op = self._next_eligible(attempted)
                if op is None:
                    break
                attempted.add(op.id)
                await self._process_operation(op)
                processed += 1
        finally:
            self._is_processing = False
            self._notify_state_change()

        logger.info(f"Offline queue pass finished: {processed} operations processed")

    def _next_eligible(self, attempted: Set[str]) -> Optional[QueuedOperation]:
        for op in self._operations:
            if op.id not in attempted and op.is_retryable:
                return op
        return None

    async def _process_operation(self, op: QueuedOperation) -> None:
        if op.operation is None:
            op.operation = self.handlers.resolve(op.collection, op.type)

        if op.operation is None:
            op.last_error = ORPHANED_ERROR
            op.mark(OperationStatus.FAILED)
            logger.error(
                f"Operation function not available for queued operation "
                f"{op.id} ({op.type.value} {op.collection})"
            )
            self._publish_failed(op)
            await self._persist()
            return

        while True:
            op.attempts += 1
            op.last_attempt_at = datetime.now()
            op.mark(OperationStatus.PROCESSING)
            await self._persist()

            try:
                result = op.operation(op.data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                op.last_error = str(e) or type(e).__name__

                if is_offline_error(e) and not self.runtime.is_online:
                    # Connectivity dropped mid-pass: keep it queued for the next pass
                    status = OperationStatus.PENDING if op.attempts < op.max_retries else OperationStatus.FAILED
                    op.mark(status)
                    logger.warning(f"Queued operation {op.id} interrupted by connectivity loss: {e}")
                    if status == OperationStatus.FAILED:
                        self._publish_failed(op)
                    await self._persist()
                    return

                if op.attempts < op.max_retries and self._contains(op):
                    logger.warning(
                        f"Retrying queued operation {op.id} "
                        f"(attempt {op.attempts}/{op.max_retries}): {e}"
                    )
                    if self.config.retry_delay:
                        await asyncio.sleep(self.config.retry_delay * (2 ** (op.attempts - 1)))
                    continue

                op.mark(OperationStatus.FAILED)
                logger.error(
                    f"Queued operation failed: {op.id} ({op.type.value} {op.collection}) "
                    f"after {op.attempts} attempts: {e}"
                )
                self._publish_failed(op)
                await self._persist()
                return

            op.last_error = None
            op.mark(OperationStatus.COMPLETED)
            logger.info(
                f"Queued operation completed: {op.id} ({op.type.value} {op.collection}), "
                f"attempts={op.attempts}"
            )
            self.event_bus.publish(
                OperationCompletedEvent(
                    operation_id=op.id,
                    collection=op.collection,
                    attempts=op.attempts,
                )
            )
            await self._persist()
            return

    def _publish_failed(self, op: QueuedOperation) -> None:
        self.event_bus.publish(
            OperationFailedEvent(
                operation_id=op.id,
                collection=op.collection,
                attempts=op.attempts,
                last_error=op.last_error,
            )
        )

    def _contains(self, op: QueuedOperation) -> bool:
        return any(existing is op for existing in self._operations)

    # ==================== Inspection ====================

    def get_state(self) -> OfflineQueueState:
        """Counters, the last persistence failure and a snapshot of every operation."""
        return OfflineQueueState.from_operations(
            self._operations, self._is_processing, self._persistence_error
        )

    def get_operation(self, operation_id: str) -> Optional[QueuedOperation]:
        for op in self._operations:
            if op.id == operation_id:
                return op
        return None

    def has_pending_operations(self) -> bool:
        """True while anything is pending or processing."""
        return any(
            op.status in (OperationStatus.PENDING, OperationStatus.PROCESSING)
            for op in self._operations
        )

    # ==================== Mutation ====================

    async def remove_operation(self, operation_id: str) -> bool:
        """
        Remove one operation. An action already running is not interrupted.

        Returns:
            True if the operation was queued
        """
        for index, op in enumerate(self._operations):
            if op.id == operation_id:
                del self._operations[index]
                logger.info(f"Removed queued operation {operation_id}")
                await self._persist()
                return True
        return False

    async def clear_completed(self) -> int:
        """
        Drop completed operations.

        Returns:
            Number of operations removed
        """
        before = len(self._operations)
        self._operations = [op for op in self._operations if op.status != OperationStatus.COMPLETED]
        removed = before - len(self._operations)
        if removed:
            logger.info(f"Cleared {removed} completed operations")
            await self._persist()
        return removed

    async def clear_queue(self) -> int:
        """
        Drop every operation.

        Returns:
            Number of operations removed
        """
        removed = len(self._operations)
        self._operations = []
        logger.info(f"Offline queue '{self.config.storage_key}' cleared ({removed} operations)")
        await self._persist()
        return removed

    def destroy(self) -> None:
        """
        Detach connectivity listeners and stop automatic drains.

        An operation already running is not cancelled, and explicit
        process_queue() calls keep working.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self.runtime.stop()
        logger.debug(f"Offline queue '{self.config.storage_key}' destroyed")
