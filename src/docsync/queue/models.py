"""
Data model for the offline operation queue.

A QueuedOperation separates its durable description (type, collection, data)
from its executable binding (the async action). Only the description is
persisted; the action is re-bound from an OperationHandlerRegistry on reload.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Awaitable
import uuid


OperationAction = Callable[[Any], Awaitable[Any]]


class OperationType(str, Enum):
    """Kinds of mutation that can be queued."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BATCH = "batch"

    def __str__(self) -> str:
        return self.value


class OperationStatus(str, Enum):
    """
    Lifecycle of a queued operation.

    PENDING -> PROCESSING -> COMPLETED, or -> FAILED once attempts reach
    max_retries. COMPLETED and FAILED are terminal.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


def generate_operation_id() -> str:
    """Unique, roughly time-ordered operation ID."""
    return f"{int(datetime.now().timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class QueuedOperation:
    """
    One buffered mutation.

    Attributes:
        id: Unique ID assigned at enqueue
        type: create | update | delete | batch
        collection: Target resource category (e.g. 'quizzes')
        data: Serializable description of the mutation
        operation: Async action performing the mutation; never persisted
        status: Current lifecycle status
        attempts: Number of times the action has been invoked
        max_retries: Attempts allowed before the operation is marked failed
        created_at / updated_at: Lifecycle timestamps
        last_attempt_at: When the action last ran
        last_error: Message from the last failed attempt
    """
    type: OperationType
    collection: str
    data: Any
    max_retries: int
    operation: Optional[OperationAction] = None
    id: str = field(default_factory=generate_operation_id)
    status: OperationStatus = OperationStatus.PENDING
    attempts: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    last_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OperationStatus.COMPLETED, OperationStatus.FAILED)

    @property
    def is_retryable(self) -> bool:
        """Pending, or failed with attempts still left (e.g. orphaned or interrupted)."""
        if self.status == OperationStatus.PENDING:
            return True
        return self.status == OperationStatus.FAILED and self.attempts < self.max_retries

    def mark(self, status: OperationStatus) -> None:
        self.status = status
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Serializable snapshot; the action is omitted."""
        return {
            "id": self.id,
            "type": self.type.value,
            "collection": self.collection,
            "data": self.data,
            "status": self.status.value,
            "attempts": self.attempts,
            "max_retries": self.max_retries,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueuedOperation":
        """Rebuild an operation from its persisted snapshot (without an action)."""
        last_attempt = data.get("last_attempt_at")
        return cls(
            id=data["id"],
            type=OperationType(data["type"]),
            collection=data["collection"],
            data=data.get("data"),
            status=OperationStatus(data.get("status", "pending")),
            attempts=int(data.get("attempts", 0)),
            max_retries=int(data["max_retries"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data.get("updated_at") or data["created_at"]),
            last_attempt_at=datetime.fromisoformat(last_attempt) if last_attempt else None,
            last_error=data.get("last_error"),
        )


@dataclass
class OfflineQueueState:
    """
    Read-only counters derived from the queue.

    Invariant: total == pending + processing + completed + failed

    persistence_error holds the last failed flush to storage (None once a
    flush succeeds); while set, the in-memory queue is ahead of storage.
    """
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    is_processing: bool = False
    operations: List[Dict[str, Any]] = field(default_factory=list)
    persistence_error: Optional[str] = None

    @classmethod
    def from_operations(
        cls,
        operations: List[QueuedOperation],
        is_processing: bool = False,
        persistence_error: Optional[str] = None,
    ) -> "OfflineQueueState":
        counts = {status: 0 for status in OperationStatus}
        for op in operations:
            counts[op.status] += 1
        return cls(
            total=len(operations),
            pending=counts[OperationStatus.PENDING],
            processing=counts[OperationStatus.PROCESSING],
            completed=counts[OperationStatus.COMPLETED],
            failed=counts[OperationStatus.FAILED],
            is_processing=is_processing,
            operations=[op.to_dict() for op in operations],
            persistence_error=persistence_error,
        )

    def to_dict(self, include_operations: bool = True) -> Dict[str, Any]:
        result = {
            "total": self.total,
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "is_processing": self.is_processing,
            "persistence_error": self.persistence_error,
        }
        if include_operations:
            result["operations"] = self.operations
        return result


@dataclass
class OfflineQueueConfig:
    """
    Offline queue settings.

    Attributes:
        storage_key: Name of the persisted queue (one queue instance per key)
        max_queue_size: Capacity; completed operations count until cleared
        max_retries: Attempts per operation before it is marked failed
        auto_process: Drain automatically after enqueue and on reconnect.
                      False gives the deterministic runtime where only
                      explicit process_queue() calls run operations.
        retry_delay: Seconds to wait between attempts within a pass
    """
    storage_key: str = "docsync_offline_queue"
    max_queue_size: int = 100
    max_retries: int = 5
    auto_process: bool = True
    retry_delay: float = 0.0

    def __post_init__(self):
        if self.max_queue_size < 1:
            raise ValueError(f"max_queue_size must be at least 1, got {self.max_queue_size}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must not be negative, got {self.retry_delay}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OfflineQueueConfig":
        """Build from a config.yaml 'queue' section; unknown keys are rejected."""
        data = dict(data or {})
        allowed = {"storage_key", "max_queue_size", "max_retries", "auto_process", "retry_delay"}
        unknown = set(data) - allowed
        if unknown:
            raise ValueError(f"Unknown queue settings: {', '.join(sorted(unknown))}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_key": self.storage_key,
            "max_queue_size": self.max_queue_size,
            "max_retries": self.max_retries,
            "auto_process": self.auto_process,
            "retry_delay": self.retry_delay,
        }
