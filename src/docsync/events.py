"""
Event type definitions published by the sync core.

Queue events:
- OperationQueuedEvent: an operation was accepted into the offline queue
- OperationCompletedEvent: an operation's action succeeded
- OperationFailedEvent: an operation exhausted its retries (or could not be re-bound)
- QueueStateChangedEvent: counters changed; carries an OfflineQueueState snapshot

Conflict events:
- ConflictResolvedEvent: a conflict was reconciled automatically
- ConflictRequiresInputEvent: a conflict needs a human decision
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


@dataclass
class OperationQueuedEvent:
    """Event emitted when an operation is enqueued."""
    operation_id: str
    operation_type: str
    collection: str
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "queue.operation_queued"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "operation_id": self.operation_id,
            "operation_type": self.operation_type,
            "collection": self.collection,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class OperationCompletedEvent:
    """Event emitted when a queued operation's action succeeds."""
    operation_id: str
    collection: str
    attempts: int
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "queue.operation_completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "operation_id": self.operation_id,
            "collection": self.collection,
            "attempts": self.attempts,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class OperationFailedEvent:
    """Event emitted when a queued operation reaches terminal 'failed' status."""
    operation_id: str
    collection: str
    attempts: int
    last_error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "queue.operation_failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "operation_id": self.operation_id,
            "collection": self.collection,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class QueueStateChangedEvent:
    """Event emitted after every persisted queue mutation."""
    storage_key: str
    state: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "queue.state_changed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "storage_key": self.storage_key,
            "state": self.state,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConflictResolvedEvent:
    """Event emitted when a conflict is resolved without user input."""
    document_type: str
    document_id: str
    strategy: str
    conflicting_fields: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "conflict.resolved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "strategy": self.strategy,
            "conflicting_fields": self.conflicting_fields,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConflictRequiresInputEvent:
    """Event emitted when a conflict must be resolved by a human."""
    document_type: str
    document_id: str
    strategy: str
    user_id: str
    unresolved_fields: List[str] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "conflict.requires_input"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "strategy": self.strategy,
            "user_id": self.user_id,
            "unresolved_fields": self.unresolved_fields,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }
