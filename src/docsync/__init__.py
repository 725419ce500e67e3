"""
DocSync - offline-first document synchronization core

Two cooperating pieces:
- conflict: detects and reconciles divergent local/remote document versions
- queue: buffers writes made while offline and replays them when back online
"""

__version__ = "0.1.0"

from .errors import (
    DocSyncError,
    QueueFullError,
    QueueStorageError,
    QueueStorageConflictError,
    ConflictError,
    is_offline_error,
)
from .conflict import (
    ConflictStrategy,
    DocumentType,
    DocumentConflict,
    ConflictResolutionConfig,
    ConflictResolutionResult,
    detect_conflicts,
    get_conflict_config,
    resolve_conflict,
    ConflictAwareWriter,
)
from .queue import (
    OperationType,
    OperationStatus,
    QueuedOperation,
    OfflineQueueState,
    OfflineQueueConfig,
    OfflineQueue,
    ConnectivityMonitor,
    QueuedStorage,
)
from .config import DocSyncSettings, load_settings

__all__ = [
    "__version__",
    "DocSyncError",
    "QueueFullError",
    "QueueStorageError",
    "QueueStorageConflictError",
    "ConflictError",
    "is_offline_error",
    "ConflictStrategy",
    "DocumentType",
    "DocumentConflict",
    "ConflictResolutionConfig",
    "ConflictResolutionResult",
    "detect_conflicts",
    "get_conflict_config",
    "resolve_conflict",
    "ConflictAwareWriter",
    "OperationType",
    "OperationStatus",
    "QueuedOperation",
    "OfflineQueueState",
    "OfflineQueueConfig",
    "OfflineQueue",
    "ConnectivityMonitor",
    "QueuedStorage",
    "DocSyncSettings",
    "load_settings",
]
