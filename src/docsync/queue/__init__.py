"""
Durable Offline Operation Queue

Buffers mutating operations while offline and replays them in order once
connectivity returns.

Key Components:
    - OfflineQueue: capacity-bounded FIFO with retry and persistence
    - QueueStorage: pluggable persistence (in-memory, JSON file)
    - OperationHandlerRegistry: re-binds actions after a reload
    - ConnectivityMonitor / HttpConnectivityProbe: online/offline signal
    - QueuedStorage: wraps a storage object so writes queue when offline
"""

from .models import (
    OperationType,
    OperationStatus,
    QueuedOperation,
    OfflineQueueState,
    OfflineQueueConfig,
    generate_operation_id,
)
from .storage import QueueStorage, MemoryQueueStorage, JsonFileQueueStorage
from .handlers import OperationHandlerRegistry
from .connectivity import ConnectivityMonitor, HttpConnectivityProbe
from .runtime import QueueRuntime
from .offline_queue import OfflineQueue, ORPHANED_ERROR
from .queued_storage import (
    QueuedStorage,
    get_operation_type,
    get_collection_name,
    create_optimistic_result,
    encode_call_value,
    decode_call_value,
)

__all__ = [
    "OperationType",
    "OperationStatus",
    "QueuedOperation",
    "OfflineQueueState",
    "OfflineQueueConfig",
    "generate_operation_id",
    "QueueStorage",
    "MemoryQueueStorage",
    "JsonFileQueueStorage",
    "OperationHandlerRegistry",
    "ConnectivityMonitor",
    "HttpConnectivityProbe",
    "QueueRuntime",
    "OfflineQueue",
    "ORPHANED_ERROR",
    "QueuedStorage",
    "get_operation_type",
    "get_collection_name",
    "create_optimistic_result",
    "encode_call_value",
    "decode_call_value",
]
