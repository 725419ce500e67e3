"""
Error types for docsync

Conflict resolution itself never raises (outcomes are results); ConflictError
is reserved for stale-version checks and for saving an unresolved conflict.
The rest covers the offline queue and its storage layer.
"""

from typing import Any, Dict, Optional

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout as RequestsTimeout


# Substrings (lowercased) that mark an error message as a connectivity failure
OFFLINE_MESSAGE_MARKERS = (
    "offline",
    "network",
    "failed to fetch",
    "networkerror",
    "connection",
)


class DocSyncError(Exception):
    """Base class for all docsync errors."""


class QueueFullError(DocSyncError):
    """Raised by OfflineQueue.enqueue when the queue is at capacity."""

    def __init__(self, max_queue_size: int):
        self.max_queue_size = max_queue_size
        super().__init__(
            f"Offline queue is full (max {max_queue_size} operations). "
            "Clear completed or failed operations before queueing more."
        )


class QueueStorageError(DocSyncError):
    """Durable queue storage could not be read or written."""


class QueueStorageConflictError(QueueStorageError):
    """The persisted queue was modified by another writer since our last flush."""


class ConflictError(DocSyncError):
    """
    A write was rejected because the remote document changed underneath it.

    Attributes:
        context: Details for building a DocumentConflict (documentType,
                 documentId, userId, versions...)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


def is_offline_error(error: Any) -> bool:
    """
    Heuristic: does this error indicate lost connectivity?

    Host code uses this to decide between queueing/retrying a write and
    surfacing a hard failure to the user.

    Args:
        error: Any object; non-exceptions are never offline errors

    Returns:
        True for connection/timeout errors or messages mentioning the network
    """
    if not isinstance(error, BaseException):
        return False

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    if isinstance(error, (RequestsConnectionError, RequestsTimeout)):
        return True

    message = str(error).lower()
    return any(marker in message for marker in OFFLINE_MESSAGE_MARKERS)
