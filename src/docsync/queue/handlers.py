"""
Dispatch table that re-binds actions to queued operations.

An operation's async action cannot be persisted. After a reload the queue
asks this registry for a handler by (collection, type); an operation with no
handler is an orphan and is reported as failed when a pass reaches it.

Lookup order:
1. handler registered for (collection, type)
2. handler registered for the whole collection
3. default handler
"""

from threading import Lock
from typing import Dict, Optional, Tuple, Union
import logging

from .models import OperationAction, OperationType

logger = logging.getLogger(__name__)


class OperationHandlerRegistry:
    """Maps (collection, operation type) to an async action taking the operation's data."""

    def __init__(self):
        self._handlers: Dict[Tuple[str, Optional[OperationType]], OperationAction] = {}
        self._default: Optional[OperationAction] = None
        self._lock = Lock()

    def register(
        self,
        collection: str,
        handler: OperationAction,
        operation_type: Optional[Union[OperationType, str]] = None,
    ) -> None:
        """
        Register a handler.

        Args:
            collection: Collection the handler serves (e.g. 'quizzes')
            handler: async callable receiving the operation's data
            operation_type: Restrict to one operation type; None serves all types
        """
        op_type = OperationType(operation_type) if operation_type is not None else None
        with self._lock:
            self._handlers[(collection, op_type)] = handler
        logger.debug(f"Registered queue handler for {collection}:{op_type or '*'}")

    def unregister(
        self,
        collection: str,
        operation_type: Optional[Union[OperationType, str]] = None,
    ) -> bool:
        op_type = OperationType(operation_type) if operation_type is not None else None
        with self._lock:
            return self._handlers.pop((collection, op_type), None) is not None

    def set_default(self, handler: Optional[OperationAction]) -> None:
        """Handler used when nothing more specific is registered."""
        with self._lock:
            self._default = handler

    def resolve(
        self,
        collection: str,
        operation_type: Union[OperationType, str],
    ) -> Optional[OperationAction]:
        """
        Find the handler for an operation.

        Returns:
            The most specific handler, or None if the operation would be orphaned
        """
        op_type = OperationType(operation_type)
        with self._lock:
            handler = self._handlers.get((collection, op_type))
            if handler is None:
                handler = self._handlers.get((collection, None))
            if handler is None:
                handler = self._default
            return handler

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers) + (1 if self._default else 0)
