"""
EventBus for in-process notifications from the sync core.

The offline queue publishes state changes and per-operation outcomes, and the
conflict resolver publishes resolution outcomes. Host UIs subscribe to render
sync banners, retry affordances and manual-resolution prompts.

Usage:
    bus = get_event_bus()

    # Subscribe to one event type
    bus.subscribe('queue.operation_failed', lambda event: show_banner(event.last_error))

    # Subscribe to everything
    bus.subscribe('*', lambda event: logger.debug(event.to_dict()))
"""

from typing import Callable, Dict, List, Any, Optional
from threading import Lock
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Thread-safe in-process event bus.

    - subscribe(event_type, callback): register a callback for one event type
    - publish(event): deliver to matching subscribers and wildcard ('*') subscribers
    - Subscriber exceptions are logged, never propagated to the publisher
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {}
        self._lock = Lock()

    def subscribe(self, event_type: str, callback: Callable[[Any], None]) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to listen for (e.g., 'queue.state_changed').
                        Use '*' to receive every event.
            callback: Called with the event object
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)
            logger.debug(f"Subscribed to {event_type}: {getattr(callback, '__name__', 'lambda')}")

    def unsubscribe(self, event_type: str, callback: Callable[[Any], None]) -> bool:
        """
        Remove a callback.

        Returns:
            True if the callback was registered for event_type
        """
        with self._lock:
            callbacks = self._subscribers.get(event_type)
            if not callbacks or callback not in callbacks:
                return False
            callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[event_type]
            logger.debug(f"Unsubscribed from {event_type}")
            return True

    def publish(self, event: Any) -> None:
        """
        Publish an event to all matching subscribers.

        Args:
            event: Event object with an 'event_type' attribute
        """
        event_type = getattr(event, 'event_type', None)
        if event_type is None:
            logger.warning(f"Event missing 'event_type' attribute: {type(event).__name__}")
            return

        # Copy under the lock, call outside it
        with self._lock:
            callbacks = self._subscribers.get(event_type, []).copy()
            callbacks += self._subscribers.get('*', [])

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in subscriber callback for {event_type}: {e}", exc_info=True)

        logger.debug(f"Published {event_type} to {len(callbacks)} subscribers")

    def clear(self) -> None:
        """Drop all subscriptions."""
        with self._lock:
            self._subscribers.clear()

    def subscriber_count(self, event_type: Optional[str] = None) -> int:
        """
        Count subscribers for one event type, or all of them when event_type is None.
        """
        with self._lock:
            if event_type:
                return len(self._subscribers.get(event_type, []))
            return sum(len(subs) for subs in self._subscribers.values())


_global_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """
    Get or create the process-wide EventBus.

    Returns:
        Global EventBus singleton
    """
    global _global_bus
    if _global_bus is None:
        _global_bus = EventBus()
    return _global_bus


def reset_event_bus() -> None:
    """Replace the global bus with a fresh one (mainly for testing)."""
    global _global_bus
    _global_bus = EventBus()
