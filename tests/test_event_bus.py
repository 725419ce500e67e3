"""Unit Tests for EventBus and event payloads

Tests: EventBus subscribe/publish, thread safety, wildcard subscriptions,
event to_dict serialization
"""
import pytest
import threading
from unittest.mock import Mock

from docsync.event_bus import EventBus, get_event_bus, reset_event_bus
from docsync.events import (
    OperationQueuedEvent,
    OperationFailedEvent,
    QueueStateChangedEvent,
    ConflictRequiresInputEvent,
)


class TestEventBusBasics:
    """Tests for core EventBus functionality."""

    def test_subscribe_and_publish(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe('queue.operation_queued', callback)

        event = OperationQueuedEvent(operation_id="op-1", operation_type="create", collection="quizzes")
        bus.publish(event)

        callback.assert_called_once_with(event)

    def test_other_event_types_not_delivered(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe('queue.operation_failed', callback)

        bus.publish(OperationQueuedEvent(operation_id="op-1", operation_type="create", collection="quizzes"))

        callback.assert_not_called()

    def test_wildcard_receives_everything(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe('*', callback)

        bus.publish(OperationQueuedEvent(operation_id="op-1", operation_type="create", collection="quizzes"))
        bus.publish(QueueStateChangedEvent(storage_key="k", state={"total": 1}))

        assert callback.call_count == 2

    def test_unsubscribe(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe('queue.state_changed', callback)

        assert bus.unsubscribe('queue.state_changed', callback) is True
        assert bus.unsubscribe('queue.state_changed', callback) is False
        assert bus.subscriber_count() == 0

    def test_subscriber_count(self):
        bus = EventBus()
        bus.subscribe('a', Mock())
        bus.subscribe('a', Mock())
        bus.subscribe('b', Mock())

        assert bus.subscriber_count('a') == 2
        assert bus.subscriber_count('c') == 0
        assert bus.subscriber_count() == 3

    def test_failing_subscriber_does_not_break_others(self):
        bus = EventBus()
        bad = Mock(side_effect=RuntimeError("boom"))
        good = Mock()
        bus.subscribe('*', bad)
        bus.subscribe('*', good)

        bus.publish(QueueStateChangedEvent(storage_key="k", state={}))

        good.assert_called_once()

    def test_event_without_type_is_ignored(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe('*', callback)

        bus.publish(object())

        callback.assert_not_called()

    def test_clear(self):
        bus = EventBus()
        bus.subscribe('a', Mock())
        bus.clear()
        assert bus.subscriber_count() == 0


class TestEventBusThreadSafety:
    """Concurrent subscribe/publish."""

    def test_concurrent_publish(self):
        bus = EventBus()
        received = []
        lock = threading.Lock()

        def callback(event):
            with lock:
                received.append(event.operation_id)

        bus.subscribe('queue.operation_queued', callback)

        def worker(n):
            for i in range(50):
                bus.publish(OperationQueuedEvent(
                    operation_id=f"{n}-{i}", operation_type="update", collection="quizzes"
                ))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(received) == 400
        assert len(set(received)) == 400


class TestGlobalBus:
    """Global singleton helpers."""

    def test_get_event_bus_is_singleton(self):
        assert get_event_bus() is get_event_bus()

    def test_reset_event_bus(self):
        first = get_event_bus()
        first.subscribe('a', Mock())
        reset_event_bus()
        assert get_event_bus() is not first
        assert get_event_bus().subscriber_count() == 0


class TestEventPayloads:
    """to_dict serialization."""

    def test_operation_failed_to_dict(self):
        data = OperationFailedEvent(
            operation_id="op-1", collection="quizzes", attempts=3, last_error="HTTP 500"
        ).to_dict()

        assert data["event_type"] == "queue.operation_failed"
        assert data["attempts"] == 3
        assert data["last_error"] == "HTTP 500"
        assert "timestamp" in data

    def test_conflict_requires_input_to_dict(self):
        data = ConflictRequiresInputEvent(
            document_type="quiz",
            document_id="q1",
            strategy="auto-merge",
            user_id="u1",
            unresolved_fields=["questions"],
        ).to_dict()

        assert data["event_type"] == "conflict.requires_input"
        assert data["unresolved_fields"] == ["questions"]
        assert data["error"] is None
