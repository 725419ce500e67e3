"""
Storage wrapper that queues writes while offline.

QueuedStorage proxies a storage object. Coroutine methods whose names start
with create, update or delete are attempted directly; if the call fails with
an offline error (or the connectivity monitor already reports offline) the
call is enqueued for replay and an optimistic result is returned so the UI
can carry on. Everything else passes straight through.

'set*' methods are deliberately not intercepted: most of them are local
state setters that must not be replayed against the server.

Usage:
    storage = QueuedStorage(firestore_storage, queue)
    storage.register_replay_handler()   # lets reloaded operations be replayed

    quiz = await storage.create_quiz({"title": "Networking"})
    if quiz.get("_queued"):
        show_pending_badge(quiz["_queueId"])
"""

import functools
import inspect
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Tuple
import logging

from ..errors import is_offline_error
from .models import OperationType
from .offline_queue import OfflineQueue

logger = logging.getLogger(__name__)


WRITE_PREFIXES = ("create", "update", "delete")

# Checked in order: more specific names first ('subcategory' before 'category')
COLLECTION_KEYWORDS: List[Tuple[str, str]] = [
    ("quiztemplate", "quizTemplates"),
    ("quiz", "quizzes"),
    ("user", "users"),
    ("subcategory", "subcategories"),
    ("category", "categories"),
    ("question", "questions"),
    ("lecture", "lectures"),
    ("material", "materials"),
    ("mastery", "masteryScores"),
    ("badge", "badges"),
    ("gamestats", "userGameStats"),
    ("progress", "userProgress"),
    ("challenge", "challenges"),
    ("studygroup", "studyGroups"),
    ("practicetest", "practiceTests"),
    ("quest", "quests"),
    ("template", "templates"),
    ("attachment", "attachments"),
]

# Tags for values JSON cannot carry in a persisted call description
DATETIME_TAG = "__datetime__"
DATE_TAG = "__date__"
OPAQUE_TAG = "__unserializable__"


def is_write_method(method_name: str) -> bool:
    return method_name.lower().startswith(WRITE_PREFIXES)


def get_operation_type(method_name: str) -> OperationType:
    lower = method_name.lower()
    for prefix in WRITE_PREFIXES:
        if lower.startswith(prefix):
            return OperationType(prefix)
    return OperationType.UPDATE


def get_collection_name(method_name: str) -> str:
    """
    Derive a collection name from a method name.

    create_quiz -> quizzes, updateUserProgress -> users (first match wins),
    delete_study_group -> studyGroups. Unknown names map to 'unknown'.
    """
    normalized = re.sub(r"[^a-z]", "", method_name.lower())
    for prefix in WRITE_PREFIXES:
        if normalized.startswith(prefix):
            normalized = normalized[len(prefix):]
            break
    for keyword, collection in COLLECTION_KEYWORDS:
        if keyword in normalized:
            return collection
    return "unknown"


def create_optimistic_result(method_name: str, args: Tuple[Any, ...], queue_id: str) -> Dict[str, Any]:
    """
    Placeholder returned for a queued write.

    - create: the submitted data, with the queue ID as a temporary 'id'
    - update: {'id': <first arg>, **<second arg>}
    - delete: just the queue markers
    """
    op_type = get_operation_type(method_name)
    markers = {"_queued": True, "_queueId": queue_id}

    if op_type == OperationType.CREATE:
        data = args[0] if args and isinstance(args[0], dict) else {}
        return {**data, "id": data.get("id") or queue_id, **markers}

    if op_type == OperationType.UPDATE:
        updates = args[1] if len(args) > 1 and isinstance(args[1], dict) else {}
        return {"id": args[0] if args else None, **updates, **markers}

    return markers


def encode_call_value(value: Any) -> Any:
    """
    Make a call argument JSON-safe for the persisted call description.

    datetimes and dates become tagged ISO strings, tuples and sets become
    lists and enums their values. Anything else JSON cannot hold is kept as
    an opaque repr; such a call still runs in this process but cannot be
    replayed after a reload.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return encode_call_value(value.value)
    if isinstance(value, datetime):
        return {DATETIME_TAG: value.isoformat()}
    if isinstance(value, date):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {str(k): encode_call_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [encode_call_value(v) for v in value]
    return {OPAQUE_TAG: repr(value)}


def decode_call_value(value: Any) -> Any:
    """
    Inverse of encode_call_value.

    Raises:
        ValueError: If the value was stored as an opaque repr
    """
    if isinstance(value, list):
        return [decode_call_value(v) for v in value]
    if not isinstance(value, dict):
        return value
    if len(value) == 1:
        if DATETIME_TAG in value:
            return datetime.fromisoformat(value[DATETIME_TAG])
        if DATE_TAG in value:
            return date.fromisoformat(value[DATE_TAG])
        if OPAQUE_TAG in value:
            raise ValueError(f"Queued call argument cannot be replayed: {value[OPAQUE_TAG]}")
    return {k: decode_call_value(v) for k, v in value.items()}


class QueuedStorage:
    """Proxy adding offline queueing to a storage object's write methods."""

    def __init__(self, storage: Any, queue: OfflineQueue):
        self._storage = storage
        self._queue = queue

    @property
    def queue(self) -> OfflineQueue:
        return self._queue

    def _is_offline(self) -> bool:
        return not self._queue.runtime.is_online

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._storage, name)
        if not callable(attr) or not is_write_method(name) or not inspect.iscoroutinefunction(attr):
            return attr
        return self._wrap(name, attr)

    def _wrap(self, name: str, method: Any) -> Any:
        @functools.wraps(method)
        async def queued_method(*args, **kwargs):
            try:
                return await method(*args, **kwargs)
            except Exception as e:
                if not (self._is_offline() or is_offline_error(e)):
                    raise
                logger.info(f"Queueing {name} due to offline/network error: {e}")

            queue_id = await self._queue.enqueue(
                type=get_operation_type(name),
                collection=get_collection_name(name),
                data={
                    "method": name,
                    "args": encode_call_value(list(args)),
                    "kwargs": encode_call_value(kwargs),
                },
                operation=lambda _data: method(*args, **kwargs),
            )
            return create_optimistic_result(name, args, queue_id)

        return queued_method

    async def replay(self, data: Dict[str, Any]) -> Any:
        """
        Re-run a persisted call description against the wrapped storage.

        Raises:
            ValueError: If the description does not name a write method or
                holds an argument that could not be persisted
        """
        name = data.get("method") if isinstance(data, dict) else None
        if not name or not is_write_method(name):
            raise ValueError(f"Cannot replay queued call: {data!r}")
        method = getattr(self._storage, name)
        args = decode_call_value(data.get("args", []))
        kwargs = decode_call_value(data.get("kwargs", {}))
        return await method(*args, **kwargs)

    def register_replay_handler(self) -> None:
        """Install replay() as the queue's default handler for reloaded operations."""
        self._queue.handlers.set_default(self.replay)
