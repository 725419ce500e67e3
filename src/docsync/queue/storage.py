"""
Durable storage for the offline queue.

The persisted format is a JSON array of QueuedOperation snapshots with the
action omitted.

Single-writer contract: one queue instance per storage key. JsonFileQueueStorage
remembers the modification stamp of the file after its own last flush and
refuses to overwrite a file that another writer changed since, raising
QueueStorageConflictError instead of silently losing that writer's entries.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import json
import logging

import aiofiles
import aiofiles.os

from ..errors import QueueStorageError, QueueStorageConflictError

logger = logging.getLogger(__name__)


class QueueStorage(ABC):
    """Async persistence backend for queued operation snapshots."""

    @abstractmethod
    async def load(self) -> List[Dict[str, Any]]:
        """Return the persisted snapshots (empty list if nothing stored)."""
        pass

    @abstractmethod
    async def save(self, operations: List[Dict[str, Any]]) -> None:
        """Replace the persisted snapshots."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove the persisted queue."""
        pass


class MemoryQueueStorage(QueueStorage):
    """In-process storage, for tests and for hosts without a writable disk."""

    def __init__(self, initial: Optional[List[Dict[str, Any]]] = None):
        self._data = json.dumps(initial or [])
        self.save_count = 0

    async def load(self) -> List[Dict[str, Any]]:
        return json.loads(self._data)

    async def save(self, operations: List[Dict[str, Any]]) -> None:
        # Serialize now so later mutation of the snapshots cannot leak in
        self._data = json.dumps(operations)
        self.save_count += 1

    async def clear(self) -> None:
        self._data = "[]"


class JsonFileQueueStorage(QueueStorage):
    """
    Queue persisted as <directory>/<storage_key>.json.

    Writes go to a temporary file which is then renamed over the target, so
    a crash mid-flush leaves the previous snapshot intact.
    """

    def __init__(self, directory: Path, storage_key: str):
        self.directory = Path(directory)
        self.storage_key = storage_key
        self.path = self.directory / f"{storage_key}.json"
        self._last_stamp: Optional[Tuple[int, int, int]] = None

    async def load(self) -> List[Dict[str, Any]]:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
            self._last_stamp = await self._stamp()
        except FileNotFoundError:
            self._last_stamp = None
            return []
        except OSError as e:
            raise QueueStorageError(f"Failed to read queue file {self.path}: {e}") from e

        if not content.strip():
            return []

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise QueueStorageError(f"Corrupt queue file {self.path}: {e}") from e

        if not isinstance(data, list):
            raise QueueStorageError(f"Queue file {self.path} does not contain a JSON array")
        return data

    async def save(self, operations: List[Dict[str, Any]]) -> None:
        current = await self._stamp()
        if current is not None and current != self._last_stamp:
            raise QueueStorageConflictError(
                f"Queue file {self.path} was modified by another writer; "
                "refusing to overwrite it"
            )

        try:
            payload = json.dumps(operations, indent=2)
        except (TypeError, ValueError) as e:
            raise QueueStorageError(f"Queue contains non-serializable data: {e}") from e

        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            await aiofiles.os.makedirs(self.directory, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            raise QueueStorageError(f"Failed to write queue file {self.path}: {e}") from e

        self._last_stamp = await self._stamp()
        logger.debug(f"Persisted {len(operations)} queued operations to {self.path}")

    async def clear(self) -> None:
        try:
            await aiofiles.os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise QueueStorageError(f"Failed to remove queue file {self.path}: {e}") from e
        self._last_stamp = None

    async def _stamp(self) -> Optional[Tuple[int, int, int]]:
        try:
            stat = await aiofiles.os.stat(self.path)
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size, stat.st_ino)
