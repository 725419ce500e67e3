"""
Connectivity-aware driver for the offline queue.

In the default runtime the queue drains automatically after a successful
enqueue while online and whenever connectivity comes back. With
auto_process disabled (the deterministic runtime used by tests and by hosts
that want to single-step processing) the runtime never schedules anything and
only explicit process_queue() calls run operations.
"""

import asyncio
from typing import Optional, Set, TYPE_CHECKING
import logging

from .connectivity import ConnectivityMonitor

if TYPE_CHECKING:
    from .offline_queue import OfflineQueue

logger = logging.getLogger(__name__)


class QueueRuntime:
    """
    Schedules queue drains in response to enqueues and reconnects.

    Drains run as tasks on the event loop; overlapping drains collapse into
    the queue's single in-flight pass.
    """

    def __init__(
        self,
        queue: "OfflineQueue",
        monitor: Optional[ConnectivityMonitor] = None,
        enabled: bool = True,
    ):
        self.queue = queue
        self.monitor = monitor
        self.enabled = enabled
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()
        self._started = False
        self._stopped = False

    @property
    def is_online(self) -> bool:
        """Without a monitor the queue assumes it is online."""
        return self.monitor.is_online if self.monitor is not None else True

    @property
    def is_active(self) -> bool:
        return self.enabled and self._started and not self._stopped

    def start(self) -> None:
        """Attach to the connectivity monitor."""
        if self._started or self._stopped:
            return
        self._started = True
        self._loop = _running_loop()
        if self.monitor is not None and self.enabled:
            self.monitor.add_listener(self._on_connectivity_change)
        logger.debug(
            f"Queue runtime started for '{self.queue.config.storage_key}' "
            f"(auto_process={self.enabled})"
        )

    def stop(self) -> None:
        """Detach listeners and stop scheduling drains. Running drains finish."""
        if self._stopped:
            return
        self._stopped = True
        if self.monitor is not None:
            self.monitor.remove_listener(self._on_connectivity_change)
        logger.debug(f"Queue runtime stopped for '{self.queue.config.storage_key}'")

    def schedule_drain(self, reason: str = "") -> Optional[asyncio.Task]:
        """
        Schedule a background drain if the runtime is active and online.

        Returns:
            The scheduled task when called on the event loop thread, else None
        """
        if not self.is_active or not self.is_online:
            return None

        loop = _running_loop()
        if loop is not None:
            self._loop = loop
            return self._spawn(reason)

        if self._loop is not None and self._loop.is_running():
            # Called from another thread (e.g. a connectivity callback)
            self._loop.call_soon_threadsafe(self._spawn, reason)
        else:
            logger.debug(f"No running event loop; drain ({reason}) not scheduled")
        return None

    async def wait_idle(self) -> None:
        """Wait for every drain scheduled so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, reason: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._drain(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _drain(self, reason: str) -> None:
        logger.debug(f"Automatic queue drain: {reason or 'scheduled'}")
        try:
            await self.queue.process_queue()
        except Exception as e:
            logger.error(f"Automatic queue drain failed: {e}", exc_info=True)

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Network reconnected, processing offline queue")
            self.schedule_drain("reconnected")


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
