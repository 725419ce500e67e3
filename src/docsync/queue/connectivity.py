"""
Connectivity signals for the queue runtime.

ConnectivityMonitor holds an externally supplied online/offline boolean and
notifies listeners on transitions. HttpConnectivityProbe derives the boolean
by polling a URL with requests, off the event loop.

Usage:
    monitor = ConnectivityMonitor(online=False)
    monitor.add_listener(lambda online: print("online" if online else "offline"))
    monitor.set_online(True)  # listeners fire once per transition

    probe = HttpConnectivityProbe("https://firestore.googleapis.com", interval=15)
    await probe.start()
"""

import asyncio
from threading import Lock
from typing import Callable, List, Optional
import logging

import requests

logger = logging.getLogger(__name__)


ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """
    Online/offline state with transition listeners.

    Thread-safe: set_online may be called from any thread. Listeners run in
    the caller's thread; exceptions in listeners are logged, not raised.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: List[ConnectivityListener] = []
        self._lock = Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """
        Record the current connectivity.

        Listeners are notified only when the value changes.
        """
        with self._lock:
            if online == self._online:
                return
            self._online = online
            listeners = self._listeners.copy()

        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        for listener in listeners:
            try:
                listener(online)
            except Exception as e:
                logger.error(f"Error in connectivity listener: {e}", exc_info=True)

    def add_listener(self, listener: ConnectivityListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> bool:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


class HttpConnectivityProbe(ConnectivityMonitor):
    """
    ConnectivityMonitor driven by periodic HTTP HEAD requests.

    Any response (even an error status) counts as online; connection errors
    and timeouts count as offline.
    """

    def __init__(
        self,
        url: str,
        interval: float = 30.0,
        timeout: float = 5.0,
        online: bool = True,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Endpoint to probe
            interval: Seconds between probes
            timeout: Per-request timeout in seconds
            online: Assumed state before the first probe
            session: Optional requests.Session to reuse
        """
        super().__init__(online=online)
        self.url = url
        self.interval = interval
        self.timeout = timeout
        self._session = session or requests.Session()
        self._task: Optional[asyncio.Task] = None

    def _probe(self) -> bool:
        try:
            self._session.head(self.url, timeout=self.timeout, allow_redirects=True)
            return True
        except requests.RequestException as e:
            logger.debug(f"Connectivity probe to {self.url} failed: {e}")
            return False

    async def check(self) -> bool:
        """Probe once and update the state."""
        online = await asyncio.to_thread(self._probe)
        self.set_online(online)
        return online

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval)

    async def start(self) -> None:
        """Start polling in the background on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Connectivity probe started: {self.url} every {self.interval}s")

    async def stop(self) -> None:
        """Stop polling."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Connectivity probe stopped")
