"""
OFFLINE App - Connectivity Observer

Tracks whether the remote dispatch API is reachable. State changes come
from two sources: the periodic ping, and explicit online/offline events
forwarded by the driver web app. Every offline -> online transition
fires the registered callbacks and triggers one queue drain.
"""

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


DEFAULT_CONNECTIVITY_INTERVAL = 5   # seconds between pings


class ConnectivityObserver:
    """
    Args:
        ping: callable returning True when the API is reachable
        engine: SyncEngine drained on reconnect (optional)
        interval: polling period in seconds
        background: run the reconnect drain in its own thread
    """

    def __init__(
        self,
        ping: Callable[[], bool],
        engine=None,
        interval: float = DEFAULT_CONNECTIVITY_INTERVAL,
        background: bool = True,
    ):
        self.ping = ping
        self.engine = engine
        self.interval = interval
        self.background = background
        self._online: Optional[bool] = None
        self._state_lock = threading.Lock()
        self._online_callbacks: List[Callable[[], None]] = []
        self._offline_callbacks: List[Callable[[], None]] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sync_thread: Optional[threading.Thread] = None

    def is_online(self) -> bool:
        if self._online is None:
            self.check()
        return bool(self._online)

    # ============================================
    # SUBSCRIPTIONS
    # ============================================

    def on_online(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` for reconnects; returns an unsubscribe function."""
        self._online_callbacks.append(callback)
        return lambda: self._unsubscribe(self._online_callbacks, callback)

    def on_offline(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._offline_callbacks.append(callback)
        return lambda: self._unsubscribe(self._offline_callbacks, callback)

    @staticmethod
    def _unsubscribe(callbacks, callback) -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    # ============================================
    # STATE
    # ============================================

    def check(self) -> bool:
        """Run the ping once and apply the resulting state."""
        try:
            online = bool(self.ping())
        except Exception as e:
            logger.warning(f"[NETWORK] Connectivity check failed: {e}")
            online = False
        self.set_online(online)
        return online

    def set_online(self, online: bool) -> None:
        with self._state_lock:
            previous = self._online
            self._online = bool(online)

        if previous is None:
            logger.info(f"[NETWORK] Initial state: {'online' if online else 'offline'}")
            return
        if previous == self._online:
            return

        if self._online:
            logger.info("[NETWORK] Connection restored")
            self._fire(self._online_callbacks)
            self._trigger_sync()
        else:
            logger.warning("[NETWORK] Connection lost")
            self._fire(self._offline_callbacks)

    def _fire(self, callbacks) -> None:
        for callback in list(callbacks):
            try:
                callback()
            except Exception as e:
                logger.exception(f"[NETWORK] Connectivity callback failed: {e}")

    def _trigger_sync(self) -> None:
        if self.engine is None:
            return
        if not self.background:
            self._sync()
            return
        self._sync_thread = threading.Thread(target=self._sync, name='offline-reconnect-sync', daemon=True)
        self._sync_thread.start()

    def _sync(self) -> None:
        logger.info("[NETWORK] Processing offline queue after reconnect")
        try:
            self.engine.process_queue()
        except Exception as e:
            logger.exception(f"[NETWORK] Reconnect sync failed: {e}")

    # ============================================
    # POLLING
    # ============================================

    @property
    def is_polling(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_polling:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='offline-connectivity', daemon=True)
        self._thread.start()
        logger.info(f"[NETWORK] Connectivity polling started (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("[NETWORK] Connectivity polling stopped")

    def _run(self) -> None:
        self.check()
        while not self._stop_event.wait(self.interval):
            self.check()
