"""
OFFLINE App - Sync Engine

Drains the offline queue against the remote dispatch API:
- strict FIFO replay
- exponential backoff before each retry (2s, 4s, 8s, 16s)
- actions that failed MAX_RETRIES times stay queued as errors
- one drain at a time (in-process lock + persisted sync guard)

Delivery is at-least-once: a crash between a successful replay and the
local removal replays the action on the next drain.
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional

from .exceptions import ReplayError
from .gps import now_ms
from .queue import OfflineQueue, MAX_RETRIES

logger = logging.getLogger(__name__)


BACKOFF_BASE_MS = 1000
BACKOFF_CAP_MS = 16000
DEFAULT_AUTO_SYNC_INTERVAL = 30   # seconds


def calculate_backoff(retry_count: int) -> int:
    """Delay in ms before retry ``retry_count``: min(2^r * 1000, 16000)."""
    if retry_count >= 4:
        return BACKOFF_CAP_MS
    return int(min((2 ** retry_count) * BACKOFF_BASE_MS, BACKOFF_CAP_MS))


@dataclass
class SyncResult:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    started: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SyncEngine:
    """
    Replays queued actions through a RemoteAPIClient.

    Args:
        queue: the OfflineQueue to drain
        client: object exposing ``replay(action)``
        sleep: blocking sleep in seconds (injected in tests)
    """

    def __init__(
        self,
        queue: OfflineQueue,
        client,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.queue = queue
        self.client = client
        self.sleep = sleep
        self._lock = threading.Lock()

    @property
    def store(self):
        return self.queue.store

    @property
    def is_running(self) -> bool:
        return self._lock.locked() or self.store.is_syncing()

    def process_queue(
        self,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> SyncResult:
        """
        Drain the queue once, front to back.

        Returns a SyncResult with ``started=False`` when another drain holds
        the guard or when there was nothing to replay.
        """
        if not self._lock.acquire(blocking=False):
            logger.info("[SYNC] Drain already in progress - skipping")
            return SyncResult(started=False)

        try:
            snapshot = self.queue.list()
            if not snapshot:
                logger.debug("[SYNC] No queued actions to process")
                return SyncResult(started=False)

            if not self.store.begin_sync():
                logger.info("[SYNC] Drain already running in another process - skipping")
                return SyncResult(started=False, total=len(snapshot))

            try:
                return self._drain(snapshot, on_progress)
            finally:
                self.store.end_sync()
                self.store.set_last_sync_time(now_ms())
        finally:
            self._lock.release()

    def _drain(self, snapshot, on_progress) -> SyncResult:
        result = SyncResult(total=len(snapshot))
        logger.info(f"[SYNC] Processing {result.total} queued actions...")

        for action in snapshot:
            if action.exhausted:
                logger.info(f"[SYNC] Skipping action {action.id} - max retries reached")
                result.skipped += 1
                continue

            if action.retry_count > 0:
                backoff = calculate_backoff(action.retry_count)
                logger.info(
                    f"[SYNC] Waiting {backoff}ms before retry {action.retry_count + 1} of {action.id}"
                )
                self.sleep(backoff / 1000)
                # Discarded by the driver while we waited
                if self.queue.get(action.id) is None:
                    result.skipped += 1
                    continue

            try:
                self.client.replay(action)
            except ReplayError as e:
                retry_count = action.retry_count + 1
                self.queue.update(action.id, retry_count=retry_count, last_error=str(e) or 'Unknown error')
                result.failed += 1
                if retry_count >= MAX_RETRIES:
                    logger.error(f"[SYNC] Action {action.id} failed after max retries: {e}")
                else:
                    logger.warning(f"[SYNC] Failed to execute action {action.id} (attempt {retry_count}): {e}")
                continue

            self.queue.remove(action.id)
            result.processed += 1
            logger.info(f"[SYNC] Action {action.id} executed successfully")

            if on_progress:
                on_progress(result.processed, result.total)

        logger.info(
            f"[SYNC] Queue processing complete. {result.processed}/{result.total} actions synced."
        )
        return result


class AutoSyncService:
    """
    Periodic drain owned by the agent lifecycle.

    ``start()`` drains once immediately, then every ``interval`` seconds
    while the device is online. ``stop()`` ends the loop and joins it.
    """

    def __init__(self, engine: SyncEngine, interval: float = DEFAULT_AUTO_SYNC_INTERVAL, connectivity=None):
        self.engine = engine
        self.interval = interval
        self.connectivity = connectivity
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("[SYNC] Auto-sync already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='offline-auto-sync', daemon=True)
        self._thread.start()
        logger.info(f"[SYNC] Auto-sync started (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("[SYNC] Auto-sync stopped")

    def run_once(self) -> Optional[SyncResult]:
        if self.connectivity is not None and not self.connectivity.is_online():
            logger.debug("[SYNC] Offline - auto-sync pass skipped")
            return None
        try:
            return self.engine.process_queue()
        except Exception as e:
            logger.exception(f"[SYNC] Auto-sync failed: {e}")
            return None

    def _run(self) -> None:
        self.run_once()
        while not self._stop_event.wait(self.interval):
            self.run_once()
