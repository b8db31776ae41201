"""
OFFLINE App - Runtime wiring

Builds the offline components from Django settings and owns their
background lifecycle (connectivity polling and auto-sync). Views, the
Celery task and the management command all share one runtime per process.
"""

import logging
import threading
from typing import Optional

from django.conf import settings

from .actions import DriverActionService
from .client import RemoteAPIClient
from .connectivity import ConnectivityObserver
from .gps import ReportedLocationProvider
from .queue import OfflineQueue
from .storage import CacheQueueStore, QueueStore
from .sync import AutoSyncService, SyncEngine
from .tracking import LocationTracker

logger = logging.getLogger(__name__)


class OfflineRuntime:
    """Container for one process's offline components."""

    def __init__(
        self,
        store: QueueStore,
        client,
        location_provider=None,
        connectivity: Optional[ConnectivityObserver] = None,
        sync_interval: float = 30,
        connectivity_interval: float = 5,
        max_backlog: int = 500,
        sleep=None,
    ):
        self.store = store
        self.client = client
        self.queue = OfflineQueue(store)

        engine_kwargs = {}
        if sleep is not None:
            engine_kwargs['sleep'] = sleep
        self.engine = SyncEngine(self.queue, client, **engine_kwargs)

        self.connectivity = connectivity or ConnectivityObserver(
            client.ping, engine=self.engine, interval=connectivity_interval,
        )
        if self.connectivity.engine is None:
            self.connectivity.engine = self.engine

        self.location_provider = location_provider or ReportedLocationProvider()
        self.actions = DriverActionService(self.queue, client, self.location_provider, self.connectivity)
        self.tracker = LocationTracker(
            self.queue, client, self.connectivity, self.engine, max_backlog=max_backlog,
        )
        self.auto_sync = AutoSyncService(self.engine, interval=sync_interval, connectivity=self.connectivity)

    def start(self) -> None:
        self.connectivity.start()
        self.auto_sync.start()
        logger.info("[RUNTIME] Offline agent started")

    def stop(self, timeout: Optional[float] = None) -> None:
        self.auto_sync.stop(timeout)
        self.connectivity.stop(timeout)
        logger.info("[RUNTIME] Offline agent stopped")


def build_runtime() -> OfflineRuntime:
    """Runtime configured from the OFFLINE_* / DISPATCH_* settings."""
    store = CacheQueueStore(alias=getattr(settings, 'OFFLINE_CACHE_ALIAS', 'offline'))
    client = RemoteAPIClient(
        settings.DISPATCH_API_URL,
        store,
        timeout=getattr(settings, 'OFFLINE_REQUEST_TIMEOUT', 15),
    )
    return OfflineRuntime(
        store,
        client,
        sync_interval=getattr(settings, 'OFFLINE_AUTO_SYNC_INTERVAL', 30),
        connectivity_interval=getattr(settings, 'OFFLINE_CONNECTIVITY_INTERVAL', 5),
        max_backlog=getattr(settings, 'OFFLINE_MAX_TRACKING_BACKLOG', 500),
    )


_runtime: Optional[OfflineRuntime] = None
_runtime_lock = threading.Lock()


def get_runtime() -> OfflineRuntime:
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = build_runtime()
        return _runtime


def set_runtime(runtime: Optional[OfflineRuntime]) -> None:
    """Install a runtime (tests inject one built from fakes)."""
    global _runtime
    with _runtime_lock:
        _runtime = runtime


def reset_runtime() -> None:
    global _runtime
    with _runtime_lock:
        if _runtime is not None:
            _runtime.stop(timeout=5)
        _runtime = None
