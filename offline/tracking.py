"""
OFFLINE App - Location tracking

Streams driver fixes to the dispatch API while a delivery is in transit.
Fixes taken without connectivity are queued as location updates, up to a
bounded backlog.
"""

import logging
import threading
from typing import Any, Dict, Optional

from .exceptions import ReplayError
from .gps import GPSReading, validate_gps_data
from .queue import ActionType, OfflineQueue, QueuedAction, ReplayMethod

logger = logging.getLogger(__name__)


DEFAULT_MAX_BACKLOG = 500
TRACKING_ENDPOINT = '/tracking/location'


class LocationTracker:
    """
    Args:
        queue: OfflineQueue receiving fixes taken offline
        client: RemoteAPIClient for live updates
        connectivity: ConnectivityObserver
        engine: SyncEngine drained once when tracking stops
        max_backlog: queued location updates kept at most
        background: run the final drain in its own thread
    """

    def __init__(
        self,
        queue: OfflineQueue,
        client,
        connectivity,
        engine,
        max_backlog: int = DEFAULT_MAX_BACKLOG,
        background: bool = True,
    ):
        self.queue = queue
        self.client = client
        self.connectivity = connectivity
        self.engine = engine
        self.max_backlog = max_backlog
        self.background = background
        self._drain_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._delivery_id = None
        self._status: Optional[str] = None

    @property
    def is_tracking(self) -> bool:
        return self._delivery_id is not None

    @property
    def delivery_id(self):
        return self._delivery_id

    def start_tracking(self, delivery_id, status: str = 'IN_TRANSIT') -> bool:
        with self._lock:
            if self._delivery_id is not None:
                logger.warning(f"[TRACKING] Already tracking delivery {self._delivery_id}")
                return False
            self._delivery_id = delivery_id
            self._status = status
        logger.info(f"[TRACKING] Started tracking delivery {delivery_id}")
        return True

    def stop_tracking(self) -> None:
        with self._lock:
            delivery_id = self._delivery_id
            self._delivery_id = None
            self._status = None
        if delivery_id is None:
            return
        logger.info(f"[TRACKING] Stopped tracking delivery {delivery_id}")

        if not self.connectivity.is_online():
            return
        if not self.background:
            self._final_drain()
            return
        self._drain_thread = threading.Thread(target=self._final_drain, name='offline-tracking-drain', daemon=True)
        self._drain_thread.start()

    def _final_drain(self) -> None:
        # A drain already in progress is left to finish on its own
        try:
            self.engine.process_queue()
        except Exception as e:
            logger.exception(f"[TRACKING] Final drain failed: {e}")

    def handle_fix(self, reading: GPSReading) -> Optional[Dict[str, Any]]:
        """
        Send (or queue) one fix for the tracked delivery.

        Returns a summary dict, or None when tracking is off or the fix
        was dropped because the backlog is full.
        """
        with self._lock:
            delivery_id, status = self._delivery_id, self._status
        if delivery_id is None:
            return None

        gps = validate_gps_data(reading)
        data = {'deliveryId': delivery_id, 'status': status, **gps.to_payload()}

        if self.connectivity.is_online():
            try:
                self.client.send(ReplayMethod.POST, TRACKING_ENDPOINT, data)
                return {'sent': True, 'queued': False, 'gps': gps.to_dict()}
            except ReplayError as e:
                logger.warning(f"[TRACKING] Live update failed, queueing: {e}")

        action = self._queue_fix(data)
        if action is None:
            return None
        return {'sent': False, 'queued': True, 'action': action.to_dict(), 'gps': gps.to_dict()}

    def _queue_fix(self, data) -> Optional[QueuedAction]:
        # Count and append under one lock so concurrent fixes respect the cap
        with self.queue.store.locked():
            backlog = self.queue.count(ActionType.LOCATION_UPDATE)
            if backlog >= self.max_backlog:
                logger.warning(
                    f"[TRACKING] Location backlog full ({backlog}/{self.max_backlog}) - fix dropped"
                )
                return None
            return self.queue.enqueue(ActionType.LOCATION_UPDATE, TRACKING_ENDPOINT, ReplayMethod.POST, data)
