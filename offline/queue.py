"""
OFFLINE App - Offline Action Queue

Durable FIFO list of mutating requests made while the driver had no
connectivity. Every mutation is a read-modify-write of the whole
snapshot under the store's lock.
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from django.db import models

from .exceptions import QueueStorageError
from .gps import now_ms
from .storage import QueueStore

logger = logging.getLogger(__name__)


MAX_RETRIES = 5


class ActionType(models.TextChoices):
    """Classifies an action for diagnostics; replay ignores it."""
    DELIVERY_STATUS = 'delivery-status', 'Delivery status'
    PROOF_UPLOAD = 'proof-upload', 'Proof upload'
    PETTY_CASH = 'petty-cash', 'Petty cash'
    LOCATION_UPDATE = 'location-update', 'Location update'
    FAILED_DELIVERY = 'failed-delivery', 'Failed delivery'


class ReplayMethod(models.TextChoices):
    POST = 'POST', 'POST'
    PUT = 'PUT', 'PUT'
    PATCH = 'PATCH', 'PATCH'


def generate_action_id() -> str:
    """Time-based id with a random suffix, e.g. ``1718000000000-3f9a1c2b7``."""
    return f"{now_ms()}-{uuid.uuid4().hex[:9]}"


@dataclass
class QueuedAction:
    id: str
    type: str
    endpoint: str
    method: str
    data: Any
    timestamp: int
    retry_count: int = 0
    last_error: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.retry_count >= MAX_RETRIES

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'endpoint': self.endpoint,
            'method': self.method,
            'data': self.data,
            'timestamp': self.timestamp,
            'retryCount': self.retry_count,
            'lastError': self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueuedAction':
        return cls(
            id=data['id'],
            type=data['type'],
            endpoint=data['endpoint'],
            method=data['method'],
            data=data.get('data'),
            timestamp=data['timestamp'],
            retry_count=data.get('retryCount', 0),
            last_error=data.get('lastError'),
        )


@dataclass
class QueueStatus:
    total: int = 0
    pending: int = 0
    errors: int = 0
    syncing: bool = False
    last_sync_time: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


UPDATABLE_FIELDS = ('retry_count', 'last_error')


class OfflineQueue:
    """
    Queue API over an injected QueueStore.

    Storage failures surface as QueueStorageError; losing a queued
    mutation would corrupt dispatch state.
    """

    def __init__(self, store: QueueStore):
        self.store = store

    def _load(self) -> List[QueuedAction]:
        try:
            return [QueuedAction.from_dict(item) for item in self.store.read_queue()]
        except (KeyError, TypeError) as e:
            raise QueueStorageError(f"Corrupted offline queue entry: {e}") from e

    def _save(self, actions: List[QueuedAction]) -> None:
        self.store.write_queue([a.to_dict() for a in actions])

    # ============================================
    # MUTATIONS
    # ============================================

    def enqueue(self, type: str, endpoint: str, method: str, data: Any) -> QueuedAction:
        """
        Append a new action with ``retry_count = 0``.

        Raises:
            ValueError: unknown action type or HTTP method
            QueueStorageError: the store could not persist the queue
        """
        type = str(type)
        if type not in ActionType.values:
            raise ValueError(f"Unknown action type: {type}")
        method = str(method).upper()
        if method not in ReplayMethod.values:
            raise ValueError(f"Unsupported method: {method}")

        action = QueuedAction(
            id=generate_action_id(),
            type=type,
            endpoint=endpoint,
            method=method,
            data=data,
            timestamp=now_ms(),
        )

        try:
            with self.store.locked():
                actions = self._load()
                actions.append(action)
                self._save(actions)
        except QueueStorageError as e:
            logger.error(f"[QUEUE] Failed to queue {type} {method} {endpoint}: {e}")
            raise

        logger.info(f"[QUEUE] Action queued: {action.id} ({type} {method} {endpoint})")
        return action

    def remove(self, action_id: str) -> bool:
        """Delete an action; returns False when it was not queued."""
        with self.store.locked():
            actions = self._load()
            remaining = [a for a in actions if a.id != action_id]
            if len(remaining) == len(actions):
                return False
            self._save(remaining)

        logger.info(f"[QUEUE] Action removed from queue: {action_id}")
        return True

    def update(self, action_id: str, **fields) -> Optional[QueuedAction]:
        """
        Merge ``retry_count`` / ``last_error`` into a queued action.

        ``retry_count`` never decreases while the action is queued.
        Returns the updated action, or None if it is no longer queued.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        with self.store.locked():
            actions = self._load()
            for action in actions:
                if action.id != action_id:
                    continue
                new_count = fields.get('retry_count', action.retry_count)
                if new_count < action.retry_count:
                    raise ValueError(
                        f"retry_count cannot decrease ({action.retry_count} -> {new_count})"
                    )
                action.retry_count = new_count
                if 'last_error' in fields:
                    action.last_error = fields['last_error']
                self._save(actions)
                return action
        return None

    def clear(self) -> None:
        with self.store.locked():
            self._save([])
        logger.info("[QUEUE] Queue cleared")

    # ============================================
    # QUERIES
    # ============================================

    def list(self) -> List[QueuedAction]:
        """All queued actions in insertion order."""
        return self._load()

    def get(self, action_id: str) -> Optional[QueuedAction]:
        for action in self._load():
            if action.id == action_id:
                return action
        return None

    def count(self, type: Optional[str] = None) -> int:
        actions = self._load()
        if type is None:
            return len(actions)
        return sum(1 for a in actions if a.type == type)

    def status(self) -> QueueStatus:
        actions = self._load()
        errors = sum(1 for a in actions if a.exhausted)
        return QueueStatus(
            total=len(actions),
            pending=len(actions) - errors,
            errors=errors,
            syncing=self.store.is_syncing(),
            last_sync_time=self.store.get_last_sync_time(),
        )
