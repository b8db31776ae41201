"""
OFFLINE App - Durable local store

Holds the action queue, the sync guard, the last sync time and the
driver's session token. The store is an explicit object injected into
the queue, the API client and the sync engine.

Two backends:
- CacheQueueStore: Django cache framework (file-based alias survives restarts)
- MemoryQueueStore: in-process, for tests and embedding
"""

import copy
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import caches
from filelock import FileLock, Timeout

from .exceptions import QueueStorageError

logger = logging.getLogger(__name__)

QUEUE_NAMESPACE = 'dispatch_offline'
SESSION_NAMESPACE = 'dispatch_session'
MUTATION_LOCK_WAIT = 10           # seconds a writer waits for the lock
MUTATION_LOCK_POLL = 0.05


class QueueStore:
    """Interface shared by the store backends."""

    # Queue snapshot
    def read_queue(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def write_queue(self, items: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def locked(self):
        """Context manager serialising read-modify-write cycles on the queue."""
        raise NotImplementedError

    # Sync bookkeeping
    def get_last_sync_time(self) -> Optional[int]:
        raise NotImplementedError

    def set_last_sync_time(self, value: int) -> None:
        raise NotImplementedError

    def begin_sync(self) -> bool:
        """Atomically mark a drain as running; False if one already is."""
        raise NotImplementedError

    def end_sync(self) -> None:
        raise NotImplementedError

    def is_syncing(self) -> bool:
        raise NotImplementedError

    # Session
    def get_token(self) -> Optional[str]:
        raise NotImplementedError

    def set_token(self, token: str) -> None:
        raise NotImplementedError

    def clear_token(self) -> None:
        raise NotImplementedError


class CacheQueueStore(QueueStore):
    """
    Store backed by a Django cache alias.

    Queue state lives under ``dispatch_offline:*`` and the session token
    under ``dispatch_session:*``. Entries never expire.

    Mutual exclusion between the web process, the Celery worker and the
    agent command uses OS file locks in ``lock_dir``: ``queue.lock`` for
    read-modify-write cycles and ``sync.lock`` for the drain guard. The OS
    drops a lock when its holder exits, so neither carries a TTL and only
    the holder can release it.
    """

    def __init__(self, alias: str = 'offline', namespace: str = QUEUE_NAMESPACE, lock_dir: Optional[str] = None):
        self.alias = alias
        self.namespace = namespace
        if lock_dir is None:
            lock_dir = getattr(settings, 'OFFLINE_STORE_DIR', None) or tempfile.gettempdir()
        os.makedirs(lock_dir, exist_ok=True)
        self._queue_lock_path = os.path.join(lock_dir, f"{namespace}.queue.lock")
        self._sync_lock_path = os.path.join(lock_dir, f"{namespace}.sync.lock")
        self._queue_lock = FileLock(self._queue_lock_path)
        self._sync_lock = FileLock(self._sync_lock_path)

    @property
    def cache(self):
        return caches[self.alias]

    def _key(self, name: str) -> str:
        return f"{self.namespace}:{name}"

    def _get(self, key: str, default=None):
        try:
            return self.cache.get(key, default)
        except Exception as e:
            raise QueueStorageError(f"Failed to read '{key}' from local store: {e}") from e

    def _set(self, key: str, value) -> None:
        try:
            self.cache.set(key, value, timeout=None)
        except Exception as e:
            raise QueueStorageError(f"Failed to write '{key}' to local store: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            self.cache.delete(key)
        except Exception as e:
            raise QueueStorageError(f"Failed to delete '{key}' from local store: {e}") from e

    # ------------------------------------------
    # Queue snapshot
    # ------------------------------------------

    def read_queue(self) -> List[Dict[str, Any]]:
        return list(self._get(self._key('queue'), []) or [])

    def write_queue(self, items: List[Dict[str, Any]]) -> None:
        self._set(self._key('queue'), list(items))

    @contextmanager
    def locked(self):
        # Re-entrant per thread; other threads and processes block
        try:
            self._queue_lock.acquire(timeout=MUTATION_LOCK_WAIT, poll_interval=MUTATION_LOCK_POLL)
        except Timeout as e:
            raise QueueStorageError('Timed out waiting for the offline queue lock') from e
        except OSError as e:
            raise QueueStorageError(f"Failed to lock the offline queue: {e}") from e
        try:
            yield
        finally:
            self._queue_lock.release()

    # ------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------

    def get_last_sync_time(self) -> Optional[int]:
        return self._get(self._key('last_sync_time'))

    def set_last_sync_time(self, value: int) -> None:
        self._set(self._key('last_sync_time'), value)

    def begin_sync(self) -> bool:
        if self._sync_lock.is_locked:
            return False
        try:
            self._sync_lock.acquire(timeout=0)
        except Timeout:
            return False
        except OSError as e:
            raise QueueStorageError(f"Failed to acquire the sync guard: {e}") from e
        logger.debug(f"[STORE] Sync guard acquired ({self._sync_lock_path})")
        return True

    def end_sync(self) -> None:
        if self._sync_lock.is_locked:
            self._sync_lock.release(force=True)

    def is_syncing(self) -> bool:
        if self._sync_lock.is_locked:
            return True
        holder_check = FileLock(self._sync_lock_path, thread_local=False)
        try:
            holder_check.acquire(timeout=0)
        except Timeout:
            return True
        holder_check.release()
        return False

    # ------------------------------------------
    # Session
    # ------------------------------------------

    def _token_key(self) -> str:
        return f"{SESSION_NAMESPACE}:token"

    def get_token(self) -> Optional[str]:
        return self._get(self._token_key())

    def set_token(self, token: str) -> None:
        self._set(self._token_key(), token)

    def clear_token(self) -> None:
        self._delete(self._token_key())


class MemoryQueueStore(QueueStore):
    """In-process store; values are deep-copied like a serialising backend."""

    def __init__(self):
        self._lock = threading.RLock()
        self._queue: List[Dict[str, Any]] = []
        self._last_sync_time: Optional[int] = None
        self._syncing = False
        self._token: Optional[str] = None

    def read_queue(self) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._queue)

    def write_queue(self, items: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._queue = copy.deepcopy(list(items))

    @contextmanager
    def locked(self):
        with self._lock:
            yield

    def get_last_sync_time(self) -> Optional[int]:
        return self._last_sync_time

    def set_last_sync_time(self, value: int) -> None:
        self._last_sync_time = value

    def begin_sync(self) -> bool:
        with self._lock:
            if self._syncing:
                return False
            self._syncing = True
            return True

    def end_sync(self) -> None:
        with self._lock:
            self._syncing = False

    def is_syncing(self) -> bool:
        return self._syncing

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None
