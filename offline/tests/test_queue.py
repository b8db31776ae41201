"""
Tests for the offline action queue
"""

from unittest.mock import patch

from django.test import SimpleTestCase

from offline.exceptions import QueueStorageError
from offline.queue import ActionType, MAX_RETRIES, OfflineQueue, QueuedAction
from offline.storage import MemoryQueueStore


class OfflineQueueTest(SimpleTestCase):

    def setUp(self):
        self.store = MemoryQueueStore()
        self.queue = OfflineQueue(self.store)

    def _enqueue(self, delivery_id='d1'):
        return self.queue.enqueue(
            ActionType.DELIVERY_STATUS, f'/deliveries/{delivery_id}/status', 'PUT', {'status': 'IN_TRANSIT'}
        )

    def test_enqueue_sets_defaults(self):
        action = self._enqueue()

        self.assertEqual(action.retry_count, 0)
        self.assertIsNone(action.last_error)
        self.assertEqual(action.type, 'delivery-status')
        self.assertEqual(action.method, 'PUT')
        self.assertRegex(action.id, r'^\d+-[0-9a-f]{9}$')
        self.assertEqual(self.queue.list(), [action])

    def test_insertion_order_is_kept(self):
        ids = [self._enqueue(f'd{i}').id for i in range(3)]
        self.assertEqual([a.id for a in self.queue.list()], ids)

    def test_rejects_unknown_type_and_method(self):
        with self.assertRaises(ValueError):
            self.queue.enqueue('parcel-teleport', '/x', 'POST', {})
        with self.assertRaises(ValueError):
            self.queue.enqueue(ActionType.PETTY_CASH, '/petty-cash', 'DELETE', {})
        self.assertEqual(self.queue.count(), 0)

    def test_remove(self):
        first = self._enqueue('d1')
        second = self._enqueue('d2')

        self.assertTrue(self.queue.remove(first.id))
        self.assertFalse(self.queue.remove(first.id))
        self.assertEqual(self.queue.list(), [second])

    def test_update_merges_fields(self):
        action = self._enqueue()
        updated = self.queue.update(action.id, retry_count=1, last_error='Network Error')

        self.assertEqual(updated.retry_count, 1)
        stored = self.queue.get(action.id)
        self.assertEqual(stored.retry_count, 1)
        self.assertEqual(stored.last_error, 'Network Error')
        self.assertEqual(stored.endpoint, action.endpoint)

    def test_update_never_decreases_retry_count(self):
        action = self._enqueue()
        self.queue.update(action.id, retry_count=2)

        with self.assertRaises(ValueError):
            self.queue.update(action.id, retry_count=1)
        with self.assertRaises(ValueError):
            self.queue.update(action.id, endpoint='/elsewhere')

    def test_update_missing_action(self):
        self.assertIsNone(self.queue.update('nope', retry_count=1))

    def test_status_counters(self):
        exhausted = self._enqueue('d1')
        self._enqueue('d2')
        self.queue.update(exhausted.id, retry_count=MAX_RETRIES)
        self.store.set_last_sync_time(123)

        status = self.queue.status()
        self.assertEqual(status.total, 2)
        self.assertEqual(status.pending, 1)
        self.assertEqual(status.errors, 1)
        self.assertFalse(status.syncing)
        self.assertEqual(status.last_sync_time, 123)

    def test_count_by_type(self):
        self._enqueue()
        self.queue.enqueue(ActionType.LOCATION_UPDATE, '/tracking/location', 'POST', {})
        self.assertEqual(self.queue.count(ActionType.LOCATION_UPDATE), 1)
        self.assertEqual(self.queue.count(), 2)

    def test_clear(self):
        self._enqueue()
        self.queue.clear()
        self.assertEqual(self.queue.list(), [])

    def test_storage_failure_is_raised(self):
        with patch.object(self.store, 'write_queue', side_effect=QueueStorageError('disk full')):
            with self.assertRaises(QueueStorageError):
                self._enqueue()

    def test_corrupted_entry_is_reported(self):
        self.store.write_queue([{'id': 'broken'}])
        with self.assertRaises(QueueStorageError):
            self.queue.list()

    def test_serialised_shape(self):
        action = QueuedAction(
            id='1-abc', type='petty-cash', endpoint='/petty-cash', method='POST',
            data={'amount': 10}, timestamp=1, retry_count=2, last_error='boom',
        )
        self.assertEqual(action.to_dict()['retryCount'], 2)
        self.assertEqual(QueuedAction.from_dict(action.to_dict()), action)
