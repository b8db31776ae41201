"""
Tests for the connectivity observer
"""

from django.test import SimpleTestCase

from offline.connectivity import ConnectivityObserver
from offline.queue import ActionType, OfflineQueue
from offline.storage import MemoryQueueStore
from offline.sync import SyncEngine
from offline.tests.fakes import FakeAPIClient, SleepRecorder


class ConnectivityObserverTest(SimpleTestCase):

    def setUp(self):
        self.online = False
        self.store = MemoryQueueStore()
        self.store.set_token('driver-token')
        self.queue = OfflineQueue(self.store)
        self.client = FakeAPIClient(store=self.store)
        self.engine = SyncEngine(self.queue, self.client, sleep=SleepRecorder())
        self.observer = ConnectivityObserver(lambda: self.online, engine=self.engine, background=False)

    def test_initial_state_comes_from_ping(self):
        self.assertFalse(self.observer.is_online())
        self.online = True
        self.assertTrue(self.observer.check())
        self.assertTrue(self.observer.is_online())

    def test_reconnect_drains_queue(self):
        self.observer.check()
        self.queue.enqueue(ActionType.DELIVERY_STATUS, '/deliveries/1/status', 'PUT', {'status': 'DELIVERED'})

        self.observer.set_online(True)

        self.assertEqual(self.queue.count(), 0)
        self.assertIsNotNone(self.store.get_last_sync_time())

    def test_callbacks_fire_on_transitions_only(self):
        events = []
        self.observer.on_online(lambda: events.append('online'))
        self.observer.on_offline(lambda: events.append('offline'))

        self.observer.set_online(False)
        self.observer.set_online(True)
        self.observer.set_online(True)
        self.observer.set_online(False)

        self.assertEqual(events, ['online', 'offline'])

    def test_unsubscribe(self):
        events = []
        unsubscribe = self.observer.on_online(lambda: events.append('online'))
        self.observer.set_online(False)
        unsubscribe()
        self.observer.set_online(True)
        self.assertEqual(events, [])

    def test_failing_callback_does_not_stop_sync(self):
        def broken():
            raise RuntimeError('ui gone')

        self.observer.on_online(broken)
        self.observer.set_online(False)
        self.queue.enqueue(ActionType.PETTY_CASH, '/petty-cash', 'POST', {'amount': 5})

        self.observer.set_online(True)
        self.assertEqual(self.queue.count(), 0)

    def test_ping_errors_mean_offline(self):
        def failing_ping():
            raise OSError('dns failure')

        observer = ConnectivityObserver(failing_ping, background=False)
        self.assertFalse(observer.check())

    def test_polling_lifecycle(self):
        observer = ConnectivityObserver(lambda: True, interval=0.01, background=False)
        observer.start()
        observer.stop(timeout=2)
        self.assertFalse(observer.is_polling)
        self.assertTrue(observer.is_online())
