"""
Tests for the Celery drain task
"""

from django.test import SimpleTestCase

from offline.connectivity import ConnectivityObserver
from offline.queue import ActionType
from offline.runtime import OfflineRuntime, set_runtime
from offline.storage import MemoryQueueStore
from offline.tasks import process_offline_queue
from offline.tests.fakes import FakeAPIClient, SleepRecorder


class ProcessOfflineQueueTaskTest(SimpleTestCase):

    def setUp(self):
        self.store = MemoryQueueStore()
        self.store.set_token('driver-token')
        self.fake = FakeAPIClient(store=self.store)
        self.runtime = OfflineRuntime(
            self.store,
            self.fake,
            connectivity=ConnectivityObserver(self.fake.ping, background=False),
            sleep=SleepRecorder(),
        )
        set_runtime(self.runtime)
        self.runtime.queue.enqueue(ActionType.DELIVERY_STATUS, '/deliveries/7/status', 'PUT', {'status': 'DELIVERED'})

    def tearDown(self):
        set_runtime(None)

    def test_drains_when_online(self):
        result = process_offline_queue()

        self.assertEqual(result['processed'], 1)
        self.assertEqual(self.runtime.queue.count(), 0)

    def test_skips_when_api_unreachable(self):
        self.fake.online = False

        result = process_offline_queue()

        self.assertEqual(result, {'started': False, 'online': False})
        self.assertEqual(self.runtime.queue.count(), 1)
