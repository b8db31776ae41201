"""
Tests for live location tracking and the offline backlog
"""

import threading

from django.test import SimpleTestCase

from offline.connectivity import ConnectivityObserver
from offline.gps import now_ms
from offline.queue import ActionType, OfflineQueue
from offline.storage import MemoryQueueStore
from offline.sync import SyncEngine
from offline.tests.fakes import FakeAPIClient, SleepRecorder, mumbai_reading
from offline.tracking import LocationTracker


class LocationTrackerTest(SimpleTestCase):

    def setUp(self):
        self.store = MemoryQueueStore()
        self.store.set_token('driver-token')
        self.queue = OfflineQueue(self.store)
        self.client = FakeAPIClient(store=self.store)
        self.engine = SyncEngine(self.queue, self.client, sleep=SleepRecorder())
        self.connectivity = ConnectivityObserver(self.client.ping, background=False)
        self.tracker = LocationTracker(
            self.queue, self.client, self.connectivity, self.engine, max_backlog=3, background=False,
        )

    def go_offline(self):
        self.client.online = False
        self.connectivity.set_online(False)

    def test_fix_ignored_when_not_tracking(self):
        self.assertIsNone(self.tracker.handle_fix(mumbai_reading(now_ms())))
        self.assertEqual(self.client.sent, [])

    def test_start_twice_is_a_noop(self):
        self.assertTrue(self.tracker.start_tracking('42'))
        self.assertFalse(self.tracker.start_tracking('43'))
        self.assertEqual(self.tracker.delivery_id, '42')

    def test_online_fix_is_sent(self):
        self.tracker.start_tracking('42')

        summary = self.tracker.handle_fix(mumbai_reading(now_ms()))

        self.assertTrue(summary['sent'])
        method, endpoint, data = self.client.sent[0]
        self.assertEqual(endpoint, '/tracking/location')
        self.assertEqual(data['deliveryId'], '42')
        self.assertEqual(data['status'], 'IN_TRANSIT')

    def test_offline_fixes_are_queued_up_to_backlog(self):
        self.tracker.start_tracking('42')
        self.go_offline()
        self.queue.enqueue(ActionType.DELIVERY_STATUS, '/deliveries/42/status', 'PUT', {'status': 'IN_TRANSIT'})

        results = [self.tracker.handle_fix(mumbai_reading(now_ms())) for _ in range(5)]

        self.assertEqual(sum(1 for r in results if r), 3)
        self.assertEqual(self.queue.count(ActionType.LOCATION_UPDATE), 3)
        # Other queued actions are never evicted
        self.assertEqual(self.queue.count(ActionType.DELIVERY_STATUS), 1)

    def test_stop_runs_final_drain(self):
        self.tracker.start_tracking('42')
        self.connectivity.set_online(True)
        self.client.always_fail = True
        self.tracker.handle_fix(mumbai_reading(now_ms()))
        self.assertEqual(self.queue.count(), 1)

        self.client.always_fail = False
        self.tracker.stop_tracking()

        self.assertFalse(self.tracker.is_tracking)
        self.assertEqual(self.queue.count(), 0)

    def test_concurrent_offline_fixes_respect_backlog(self):
        self.tracker.start_tracking('42')
        self.go_offline()
        start = threading.Barrier(10)

        def report():
            start.wait()
            self.tracker.handle_fix(mumbai_reading(now_ms()))

        threads = [threading.Thread(target=report) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        self.assertEqual(self.queue.count(ActionType.LOCATION_UPDATE), 3)


class BackgroundFinalDrainTest(SimpleTestCase):

    def setUp(self):
        self.store = MemoryQueueStore()
        self.store.set_token('driver-token')
        self.queue = OfflineQueue(self.store)
        self.client = FakeAPIClient(store=self.store)
        self.engine = SyncEngine(self.queue, self.client, sleep=SleepRecorder())
        self.connectivity = ConnectivityObserver(self.client.ping, background=False)
        self.tracker = LocationTracker(self.queue, self.client, self.connectivity, self.engine)

    def test_stop_returns_while_slow_replay_runs(self):
        replay_started = threading.Event()
        release = threading.Event()
        replay = self.client.replay

        def slow_replay(action):
            replay_started.set()
            release.wait(timeout=5)
            return replay(action)

        self.client.replay = slow_replay
        self.queue.enqueue(ActionType.LOCATION_UPDATE, '/tracking/location', 'POST', {'deliveryId': '42'})
        self.tracker.start_tracking('42')

        self.tracker.stop_tracking()

        self.assertTrue(replay_started.wait(timeout=5))
        self.assertFalse(self.tracker.is_tracking)
        self.assertTrue(self.engine.is_running)
        self.assertEqual(self.queue.count(), 1)

        release.set()
        self.tracker._drain_thread.join(timeout=5)
        self.assertFalse(self.engine.is_running)
        self.assertEqual(self.queue.count(), 0)

    def test_stop_offline_skips_drain(self):
        self.connectivity.set_online(False)
        self.tracker.start_tracking('42')

        self.tracker.stop_tracking()

        self.assertIsNone(self.tracker._drain_thread)
