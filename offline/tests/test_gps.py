"""
Tests for GPS validation, mock detection and position acquisition
"""

import threading

from django.test import SimpleTestCase

from offline.exceptions import LocationPermissionDenied, LocationTimeout, LocationUnavailable
from offline.gps import (
    GPSReading,
    ReportedLocationProvider,
    WARNING_FUTURE,
    WARNING_MISSING_SENSORS,
    WARNING_NULL_ISLAND,
    WARNING_PERFECT_ACCURACY,
    WARNING_ROUNDED,
    WARNING_STALE,
    calculate_distance,
    count_decimals,
    get_validated_position,
    quality_badge,
    validate_gps_data,
)
from offline.serializers import GPSActionSerializer, GPSReadingSerializer
from offline.tests.fakes import mumbai_reading

NOW = 1_718_000_000_000


class GPSValidationTest(SimpleTestCase):

    def test_realistic_reading_is_clean(self):
        metadata = validate_gps_data(mumbai_reading(NOW), now=NOW)

        self.assertFalse(metadata.is_mock_location)
        self.assertEqual(metadata.quality_score, 100)
        self.assertEqual(metadata.warnings, [])

    def test_mumbai_delivery_reading(self):
        """Rounded latitude alone is one indicator: good score, not mock."""
        reading = GPSReading(
            latitude=19.07600, longitude=72.87770, accuracy=12,
            timestamp=NOW - 2000, altitude=15, heading=90, speed=1.2,
        )
        metadata = validate_gps_data(reading, now=NOW)

        self.assertFalse(metadata.is_mock_location)
        self.assertEqual(metadata.warnings, [WARNING_ROUNDED])
        self.assertEqual(metadata.quality_score, 85)
        self.assertGreaterEqual(metadata.quality_score, 60)

    def test_scoring_is_deterministic(self):
        reading = mumbai_reading(NOW, accuracy=45, altitude=None)
        first = validate_gps_data(reading, now=NOW)
        second = validate_gps_data(reading, now=NOW)

        self.assertEqual(first.quality_score, second.quality_score)
        self.assertEqual(first.warnings, second.warnings)

    def test_null_island_is_always_mock(self):
        metadata = validate_gps_data(mumbai_reading(NOW, latitude=0, longitude=0), now=NOW)

        self.assertTrue(metadata.is_mock_location)
        self.assertIn(WARNING_NULL_ISLAND, metadata.warnings)

    def test_perfect_accuracy_alone_is_not_mock(self):
        metadata = validate_gps_data(mumbai_reading(NOW, accuracy=3), now=NOW)

        self.assertFalse(metadata.is_mock_location)
        self.assertEqual(metadata.warnings, [WARNING_PERFECT_ACCURACY])
        self.assertEqual(metadata.quality_score, 85)

    def test_two_indicators_flag_mock(self):
        metadata = validate_gps_data(
            mumbai_reading(NOW, accuracy=3, latitude=19.07), now=NOW
        )
        self.assertTrue(metadata.is_mock_location)

    def test_quality_never_negative(self):
        reading = GPSReading(latitude=0, longitude=0, accuracy=3, timestamp=NOW + 60_000)
        metadata = validate_gps_data(reading, now=NOW)

        self.assertTrue(metadata.is_mock_location)
        self.assertEqual(metadata.quality_score, 0)
        self.assertIn(WARNING_FUTURE, metadata.warnings)
        self.assertIn(WARNING_MISSING_SENSORS, metadata.warnings)

    def test_stale_reading_without_sensors(self):
        reading = GPSReading(
            latitude=19.0760123, longitude=72.8777456, accuracy=60, timestamp=NOW - 40_000,
        )
        metadata = validate_gps_data(reading, now=NOW)

        self.assertFalse(metadata.is_mock_location)
        self.assertEqual(metadata.warnings, [WARNING_STALE, WARNING_MISSING_SENSORS])
        self.assertEqual(metadata.quality_score, 35)

    def test_invalid_range_is_mock(self):
        metadata = validate_gps_data(mumbai_reading(NOW, latitude=95.1234567), now=NOW)
        self.assertTrue(metadata.is_mock_location)

    def test_count_decimals(self):
        self.assertEqual(count_decimals(19.076), 3)
        self.assertEqual(count_decimals(72.8777), 4)
        self.assertEqual(count_decimals(10.0), 0)
        self.assertEqual(count_decimals(0.0000001), 7)

    def test_payload_uses_api_keys(self):
        payload = validate_gps_data(mumbai_reading(NOW), now=NOW).to_payload()

        self.assertEqual(payload['gpsTimestamp'], NOW - 2000)
        self.assertFalse(payload['isMockLocation'])
        self.assertEqual(payload['qualityScore'], 100)
        self.assertIn('altitudeAccuracy', payload)


class GPSHelpersTest(SimpleTestCase):

    def test_quality_badge_bands(self):
        self.assertEqual(quality_badge(95)['label'], 'Excellent')
        self.assertEqual(quality_badge(60)['label'], 'Good')
        self.assertEqual(quality_badge(40)['color'], 'yellow')
        self.assertEqual(quality_badge(0), {'label': 'Poor', 'color': 'red'})

    def test_calculate_distance(self):
        self.assertEqual(calculate_distance(19.076, 72.8777, 19.076, 72.8777), 0)
        # One degree of longitude on the equator
        self.assertAlmostEqual(calculate_distance(0, 0, 0, 1), 111194.9, delta=1)

    def test_reading_from_browser_position(self):
        reading = GPSReading.from_dict({
            'coords': {'latitude': 19.1, 'longitude': 72.9, 'accuracy': 8, 'altitudeAccuracy': 3},
            'timestamp': NOW,
        })
        self.assertEqual(reading.latitude, 19.1)
        self.assertEqual(reading.altitude_accuracy, 3)
        self.assertEqual(reading.timestamp, NOW)

    def test_serializers_parse_like_from_dict(self):
        payload = {
            'latitude': 19.1, 'longitude': 72.9, 'accuracy': 8,
            'altitudeAccuracy': 3, 'heading': 45, 'timestamp': NOW,
        }
        serializer = GPSReadingSerializer(data=payload)
        self.assertTrue(serializer.is_valid(), serializer.errors)
        action = GPSActionSerializer(data={'gps': payload})
        self.assertTrue(action.is_valid(), action.errors)

        expected = GPSReading.from_dict(payload)
        self.assertEqual(serializer.to_reading(), expected)
        self.assertEqual(action.get_reading(), expected)
        self.assertEqual(expected.altitude_accuracy, 3)

    def test_serializer_fills_missing_timestamp(self):
        serializer = GPSReadingSerializer(data={'latitude': 19.1, 'longitude': 72.9, 'accuracy': 8})
        self.assertTrue(serializer.is_valid(), serializer.errors)
        self.assertGreater(serializer.to_reading().timestamp, 0)


class LocationProviderTest(SimpleTestCase):

    def setUp(self):
        self.provider = ReportedLocationProvider()

    def test_waits_for_next_fix(self):
        reading = mumbai_reading(NOW)
        timer = threading.Timer(0.05, self.provider.report, args=(reading,))
        timer.start()
        try:
            self.assertEqual(self.provider.get_current_position(timeout=2), reading)
        finally:
            timer.cancel()

    def test_times_out_without_fix(self):
        with self.assertRaises(LocationTimeout):
            self.provider.get_current_position(timeout=0.05)

    def test_reported_error_propagates(self):
        timer = threading.Timer(0.05, self.provider.fail, args=(LocationPermissionDenied('denied'),))
        timer.start()
        try:
            with self.assertRaises(LocationPermissionDenied):
                get_validated_position(self.provider, timeout=2)
        finally:
            timer.cancel()

    def test_missing_provider(self):
        with self.assertRaises(LocationUnavailable):
            get_validated_position(None)

    def test_validated_position(self):
        timer = threading.Timer(0.05, self.provider.report, args=(mumbai_reading(NOW),))
        timer.start()
        try:
            metadata = get_validated_position(self.provider, timeout=2, now=NOW)
        finally:
            timer.cancel()
        self.assertEqual(metadata.quality_score, 100)
