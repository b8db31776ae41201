"""
DISPATCH - GPS Validation & Mock Detection
===========================================
Scores raw geolocation readings and flags likely mock locations.

The heuristics are a best-effort signal surfaced to the driver for
confirmation; they never block an action on their own.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from .exceptions import (
    LocationAcquisitionError,
    LocationTimeout,
    LocationUnavailable,
)

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION CONSTANTS
# ============================================

GPS_TIMEOUT_SECONDS = 10           # Location acquisition timeout
POOR_ACCURACY_M = 100              # Warn above this accuracy
SUSPICIOUS_ACCURACY_M = 5          # Consumer GPS rarely reports below this
MIN_COORDINATE_DECIMALS = 4
STALE_AGE_MS = 30_000
MOCK_THRESHOLD = 2                 # Indicators needed to flag a mock location
MOCK_INDICATOR_PENALTY = 15
MISSING_SENSOR_PENALTY = 5

# Earth radius in meters
EARTH_RADIUS_M = 6371e3

WARNING_POOR_ACCURACY = 'Poor GPS accuracy (>100m)'
WARNING_PERFECT_ACCURACY = 'Suspiciously perfect accuracy (<5m)'
WARNING_ROUNDED = 'Suspiciously rounded coordinates'
WARNING_STALE = 'Stale GPS data (>30s old)'
WARNING_FUTURE = 'GPS timestamp in future'
WARNING_MISSING_SENSORS = 'Missing altitude, heading, and speed data'
WARNING_INVALID_RANGE = 'Invalid coordinate range'
WARNING_NULL_ISLAND = 'Null Island coordinates detected'


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ============================================
# DATA MODEL
# ============================================

@dataclass
class GPSReading:
    """Raw sample as produced by the device (timestamp in epoch ms)."""

    latitude: float
    longitude: float
    accuracy: float
    timestamp: float
    altitude: Optional[float] = None
    altitude_accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GPSReading':
        """
        Build a reading from either snake_case or browser camelCase keys.

        Browser geolocation positions nest the values under ``coords``;
        that shape is accepted too.
        """
        coords = data.get('coords', data)

        def pick(*keys):
            for key in keys:
                if key in coords and coords[key] is not None:
                    return coords[key]
            return None

        timestamp = data.get('timestamp', coords.get('timestamp'))
        if timestamp is None:
            timestamp = now_ms()

        return cls(
            latitude=float(pick('latitude', 'lat')),
            longitude=float(pick('longitude', 'lng', 'lon')),
            accuracy=float(pick('accuracy')),
            timestamp=float(timestamp),
            altitude=pick('altitude'),
            altitude_accuracy=pick('altitude_accuracy', 'altitudeAccuracy'),
            heading=pick('heading'),
            speed=pick('speed'),
        )


@dataclass
class GPSMetadata:
    """A reading plus its derived quality annotations."""

    reading: GPSReading
    is_mock_location: bool
    quality_score: int
    warnings: List[str] = field(default_factory=list)

    @property
    def latitude(self) -> float:
        return self.reading.latitude

    @property
    def longitude(self) -> float:
        return self.reading.longitude

    @property
    def badge(self) -> Dict[str, str]:
        return quality_badge(self.quality_score)

    def to_payload(self) -> Dict[str, Any]:
        """GPS fields in the shape the dispatch API stores them."""
        r = self.reading
        return {
            'latitude': r.latitude,
            'longitude': r.longitude,
            'accuracy': r.accuracy,
            'altitude': r.altitude,
            'altitudeAccuracy': r.altitude_accuracy,
            'heading': r.heading,
            'speed': r.speed,
            'gpsTimestamp': int(r.timestamp),
            'isMockLocation': self.is_mock_location,
            'qualityScore': self.quality_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_payload(),
            'warnings': list(self.warnings),
            'badge': self.badge,
        }


# ============================================
# VALIDATION
# ============================================

def count_decimals(value: float) -> int:
    """
    Number of fractional digits in the shortest decimal form of ``value``.

    19.07600 is stored as 19.076, so it has 3 decimals.
    """
    if not math.isfinite(value):
        return 0
    try:
        exponent = Decimal(repr(float(value))).normalize().as_tuple().exponent
    except InvalidOperation:
        return 0
    return max(0, -exponent)


def validate_gps_data(reading: GPSReading, now: Optional[float] = None) -> GPSMetadata:
    """
    Validate GPS data quality and detect potential mock locations.

    Pure function: the same reading and ``now`` always give the same result.

    Args:
        reading: Raw sample from the device
        now: Reference time in epoch ms (defaults to the current time)

    Returns:
        GPSMetadata with ``is_mock_location``, ``quality_score`` and warnings
    """
    if now is None:
        now = now_ms()

    warnings: List[str] = []
    mock_indicators = 0
    lat, lng, accuracy = reading.latitude, reading.longitude, reading.accuracy

    # 1. Accuracy
    if accuracy > POOR_ACCURACY_M:
        warnings.append(WARNING_POOR_ACCURACY)
    elif accuracy < SUSPICIOUS_ACCURACY_M:
        mock_indicators += 1
        warnings.append(WARNING_PERFECT_ACCURACY)

    # 2. Rounded coordinates (hand-set mock positions)
    if count_decimals(lat) < MIN_COORDINATE_DECIMALS or count_decimals(lng) < MIN_COORDINATE_DECIMALS:
        mock_indicators += 1
        warnings.append(WARNING_ROUNDED)

    # 3. Freshness
    age = now - reading.timestamp
    if age > STALE_AGE_MS:
        warnings.append(WARNING_STALE)
    elif age < 0:
        mock_indicators += 1
        warnings.append(WARNING_FUTURE)

    # 4. Sensors a real chip on a moving device populates
    if reading.altitude is None and reading.heading is None and reading.speed is None:
        mock_indicators += 1
        warnings.append(WARNING_MISSING_SENSORS)

    # 5. Impossible coordinates
    if abs(lat) > 90 or abs(lng) > 180:
        mock_indicators += 3
        warnings.append(WARNING_INVALID_RANGE)

    # 6. Null Island (0,0)
    if lat == 0 and lng == 0:
        mock_indicators += 3
        warnings.append(WARNING_NULL_ISLAND)

    # Quality score (0-100)
    score = 100

    if accuracy > 50:
        score -= 20
    elif accuracy > 20:
        score -= 10

    if age > 15_000:
        score -= 15
    elif age > 5_000:
        score -= 5

    if reading.altitude is None:
        score -= MISSING_SENSOR_PENALTY
    if reading.heading is None:
        score -= MISSING_SENSOR_PENALTY
    if reading.speed is None:
        score -= MISSING_SENSOR_PENALTY

    score -= mock_indicators * MOCK_INDICATOR_PENALTY
    score = max(0, min(100, score))

    return GPSMetadata(
        reading=reading,
        is_mock_location=mock_indicators >= MOCK_THRESHOLD,
        quality_score=int(score),
        warnings=warnings,
    )


def quality_badge(quality_score: int) -> Dict[str, str]:
    """Format GPS quality for display."""
    if quality_score >= 80:
        return {'label': 'Excellent', 'color': 'green'}
    if quality_score >= 60:
        return {'label': 'Good', 'color': 'blue'}
    if quality_score >= 40:
        return {'label': 'Fair', 'color': 'yellow'}
    return {'label': 'Poor', 'color': 'red'}


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance between two GPS coordinates (Haversine formula).

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


# ============================================
# ACQUISITION
# ============================================

class LocationProvider:
    """
    Source of raw readings.

    Implementations raise a LocationAcquisitionError subclass when the
    platform cannot produce a location.
    """

    def get_current_position(
        self,
        timeout: float = GPS_TIMEOUT_SECONDS,
        enable_high_accuracy: bool = True,
        maximum_age: float = 0,
    ) -> GPSReading:
        raise NotImplementedError


class ReportedLocationProvider(LocationProvider):
    """
    Provider fed by the driver web app.

    The browser pushes every geolocation fix (or error) to the agent; a
    caller asking for a position waits until a fix newer than its request
    arrives.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._latest: Optional[GPSReading] = None
        self._received_at: float = 0.0
        self._sequence = 0
        self._error: Optional[LocationAcquisitionError] = None
        self._error_sequence = 0

    @property
    def latest(self) -> Optional[GPSReading]:
        return self._latest

    def report(self, reading: GPSReading) -> None:
        with self._condition:
            self._latest = reading
            self._received_at = time.monotonic()
            self._sequence += 1
            self._condition.notify_all()

    def fail(self, error: LocationAcquisitionError) -> None:
        """Wake pending callers with a platform error."""
        with self._condition:
            self._error = error
            self._error_sequence += 1
            self._condition.notify_all()
        logger.warning(f"[GPS] Location error reported: {error}")

    def get_current_position(
        self,
        timeout: float = GPS_TIMEOUT_SECONDS,
        enable_high_accuracy: bool = True,
        maximum_age: float = 0,
    ) -> GPSReading:
        deadline = time.monotonic() + timeout

        with self._condition:
            if (
                maximum_age > 0 and self._latest is not None
                and (time.monotonic() - self._received_at) * 1000 <= maximum_age
            ):
                return self._latest

            start_sequence = self._sequence
            start_error_sequence = self._error_sequence

            while True:
                if self._sequence > start_sequence:
                    return self._latest
                if self._error_sequence > start_error_sequence:
                    raise self._error

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise LocationTimeout(f"No GPS fix within {timeout:g}s")
                self._condition.wait(remaining)


def get_validated_position(
    provider: Optional[LocationProvider],
    timeout: float = GPS_TIMEOUT_SECONDS,
    now: Optional[float] = None,
) -> GPSMetadata:
    """
    Acquire a fresh, high-accuracy reading and validate it.

    Acquisition errors propagate unchanged; no reading is fabricated.
    """
    if provider is None:
        raise LocationUnavailable('Geolocation not supported')

    try:
        reading = provider.get_current_position(
            timeout=timeout,
            enable_high_accuracy=True,
            maximum_age=0,
        )
    except LocationAcquisitionError as e:
        logger.warning(f"[GPS] Acquisition failed ({e.code}): {e}")
        raise

    metadata = validate_gps_data(reading, now=now)
    if metadata.warnings:
        logger.info(
            f"[GPS] Reading scored {metadata.quality_score} "
            f"(mock={metadata.is_mock_location}): {'; '.join(metadata.warnings)}"
        )
    return metadata
