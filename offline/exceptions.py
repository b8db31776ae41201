"""
OFFLINE App - Error taxonomy

- Acquisition errors: GPS could not produce a reading at all
- Validation escalation: suspected mock location awaiting driver confirmation
- Queue persistence errors: local store read/write failures
- Replay errors: remote API refused or could not be reached
"""

from typing import Optional


class OfflineSyncError(Exception):
    """Base class for every error raised by the offline layer."""


# ============================================
# GPS ACQUISITION
# ============================================

class LocationAcquisitionError(OfflineSyncError):
    """The platform could not produce a location."""

    code = 'unavailable'


class LocationPermissionDenied(LocationAcquisitionError):
    code = 'permission_denied'


class LocationUnavailable(LocationAcquisitionError):
    code = 'unavailable'


class LocationTimeout(LocationAcquisitionError):
    code = 'timeout'


LOCATION_ERRORS = {
    LocationPermissionDenied.code: LocationPermissionDenied,
    LocationUnavailable.code: LocationUnavailable,
    LocationTimeout.code: LocationTimeout,
}


class MockLocationSuspected(OfflineSyncError):
    """
    Raised when a reading looks synthetic and the driver has not confirmed it.

    Carries the validated metadata so the caller can show the warnings and
    resubmit the same reading with confirmation.
    """

    def __init__(self, metadata):
        self.metadata = metadata
        super().__init__(
            f"Mock location suspected (quality {metadata.quality_score}): "
            f"{', '.join(metadata.warnings)}"
        )


# ============================================
# QUEUE PERSISTENCE
# ============================================

class QueueStorageError(OfflineSyncError):
    """The local durable store could not be read or written."""


# ============================================
# REMOTE REPLAY
# ============================================

class ReplayError(OfflineSyncError):
    """A request against the remote dispatch API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MissingTokenError(ReplayError):
    """No bearer token in the session store; retryable once the driver logs in."""

    def __init__(self, message: str = 'Authentication token not found'):
        super().__init__(message)
