"""
OFFLINE App - Driver actions

Every driver mutation goes through here: acquire and validate GPS,
then send immediately when online or queue for replay when not.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .exceptions import MockLocationSuspected, ReplayError
from .gps import GPSMetadata, GPSReading, get_validated_position, validate_gps_data
from .queue import ActionType, OfflineQueue, QueuedAction, ReplayMethod

logger = logging.getLogger(__name__)


class DeliveryStatus:
    IN_TRANSIT = 'IN_TRANSIT'
    DELIVERED = 'DELIVERED'
    FAILED = 'FAILED'


@dataclass
class DispatchResult:
    sent: bool
    action: Optional[QueuedAction] = None
    response: Optional[Dict[str, Any]] = None
    gps: Optional[GPSMetadata] = None

    @property
    def queued(self) -> bool:
        return self.action is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sent': self.sent,
            'queued': self.queued,
            'action': self.action.to_dict() if self.action else None,
            'response': self.response,
            'gps': self.gps.to_dict() if self.gps else None,
        }


class DriverActionService:
    """
    Online-first dispatcher for driver actions.

    Args:
        queue: OfflineQueue used when the API cannot be reached
        client: RemoteAPIClient for immediate sends
        location_provider: LocationProvider asked for a fresh fix
        connectivity: ConnectivityObserver deciding online vs offline
    """

    def __init__(self, queue: OfflineQueue, client, location_provider, connectivity):
        self.queue = queue
        self.client = client
        self.location_provider = location_provider
        self.connectivity = connectivity

    # ============================================
    # GPS
    # ============================================

    def capture_gps(
        self,
        reading: Optional[GPSReading] = None,
        confirm_mock: bool = False,
    ) -> GPSMetadata:
        """
        Validate ``reading`` (or a fresh fix from the provider).

        Raises MockLocationSuspected when the fix looks synthetic and the
        driver has not confirmed it yet.
        """
        if reading is not None:
            metadata = validate_gps_data(reading)
        else:
            metadata = get_validated_position(self.location_provider)

        if metadata.is_mock_location:
            if not confirm_mock:
                logger.warning(f"[ACTIONS] Mock location suspected: {', '.join(metadata.warnings)}")
                raise MockLocationSuspected(metadata)
            logger.warning("[ACTIONS] Driver confirmed a suspected mock location")
        return metadata

    # ============================================
    # DISPATCH
    # ============================================

    def dispatch(
        self,
        type: str,
        method: str,
        endpoint: str,
        data: Dict[str, Any],
        gps: Optional[GPSMetadata] = None,
    ) -> DispatchResult:
        if self.connectivity.is_online():
            try:
                response = self.client.send(method, endpoint, data)
                logger.info(f"[ACTIONS] {type} sent: {method} {endpoint}")
                return DispatchResult(sent=True, response=response, gps=gps)
            except ReplayError as e:
                logger.warning(f"[ACTIONS] Send failed, queueing {type}: {e}")
        else:
            logger.info(f"[ACTIONS] Offline - queueing {type}: {method} {endpoint}")

        action = self.queue.enqueue(type, endpoint, method, data)
        return DispatchResult(sent=False, action=action, gps=gps)

    def _update_status(self, delivery_id, status: str, gps: GPSMetadata, type=ActionType.DELIVERY_STATUS, **extra):
        data = {'status': status, **gps.to_payload()}
        data.update({k: v for k, v in extra.items() if v is not None})
        return self.dispatch(type, ReplayMethod.PUT, f'/deliveries/{delivery_id}/status', data, gps)

    # ============================================
    # OPERATIONS
    # ============================================

    def start_delivery(self, delivery_id, reading=None, confirm_mock=False) -> DispatchResult:
        gps = self.capture_gps(reading, confirm_mock)
        return self._update_status(delivery_id, DeliveryStatus.IN_TRANSIT, gps)

    def complete_delivery(
        self,
        delivery_id,
        proof_image: Optional[str] = None,
        signature: Optional[str] = None,
        notes: Optional[str] = None,
        reading=None,
        confirm_mock=False,
    ) -> DispatchResult:
        gps = self.capture_gps(reading, confirm_mock)
        return self._update_status(
            delivery_id,
            DeliveryStatus.DELIVERED,
            gps,
            proofImage=proof_image,
            signature=signature,
            notes=notes,
        )

    def mark_failed(
        self,
        delivery_id,
        reason: str,
        notes: Optional[str] = None,
        photo_urls: Optional[List[str]] = None,
        reading=None,
        confirm_mock=False,
    ) -> DispatchResult:
        if not reason:
            raise ValueError('A failure reason is required')
        gps = self.capture_gps(reading, confirm_mock)
        return self._update_status(
            delivery_id,
            DeliveryStatus.FAILED,
            gps,
            type=ActionType.FAILED_DELIVERY,
            reason=reason,
            notes=notes,
            photoUrls=list(photo_urls) if photo_urls else None,
        )

    def attach_proof(self, delivery_id, image_url: str, reading=None, confirm_mock=False) -> DispatchResult:
        gps = self.capture_gps(reading, confirm_mock)
        data = {'proofImage': image_url, **gps.to_payload()}
        return self.dispatch(
            ActionType.PROOF_UPLOAD, ReplayMethod.PATCH, f'/deliveries/{delivery_id}/proof', data, gps
        )

    def submit_petty_cash(
        self,
        amount,
        category: str,
        description: Optional[str] = None,
        receipt_url: Optional[str] = None,
        reading=None,
        confirm_mock=False,
    ) -> DispatchResult:
        gps = self.capture_gps(reading, confirm_mock)
        data = {'amount': amount, 'category': category}
        if description:
            data['description'] = description
        if receipt_url:
            data['receiptUrl'] = receipt_url
        data.update(gps.to_payload())
        return self.dispatch(ActionType.PETTY_CASH, ReplayMethod.POST, '/petty-cash', data, gps)

    def report_location(self, reading=None, delivery_id=None, confirm_mock=False) -> DispatchResult:
        gps = self.capture_gps(reading, confirm_mock)
        data = gps.to_payload()
        if delivery_id is not None:
            data['deliveryId'] = delivery_id
        return self.dispatch(ActionType.LOCATION_UPDATE, ReplayMethod.POST, '/tracking/location', data, gps)
