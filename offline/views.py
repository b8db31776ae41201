"""
Offline App Views - Local driver API

Endpoints called by the driver web app running next to the agent:
queue status, manual sync, connectivity & GPS events, driver actions.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import (
    LOCATION_ERRORS,
    LocationPermissionDenied,
    LocationTimeout,
    LocationAcquisitionError,
    MockLocationSuspected,
    QueueStorageError,
)
from .gps import validate_gps_data
from .runtime import get_runtime
from .serializers import (
    AttachProofSerializer,
    CompleteDeliverySerializer,
    ConnectivitySerializer,
    FailDeliverySerializer,
    GPSActionSerializer,
    GPSReadingSerializer,
    LocationErrorSerializer,
    PettyCashSerializer,
    SessionSerializer,
    SyncRequestSerializer,
    TrackingStartSerializer,
)

logger = logging.getLogger(__name__)


class OfflineAPIView(APIView):
    """Base view translating offline-layer errors into HTTP responses."""

    @property
    def runtime(self):
        return get_runtime()

    def handle_exception(self, exc):
        if isinstance(exc, MockLocationSuspected):
            metadata = exc.metadata
            return Response({
                'error': 'Mock location suspected',
                'requires_confirmation': True,
                'warnings': metadata.warnings,
                'quality_score': metadata.quality_score,
                'gps': metadata.to_dict(),
            }, status=status.HTTP_409_CONFLICT)

        if isinstance(exc, LocationAcquisitionError):
            if isinstance(exc, LocationPermissionDenied):
                code = status.HTTP_403_FORBIDDEN
            elif isinstance(exc, LocationTimeout):
                code = status.HTTP_504_GATEWAY_TIMEOUT
            else:
                code = status.HTTP_503_SERVICE_UNAVAILABLE
            return Response({'error': str(exc), 'code': exc.code}, status=code)

        if isinstance(exc, QueueStorageError):
            logger.error(f"[API] Local store failure: {exc}")
            return Response(
                {'error': 'Offline storage unavailable', 'detail': str(exc)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        if isinstance(exc, ValueError):
            return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return super().handle_exception(exc)

    @staticmethod
    def dispatch_response(result):
        code = status.HTTP_200_OK if result.sent else status.HTTP_202_ACCEPTED
        return Response(result.to_dict(), status=code)


# ============================================
# QUEUE & SYNC
# ============================================

class StatusView(OfflineAPIView):
    """Sync indicator data: connectivity, queue counters, tracking state."""

    def get(self, request):
        runtime = self.runtime
        return Response({
            'online': runtime.connectivity.is_online(),
            'queue': runtime.queue.status().to_dict(),
            'actions': [a.to_dict() for a in runtime.queue.list()],
            'tracking': {
                'active': runtime.tracker.is_tracking,
                'delivery_id': runtime.tracker.delivery_id,
            },
        })


class SyncView(OfflineAPIView):
    """Manual "sync now"."""

    def post(self, request):
        serializer = SyncRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        engine = self.runtime.engine

        if engine.is_running:
            return Response({'error': 'Sync already in progress'}, status=status.HTTP_409_CONFLICT)

        if serializer.validated_data['background']:
            from .tasks import process_offline_queue
            task = process_offline_queue.delay(check_connectivity=False)
            return Response({'task_id': task.id}, status=status.HTTP_202_ACCEPTED)

        result = engine.process_queue()
        if not result.started and result.total:
            return Response({'error': 'Sync already in progress'}, status=status.HTTP_409_CONFLICT)
        return Response(result.to_dict())


class QueuedActionView(OfflineAPIView):
    """Manual discard of a queued action."""

    def delete(self, request, action_id):
        if not self.runtime.queue.remove(action_id):
            return Response({'error': 'Action not found'}, status=status.HTTP_404_NOT_FOUND)
        logger.info(f"[API] Queued action {action_id} discarded by driver")
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================
# DEVICE EVENTS
# ============================================

class ConnectivityView(OfflineAPIView):
    """Browser online/offline events."""

    def post(self, request):
        serializer = ConnectivitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        connectivity = self.runtime.connectivity
        connectivity.set_online(serializer.validated_data['online'])
        return Response({'online': connectivity.is_online()})


class SessionView(OfflineAPIView):
    """Bearer token of the logged-in driver."""

    def post(self, request):
        serializer = SessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.runtime.store.set_token(serializer.validated_data['token'])
        return Response({'authenticated': True})

    def delete(self, request):
        self.runtime.store.clear_token()
        return Response(status=status.HTTP_204_NO_CONTENT)


class GPSValidateView(OfflineAPIView):
    def post(self, request):
        serializer = GPSReadingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(validate_gps_data(serializer.to_reading()).to_dict())


class LocationReportView(OfflineAPIView):
    """
    A geolocation fix pushed by the web app.

    Wakes callers waiting for a position and feeds the tracker.
    """

    def post(self, request):
        serializer = GPSReadingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reading = serializer.to_reading()
        runtime = self.runtime

        runtime.location_provider.report(reading)
        tracking = runtime.tracker.handle_fix(reading)
        return Response({'accepted': True, 'tracking': tracking})


class LocationErrorView(OfflineAPIView):
    def post(self, request):
        serializer = LocationErrorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        error_class = LOCATION_ERRORS[data['code']]
        self.runtime.location_provider.fail(error_class(data.get('message') or data['code']))
        return Response({'accepted': True})


class TrackingStartView(OfflineAPIView):
    def post(self, request):
        serializer = TrackingStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        tracker = self.runtime.tracker
        started = tracker.start_tracking(data['delivery_id'], status=data['status'])
        return Response({'started': started, 'delivery_id': tracker.delivery_id})


class TrackingStopView(OfflineAPIView):
    def post(self, request):
        self.runtime.tracker.stop_tracking()
        return Response({'tracking': False})


# ============================================
# DRIVER ACTIONS
# ============================================

class StartDeliveryView(OfflineAPIView):
    def post(self, request, delivery_id):
        serializer = GPSActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.runtime.actions.start_delivery(
            delivery_id,
            reading=serializer.get_reading(),
            confirm_mock=serializer.validated_data['confirm_mock'],
        )
        return self.dispatch_response(result)


class CompleteDeliveryView(OfflineAPIView):
    def post(self, request, delivery_id):
        serializer = CompleteDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.runtime.actions.complete_delivery(
            delivery_id,
            proof_image=data.get('proof_image') or None,
            signature=data.get('signature') or None,
            notes=data.get('notes') or None,
            reading=serializer.get_reading(),
            confirm_mock=data['confirm_mock'],
        )
        return self.dispatch_response(result)


class FailDeliveryView(OfflineAPIView):
    def post(self, request, delivery_id):
        serializer = FailDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.runtime.actions.mark_failed(
            delivery_id,
            reason=data['reason'],
            notes=data.get('notes') or None,
            photo_urls=data.get('photo_urls'),
            reading=serializer.get_reading(),
            confirm_mock=data['confirm_mock'],
        )
        return self.dispatch_response(result)


class AttachProofView(OfflineAPIView):
    def post(self, request, delivery_id):
        serializer = AttachProofSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.runtime.actions.attach_proof(
            delivery_id,
            data['image_url'],
            reading=serializer.get_reading(),
            confirm_mock=data['confirm_mock'],
        )
        return self.dispatch_response(result)


class PettyCashView(OfflineAPIView):
    def post(self, request):
        serializer = PettyCashSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.runtime.actions.submit_petty_cash(
            data['amount'],
            data['category'],
            description=data.get('description') or None,
            receipt_url=data.get('receipt_url') or None,
            reading=serializer.get_reading(),
            confirm_mock=data['confirm_mock'],
        )
        return self.dispatch_response(result)
