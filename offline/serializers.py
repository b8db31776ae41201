"""
Offline App Serializers - GPS readings & driver action payloads
"""

from rest_framework import serializers

from .exceptions import LOCATION_ERRORS
from .gps import GPSReading


class GPSReadingSerializer(serializers.Serializer):
    """Raw fix as produced by the browser Geolocation API."""

    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    accuracy = serializers.FloatField(min_value=0)
    timestamp = serializers.FloatField(required=False)
    altitude = serializers.FloatField(required=False, allow_null=True)
    altitudeAccuracy = serializers.FloatField(required=False, allow_null=True)
    heading = serializers.FloatField(required=False, allow_null=True)
    speed = serializers.FloatField(required=False, allow_null=True)

    def to_reading(self) -> GPSReading:
        return GPSReading.from_dict(dict(self.validated_data))


class GPSActionSerializer(serializers.Serializer):
    """
    Base for driver actions.

    ``gps`` is optional: without it the agent waits for the next fix the
    web app reports. ``confirm_mock`` acknowledges a mock-location warning.
    """

    gps = GPSReadingSerializer(required=False)
    confirm_mock = serializers.BooleanField(default=False)

    def get_reading(self):
        gps = self.validated_data.get('gps')
        return GPSReading.from_dict(dict(gps)) if gps else None


class CompleteDeliverySerializer(GPSActionSerializer):
    proof_image = serializers.CharField(required=False, allow_blank=True)
    signature = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class FailDeliverySerializer(GPSActionSerializer):
    reason = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True)
    photo_urls = serializers.ListField(child=serializers.CharField(), required=False)


class AttachProofSerializer(GPSActionSerializer):
    image_url = serializers.CharField()


class PettyCashSerializer(GPSActionSerializer):
    amount = serializers.FloatField(min_value=0)
    category = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    receipt_url = serializers.CharField(required=False, allow_blank=True)


class LocationErrorSerializer(serializers.Serializer):
    code = serializers.ChoiceField(choices=sorted(LOCATION_ERRORS))
    message = serializers.CharField(required=False, allow_blank=True)


class ConnectivitySerializer(serializers.Serializer):
    online = serializers.BooleanField()


class SessionSerializer(serializers.Serializer):
    token = serializers.CharField()


class SyncRequestSerializer(serializers.Serializer):
    background = serializers.BooleanField(default=False)


class TrackingStartSerializer(serializers.Serializer):
    delivery_id = serializers.CharField()
    status = serializers.CharField(required=False, default='IN_TRANSIT')
