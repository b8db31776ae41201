"""
Offline App URLs
"""

from django.urls import path

from .views import (
    StatusView, SyncView, QueuedActionView,
    ConnectivityView, SessionView,
    GPSValidateView, LocationReportView, LocationErrorView,
    TrackingStartView, TrackingStopView,
    StartDeliveryView, CompleteDeliveryView, FailDeliveryView, AttachProofView,
    PettyCashView,
)

app_name = 'offline'

urlpatterns = [
    # Queue & sync
    path('status/', StatusView.as_view(), name='status'),
    path('sync/', SyncView.as_view(), name='sync'),
    path('actions/<str:action_id>/', QueuedActionView.as_view(), name='action-detail'),

    # Device events
    path('connectivity/', ConnectivityView.as_view(), name='connectivity'),
    path('session/', SessionView.as_view(), name='session'),
    path('gps/validate/', GPSValidateView.as_view(), name='gps-validate'),
    path('location/', LocationReportView.as_view(), name='location'),
    path('location/error/', LocationErrorView.as_view(), name='location-error'),
    path('tracking/start/', TrackingStartView.as_view(), name='tracking-start'),
    path('tracking/stop/', TrackingStopView.as_view(), name='tracking-stop'),

    # Driver actions
    path('deliveries/<str:delivery_id>/start/', StartDeliveryView.as_view(), name='delivery-start'),
    path('deliveries/<str:delivery_id>/complete/', CompleteDeliveryView.as_view(), name='delivery-complete'),
    path('deliveries/<str:delivery_id>/fail/', FailDeliveryView.as_view(), name='delivery-fail'),
    path('deliveries/<str:delivery_id>/proof/', AttachProofView.as_view(), name='delivery-proof'),
    path('petty-cash/', PettyCashView.as_view(), name='petty-cash'),
]
