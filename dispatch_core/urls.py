"""
DISPATCH Driver Agent URL Configuration
"""

from django.urls import path, include
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .health import health_check, readiness_check


@api_view(['GET'])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'DISPATCH Driver Agent API',
        'version': '1.0.0',
        'endpoints': {
            'status': '/api/offline/status/',
            'sync': '/api/offline/sync/',
            'connectivity': '/api/offline/connectivity/',
            'session': '/api/offline/session/',
            'gps': {
                'validate': '/api/offline/gps/validate/',
                'location': '/api/offline/location/',
                'error': '/api/offline/location/error/',
            },
            'tracking': {
                'start': '/api/offline/tracking/start/',
                'stop': '/api/offline/tracking/stop/',
            },
            'deliveries': {
                'start': '/api/offline/deliveries/<id>/start/',
                'complete': '/api/offline/deliveries/<id>/complete/',
                'fail': '/api/offline/deliveries/<id>/fail/',
                'proof': '/api/offline/deliveries/<id>/proof/',
            },
            'petty_cash': '/api/offline/petty-cash/',
        }
    })


urlpatterns = [
    # Health checks
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),

    # API Root
    path('api/', api_root, name='api-root'),

    # Offline sync & driver actions
    path('api/offline/', include('offline.urls')),
]
