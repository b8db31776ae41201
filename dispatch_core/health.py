"""
DISPATCH Driver Agent - Health Check Endpoints
===============================================

Provides:
1. /health/ - Basic liveness check
2. /health/ready/ - Readiness check (local offline store, dispatch API reachability)
"""

import time
import logging
from django.http import JsonResponse
from django.core.cache import caches
from django.conf import settings
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger('dispatch.monitoring')

SERVICE_NAME = 'dispatch-driver-agent'


@csrf_exempt
@require_GET
def health_check(request):
    """
    Basic liveness check.
    Returns 200 if the Django process is alive.
    """
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness check.
    Returns 503 when the local offline store cannot be written; an
    unreachable dispatch API only degrades the agent (actions get queued).
    """
    checks = {}
    all_healthy = True

    # 1. Local offline store
    try:
        start = time.time()
        store = caches[settings.OFFLINE_CACHE_ALIAS]
        cache_key = '_healthcheck_ping'
        store.set(cache_key, 'pong', 10)
        result = store.get(cache_key)
        store_time = round((time.time() - start) * 1000, 2)

        if result != 'pong':
            raise RuntimeError("Cache read/write mismatch")
        checks['offline_store'] = {
            'status': 'healthy',
            'response_time_ms': store_time,
        }
    except Exception as e:
        checks['offline_store'] = {
            'status': 'unhealthy',
            'error': str(e),
        }
        all_healthy = False
        logger.error(f"Health check - Offline store unhealthy: {e}")

    # 2. Dispatch API reachability and queue backlog
    try:
        from offline.runtime import get_runtime
        runtime = get_runtime()
        start = time.time()
        online = runtime.connectivity.check()
        api_time = round((time.time() - start) * 1000, 2)
        checks['dispatch_api'] = {
            'status': 'healthy' if online else 'degraded',
            'response_time_ms': api_time,
        }
        if not online:
            logger.warning("Health check - Dispatch API unreachable, actions will be queued")
        checks['queue'] = runtime.queue.status().to_dict()
    except Exception as e:
        checks['dispatch_api'] = {
            'status': 'unhealthy',
            'error': str(e),
        }
        logger.error(f"Health check - Dispatch API check failed: {e}")

    status_code = 200 if all_healthy else 503
    overall_status = 'healthy' if all_healthy else 'unhealthy'

    return JsonResponse({
        'status': overall_status,
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=status_code)
