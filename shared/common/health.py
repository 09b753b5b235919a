# shared/common/health.py
"""
Health Endpoints

- ``/health/``: liveness, no dependencies touched.
- ``/health/ready/``: database and cache. 503 only when a required probe
  fails; a cache outage degrades the service but keeps it in rotation.
- ``/health/detailed/``: readiness probes plus Celery workers.
"""

import logging
import time
import uuid
from typing import Callable, Dict, List

from celery import current_app
from django.conf import settings
from django.core.cache import cache
from django.db import connection
from django.urls import path
from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger(__name__)

HEALTHY = 'healthy'
DEGRADED = 'degraded'
UNHEALTHY = 'unhealthy'


# =============================================================================
# PROBES
# =============================================================================

def _probe_database() -> Dict:
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
    return {}


def _probe_cache() -> Dict:
    key = f'health:{uuid.uuid4().hex}'
    cache.set(key, 1, 5)
    if cache.get(key) != 1:
        raise RuntimeError('cache did not return the value just written')
    cache.delete(key)
    return {}


def _probe_celery() -> Dict:
    replies = current_app.control.inspect(timeout=1.0).ping() or {}
    if not replies:
        raise RuntimeError('no workers replied')
    return {'workers': len(replies)}


def run_probe(name: str, probe: Callable[[], Dict], required: bool) -> Dict:
    """Run one probe, timing it and turning failures into a status."""
    started = time.monotonic()
    try:
        result = {'name': name, 'status': HEALTHY, **probe()}
    except Exception as e:
        failed_status = UNHEALTHY if required else DEGRADED
        log = logger.error if required else logger.warning
        log(f"Health probe {name} failed: {e}", extra={'probe': name})
        return {'name': name, 'status': failed_status, 'error': str(e)}
    result['latency_ms'] = round((time.monotonic() - started) * 1000, 2)
    return result


def summarize(checks: List[Dict]) -> str:
    statuses = {check['status'] for check in checks}
    for status_value in (UNHEALTHY, DEGRADED):
        if status_value in statuses:
            return status_value
    return HEALTHY


def readiness_checks() -> List[Dict]:
    return [
        run_probe('database', _probe_database, required=True),
        run_probe('cache', _probe_cache, required=False),
    ]


# =============================================================================
# VIEWS
# =============================================================================

def _public(view):
    return api_view(['GET'])(authentication_classes([])(permission_classes([AllowAny])(view)))


@_public
def health_check(request):
    return Response({
        'status': HEALTHY,
        'service': settings.SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


@_public
def readiness_check(request):
    checks = readiness_checks()
    overall = summarize(checks)
    return Response(
        {'status': overall, 'checks': checks, 'timestamp': timezone.now().isoformat()},
        status=503 if overall == UNHEALTHY else 200
    )


@_public
def detailed_health_check(request):
    checks = readiness_checks() + [run_probe('celery', _probe_celery, required=False)]
    return Response({
        'status': summarize(checks),
        'service': settings.SERVICE_NAME,
        'checks': checks,
        'timestamp': timezone.now().isoformat(),
    })


def get_health_urlpatterns():
    return [
        path('health/', health_check, name='health'),
        path('health/ready/', readiness_check, name='readiness'),
        path('health/detailed/', detailed_health_check, name='health_detailed'),
    ]
