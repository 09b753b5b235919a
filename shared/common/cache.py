# shared/common/cache.py
"""
Best-effort caching over the Django cache (Redis via django-redis when
deployed). An unreachable cache behaves like a miss: errors are logged at
WARNING and never reach the caller.
"""

import logging
from typing import Any, Optional

from django.core.cache import cache

logger = logging.getLogger(__name__)


def cache_get(key: str) -> Optional[Any]:
    try:
        return cache.get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}", extra={'cache_key': key})
        return None


def cache_set(key: str, value: Any, timeout: Optional[int] = None) -> bool:
    try:
        cache.set(key, value, timeout=timeout)
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}", extra={'cache_key': key})
        return False
    return True


class CacheKeyBuilder:
    """Namespaced keys, ``<service>:<kind>:<parts...>``."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    def build(self, kind: str, *parts: Any) -> str:
        return ':'.join([self.namespace, kind, *(str(part) for part in parts)])

    def weather(self, airport_code: str, forecast_hour: str) -> str:
        return self.build('weather', airport_code.upper(), forecast_hour)
