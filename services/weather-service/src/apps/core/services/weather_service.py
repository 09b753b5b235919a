# services/weather-service/src/apps/core/services/weather_service.py
"""
Weather Data Gateway

Fetches current or forecast conditions for an airport, derives the
aviation fields the minima evaluator needs, and caches observations
keyed by (airport, forecast hour).
"""

import math
import re
import logging
from dataclasses import dataclass, asdict, fields
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional

import httpx
from django.conf import settings
from django.utils import timezone

from apps.core.clients import WeatherProviderClient
from apps.core.serializers import CurrentResponseSerializer, ForecastResponseSerializer
from shared.common.cache import CacheKeyBuilder, cache_get, cache_set
from shared.common.clients import CircuitBreakerError

logger = logging.getLogger(__name__)


# WeatherAPI.com condition codes for thunderstorms
THUNDERSTORM_CODES = frozenset([1087, 1273, 1276, 1279, 1282])

MPH_TO_KNOTS = 0.868976

# Fixed-ratio crosswind estimate from total wind; no runway heading data
CROSSWIND_RATIO = 0.7

AIRPORT_CODE_PATTERN = re.compile(r'^[A-Z0-9]{3,4}$')

# Forecast hours further than this from the requested hour are not used
FORECAST_MATCH_TOLERANCE_SECONDS = 30 * 60


@dataclass(frozen=True)
class WeatherObservation:
    """Point-in-time weather at one airport."""

    airport: str
    forecast_time: str
    observed_at: str
    source: str
    visibility_mi: float
    ceiling_ft: Optional[int]
    wind_speed_kt: int
    wind_gust_kt: int
    wind_direction_deg: Optional[int]
    crosswind_kt: int
    cloud_cover_pct: int
    temp_f: float
    condition_code: int
    condition_text: str
    has_thunderstorm: bool
    has_icing: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WeatherObservation':
        return cls(**{f.name: data[f.name] for f in fields(cls)})


# =============================================================================
# DERIVED FIELDS
# =============================================================================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mph_to_knots(mph: float) -> int:
    return round_half_up(mph * MPH_TO_KNOTS)


def estimate_crosswind(wind_kt: int) -> int:
    return round_half_up(wind_kt * CROSSWIND_RATIO)


def estimate_ceiling(cloud_cover_pct: int) -> Optional[int]:
    """Ceiling in feet from cloud cover; ``None`` means unlimited."""
    if cloud_cover_pct < 12:
        return None  # SKC
    if cloud_cover_pct < 25:
        return 10000  # FEW
    if cloud_cover_pct < 50:
        return 5000  # SCT
    if cloud_cover_pct < 87:
        return 3000  # BKN
    return 1000  # OVC


def has_icing_conditions(temp_f: float, cloud_cover_pct: int, precip_mm: float, humidity: int) -> bool:
    """Freezing temperature with visible moisture."""
    if temp_f > 32:
        return False
    return cloud_cover_pct > 50 or precip_mm > 0 or humidity > 80


class WeatherService:
    """
    Gateway to the weather provider.

    Times at or before now use current conditions; times within the
    forecast horizon use the hourly forecast; times beyond the horizon
    fall back to current conditions as a best-effort estimate.
    """

    def __init__(self, client: WeatherProviderClient = None):
        self.client = client or WeatherProviderClient()
        self.cache_keys = CacheKeyBuilder(settings.SERVICE_NAME)
        self.cache_ttl = settings.WEATHER_CACHE_TTL_SECONDS
        self.max_attempts = max(1, settings.WEATHER_API_MAX_ATTEMPTS)
        self.forecast_horizon = timedelta(hours=settings.WEATHER_FORECAST_HORIZON_HOURS)

    @staticmethod
    def normalize_airport_code(airport_code: str) -> str:
        from . import InvalidAirportCodeError

        code = (airport_code or '').strip().upper()
        if not AIRPORT_CODE_PATTERN.match(code):
            raise InvalidAirportCodeError(f"Invalid airport code: {airport_code!r}")
        return code

    @staticmethod
    def forecast_hour(at_time: datetime) -> datetime:
        return at_time.astimezone(dt_timezone.utc).replace(minute=0, second=0, microsecond=0)

    def get_observation(
        self,
        airport_code: str,
        at_time: datetime,
        now: datetime = None
    ) -> WeatherObservation:
        """Cache-first observation for an airport at a point in time."""
        from . import WeatherProviderError, WeatherDataError

        code = self.normalize_airport_code(airport_code)
        now = now or timezone.now()
        hour = self.forecast_hour(at_time)
        cache_key = self.cache_keys.weather(code, hour.strftime('%Y-%m-%dT%H'))

        cached = cache_get(cache_key)
        if cached:
            try:
                return WeatherObservation.from_dict(cached)
            except (KeyError, TypeError) as e:
                logger.warning(f"Discarding malformed cached weather for {code}: {e}")

        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                observation = self._fetch(code, at_time, hour, now)
                break
            except (httpx.HTTPError, CircuitBreakerError, ValueError, WeatherDataError) as e:
                last_error = e
                logger.warning(
                    f"Weather fetch for {code} failed (attempt {attempt}/{self.max_attempts}): {e}",
                    extra={'airport': code, 'attempt': attempt}
                )
        else:
            raise WeatherProviderError(f"Weather unavailable for {code}: {last_error}") from last_error

        cache_set(cache_key, observation.to_dict(), timeout=self.cache_ttl)
        return observation

    # ==========================================================================
    # Provider access
    # ==========================================================================

    def _fetch(self, code: str, at_time: datetime, hour: datetime, now: datetime) -> WeatherObservation:
        if now < at_time <= now + self.forecast_horizon:
            return self._fetch_forecast(code, hour)

        if at_time > now:
            logger.debug(f"{code} at {at_time.isoformat()} is beyond the forecast horizon, using current conditions")
        return self._fetch_current(code, hour)

    def _fetch_current(self, code: str, hour: datetime) -> WeatherObservation:
        from . import WeatherDataError

        serializer = CurrentResponseSerializer(data=self.client.get_current(code))
        if not serializer.is_valid():
            raise WeatherDataError(f"Invalid current conditions payload: {serializer.errors}")

        current = serializer.validated_data['current']
        return self._build_observation(
            code,
            hour,
            current,
            source='current',
            observed_at=current.get('last_updated') or hour.isoformat(),
        )

    def _fetch_forecast(self, code: str, hour: datetime) -> WeatherObservation:
        from . import WeatherDataError

        serializer = ForecastResponseSerializer(data=self.client.get_forecast(code, hour))
        if not serializer.is_valid():
            raise WeatherDataError(f"Invalid forecast payload: {serializer.errors}")

        hours = [
            entry
            for day in serializer.validated_data['forecast']['forecastday']
            for entry in day['hour']
        ]
        target_epoch = int(hour.timestamp())
        entry = min(hours, key=lambda h: abs(h['time_epoch'] - target_epoch))
        if abs(entry['time_epoch'] - target_epoch) > FORECAST_MATCH_TOLERANCE_SECONDS:
            raise WeatherDataError(
                f"Forecast for {code} has no hour near {hour.isoformat()} (closest: {entry['time']})"
            )

        return self._build_observation(
            code,
            hour,
            entry,
            source='forecast',
            observed_at=entry['time'],
        )

    @staticmethod
    def _build_observation(
        code: str,
        hour: datetime,
        conditions: Dict[str, Any],
        source: str,
        observed_at: str
    ) -> WeatherObservation:
        wind_kt = mph_to_knots(conditions['wind_mph'])
        cloud = conditions['cloud']
        condition = conditions['condition']

        return WeatherObservation(
            airport=code,
            forecast_time=hour.isoformat(),
            observed_at=observed_at,
            source=source,
            visibility_mi=conditions['vis_miles'],
            ceiling_ft=estimate_ceiling(cloud),
            wind_speed_kt=wind_kt,
            wind_gust_kt=mph_to_knots(conditions.get('gust_mph') or 0),
            wind_direction_deg=conditions.get('wind_degree'),
            crosswind_kt=estimate_crosswind(wind_kt),
            cloud_cover_pct=cloud,
            temp_f=conditions['temp_f'],
            condition_code=condition['code'],
            condition_text=condition['text'],
            has_thunderstorm=condition['code'] in THUNDERSTORM_CODES,
            has_icing=has_icing_conditions(
                conditions['temp_f'],
                cloud,
                conditions.get('precip_mm') or 0,
                conditions.get('humidity') or 0,
            ),
        )
