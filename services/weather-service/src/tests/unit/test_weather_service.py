# services/weather-service/src/tests/unit/test_weather_service.py
"""
Unit Tests for the Weather Gateway

Tests for provider selection, derived fields, caching and retries.
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import MagicMock

import httpx
import pytest

from apps.core.services import (
    WeatherService,
    WeatherProviderError,
    InvalidAirportCodeError,
)
from apps.core.services.weather_service import (
    estimate_ceiling,
    has_icing_conditions,
    mph_to_knots,
)


def conditions(**kwargs):
    data = {
        'vis_miles': 10.0,
        'cloud': 0,
        'wind_mph': 5.0,
        'gust_mph': 8.0,
        'wind_degree': 180,
        'temp_f': 75.0,
        'precip_mm': 0.0,
        'humidity': 40,
        'condition': {'code': 1000, 'text': 'Sunny'},
    }
    data.update(kwargs)
    return data


def current_payload(**kwargs):
    return {'current': {'last_updated': '2025-06-02 07:00', **conditions(**kwargs)}}


def forecast_payload(hours):
    return {'forecast': {'forecastday': [{'hour': hours}]}}


class TestDerivedFields:
    """Tests for aviation fields derived from provider data."""

    def test_mph_to_knots(self):
        assert mph_to_knots(0) == 0
        assert mph_to_knots(34.5) == 30
        assert mph_to_knots(11.5) == 10

    @pytest.mark.parametrize('cloud, ceiling', [
        (0, None),
        (11, None),
        (12, 10000),
        (30, 5000),
        (60, 3000),
        (98, 1000),
    ])
    def test_estimate_ceiling(self, cloud, ceiling):
        assert estimate_ceiling(cloud) == ceiling

    def test_icing_requires_freezing_and_moisture(self):
        assert has_icing_conditions(30, 60, 0, 50) is True
        assert has_icing_conditions(30, 10, 0.5, 50) is True
        assert has_icing_conditions(30, 10, 0, 90) is True
        assert has_icing_conditions(30, 10, 0, 50) is False
        assert has_icing_conditions(40, 100, 5, 100) is False


class TestWeatherService:
    """Tests for WeatherService."""

    def setup_method(self):
        self.client = MagicMock()
        self.service = WeatherService(client=self.client)

    def test_current_conditions_for_past_time(self, now):
        self.client.get_current.return_value = current_payload(
            vis_miles=1.5, cloud=98, wind_mph=34.5,
        )

        observation = self.service.get_observation('kaus', now - timedelta(minutes=30), now=now)

        self.client.get_current.assert_called_once_with('KAUS')
        self.client.get_forecast.assert_not_called()
        assert observation.airport == 'KAUS'
        assert observation.source == 'current'
        assert observation.visibility_mi == 1.5
        assert observation.ceiling_ft == 1000
        assert observation.wind_speed_kt == 30
        assert observation.crosswind_kt == 21
        assert observation.has_thunderstorm is False

    def test_forecast_picks_nearest_hour(self, now):
        target = now + timedelta(hours=2)
        epoch = int(target.timestamp())
        self.client.get_forecast.return_value = forecast_payload([
            {'time_epoch': epoch - 3600, 'time': '2025-06-02 13:00', **conditions(cloud=10)},
            {'time_epoch': epoch, 'time': '2025-06-02 14:00', **conditions(
                cloud=90, condition={'code': 1276, 'text': 'Moderate or heavy rain with thunder'}
            )},
            {'time_epoch': epoch + 3600, 'time': '2025-06-02 15:00', **conditions(cloud=20)},
        ])

        observation = self.service.get_observation('KAUS', target + timedelta(minutes=20), now=now)

        self.client.get_forecast.assert_called_once_with('KAUS', target)
        assert observation.source == 'forecast'
        assert observation.observed_at == '2025-06-02 14:00'
        assert observation.cloud_cover_pct == 90
        assert observation.has_thunderstorm is True

    def test_forecast_for_local_evening_after_utc_midnight(self, now):
        """19:00 CDT on 2 June is 00:00 UTC on 3 June."""
        target = datetime(2025, 6, 3, 0, 0, tzinfo=dt_timezone.utc)
        epoch = int(target.timestamp())
        self.client.get_forecast.return_value = {'forecast': {'forecastday': [
            {'hour': [
                {'time_epoch': epoch - 3600, 'time': '2025-06-02 18:00', **conditions()},
                {'time_epoch': epoch, 'time': '2025-06-02 19:00', **conditions(vis_miles=2.0)},
                {'time_epoch': epoch + 3600, 'time': '2025-06-02 20:00', **conditions()},
            ]},
            {'hour': [
                {'time_epoch': epoch + 5 * 3600, 'time': '2025-06-03 00:00', **conditions()},
            ]},
        ]}}

        observation = self.service.get_observation('KAUS', target, now=now)

        self.client.get_forecast.assert_called_once_with('KAUS', target)
        assert observation.observed_at == '2025-06-02 19:00'
        assert observation.visibility_mi == 2.0

    def test_forecast_without_matching_hour_is_unavailable(self, now):
        target = now + timedelta(hours=12)
        self.client.get_forecast.return_value = forecast_payload([
            {'time_epoch': int(target.timestamp()) + 5 * 3600, 'time': '2025-06-03 05:00', **conditions()},
        ])

        with pytest.raises(WeatherProviderError):
            self.service.get_observation('KAUS', target, now=now)

        assert self.client.get_forecast.call_count == 2

    def test_beyond_horizon_uses_current(self, now):
        self.client.get_current.return_value = current_payload()

        observation = self.service.get_observation('KAUS', now + timedelta(days=5), now=now)

        assert observation.source == 'current'
        self.client.get_forecast.assert_not_called()

    def test_cache_hit_skips_provider(self, now):
        self.client.get_current.return_value = current_payload()
        at_time = now - timedelta(minutes=10)

        first = self.service.get_observation('KAUS', at_time, now=now)
        second = self.service.get_observation('KAUS', at_time, now=now)

        assert first == second
        assert self.client.get_current.call_count == 1

    def test_cache_keyed_by_airport(self, now):
        self.client.get_current.return_value = current_payload()

        self.service.get_observation('KAUS', now, now=now)
        self.service.get_observation('KDFW', now, now=now)

        assert self.client.get_current.call_count == 2

    def test_retries_then_succeeds(self, now):
        self.client.get_current.side_effect = [
            httpx.ConnectTimeout('timed out'),
            current_payload(),
        ]

        observation = self.service.get_observation('KAUS', now, now=now)

        assert observation.source == 'current'
        assert self.client.get_current.call_count == 2

    def test_failure_after_retries(self, now):
        self.client.get_current.side_effect = httpx.ConnectError('unreachable')

        with pytest.raises(WeatherProviderError):
            self.service.get_observation('KAUS', now, now=now)

        assert self.client.get_current.call_count == 2

    def test_invalid_payload_is_provider_error(self, now):
        self.client.get_current.return_value = {'current': {'vis_miles': 'far'}}

        with pytest.raises(WeatherProviderError):
            self.service.get_observation('KAUS', now, now=now)

    @pytest.mark.parametrize('code', ['', 'K', 'KAUS1', 'K-US', None])
    def test_invalid_airport_code(self, code, now):
        with pytest.raises(InvalidAirportCodeError):
            self.service.get_observation(code, now, now=now)

        self.client.get_current.assert_not_called()
