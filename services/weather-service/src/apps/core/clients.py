# services/weather-service/src/apps/core/clients.py
"""
Upstream clients for the weather provider and the reasoning service.
"""

from datetime import datetime
from typing import Any, Dict, List

from django.conf import settings

from shared.common.clients import BaseServiceClient


class WeatherProviderClient(BaseServiceClient):
    """Client for WeatherAPI.com current and forecast endpoints."""

    def __init__(self, base_url: str = None, api_key: str = None):
        super().__init__(
            'weather-provider',
            base_url or settings.WEATHER_API_URL,
            timeout=settings.WEATHER_API_TIMEOUT,
        )
        self.api_key = api_key or settings.WEATHER_API_KEY

    def get_current(self, airport_code: str) -> Dict[str, Any]:
        return self.get('/current.json', params={
            'key': self.api_key,
            'q': airport_code,
            'aqi': 'no',
        })

    def get_forecast(self, airport_code: str, at_time: datetime) -> Dict[str, Any]:
        """Hourly forecast for the airport's local day containing at_time."""
        return self.get('/forecast.json', params={
            'key': self.api_key,
            'q': airport_code,
            'unixdt': int(at_time.timestamp()),
            'aqi': 'no',
            'alerts': 'no',
        })


class ReasoningServiceClient(BaseServiceClient):
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(self, base_url: str = None, api_key: str = None, model: str = None):
        super().__init__(
            'reasoning-service',
            base_url or settings.REASONING_API_URL,
            timeout=settings.REASONING_API_TIMEOUT,
        )
        self.api_key = api_key or settings.REASONING_API_KEY
        self.model = model or settings.REASONING_MODEL

    def create_chat_completion(
        self,
        messages: List[Dict[str, str]],
        response_schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        return self.post(
            '/chat/completions',
            data={
                'model': self.model,
                'messages': messages,
                'temperature': settings.REASONING_TEMPERATURE,
                'max_tokens': settings.REASONING_MAX_TOKENS,
                'response_format': {
                    'type': 'json_schema',
                    'json_schema': {
                        'name': 'reschedule_proposals',
                        'strict': True,
                        'schema': response_schema,
                    },
                },
            },
            headers={'Authorization': f'Bearer {self.api_key}'},
        )
