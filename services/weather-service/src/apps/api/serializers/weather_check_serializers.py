# services/weather-service/src/apps/api/serializers/weather_check_serializers.py
"""
Weather Check Serializers
"""

from rest_framework import serializers


class WeatherCheckRequestSerializer(serializers.Serializer):
    """Serializer for triggering a detection pass."""

    run_inline = serializers.BooleanField(
        default=False,
        help_text='Run the pass in the request instead of queueing it'
    )
