# services/weather-service/src/apps/core/serializers.py
"""
Upstream Payload Serializers

Validate weather-provider and reasoning-service responses at the
boundary so only checked, typed data flows into the services.
"""

from rest_framework import serializers


# =============================================================================
# WEATHER PROVIDER (WeatherAPI.com)
# =============================================================================

class ConditionSerializer(serializers.Serializer):
    code = serializers.IntegerField()
    text = serializers.CharField(allow_blank=True)


class WeatherConditionsSerializer(serializers.Serializer):
    """Fields shared by current conditions and forecast hours."""

    vis_miles = serializers.FloatField(min_value=0)
    cloud = serializers.IntegerField(min_value=0, max_value=100)
    wind_mph = serializers.FloatField(min_value=0)
    gust_mph = serializers.FloatField(min_value=0, required=False, default=0)
    wind_degree = serializers.IntegerField(min_value=0, max_value=360, required=False, allow_null=True)
    temp_f = serializers.FloatField()
    precip_mm = serializers.FloatField(min_value=0, required=False, default=0)
    humidity = serializers.IntegerField(min_value=0, max_value=100, required=False, default=0)
    condition = ConditionSerializer()


class ForecastHourSerializer(WeatherConditionsSerializer):
    time_epoch = serializers.IntegerField()
    time = serializers.CharField()


class CurrentConditionsSerializer(WeatherConditionsSerializer):
    last_updated_epoch = serializers.IntegerField(required=False)
    last_updated = serializers.CharField(required=False)


class CurrentResponseSerializer(serializers.Serializer):
    current = CurrentConditionsSerializer()


class ForecastDaySerializer(serializers.Serializer):
    hour = ForecastHourSerializer(many=True, allow_empty=False)


class ForecastSerializer(serializers.Serializer):
    forecastday = ForecastDaySerializer(many=True, allow_empty=False)


class ForecastResponseSerializer(serializers.Serializer):
    forecast = ForecastSerializer()


# =============================================================================
# REASONING SERVICE
# =============================================================================

class ChatMessageSerializer(serializers.Serializer):
    content = serializers.CharField()


class ChatChoiceSerializer(serializers.Serializer):
    message = ChatMessageSerializer()


class ChatCompletionSerializer(serializers.Serializer):
    choices = ChatChoiceSerializer(many=True, allow_empty=False)


class RankingResponseSerializer(serializers.Serializer):
    """Top-level shape of the ranking reply; picks are checked one by one."""

    proposals = serializers.ListField(child=serializers.DictField(), allow_empty=True)


class RankedPickSerializer(serializers.Serializer):
    """One pick from the ranking reply."""

    slot_number = serializers.IntegerField()
    score = serializers.FloatField()
    reasoning = serializers.CharField(allow_blank=True, required=False, default='')

    def validate_slot_number(self, value):
        candidate_count = self.context.get('candidate_count', 0)
        if not 1 <= value <= candidate_count:
            raise serializers.ValidationError(
                f"slot_number {value} is outside 1..{candidate_count}"
            )
        return value
