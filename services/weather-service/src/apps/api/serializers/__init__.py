# services/weather-service/src/apps/api/serializers/__init__.py
"""
Weather API Serializers
"""

from .conflict_serializers import (
    BookingSummarySerializer,
    RescheduleProposalSerializer,
    WeatherConflictListSerializer,
    WeatherConflictDetailSerializer,
    ProposalResponseSerializer,
    CancelHeldBookingSerializer,
)

from .weather_check_serializers import (
    WeatherCheckRequestSerializer,
)


__all__ = [
    # Conflicts
    'BookingSummarySerializer',
    'RescheduleProposalSerializer',
    'WeatherConflictListSerializer',
    'WeatherConflictDetailSerializer',
    'ProposalResponseSerializer',
    'CancelHeldBookingSerializer',

    # Weather checks
    'WeatherCheckRequestSerializer',
]
