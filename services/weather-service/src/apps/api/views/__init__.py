# services/weather-service/src/apps/api/views/__init__.py
"""
Weather API Views
"""

from .conflict_views import (
    WeatherConflictViewSet,
    RescheduleProposalViewSet,
    WeatherCheckView,
)


__all__ = [
    'WeatherConflictViewSet',
    'RescheduleProposalViewSet',
    'WeatherCheckView',
]
