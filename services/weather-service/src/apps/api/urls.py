# services/weather-service/src/apps/api/urls.py
"""
Weather API URL Configuration

Defines all API routes for the weather service.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    WeatherConflictViewSet,
    RescheduleProposalViewSet,
    WeatherCheckView,
)

app_name = 'api'

router = DefaultRouter()
router.register(r'conflicts', WeatherConflictViewSet, basename='conflict')
router.register(r'proposals', RescheduleProposalViewSet, basename='proposal')

urlpatterns = [
    path('', include(router.urls)),
    path('weather-checks/', WeatherCheckView.as_view(), name='weather-check'),
]
