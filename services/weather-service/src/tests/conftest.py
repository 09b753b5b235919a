# services/weather-service/src/tests/conftest.py
"""
Pytest Configuration and Fixtures

Provides common fixtures for weather service tests.
"""

import uuid
from datetime import datetime, time, timedelta, timezone as dt_timezone

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.core.models import (
    Aircraft,
    AvailabilityPattern,
    Booking,
    RescheduleProposal,
    UserProfile,
    WeatherConflict,
)
from apps.core.services import WeatherObservation
from shared.common.authentication import TokenUser


# Monday 2 June 2025, 12:00 UTC
NOW = datetime(2025, 6, 2, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty weather cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    """Provide a fixed reference time."""
    return NOW


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def student_id():
    """Provide a test student ID."""
    return uuid.uuid4()


@pytest.fixture
def instructor_id():
    """Provide a test instructor ID."""
    return uuid.uuid4()


@pytest.fixture
def aircraft_id():
    """Provide a test aircraft ID."""
    return uuid.uuid4()


@pytest.fixture
def auth_client(api_client):
    """Factory fixture for an API client authenticated with the given roles."""
    def _auth_client(roles=None, user_id=None):
        user = TokenUser({
            'sub': str(user_id or uuid.uuid4()),
            'email': 'user@ftms.test',
            'roles': roles or ['student'],
        })
        api_client.force_authenticate(user=user)
        return api_client

    return _auth_client


@pytest.fixture
def make_observation():
    """Factory for weather observations with VFR defaults."""
    def _make_observation(**kwargs):
        defaults = {
            'airport': 'KAUS',
            'forecast_time': NOW.isoformat(),
            'observed_at': NOW.isoformat(),
            'source': 'current',
            'visibility_mi': 10.0,
            'ceiling_ft': None,
            'wind_speed_kt': 5,
            'wind_gust_kt': 0,
            'wind_direction_deg': 180,
            'crosswind_kt': 4,
            'cloud_cover_pct': 0,
            'temp_f': 72.0,
            'condition_code': 1000,
            'condition_text': 'Sunny',
            'has_thunderstorm': False,
            'has_icing': False,
        }
        defaults.update(kwargs)
        return WeatherObservation(**defaults)

    return _make_observation


@pytest.fixture
def create_user_profile():
    """Factory fixture for creating user profiles."""
    def _create_user_profile(**kwargs):
        defaults = {
            'email': f'{uuid.uuid4().hex[:8]}@ftms.test',
            'full_name': 'Test Pilot',
            'role': UserProfile.Role.STUDENT,
            'training_level': UserProfile.TrainingLevel.STUDENT_PILOT,
        }
        defaults.update(kwargs)
        return UserProfile.objects.create(**defaults)

    return _create_user_profile


@pytest.fixture
def create_aircraft():
    """Factory fixture for creating aircraft."""
    def _create_aircraft(**kwargs):
        defaults = {
            'tail_number': f'N{uuid.uuid4().hex[:5].upper()}',
            'make': 'Cessna',
            'model': '172S',
        }
        defaults.update(kwargs)
        return Aircraft.objects.create(**defaults)

    return _create_aircraft


@pytest.fixture
def create_booking(student_id, instructor_id, aircraft_id):
    """Factory fixture for creating bookings."""
    def _create_booking(**kwargs):
        start = kwargs.pop('scheduled_start', NOW + timedelta(hours=2))
        defaults = {
            'student_id': student_id,
            'instructor_id': instructor_id,
            'aircraft_id': aircraft_id,
            'scheduled_start': start,
            'scheduled_end': start + timedelta(hours=2),
            'departure_airport': 'KAUS',
            'flight_type': Booking.FlightType.LOCAL,
            'status': Booking.Status.SCHEDULED,
        }
        defaults.update(kwargs)
        return Booking.objects.create(**defaults)

    return _create_booking


@pytest.fixture
def create_availability(instructor_id):
    """Factory fixture for creating instructor availability patterns."""
    def _create_availability(**kwargs):
        defaults = {
            'instructor_id': instructor_id,
            'day_of_week': AvailabilityPattern.DayOfWeek.TUESDAY,
            'start_time': time(8, 0),
            'end_time': time(12, 0),
            'is_recurring': True,
        }
        defaults.update(kwargs)
        return AvailabilityPattern.objects.create(**defaults)

    return _create_availability


@pytest.fixture
def create_conflict(create_booking):
    """Factory fixture for creating weather conflicts on held bookings."""
    def _create_conflict(booking=None, **kwargs):
        if booking is None:
            booking = create_booking(status=Booking.Status.WEATHER_HOLD)
        defaults = {
            'booking': booking,
            'detected_at': NOW,
            'status': WeatherConflict.Status.DETECTED,
            'weather_data': [{'airport': booking.departure_airport, 'visibility_mi': 1.5}],
            'conflict_reasons': [f'Visibility at {booking.departure_airport}: 1.5mi (min: 5mi)'],
        }
        defaults.update(kwargs)
        return WeatherConflict.objects.create(**defaults)

    return _create_conflict


@pytest.fixture
def create_proposal():
    """Factory fixture for creating reschedule proposals."""
    def _create_proposal(conflict, **kwargs):
        booking = conflict.booking
        start = kwargs.pop('proposed_start', booking.scheduled_start + timedelta(days=1))
        defaults = {
            'conflict': conflict,
            'rank': 1,
            'proposed_start': start,
            'proposed_end': start + booking.duration,
            'proposed_instructor_id': booking.instructor_id,
            'proposed_aircraft_id': booking.aircraft_id,
            'score': 90,
            'reasoning': 'Clear skies expected in the morning.',
        }
        defaults.update(kwargs)
        return RescheduleProposal.objects.create(**defaults)

    return _create_proposal
