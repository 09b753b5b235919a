# services/weather-service/src/tests/unit/test_slot_service.py
"""
Unit Tests for Slot Search

Tests for availability expansion, conflicts with other bookings and the
candidate cap. The reference time is Monday 2 June 2025, 12:00 UTC.
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone as dt_timezone

import pytest

from apps.core.models import AvailabilityPattern, Booking
from apps.core.services import SlotFinderService


def utc(day, hour, minute=0):
    return datetime(2025, 6, day, hour, minute, tzinfo=dt_timezone.utc)


@pytest.mark.django_db
class TestSlotFinderService:
    """Tests for SlotFinderService."""

    def setup_method(self):
        self.service = SlotFinderService()

    def test_slides_across_window(self, now, create_booking, create_availability):
        """Tuesday 08:00-12:00 fits three two-hour lessons at hourly steps."""
        create_availability()
        booking = create_booking()

        slots = self.service.find_candidate_slots(booking, now=now)

        assert [s.start for s in slots] == [utc(3, 8), utc(3, 9), utc(3, 10)]
        assert all(s.end - s.start == timedelta(hours=2) for s in slots)
        assert all(s.instructor_id == booking.instructor_id for s in slots)
        assert all(s.aircraft_id == booking.aircraft_id for s in slots)

    def test_instructor_booking_blocks_overlapping_slots(
        self, now, create_booking, create_availability, instructor_id
    ):
        """Touching endpoints do not conflict."""
        create_availability()
        booking = create_booking()
        create_booking(
            aircraft_id=uuid.uuid4(),
            scheduled_start=utc(3, 9),
            scheduled_end=utc(3, 10),
        )

        slots = self.service.find_candidate_slots(booking, now=now)

        assert [s.start for s in slots] == [utc(3, 10)]

    def test_aircraft_booking_blocks_slots(self, now, create_booking, create_availability):
        create_availability()
        booking = create_booking()
        create_booking(
            instructor_id=uuid.uuid4(),
            scheduled_start=utc(3, 10),
            scheduled_end=utc(3, 11),
        )

        slots = self.service.find_candidate_slots(booking, now=now)

        assert [s.start for s in slots] == [utc(3, 8)]

    def test_held_booking_blocks_but_cancelled_does_not(self, now, create_booking, create_availability):
        create_availability()
        booking = create_booking()
        create_booking(
            aircraft_id=uuid.uuid4(),
            scheduled_start=utc(3, 8),
            scheduled_end=utc(3, 9),
            status=Booking.Status.WEATHER_HOLD,
        )
        create_booking(
            aircraft_id=uuid.uuid4(),
            scheduled_start=utc(3, 11),
            scheduled_end=utc(3, 12),
            status=Booking.Status.CANCELLED,
        )

        slots = self.service.find_candidate_slots(booking, now=now)

        assert [s.start for s in slots] == [utc(3, 9), utc(3, 10)]

    def test_capped_at_twenty(self, now, create_booking, create_availability):
        for day in AvailabilityPattern.DayOfWeek.values:
            create_availability(day_of_week=day, start_time=time(6, 0), end_time=time(22, 0))
        booking = create_booking(scheduled_start=now + timedelta(hours=2))
        booking.scheduled_end = booking.scheduled_start + timedelta(hours=1)
        booking.save()

        slots = self.service.find_candidate_slots(booking, now=now)

        assert len(slots) == 20
        assert slots[0].start == utc(3, 6)
        assert [s.start for s in slots] == sorted(s.start for s in slots)

    def test_no_patterns(self, now, create_booking):
        booking = create_booking()

        assert self.service.find_candidate_slots(booking, now=now) == []

    def test_other_instructor_patterns_ignored(self, now, create_booking, create_availability):
        create_availability(instructor_id=uuid.uuid4())
        booking = create_booking()

        assert self.service.find_candidate_slots(booking, now=now) == []

    def test_non_recurring_pattern_needs_bounds(self, now, create_booking, create_availability):
        create_availability(is_recurring=False)
        booking = create_booking()

        assert self.service.find_candidate_slots(booking, now=now) == []

    def test_bounded_non_recurring_pattern(self, now, create_booking, create_availability):
        create_availability(
            is_recurring=False,
            valid_from=date(2025, 6, 3),
            valid_until=date(2025, 6, 3),
        )
        booking = create_booking()

        slots = self.service.find_candidate_slots(booking, now=now)

        assert len(slots) == 3

    def test_expired_pattern_ignored(self, now, create_booking, create_availability):
        create_availability(valid_until=date(2025, 6, 2))
        booking = create_booking()

        assert self.service.find_candidate_slots(booking, now=now) == []

    def test_horizon_limits_days(self, now, create_booking, create_availability):
        create_availability(day_of_week=AvailabilityPattern.DayOfWeek.WEDNESDAY)
        booking = create_booking()

        assert self.service.find_candidate_slots(booking, horizon_days=1, now=now) == []
        assert len(self.service.find_candidate_slots(booking, horizon_days=2, now=now)) == 3

    def test_windows_in_school_time_zone(self, settings, now, create_booking, create_availability):
        """Availability clock times are local to the school."""
        settings.SCHOOL_TIME_ZONE = 'America/Chicago'
        service = SlotFinderService()
        create_availability()
        booking = create_booking()

        slots = service.find_candidate_slots(booking, now=now)

        assert [s.start for s in slots] == [utc(3, 13), utc(3, 14), utc(3, 15)]


class TestAvailabilityPattern:
    """Tests for pattern applicability."""

    def test_js_weekday(self):
        assert AvailabilityPattern.js_weekday(date(2025, 6, 1)) == 0
        assert AvailabilityPattern.js_weekday(date(2025, 6, 2)) == 1
        assert AvailabilityPattern.js_weekday(date(2025, 6, 7)) == 6

    def test_applies_on(self):
        pattern = AvailabilityPattern(
            day_of_week=AvailabilityPattern.DayOfWeek.TUESDAY,
            start_time=time(8, 0),
            end_time=time(12, 0),
            valid_from=date(2025, 6, 10),
        )

        assert pattern.applies_on(date(2025, 6, 3)) is False
        assert pattern.applies_on(date(2025, 6, 10)) is True
        assert pattern.applies_on(date(2025, 6, 11)) is False
