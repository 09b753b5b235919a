# services/weather-service/src/apps/core/services/slot_service.py
"""
Slot Finder Service

Computes future windows where both the instructor and the aircraft of a
conflicted lesson are free.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from apps.core.models import AvailabilityPattern, Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateSlot:
    """Alternative time for a lesson, same duration as the original."""

    start: datetime
    end: datetime
    instructor_id: UUID
    aircraft_id: UUID

    def to_dict(self) -> dict:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'instructor_id': str(self.instructor_id),
            'aircraft_id': str(self.aircraft_id),
        }


class SlotFinderService:
    """
    Service for reschedule slot search.

    Slots slide across instructor availability windows at a fixed step.
    A slot is admissible when no scheduled or held booking of the same
    instructor or aircraft overlaps it (half-open intervals, so touching
    endpoints do not conflict).
    """

    def __init__(self):
        self.step = timedelta(minutes=settings.RESCHEDULE_SLOT_STEP_MINUTES)
        self.max_candidates = settings.MAX_CANDIDATE_SLOTS
        self.local_tz = ZoneInfo(settings.SCHOOL_TIME_ZONE)

    def find_candidate_slots(
        self,
        booking: Booking,
        horizon_days: int = None,
        now: datetime = None
    ) -> List[CandidateSlot]:
        """Admissible slots from tomorrow through ``horizon_days``, earliest first."""
        horizon_days = horizon_days or settings.RESCHEDULE_HORIZON_DAYS
        now = now or timezone.now()
        duration = booking.duration
        today = timezone.localtime(now, self.local_tz).date()

        patterns = list(
            AvailabilityPattern.objects.filter(instructor_id=booking.instructor_id)
            .filter(Q(is_recurring=True) | Q(valid_from__isnull=False) | Q(valid_until__isnull=False))
            .order_by('start_time')
        )
        if not patterns:
            logger.info(f"No availability patterns for instructor {booking.instructor_id}")
            return []

        window_start = self._local(today + timedelta(days=1), time.min)
        window_end = self._local(today + timedelta(days=horizon_days + 1), time.min)
        busy = self._get_busy_intervals(booking, window_start, window_end)

        candidates = []
        seen = set()

        for offset in range(1, horizon_days + 1):
            day = today + timedelta(days=offset)
            starts = set()
            for pattern in patterns:
                if pattern.applies_on(day):
                    starts.update(self._slide(pattern, day, duration))

            for start in sorted(starts):
                end = start + duration
                if start in seen or start <= now:
                    continue
                if self._overlaps(busy, start, end):
                    continue

                seen.add(start)
                candidates.append(CandidateSlot(
                    start=start,
                    end=end,
                    instructor_id=booking.instructor_id,
                    aircraft_id=booking.aircraft_id,
                ))
                if len(candidates) >= self.max_candidates:
                    logger.info(f"Slot search for booking {booking.id} capped at {self.max_candidates}")
                    return candidates

        logger.info(f"Found {len(candidates)} candidate slots for booking {booking.id}")
        return candidates

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _local(self, day: date, clock: time) -> datetime:
        return timezone.make_aware(datetime.combine(day, clock), self.local_tz)

    def _slide(self, pattern: AvailabilityPattern, day: date, duration: timedelta) -> Iterator[datetime]:
        current = self._local(day, pattern.start_time)
        window_end = self._local(day, pattern.end_time)

        while current + duration <= window_end:
            yield current
            current += self.step

    @staticmethod
    def blocking_bookings(instructor_id: UUID, aircraft_id: UUID, start: datetime, end: datetime):
        """Scheduled or held bookings of the instructor or aircraft overlapping [start, end)."""
        return Booking.objects.filter(
            status__in=Booking.BLOCKING_STATUSES,
            scheduled_start__lt=end,
            scheduled_end__gt=start,
        ).filter(
            Q(instructor_id=instructor_id) | Q(aircraft_id=aircraft_id)
        )

    @classmethod
    def _get_busy_intervals(
        cls,
        booking: Booking,
        window_start: datetime,
        window_end: datetime
    ) -> List[Tuple[datetime, datetime]]:
        """Instructor and aircraft bookings that intersect the search window."""
        return list(
            cls.blocking_bookings(booking.instructor_id, booking.aircraft_id, window_start, window_end)
            .values_list('scheduled_start', 'scheduled_end')
        )

    @staticmethod
    def _overlaps(busy: List[Tuple[datetime, datetime]], start: datetime, end: datetime) -> bool:
        return any(b_start < end and b_end > start for b_start, b_end in busy)
