# services/weather-service/src/apps/core/services/detection_service.py
"""
Conflict Detection Service

Periodic pass over upcoming lessons that checks route weather against
the pilot's minima and opens weather conflicts.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.events import Stage, stage_dispatcher
from apps.core.minima import effective_minima, evaluate_checkpoints
from apps.core.models import Aircraft, Booking, UserProfile, WeatherConflict
from .weather_service import WeatherObservation, WeatherService

logger = logging.getLogger(__name__)


@dataclass
class CheckpointResult:
    airport: str
    observation: Optional[WeatherObservation] = None
    error: Optional[str] = None

    def to_snapshot(self) -> dict:
        if self.observation is not None:
            return self.observation.to_dict()
        return {'airport': self.airport, 'unavailable': True, 'error': self.error}


@dataclass
class DetectionPassResult:
    """Outcome of one detection pass."""

    checked: int = 0
    conflicts: List[WeatherConflict] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict:
        return {
            'bookings_checked': self.checked,
            'conflicts_created': [str(c.id) for c in self.conflicts],
            'failed_bookings': self.failures,
            'partial': self.is_partial,
        }


class ConflictDetectionService:
    """
    Service for detecting weather conflicts.

    Handles:
    - Selecting scheduled lessons inside the lookahead window
    - Route checkpoint weather (fetched concurrently per booking)
    - Minima evaluation with fail-safe handling of unknown weather
    - Opening conflicts and placing bookings on weather hold
    """

    def __init__(self, weather_service: WeatherService = None):
        self.weather_service = weather_service or WeatherService()
        self.lookahead = timedelta(hours=settings.WEATHER_CHECK_LOOKAHEAD_HOURS)
        self.max_workers = max(1, settings.WEATHER_MAX_CONCURRENT_FETCHES)

    # ==========================================================================
    # Detection pass
    # ==========================================================================

    def run_detection_pass(self, now: datetime = None) -> DetectionPassResult:
        """Check every scheduled lesson starting within the lookahead window."""
        now = now or timezone.now()
        bookings = list(
            Booking.objects.filter(
                status=Booking.Status.SCHEDULED,
                scheduled_start__gt=now,
                scheduled_start__lte=now + self.lookahead,
            ).order_by('scheduled_start')
        )

        logger.info(f"Weather check pass starting: {len(bookings)} bookings to check")
        result = DetectionPassResult()

        for booking in bookings:
            result.checked += 1
            try:
                conflict = self.check_booking(booking, now=now)
            except Exception as e:
                logger.exception(
                    f"Error checking booking {booking.id}: {e}",
                    extra={'booking_id': str(booking.id)}
                )
                result.failures[str(booking.id)] = str(e)
                continue

            if conflict is not None:
                result.conflicts.append(conflict)

        logger.info(
            f"Weather check pass finished: {result.checked} checked, "
            f"{len(result.conflicts)} conflicts, {len(result.failures)} failures"
        )
        return result

    def check_booking(self, booking: Booking, now: datetime = None) -> Optional[WeatherConflict]:
        """
        Evaluate one booking. Returns the newly created conflict, if any.
        """
        now = now or timezone.now()
        checkpoints = booking.get_checkpoints()
        results = self.fetch_checkpoint_weather(checkpoints, booking.scheduled_start, now)

        minima = self.get_minima_for_booking(booking)
        violations = evaluate_checkpoints(
            [(r.airport, r.observation) for r in results],
            minima
        )
        snapshot = [r.to_snapshot() for r in results]

        if not violations:
            booking.record_weather_check(snapshot, checked_at=now)
            logger.info(f"Weather OK for booking {booking.id}", extra={'booking_id': str(booking.id)})
            return None

        logger.warning(
            f"Weather conflict detected for booking {booking.id}: {len(violations)} violations",
            extra={'booking_id': str(booking.id), 'violations': violations}
        )
        conflict, created = self.open_conflict(booking, snapshot, violations, now)
        return conflict if created else None

    def fetch_checkpoint_weather(
        self,
        checkpoints: List[str],
        at_time: datetime,
        now: datetime
    ) -> List[CheckpointResult]:
        """Observations for each checkpoint, in checkpoint order."""

        def fetch(airport: str) -> CheckpointResult:
            try:
                return CheckpointResult(
                    airport=airport,
                    observation=self.weather_service.get_observation(airport, at_time, now=now),
                )
            except Exception as e:
                logger.warning(
                    f"Weather unavailable for checkpoint {airport}: {e}",
                    extra={'airport': airport}
                )
                return CheckpointResult(airport=airport, error=str(e))

        workers = min(self.max_workers, len(checkpoints)) or 1
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(fetch, checkpoints))

    @staticmethod
    def get_minima_for_booking(booking: Booking):
        student = UserProfile.objects.filter(id=booking.student_id).first()
        aircraft = Aircraft.objects.filter(id=booking.aircraft_id).first()

        return effective_minima(
            student.training_level if student else None,
            aircraft.minimum_weather_requirements if aircraft else None,
        )

    # ==========================================================================
    # Conflict creation
    # ==========================================================================

    @transaction.atomic
    def open_conflict(
        self,
        booking: Booking,
        snapshot: List[dict],
        violations: List[str],
        now: datetime
    ) -> Tuple[Optional[WeatherConflict], bool]:
        """
        Create the conflict, then hold the booking, then queue ranking.

        An existing unresolved conflict is reused instead of duplicated.
        """
        locked = Booking.objects.select_for_update().get(id=booking.id)
        if locked.status != Booking.Status.SCHEDULED:
            logger.info(f"Booking {booking.id} is {locked.status}, skipping conflict creation")
            return None, False

        conflict = (
            WeatherConflict.objects
            .filter(booking=locked)
            .exclude(status=WeatherConflict.Status.RESOLVED)
            .first()
        )
        created = conflict is None

        if created:
            conflict = WeatherConflict.objects.create(
                booking=locked,
                detected_at=now,
                status=WeatherConflict.Status.DETECTED,
                weather_data=snapshot,
                conflict_reasons=violations,
            )
            logger.info(
                f"Created weather conflict {conflict.id} for booking {booking.id}",
                extra={'conflict_id': str(conflict.id), 'booking_id': str(booking.id)}
            )
        else:
            logger.info(
                f"Booking {booking.id} already has open conflict {conflict.id}",
                extra={'conflict_id': str(conflict.id), 'booking_id': str(booking.id)}
            )

        locked.place_on_weather_hold(snapshot, checked_at=now)
        booking.status = locked.status
        booking.weather_snapshot = locked.weather_snapshot
        booking.last_weather_check = locked.last_weather_check

        if created or conflict.status == WeatherConflict.Status.DETECTED:
            stage_dispatcher.dispatch(Stage.RANK_PROPOSALS, conflict.id)

        return conflict, created
