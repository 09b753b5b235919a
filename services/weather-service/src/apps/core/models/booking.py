# services/weather-service/src/apps/core/models/booking.py
"""
Booking Model

Scheduled flight lessons monitored for weather.
"""

import uuid
from datetime import datetime, timedelta

from django.db import models
from django.utils import timezone


class Booking(models.Model):
    """
    A scheduled lesson.

    The weather pipeline only reads bookings and performs the narrow
    hold/snapshot/reschedule/cancel writes defined below.
    """

    class FlightType(models.TextChoices):
        LOCAL = 'local', 'Local'
        SHORT_XC = 'short_xc', 'Short Cross-Country'
        LONG_XC = 'long_xc', 'Long Cross-Country'

    class Status(models.TextChoices):
        SCHEDULED = 'scheduled', 'Scheduled'
        WEATHER_HOLD = 'weather_hold', 'Weather Hold'
        CANCELLED = 'cancelled', 'Cancelled'
        COMPLETED = 'completed', 'Completed'

    # Statuses that occupy an instructor or aircraft
    BLOCKING_STATUSES = [Status.SCHEDULED, Status.WEATHER_HOLD]

    # Primary Key
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Resources
    student_id = models.UUIDField(db_index=True)
    instructor_id = models.UUIDField(db_index=True)
    aircraft_id = models.UUIDField(db_index=True)

    # Scheduled Time
    scheduled_start = models.DateTimeField(db_index=True)
    scheduled_end = models.DateTimeField()

    # Route
    departure_airport = models.CharField(max_length=4)
    destination_airport = models.CharField(max_length=4, blank=True, null=True)
    route_waypoints = models.JSONField(default=list, blank=True)
    flight_type = models.CharField(
        max_length=20,
        choices=FlightType.choices,
        default=FlightType.LOCAL
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SCHEDULED,
        db_index=True
    )

    # Weather
    last_weather_check = models.DateTimeField(blank=True, null=True)
    weather_snapshot = models.JSONField(default=list, blank=True)

    # Cancellation
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.UUIDField(blank=True, null=True)
    cancellation_reason = models.TextField(blank=True, null=True)

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['scheduled_start']
        indexes = [
            models.Index(fields=['status', 'scheduled_start']),
            models.Index(fields=['instructor_id', 'scheduled_start', 'scheduled_end']),
            models.Index(fields=['aircraft_id', 'scheduled_start', 'scheduled_end']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(scheduled_end__gt=models.F('scheduled_start')),
                name='valid_booking_times'
            ),
        ]

    def __str__(self):
        return f"{self.departure_airport} {self.scheduled_start.strftime('%Y-%m-%d %H:%M')} ({self.status})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def duration(self) -> timedelta:
        return self.scheduled_end - self.scheduled_start

    @property
    def is_cross_country(self) -> bool:
        return self.flight_type in [self.FlightType.SHORT_XC, self.FlightType.LONG_XC]

    def get_checkpoints(self) -> list:
        """
        Airports at which weather must be evaluated, in route order.

        Local flights check departure only. Cross-country flights add the
        destination; long cross-country flights also check the middle
        waypoint of the route. A waypoint is stored either as an airport
        code or as an object with an ``airport`` key.
        """
        checkpoints = [self.departure_airport]

        if not (self.is_cross_country and self.destination_airport):
            return checkpoints

        checkpoints.append(self.destination_airport)
        if self.flight_type == self.FlightType.LONG_XC and self.route_waypoints:
            midpoint = self.route_waypoints[len(self.route_waypoints) // 2]
            checkpoints.insert(1, self.waypoint_airport(midpoint))

        return checkpoints

    @staticmethod
    def waypoint_airport(waypoint):
        if isinstance(waypoint, dict):
            return waypoint.get('airport')
        return waypoint

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    def record_weather_check(self, snapshot: list, checked_at: datetime = None):
        """Store the latest observations without changing status."""
        self.weather_snapshot = snapshot
        self.last_weather_check = checked_at or timezone.now()
        self.save(update_fields=['weather_snapshot', 'last_weather_check', 'updated_at'])

    def place_on_weather_hold(self, snapshot: list, checked_at: datetime = None):
        """Move a scheduled lesson to weather hold."""
        if self.status not in [self.Status.SCHEDULED, self.Status.WEATHER_HOLD]:
            raise ValueError(f"Cannot hold booking in {self.status} status")

        self.status = self.Status.WEATHER_HOLD
        self.weather_snapshot = snapshot
        self.last_weather_check = checked_at or timezone.now()
        self.save(update_fields=['status', 'weather_snapshot', 'last_weather_check', 'updated_at'])

    def reschedule(
        self,
        start: datetime,
        end: datetime,
        instructor_id: uuid.UUID = None,
        aircraft_id: uuid.UUID = None
    ):
        """Release the hold onto a new time."""
        if self.status != self.Status.WEATHER_HOLD:
            raise ValueError(f"Cannot reschedule booking in {self.status} status")

        self.scheduled_start = start
        self.scheduled_end = end
        if instructor_id:
            self.instructor_id = instructor_id
        if aircraft_id:
            self.aircraft_id = aircraft_id
        self.status = self.Status.SCHEDULED
        self.save()

    def cancel(self, cancelled_by: uuid.UUID = None, reason: str = None):
        """Cancel a held lesson."""
        if self.status != self.Status.WEATHER_HOLD:
            raise ValueError(f"Cannot cancel booking in {self.status} status")

        self.status = self.Status.CANCELLED
        self.cancelled_at = timezone.now()
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason
        self.save()
