# services/weather-service/src/apps/core/models/availability.py
"""
Availability Model

Instructor availability windows used for reschedule slot search.
"""

import uuid
from datetime import date

from django.db import models
from django.db.models import Q


class AvailabilityPattern(models.Model):
    """
    Weekly availability window for an instructor.

    A pattern applies to a day when it is recurring, or when it carries
    valid-from/valid-until bounds that include that day.
    """

    class DayOfWeek(models.IntegerChoices):
        SUNDAY = 0, 'Sunday'
        MONDAY = 1, 'Monday'
        TUESDAY = 2, 'Tuesday'
        WEDNESDAY = 3, 'Wednesday'
        THURSDAY = 4, 'Thursday'
        FRIDAY = 5, 'Friday'
        SATURDAY = 6, 'Saturday'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    instructor_id = models.UUIDField(db_index=True)

    day_of_week = models.IntegerField(choices=DayOfWeek.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()

    is_recurring = models.BooleanField(default=True)
    valid_from = models.DateField(blank=True, null=True)
    valid_until = models.DateField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'availability_patterns'
        ordering = ['instructor_id', 'day_of_week', 'start_time']
        indexes = [
            models.Index(fields=['instructor_id', 'day_of_week']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=models.F('start_time')),
                name='valid_availability_window'
            ),
        ]

    def __str__(self):
        return f"{self.get_day_of_week_display()} {self.start_time}-{self.end_time}"

    @staticmethod
    def js_weekday(day: date) -> int:
        """Weekday with Sunday as 0."""
        return (day.weekday() + 1) % 7

    def applies_on(self, day: date) -> bool:
        """Check weekday, recurrence and validity bounds for a date."""
        if self.day_of_week != self.js_weekday(day):
            return False
        if not self.is_recurring and not (self.valid_from or self.valid_until):
            return False
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_until and day > self.valid_until:
            return False
        return True
