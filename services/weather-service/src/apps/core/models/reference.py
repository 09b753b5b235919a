# services/weather-service/src/apps/core/models/reference.py
"""
Reference Models

Local read models for users and aircraft owned by other services.
Rows are kept in sync from user-service and aircraft-service events.
"""

import uuid

from django.db import models


class UserProfile(models.Model):
    """Pilot/instructor profile used for minima selection and notifications."""

    class Role(models.TextChoices):
        STUDENT = 'student', 'Student'
        INSTRUCTOR = 'instructor', 'Instructor'
        ADMIN = 'admin', 'Administrator'

    class TrainingLevel(models.TextChoices):
        STUDENT_PILOT = 'student_pilot', 'Student Pilot'
        PRIVATE_PILOT = 'private_pilot', 'Private Pilot'
        INSTRUMENT_RATED = 'instrument_rated', 'Instrument Rated'
        COMMERCIAL_PILOT = 'commercial_pilot', 'Commercial Pilot'

    # Same ID as in user-service
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    email = models.EmailField()
    full_name = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT)
    training_level = models.CharField(
        max_length=30,
        choices=TrainingLevel.choices,
        blank=True,
        null=True
    )
    email_notifications = models.BooleanField(default=True)

    synced_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'weather_user_profiles'
        ordering = ['full_name']

    def __str__(self):
        return f"{self.full_name} ({self.role})"


class Aircraft(models.Model):
    """Aircraft with optional weather minima that narrow the pilot tier."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tail_number = models.CharField(max_length=10, unique=True)
    make = models.CharField(max_length=100, blank=True, default='')
    model = models.CharField(max_length=100, blank=True, default='')

    # Keys: visibility_miles, ceiling_ft, wind_speed_knots, crosswind_knots,
    # cloud_cover_percent
    minimum_weather_requirements = models.JSONField(default=dict, blank=True)

    synced_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'weather_aircraft'
        ordering = ['tail_number']
        verbose_name_plural = 'aircraft'

    def __str__(self):
        return f"{self.tail_number} {self.make} {self.model}".strip()
