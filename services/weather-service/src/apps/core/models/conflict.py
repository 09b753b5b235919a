# services/weather-service/src/apps/core/models/conflict.py
"""
Weather Conflict Models

Conflict records and the AI-ranked reschedule proposals attached to them.
"""

import uuid
from datetime import datetime

from django.db import models
from django.db.models import Q
from django.utils import timezone


class WeatherConflict(models.Model):
    """
    A detected weather-minima violation for one booking.

    Lifecycle: detected -> ai_processing -> proposals_ready -> resolved,
    with detected/ai_processing -> resolved(no_slots_available) as a side
    branch. At most one unresolved conflict exists per booking.
    """

    class Status(models.TextChoices):
        DETECTED = 'detected', 'Detected'
        AI_PROCESSING = 'ai_processing', 'AI Processing'
        PROPOSALS_READY = 'proposals_ready', 'Proposals Ready'
        RESOLVED = 'resolved', 'Resolved'

    class ResolutionMethod(models.TextChoices):
        RESCHEDULED = 'rescheduled', 'Rescheduled'
        NO_SLOTS_AVAILABLE = 'no_slots_available', 'No Slots Available'
        CANCELLED = 'cancelled', 'Cancelled'
        MANUAL_OVERRIDE = 'manual_override', 'Manual Override'

    OPEN_STATUSES = [Status.DETECTED, Status.AI_PROCESSING, Status.PROPOSALS_READY]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(
        'core.Booking',
        on_delete=models.CASCADE,
        related_name='weather_conflicts'
    )

    detected_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DETECTED,
        db_index=True
    )

    # Ordered per checkpoint
    weather_data = models.JSONField(default=list, blank=True)
    conflict_reasons = models.JSONField(default=list, blank=True)

    # Resolution
    resolution_method = models.CharField(
        max_length=30,
        choices=ResolutionMethod.choices,
        blank=True,
        null=True
    )
    resolved_at = models.DateTimeField(blank=True, null=True)

    # Ranking stage observability
    ai_processing_started_at = models.DateTimeField(blank=True, null=True)
    ai_processing_completed_at = models.DateTimeField(blank=True, null=True)
    ai_processing_duration_ms = models.IntegerField(blank=True, null=True)

    # Re-drive bookkeeping
    redrive_count = models.IntegerField(default=0)
    last_redriven_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'weather_conflicts'
        ordering = ['-detected_at']
        indexes = [
            models.Index(fields=['status', 'detected_at']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['booking'],
                condition=~Q(status='resolved'),
                name='one_open_conflict_per_booking'
            ),
        ]

    def __str__(self):
        return f"Conflict {self.id} ({self.status})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_open(self) -> bool:
        return self.status != self.Status.RESOLVED

    @property
    def last_progress_at(self) -> datetime:
        """Most recent point at which the pipeline touched this conflict."""
        candidates = [
            self.detected_at,
            self.ai_processing_started_at,
            self.last_redriven_at,
        ]
        return max(ts for ts in candidates if ts is not None)

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    def start_processing(self, now: datetime = None):
        """Enter the ranking stage."""
        if self.status not in [self.Status.DETECTED, self.Status.AI_PROCESSING]:
            raise ValueError(f"Cannot start processing conflict in {self.status} status")

        self.status = self.Status.AI_PROCESSING
        self.ai_processing_started_at = now or timezone.now()
        self.save(update_fields=['status', 'ai_processing_started_at', 'updated_at'])

    def _record_processing_end(self, now: datetime):
        self.ai_processing_completed_at = now
        if self.ai_processing_started_at:
            delta = now - self.ai_processing_started_at
            self.ai_processing_duration_ms = int(delta.total_seconds() * 1000)

    def mark_proposals_ready(self, now: datetime = None):
        """Ranking finished with persisted proposals."""
        if self.status != self.Status.AI_PROCESSING:
            raise ValueError(f"Cannot mark proposals ready for conflict in {self.status} status")

        now = now or timezone.now()
        self.status = self.Status.PROPOSALS_READY
        self._record_processing_end(now)
        self.save()

    def resolve(self, method: str, now: datetime = None):
        """Close the conflict."""
        if self.status == self.Status.RESOLVED:
            raise ValueError("Conflict is already resolved")

        now = now or timezone.now()
        if self.status == self.Status.AI_PROCESSING:
            self._record_processing_end(now)
        self.status = self.Status.RESOLVED
        self.resolution_method = method
        self.resolved_at = now
        self.save()


class RescheduleProposal(models.Model):
    """
    One ranked alternative time for a conflicted booking.

    Immutable once created except for the response fields, which each
    party writes once.
    """

    class Response(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'

    class Party(models.TextChoices):
        STUDENT = 'student', 'Student'
        INSTRUCTOR = 'instructor', 'Instructor'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    conflict = models.ForeignKey(
        WeatherConflict,
        on_delete=models.CASCADE,
        related_name='proposals'
    )

    rank = models.PositiveSmallIntegerField()
    proposed_start = models.DateTimeField()
    proposed_end = models.DateTimeField()
    proposed_instructor_id = models.UUIDField(blank=True, null=True)
    proposed_aircraft_id = models.UUIDField(blank=True, null=True)

    score = models.IntegerField()
    reasoning = models.TextField(blank=True, default='')

    # Responses
    student_response = models.CharField(
        max_length=20,
        choices=Response.choices,
        default=Response.PENDING
    )
    student_responded_at = models.DateTimeField(blank=True, null=True)
    instructor_response = models.CharField(
        max_length=20,
        choices=Response.choices,
        default=Response.PENDING
    )
    instructor_responded_at = models.DateTimeField(blank=True, null=True)
    accepted_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'reschedule_proposals'
        ordering = ['conflict', 'rank']
        constraints = [
            models.CheckConstraint(
                condition=Q(score__gte=0) & Q(score__lte=100),
                name='proposal_score_range'
            ),
            models.UniqueConstraint(
                fields=['conflict', 'rank'],
                name='unique_proposal_rank'
            ),
        ]

    def __str__(self):
        return f"Proposal #{self.rank} {self.proposed_start:%Y-%m-%d %H:%M} ({self.score})"

    def get_response(self, party: str) -> str:
        return getattr(self, f'{party}_response')

    def record_response(self, party: str, decision: str, now: datetime = None):
        """Write one party's response. Each party responds once."""
        if party not in self.Party.values:
            raise ValueError(f"Unknown party: {party}")
        if decision not in [self.Response.ACCEPTED, self.Response.REJECTED]:
            raise ValueError(f"Invalid decision: {decision}")
        if self.get_response(party) != self.Response.PENDING:
            raise ValueError(f"The {party} has already responded to this proposal")

        now = now or timezone.now()
        setattr(self, f'{party}_response', decision)
        setattr(self, f'{party}_responded_at', now)
        update_fields = [f'{party}_response', f'{party}_responded_at']
        if decision == self.Response.ACCEPTED and self.accepted_at is None:
            self.accepted_at = now
            update_fields.append('accepted_at')
        self.save(update_fields=update_fields)
