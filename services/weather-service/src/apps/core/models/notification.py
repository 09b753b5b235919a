# services/weather-service/src/apps/core/models/notification.py
"""
Notification Model

In-app notification rows and the email delivery log for conflicts.
"""

import uuid

from django.db import models
from django.utils import timezone


class Notification(models.Model):
    """Notification written for a student or instructor about a conflict."""

    class NotificationType(models.TextChoices):
        WEATHER_CONFLICT = 'weather_conflict', 'Weather Conflict'
        RESCHEDULE_PROPOSAL = 'reschedule_proposal', 'Reschedule Proposal'
        RESCHEDULE_ACCEPTED = 'reschedule_accepted', 'Reschedule Accepted'
        CONFLICT_RESOLVED = 'conflict_resolved', 'Conflict Resolved'

    class Channel(models.TextChoices):
        IN_APP = 'in_app', 'In-App'
        EMAIL = 'email', 'Email'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user_id = models.UUIDField(db_index=True)
    conflict_id = models.UUIDField(db_index=True)

    notification_type = models.CharField(max_length=30, choices=NotificationType.choices)
    channel = models.CharField(max_length=10, choices=Channel.choices, default=Channel.IN_APP)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)

    title = models.CharField(max_length=255)
    message = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)

    sent_at = models.DateTimeField(blank=True, null=True)
    read_at = models.DateTimeField(blank=True, null=True)
    failure_reason = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'weather_notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user_id', 'read_at']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user_id', 'conflict_id', 'notification_type', 'channel'],
                name='unique_conflict_notification'
            ),
        ]

    def __str__(self):
        return f"{self.notification_type} -> {self.user_id} ({self.channel})"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_sent(self):
        self.status = self.Status.SENT
        self.sent_at = timezone.now()
        self.failure_reason = None
        self.save(update_fields=['status', 'sent_at', 'failure_reason'])

    def mark_failed(self, reason: str):
        self.status = self.Status.FAILED
        self.failure_reason = reason
        self.save(update_fields=['status', 'failure_reason'])

    def mark_read(self):
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=['read_at'])
