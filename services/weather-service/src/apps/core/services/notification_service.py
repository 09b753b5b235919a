# services/weather-service/src/apps/core/services/notification_service.py
"""
Conflict Notification Service

In-app notifications and emails to the student and instructor of a
conflicted booking.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from apps.core.models import Aircraft, Notification, UserProfile, WeatherConflict

logger = logging.getLogger(__name__)


PROPOSALS_EMAIL_SUBJECT = 'Weather Alert: Flight Lesson Rescheduling Required'

RESOLUTION_EMAIL_SUBJECTS = {
    WeatherConflict.ResolutionMethod.RESCHEDULED: 'Flight Lesson Rescheduled',
    WeatherConflict.ResolutionMethod.NO_SLOTS_AVAILABLE: 'Weather Alert: No Reschedule Slots Available',
    WeatherConflict.ResolutionMethod.CANCELLED: 'Flight Lesson Cancelled Due to Weather',
    WeatherConflict.ResolutionMethod.MANUAL_OVERRIDE: 'Weather Conflict Resolved',
}

RESOLUTION_MESSAGES = {
    WeatherConflict.ResolutionMethod.RESCHEDULED: 'Your lesson has been moved to {start}.',
    WeatherConflict.ResolutionMethod.NO_SLOTS_AVAILABLE: (
        'No alternative time was found within the reschedule window. '
        'Please contact the school to arrange a new lesson.'
    ),
    WeatherConflict.ResolutionMethod.CANCELLED: 'Your lesson on {start} has been cancelled due to weather.',
    WeatherConflict.ResolutionMethod.MANUAL_OVERRIDE: 'The weather conflict for your lesson on {start} was resolved by the school.',
}

EMAIL_PROPOSAL_COUNT = 3


class ConflictNotificationService:
    """
    Service for conflict notifications.

    In-app rows are unique per (user, conflict, type, channel), so a
    re-delivered stage job does not duplicate them. Email failures are
    recorded on the email row and re-raised for the task retry policy.
    """

    # ==========================================================================
    # Stage entry points
    # ==========================================================================

    def notify_proposals_ready(self, conflict_id: UUID) -> Dict[str, Any]:
        """Tell both parties about the conflict and its proposals."""
        conflict = self._get_conflict(conflict_id)
        if conflict.status != WeatherConflict.Status.PROPOSALS_READY:
            logger.info(f"Conflict {conflict_id} is {conflict.status}, skipping proposal notifications")
            return {'in_app': 0, 'emails': 0}

        booking = conflict.booking
        proposals = list(conflict.proposals.order_by('-score', 'rank'))
        metadata = {
            'conflict_id': str(conflict.id),
            'booking_id': str(booking.id),
            'conflict_reasons': conflict.conflict_reasons,
            'proposal_ids': [str(p.id) for p in proposals],
        }
        start = self._format_time(booking.scheduled_start)

        in_app = 0
        emails = 0
        for role, user_id, profile in self._get_parties(conflict):
            in_app += self._create_in_app(
                user_id,
                conflict,
                Notification.NotificationType.WEATHER_CONFLICT,
                'Weather Conflict Detected',
                f"Your flight lesson on {start} has weather conflicts: "
                f"{'; '.join(conflict.conflict_reasons)}",
                metadata,
            )
            in_app += self._create_in_app(
                user_id,
                conflict,
                Notification.NotificationType.RESCHEDULE_PROPOSAL,
                'AI Reschedule Proposals Ready',
                f"{len(proposals)} alternative time slots are available for your lesson on {start}.",
                metadata,
            )

            context = {
                'recipient': profile,
                'role': role,
                'booking': booking,
                'aircraft': Aircraft.objects.filter(id=booking.aircraft_id).first(),
                'conflict_reasons': conflict.conflict_reasons,
                'proposals': proposals[:EMAIL_PROPOSAL_COUNT],
                'dashboard_url': self._dashboard_url(role),
            }
            emails += self._send_email(
                profile,
                conflict,
                Notification.NotificationType.WEATHER_CONFLICT,
                PROPOSALS_EMAIL_SUBJECT,
                'weather/emails/proposals_ready',
                context,
            )

        logger.info(
            f"Proposal notifications for conflict {conflict.id}: {in_app} in-app, {emails} emails",
            extra={'conflict_id': str(conflict.id)}
        )
        return {'in_app': in_app, 'emails': emails}

    def notify_resolution(self, conflict_id: UUID) -> Dict[str, Any]:
        """Tell both parties how the conflict was resolved."""
        conflict = self._get_conflict(conflict_id)
        if conflict.status != WeatherConflict.Status.RESOLVED:
            logger.info(f"Conflict {conflict_id} is {conflict.status}, skipping resolution notifications")
            return {'in_app': 0, 'emails': 0}

        booking = conflict.booking
        method = conflict.resolution_method
        if method == WeatherConflict.ResolutionMethod.RESCHEDULED:
            notification_type = Notification.NotificationType.RESCHEDULE_ACCEPTED
            title = 'Lesson Rescheduled'
        else:
            notification_type = Notification.NotificationType.CONFLICT_RESOLVED
            title = 'Weather Conflict Resolved'

        message = RESOLUTION_MESSAGES.get(method, RESOLUTION_MESSAGES[WeatherConflict.ResolutionMethod.MANUAL_OVERRIDE]).format(
            start=self._format_time(booking.scheduled_start),
        )
        metadata = {
            'conflict_id': str(conflict.id),
            'booking_id': str(booking.id),
            'resolution_method': method,
        }

        in_app = 0
        emails = 0
        for role, user_id, profile in self._get_parties(conflict):
            in_app += self._create_in_app(user_id, conflict, notification_type, title, message, metadata)

            context = {
                'recipient': profile,
                'role': role,
                'booking': booking,
                'resolution_method': method,
                'message': message,
                'dashboard_url': self._dashboard_url(role),
            }
            emails += self._send_email(
                profile,
                conflict,
                notification_type,
                RESOLUTION_EMAIL_SUBJECTS.get(method, title),
                'weather/emails/resolution',
                context,
            )

        logger.info(
            f"Resolution notifications for conflict {conflict.id} ({method}): {in_app} in-app, {emails} emails",
            extra={'conflict_id': str(conflict.id)}
        )
        return {'in_app': in_app, 'emails': emails}

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _get_conflict(conflict_id: UUID) -> WeatherConflict:
        from . import ConflictNotFoundError

        try:
            return WeatherConflict.objects.select_related('booking').get(id=conflict_id)
        except WeatherConflict.DoesNotExist:
            raise ConflictNotFoundError(f"Weather conflict {conflict_id} not found")

    @staticmethod
    def _get_parties(conflict: WeatherConflict) -> List[Tuple[str, UUID, Optional[UserProfile]]]:
        booking = conflict.booking
        profiles = UserProfile.objects.in_bulk([booking.student_id, booking.instructor_id])
        return [
            (UserProfile.Role.STUDENT, booking.student_id, profiles.get(booking.student_id)),
            (UserProfile.Role.INSTRUCTOR, booking.instructor_id, profiles.get(booking.instructor_id)),
        ]

    @staticmethod
    def _format_time(value) -> str:
        return timezone.localtime(value, ZoneInfo(settings.SCHOOL_TIME_ZONE)).strftime('%Y-%m-%d %H:%M %Z')

    @staticmethod
    def _dashboard_url(role: str) -> str:
        return f"{settings.APP_URL.rstrip('/')}/dashboard/{role}"

    @staticmethod
    def _create_in_app(
        user_id: UUID,
        conflict: WeatherConflict,
        notification_type: str,
        title: str,
        message: str,
        metadata: Dict[str, Any]
    ) -> int:
        _, created = Notification.objects.get_or_create(
            user_id=user_id,
            conflict_id=conflict.id,
            notification_type=notification_type,
            channel=Notification.Channel.IN_APP,
            defaults={
                'title': title,
                'message': message,
                'metadata': metadata,
                'status': Notification.Status.SENT,
                'sent_at': timezone.now(),
            }
        )
        return int(created)

    @staticmethod
    def _send_email(
        profile: Optional[UserProfile],
        conflict: WeatherConflict,
        notification_type: str,
        subject: str,
        template: str,
        context: Dict[str, Any]
    ) -> int:
        if profile is None or not profile.email:
            logger.warning(f"No email address on file for a party of conflict {conflict.id}")
            return 0
        if not profile.email_notifications:
            logger.debug(f"Email notifications disabled for user {profile.id}")
            return 0

        record, _ = Notification.objects.get_or_create(
            user_id=profile.id,
            conflict_id=conflict.id,
            notification_type=notification_type,
            channel=Notification.Channel.EMAIL,
            defaults={
                'title': subject,
                'message': '',
                'metadata': {'email': profile.email},
            }
        )
        if record.status == Notification.Status.SENT:
            return 0

        text_content = render_to_string(f'{template}.txt', context)
        html_content = render_to_string(f'{template}.html', context)

        try:
            email = EmailMultiAlternatives(
                subject=subject,
                body=text_content,
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[profile.email],
            )
            email.attach_alternative(html_content, 'text/html')
            email.send(fail_silently=False)
        except Exception as e:
            logger.error(
                f"Failed to email {profile.email} about conflict {conflict.id}: {e}",
                extra={'conflict_id': str(conflict.id)}
            )
            record.mark_failed(str(e))
            raise

        record.message = text_content
        record.save(update_fields=['message'])
        record.mark_sent()
        logger.info(f"Emailed {profile.email} about conflict {conflict.id}")
        return 1
