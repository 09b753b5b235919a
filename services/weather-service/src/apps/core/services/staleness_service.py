# services/weather-service/src/apps/core/services/staleness_service.py
"""
Staleness Service

Finds conflicts stuck before proposals_ready and re-drives the ranking
stage for them.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.events import Stage, stage_dispatcher
from apps.core.models import WeatherConflict

logger = logging.getLogger(__name__)


class StalenessService:
    """Service for stale conflict monitoring."""

    def __init__(self):
        self.grace = timedelta(minutes=settings.STALE_CONFLICT_GRACE_MINUTES)
        self.max_redrives = settings.MAX_CONFLICT_REDRIVES

    def find_stale_conflicts(self, now: datetime = None, grace: timedelta = None) -> List[WeatherConflict]:
        """Detected or ai_processing conflicts with no progress within the grace period."""
        now = now or timezone.now()
        cutoff = now - (grace if grace is not None else self.grace)

        pending = (
            WeatherConflict.objects
            .filter(status__in=[WeatherConflict.Status.DETECTED, WeatherConflict.Status.AI_PROCESSING])
            .select_related('booking')
            .order_by('detected_at')
        )
        return [c for c in pending if c.last_progress_at < cutoff]

    def redrive(self, now: datetime = None) -> Dict[str, Any]:
        """Re-dispatch ranking for each stale conflict, up to the re-drive limit."""
        now = now or timezone.now()
        redriven = []
        exhausted = []

        for conflict in self.find_stale_conflicts(now):
            if conflict.redrive_count >= self.max_redrives:
                logger.error(
                    f"Conflict {conflict.id} stuck in {conflict.status} after "
                    f"{conflict.redrive_count} re-drives",
                    extra={'conflict_id': str(conflict.id), 'booking_id': str(conflict.booking_id)}
                )
                exhausted.append(str(conflict.id))
                continue

            logger.warning(
                f"Stale conflict {conflict.id} in {conflict.status} since "
                f"{conflict.last_progress_at.isoformat()}, re-driving ranking",
                extra={'conflict_id': str(conflict.id), 'booking_id': str(conflict.booking_id)}
            )
            with transaction.atomic():
                conflict.redrive_count += 1
                conflict.last_redriven_at = now
                conflict.save(update_fields=['redrive_count', 'last_redriven_at', 'updated_at'])
                stage_dispatcher.dispatch(Stage.RANK_PROPOSALS, conflict.id)
            redriven.append(str(conflict.id))

        return {'redriven': redriven, 'exhausted': exhausted}
