# services/weather-service/src/apps/core/events.py
"""
Weather Service Stage Dispatch

Pipeline stages hand work to each other as fire-and-forget Celery jobs
carrying a JSON payload of ``{"conflict_id": ...}``. Jobs are published
only after the surrounding transaction commits; consumers deduplicate
against the conflict status.
"""

import logging
from typing import Any, Dict
from uuid import UUID

from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)


class Stage:
    """Stage constants for the conflict pipeline."""

    RANK_PROPOSALS = 'conflict.rank_proposals'
    NOTIFY_PROPOSALS = 'conflict.notify_proposals'
    NOTIFY_RESOLUTION = 'conflict.notify_resolution'


class StageDispatcher:
    """
    Publishes pipeline stage jobs.

    A failed publish is logged; the conflict stays in its last committed
    state and is picked up by the stale-conflict re-drive.
    """

    def __init__(self):
        self.service_name = 'weather-service'
        self.enabled = getattr(settings, 'STAGE_DISPATCH_ENABLED', True)

    def dispatch(self, stage: str, conflict_id: UUID) -> None:
        """Publish ``stage`` for a conflict once the current transaction commits."""
        payload = {'conflict_id': str(conflict_id)}

        if not self.enabled:
            logger.debug(f"Stage dispatch disabled, skipping: {stage}")
            return

        transaction.on_commit(lambda: self._publish(stage, payload))

    def _publish(self, stage: str, payload: Dict[str, Any]) -> bool:
        from apps.core import tasks

        stage_tasks = {
            Stage.RANK_PROPOSALS: tasks.generate_reschedule_proposals,
            Stage.NOTIFY_PROPOSALS: tasks.send_conflict_notifications,
            Stage.NOTIFY_RESOLUTION: tasks.send_resolution_notifications,
        }

        task = stage_tasks.get(stage)
        if task is None:
            logger.error(f"Unknown pipeline stage: {stage}")
            return False

        try:
            logger.info(f"Dispatching stage: {stage}", extra={
                'stage': stage,
                'conflict_id': payload['conflict_id'],
                'service': self.service_name,
            })
            task.apply_async(kwargs=payload)
            return True

        except Exception as e:
            logger.error(f"Failed to dispatch {stage} for conflict {payload['conflict_id']}: {e}")
            return False


# Global dispatcher instance
stage_dispatcher = StageDispatcher()
