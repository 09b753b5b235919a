# services/weather-service/src/apps/core/tasks.py
"""
Celery Tasks for Weather Service

Pipeline stages:
- Periodic weather check (beat, hourly)
- Reschedule proposal generation
- Proposal and resolution notifications
- Stale conflict re-drive (beat)
"""

import logging
from typing import Any, Dict

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=0)
def run_weather_check(self) -> Dict[str, Any]:
    """
    Run one detection pass over upcoming lessons.

    Per-booking failures are reported in the result instead of failing
    the whole pass.
    """
    from .services import ConflictDetectionService

    result = ConflictDetectionService().run_detection_pass()
    return result.to_dict()


@shared_task(bind=True, max_retries=1, default_retry_delay=60)
def generate_reschedule_proposals(self, conflict_id: str) -> Dict[str, Any]:
    """
    Find slots and rank proposals for a conflict.

    Args:
        conflict_id: UUID of the weather conflict
    """
    from .services import (
        ProposalRankingService,
        ConflictNotFoundError,
        RankingResponseError,
        ReasoningServiceError,
        WeatherProviderError,
    )

    try:
        proposals = ProposalRankingService().process_conflict(conflict_id)
        return {'success': True, 'proposals': [str(p.id) for p in proposals]}

    except ConflictNotFoundError:
        logger.error(f"Conflict not found: {conflict_id}")
        return {'success': False, 'error': 'Conflict not found'}

    except (ReasoningServiceError, WeatherProviderError) as e:
        logger.error(f"Proposal generation failed for conflict {conflict_id}: {e}")
        raise self.retry(exc=e)

    except RankingResponseError as e:
        logger.error(f"Ranking reply unusable for conflict {conflict_id}: {e}")
        raise


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def send_conflict_notifications(self, conflict_id: str) -> Dict[str, Any]:
    """
    Notify the student and instructor that proposals are ready.

    Args:
        conflict_id: UUID of the weather conflict
    """
    from .services import ConflictNotificationService, ConflictNotFoundError

    try:
        result = ConflictNotificationService().notify_proposals_ready(conflict_id)
        return {'success': True, **result}

    except ConflictNotFoundError:
        logger.error(f"Conflict not found: {conflict_id}")
        return {'success': False, 'error': 'Conflict not found'}

    except Exception as e:
        logger.error(f"Failed to send proposal notifications for conflict {conflict_id}: {e}")
        raise self.retry(exc=e)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def send_resolution_notifications(self, conflict_id: str) -> Dict[str, Any]:
    """
    Notify the student and instructor how a conflict was resolved.

    Args:
        conflict_id: UUID of the weather conflict
    """
    from .services import ConflictNotificationService, ConflictNotFoundError

    try:
        result = ConflictNotificationService().notify_resolution(conflict_id)
        return {'success': True, **result}

    except ConflictNotFoundError:
        logger.error(f"Conflict not found: {conflict_id}")
        return {'success': False, 'error': 'Conflict not found'}

    except Exception as e:
        logger.error(f"Failed to send resolution notifications for conflict {conflict_id}: {e}")
        raise self.retry(exc=e)


@shared_task
def redrive_stale_conflicts() -> Dict[str, Any]:
    """Re-dispatch ranking for conflicts stuck before proposals_ready."""
    from .services import StalenessService

    return StalenessService().redrive()
