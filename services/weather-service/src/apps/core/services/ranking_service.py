# services/weather-service/src/apps/core/services/ranking_service.py
"""
Proposal Ranking Service

Sends candidate slots and lesson context to the reasoning service and
persists the ranked reschedule proposals.
"""

import json
import logging
from datetime import datetime
from typing import List, NamedTuple

import httpx
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.clients import ReasoningServiceClient
from apps.core.events import Stage, stage_dispatcher
from apps.core.models import Aircraft, RescheduleProposal, UserProfile, WeatherConflict
from apps.core.serializers import (
    ChatCompletionSerializer,
    RankedPickSerializer,
    RankingResponseSerializer,
)
from shared.common.clients import CircuitBreakerError
from .slot_service import CandidateSlot, SlotFinderService
from .weather_service import round_half_up

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    'You are an expert flight scheduler with deep knowledge of aviation weather '
    'and training requirements. Always respond with valid JSON only.'
)

RANKING_RESPONSE_SCHEMA = {
    'type': 'object',
    'properties': {
        'proposals': {
            'type': 'array',
            'items': {
                'type': 'object',
                'properties': {
                    'slot_number': {'type': 'integer'},
                    'score': {'type': 'number'},
                    'reasoning': {'type': 'string'},
                },
                'required': ['slot_number', 'score', 'reasoning'],
                'additionalProperties': False,
            },
        },
    },
    'required': ['proposals'],
    'additionalProperties': False,
}

# Attempts at getting a parseable reply (one retry)
RANKING_ATTEMPTS = 2

FALLBACK_REASONING = 'Earliest remaining available slot; added to complete the proposal set.'


class RankedPick(NamedTuple):
    candidate_index: int
    score: int
    reasoning: str


class ProposalRankingService:
    """
    Service for AI ranking of reschedule candidates.

    Handles:
    - Stage entry for a conflict (idempotent per conflict id)
    - Building the ranking request
    - Strict parsing with one retry
    - Dropping invalid picks and completing the proposal set
    - Persisting proposals with the proposals_ready transition
    """

    def __init__(self, client: ReasoningServiceClient = None, slot_finder: SlotFinderService = None):
        self.client = client or ReasoningServiceClient()
        self.slot_finder = slot_finder or SlotFinderService()
        self.proposals_per_conflict = settings.PROPOSALS_PER_CONFLICT
        self.fallback_score = settings.FALLBACK_PROPOSAL_SCORE

    # ==========================================================================
    # Stage entry
    # ==========================================================================

    def process_conflict(self, conflict_id, now: datetime = None) -> List[RescheduleProposal]:
        """
        Run slot search and ranking for a conflict.

        No-op unless the conflict is detected or already in ai_processing.
        """
        from . import ConflictNotFoundError

        with transaction.atomic():
            try:
                conflict = (
                    WeatherConflict.objects
                    .select_for_update()
                    .select_related('booking')
                    .get(id=conflict_id)
                )
            except WeatherConflict.DoesNotExist:
                raise ConflictNotFoundError(f"Weather conflict {conflict_id} not found")

            if conflict.status not in [WeatherConflict.Status.DETECTED, WeatherConflict.Status.AI_PROCESSING]:
                logger.info(f"Conflict {conflict_id} is {conflict.status}, nothing to rank")
                return []

            conflict.start_processing(now)

        candidates = self.slot_finder.find_candidate_slots(conflict.booking, now=now)
        return self.rank_and_persist(conflict, candidates, now=now)

    def rank_and_persist(
        self,
        conflict: WeatherConflict,
        candidates: List[CandidateSlot],
        now: datetime = None
    ) -> List[RescheduleProposal]:
        """Persist min(3, len(candidates)) ranked proposals for a conflict."""
        if conflict.status == WeatherConflict.Status.DETECTED:
            conflict.start_processing(now)

        if not candidates:
            self._resolve_without_slots(conflict, now)
            return []

        picks = self.select_picks(self.request_ranking(conflict, candidates), candidates)

        with transaction.atomic():
            locked = WeatherConflict.objects.select_for_update().get(id=conflict.id)
            if locked.status != WeatherConflict.Status.AI_PROCESSING:
                logger.info(f"Conflict {conflict.id} moved to {locked.status} during ranking, discarding picks")
                return list(locked.proposals.all())

            proposals = [
                RescheduleProposal.objects.create(
                    conflict=locked,
                    rank=rank,
                    proposed_start=candidates[pick.candidate_index].start,
                    proposed_end=candidates[pick.candidate_index].end,
                    proposed_instructor_id=candidates[pick.candidate_index].instructor_id,
                    proposed_aircraft_id=candidates[pick.candidate_index].aircraft_id,
                    score=pick.score,
                    reasoning=pick.reasoning,
                )
                for rank, pick in enumerate(picks, start=1)
            ]
            locked.mark_proposals_ready(now or timezone.now())
            stage_dispatcher.dispatch(Stage.NOTIFY_PROPOSALS, locked.id)

        conflict.refresh_from_db()
        logger.info(
            f"Stored {len(proposals)} proposals for conflict {conflict.id} "
            f"in {conflict.ai_processing_duration_ms}ms",
            extra={'conflict_id': str(conflict.id)}
        )
        return proposals

    @transaction.atomic
    def _resolve_without_slots(self, conflict: WeatherConflict, now: datetime = None):
        conflict.resolve(WeatherConflict.ResolutionMethod.NO_SLOTS_AVAILABLE, now)
        stage_dispatcher.dispatch(Stage.NOTIFY_RESOLUTION, conflict.id)
        logger.info(
            f"No reschedule slots for conflict {conflict.id}, resolved as no_slots_available",
            extra={'conflict_id': str(conflict.id)}
        )

    # ==========================================================================
    # Reasoning service
    # ==========================================================================

    def request_ranking(self, conflict: WeatherConflict, candidates: List[CandidateSlot]) -> List[dict]:
        """Raw picks from the reasoning service, retrying once on a bad reply."""
        from . import ReasoningServiceError, RankingResponseError

        messages = [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': self.build_prompt(conflict, candidates)},
        ]

        last_error = None
        for attempt in range(1, RANKING_ATTEMPTS + 1):
            try:
                response = self.client.create_chat_completion(messages, RANKING_RESPONSE_SCHEMA)
            except (httpx.HTTPError, CircuitBreakerError, ValueError) as e:
                raise ReasoningServiceError(f"Reasoning service call failed: {e}") from e

            try:
                return self.parse_ranking(response)
            except RankingResponseError as e:
                last_error = e
                logger.warning(
                    f"Unparseable ranking reply for conflict {conflict.id} "
                    f"(attempt {attempt}/{RANKING_ATTEMPTS}): {e}",
                    extra={'conflict_id': str(conflict.id)}
                )

        raise RankingResponseError(
            f"Ranking reply for conflict {conflict.id} unparseable after {RANKING_ATTEMPTS} attempts: {last_error}"
        )

    @staticmethod
    def parse_ranking(response) -> List[dict]:
        """Strict JSON parse of a chat completion into raw pick dicts."""
        from . import RankingResponseError

        completion = ChatCompletionSerializer(data=response)
        if not completion.is_valid():
            raise RankingResponseError(f"Invalid completion payload: {completion.errors}")

        content = completion.validated_data['choices'][0]['message']['content']
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise RankingResponseError(f"Reply is not valid JSON: {e}") from e

        body = RankingResponseSerializer(data=data)
        if not body.is_valid():
            raise RankingResponseError(f"Reply does not match schema: {body.errors}")

        return body.validated_data['proposals']

    def select_picks(self, raw_picks: List[dict], candidates: List[CandidateSlot]) -> List[RankedPick]:
        """
        Validated picks, topped up with the earliest unchosen candidates.

        Out-of-range, malformed and duplicate picks are dropped. Scores are
        clamped to 0-100.
        """
        limit = min(self.proposals_per_conflict, len(candidates))
        context = {'candidate_count': len(candidates)}
        selected = []
        used = set()

        for raw in raw_picks:
            if len(selected) >= limit:
                break

            serializer = RankedPickSerializer(data=raw, context=context)
            if not serializer.is_valid():
                logger.warning(f"Dropping invalid ranking pick {raw!r}: {serializer.errors}")
                continue

            index = serializer.validated_data['slot_number'] - 1
            if index in used:
                logger.warning(f"Dropping duplicate ranking pick for slot {index + 1}")
                continue

            used.add(index)
            score = min(100, max(0, round_half_up(serializer.validated_data['score'])))
            selected.append(RankedPick(index, score, serializer.validated_data['reasoning']))

        for index in range(len(candidates)):
            if len(selected) >= limit:
                break
            if index not in used:
                used.add(index)
                selected.append(RankedPick(index, self.fallback_score, FALLBACK_REASONING))

        return selected

    def build_prompt(self, conflict: WeatherConflict, candidates: List[CandidateSlot]) -> str:
        booking = conflict.booking
        student = UserProfile.objects.filter(id=booking.student_id).first()
        instructor = UserProfile.objects.filter(id=booking.instructor_id).first()
        aircraft = Aircraft.objects.filter(id=booking.aircraft_id).first()

        route = booking.departure_airport
        if booking.destination_airport:
            route += f" -> Destination: {booking.destination_airport}"

        slot_lines = '\n'.join(
            f"{i}. {slot.start.isoformat()} - {slot.end.isoformat()}"
            for i, slot in enumerate(candidates, start=1)
        )
        reasons = '\n'.join(conflict.conflict_reasons)
        limit = min(self.proposals_per_conflict, len(candidates))

        return f"""A training flight has been cancelled due to weather conditions.

**Original Booking:**
- Student: {student.full_name if student else booking.student_id} ({student.training_level if student and student.training_level else 'student_pilot'})
- Instructor: {instructor.full_name if instructor else booking.instructor_id}
- Aircraft: {aircraft if aircraft else booking.aircraft_id}
- Originally scheduled: {booking.scheduled_start.isoformat()} - {booking.scheduled_end.isoformat()}
- Flight type: {booking.flight_type}
- Departure: {route}

**Weather Conflict Reasons:**
{reasons}

**Weather Data at Checkpoints:**
{json.dumps(conflict.weather_data, indent=2)}

**Available Time Slots:**
{slot_lines}

**Task:**
Choose the {limit} best slots from the list above. Consider:
1. Weather conditions are likely to improve (avoid similar conditions)
2. Student's training level requirements
3. Time of day (morning flights often have better weather)
4. Proximity to the original time
5. Weekend vs weekday (if the original was on a weekend, prefer a weekend)

For each pick give the slot number from the list (1-{len(candidates)}), a score from 0 to 100
(higher is better) and 2-3 sentences of reasoning.

Respond with JSON only:
{{"proposals": [{{"slot_number": 1, "score": 95, "reasoning": "..."}}]}}"""
