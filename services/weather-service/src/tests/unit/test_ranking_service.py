# services/weather-service/src/tests/unit/test_ranking_service.py
"""
Unit Tests for Proposal Ranking

The reasoning service is replaced by a mock client returning chat
completion payloads.
"""

import json
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from apps.core.events import Stage, stage_dispatcher
from apps.core.models import RescheduleProposal, WeatherConflict
from apps.core.services import (
    CandidateSlot,
    ProposalRankingService,
    ConflictNotFoundError,
    RankingResponseError,
    ReasoningServiceError,
)


def completion(proposals):
    return {'choices': [{'message': {'content': json.dumps({'proposals': proposals})}}]}


def pick(slot_number, score, reasoning='Better weather expected.'):
    return {'slot_number': slot_number, 'score': score, 'reasoning': reasoning}


@pytest.mark.django_db
class TestProposalRankingService:
    """Tests for ProposalRankingService."""

    def setup_method(self):
        self.client = MagicMock()
        self.slot_finder = MagicMock()
        self.service = ProposalRankingService(client=self.client, slot_finder=self.slot_finder)

    def make_candidates(self, booking, count):
        first = datetime(2025, 6, 3, 8, 0, tzinfo=dt_timezone.utc)
        return [
            CandidateSlot(
                start=first + timedelta(hours=i),
                end=first + timedelta(hours=i) + booking.duration,
                instructor_id=booking.instructor_id,
                aircraft_id=booking.aircraft_id,
            )
            for i in range(count)
        ]

    def test_persists_ranked_proposals(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 5)
        self.slot_finder.find_candidate_slots.return_value = candidates
        self.client.create_chat_completion.return_value = completion([
            pick(4, 92, 'Front clears by Tuesday afternoon.'),
            pick(1, 85),
            pick(2, 70.5),
        ])

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            proposals = self.service.process_conflict(conflict.id, now=now)

        assert [p.rank for p in proposals] == [1, 2, 3]
        assert proposals[0].proposed_start == candidates[3].start
        assert proposals[0].proposed_end == candidates[3].end
        assert proposals[0].score == 92
        assert proposals[0].reasoning == 'Front clears by Tuesday afternoon.'
        assert proposals[2].score == 71

        conflict.refresh_from_db()
        assert conflict.status == WeatherConflict.Status.PROPOSALS_READY
        assert conflict.ai_processing_started_at == now
        assert conflict.ai_processing_completed_at == now
        assert conflict.ai_processing_duration_ms == 0
        assert conflict.proposals.count() == 3
        mock_dispatch.assert_called_once_with(Stage.NOTIFY_PROPOSALS, conflict.id)
        self.slot_finder.find_candidate_slots.assert_called_once()

    def test_request_carries_schema_and_prompt(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 2)
        self.client.create_chat_completion.return_value = completion([pick(1, 90), pick(2, 80)])

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.rank_and_persist(conflict, candidates, now=now)

        messages, schema = self.client.create_chat_completion.call_args[0]
        assert messages[0]['role'] == 'system'
        assert messages[1]['role'] == 'user'
        assert '1. 2025-06-03T08:00:00+00:00' in messages[1]['content']
        assert conflict.conflict_reasons[0] in messages[1]['content']
        assert schema['required'] == ['proposals']

    def test_drops_invalid_and_duplicate_picks(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 5)
        self.client.create_chat_completion.return_value = completion([
            pick(9, 99),
            pick(2, 88),
            pick(2, 87),
            {'slot_number': 3, 'reasoning': 'No score.'},
            pick(0, 80),
        ])

        with patch.object(stage_dispatcher, 'dispatch'):
            proposals = self.service.rank_and_persist(conflict, candidates, now=now)

        assert len(proposals) == 3
        assert proposals[0].proposed_start == candidates[1].start
        assert proposals[0].score == 88
        # Backfilled with the earliest unchosen slots
        assert proposals[1].proposed_start == candidates[0].start
        assert proposals[2].proposed_start == candidates[2].start
        assert proposals[1].score == 50
        assert proposals[2].score == 50

    def test_scores_clamped(self, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 3)

        picks = self.service.select_picks([pick(1, 150.4), pick(2, -3.6), pick(3, 87.5)], candidates)

        assert [p.score for p in picks] == [100, 0, 88]
        assert [p.candidate_index for p in picks] == [0, 1, 2]

    def test_fewer_candidates_than_proposals(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 2)
        self.client.create_chat_completion.return_value = completion([pick(1, 90), pick(2, 80), pick(3, 70)])

        with patch.object(stage_dispatcher, 'dispatch'):
            proposals = self.service.rank_and_persist(conflict, candidates, now=now)

        assert len(proposals) == 2

    def test_extra_picks_ignored(self, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 6)

        picks = self.service.select_picks([pick(i, 90 - i) for i in range(1, 7)], candidates)

        assert len(picks) == 3
        assert [p.candidate_index for p in picks] == [0, 1, 2]

    def test_no_candidates_resolves_conflict(self, now, create_conflict):
        conflict = create_conflict()
        self.slot_finder.find_candidate_slots.return_value = []

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            proposals = self.service.process_conflict(conflict.id, now=now)

        assert proposals == []
        conflict.refresh_from_db()
        assert conflict.status == WeatherConflict.Status.RESOLVED
        assert conflict.resolution_method == WeatherConflict.ResolutionMethod.NO_SLOTS_AVAILABLE
        assert conflict.resolved_at == now
        self.client.create_chat_completion.assert_not_called()
        mock_dispatch.assert_called_once_with(Stage.NOTIFY_RESOLUTION, conflict.id)

    def test_retries_unparseable_reply_once(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 3)
        self.client.create_chat_completion.side_effect = [
            {'choices': [{'message': {'content': 'Here are my picks: slot 1'}}]},
            completion([pick(3, 75)]),
        ]

        with patch.object(stage_dispatcher, 'dispatch'):
            proposals = self.service.rank_and_persist(conflict, candidates, now=now)

        assert self.client.create_chat_completion.call_count == 2
        assert proposals[0].proposed_start == candidates[2].start

    def test_unparseable_after_retry(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 3)
        self.client.create_chat_completion.return_value = {'choices': []}

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            with pytest.raises(RankingResponseError):
                self.service.rank_and_persist(conflict, candidates, now=now)

        assert self.client.create_chat_completion.call_count == 2
        assert RescheduleProposal.objects.filter(conflict=conflict).count() == 0
        mock_dispatch.assert_not_called()

    def test_wrong_top_level_shape(self):
        reply = {'choices': [{'message': {'content': json.dumps({'picks': []})}}]}

        with pytest.raises(RankingResponseError):
            ProposalRankingService.parse_ranking(reply)

    def test_transport_failure(self, now, create_conflict):
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 3)
        self.client.create_chat_completion.side_effect = httpx.ConnectError('connection refused')

        with pytest.raises(ReasoningServiceError):
            self.service.rank_and_persist(conflict, candidates, now=now)

        assert self.client.create_chat_completion.call_count == 1
        conflict.refresh_from_db()
        assert conflict.status == WeatherConflict.Status.AI_PROCESSING

    def test_redelivery_after_proposals_ready_is_noop(self, create_conflict, create_proposal):
        conflict = create_conflict(status=WeatherConflict.Status.PROPOSALS_READY)
        create_proposal(conflict)

        proposals = self.service.process_conflict(conflict.id)

        assert proposals == []
        assert conflict.proposals.count() == 1
        self.slot_finder.find_candidate_slots.assert_not_called()
        self.client.create_chat_completion.assert_not_called()

    def test_conflict_resolved_during_ranking(self, now, create_conflict):
        conflict = create_conflict(status=WeatherConflict.Status.AI_PROCESSING, ai_processing_started_at=now)
        candidates = self.make_candidates(conflict.booking, 3)
        self.client.create_chat_completion.return_value = completion([pick(1, 90)])
        WeatherConflict.objects.filter(id=conflict.id).update(
            status=WeatherConflict.Status.RESOLVED,
            resolution_method=WeatherConflict.ResolutionMethod.CANCELLED,
        )

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            proposals = self.service.rank_and_persist(conflict, candidates, now=now)

        assert proposals == []
        assert RescheduleProposal.objects.filter(conflict=conflict).count() == 0
        mock_dispatch.assert_not_called()

    def test_conflict_not_found(self):
        with pytest.raises(ConflictNotFoundError):
            self.service.process_conflict('00000000-0000-0000-0000-000000000000')

    def test_prompt_includes_lesson_context(
        self, create_conflict, create_user_profile, create_aircraft, student_id, aircraft_id
    ):
        create_user_profile(id=student_id, full_name='Amelia Student',
                            training_level='private_pilot')
        create_aircraft(id=aircraft_id, tail_number='N12345')
        conflict = create_conflict()
        candidates = self.make_candidates(conflict.booking, 2)

        prompt = self.service.build_prompt(conflict, candidates)

        assert 'Amelia Student (private_pilot)' in prompt
        assert 'N12345' in prompt
        assert 'Choose the 2 best slots' in prompt
        assert '(1-2)' in prompt
