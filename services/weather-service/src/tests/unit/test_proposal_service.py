# services/weather-service/src/tests/unit/test_proposal_service.py
"""
Unit Tests for Proposal Responses and Conflict Resolution
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest

from apps.core.events import Stage, stage_dispatcher
from apps.core.models import Booking, RescheduleProposal, WeatherConflict
from apps.core.services import (
    ProposalService,
    ConflictNotFoundError,
    ConflictStateError,
    ProposalNotFoundError,
    ProposalStateError,
)


@pytest.mark.django_db
class TestProposalResponses:
    """Tests for ProposalService.respond."""

    def setup_method(self):
        self.service = ProposalService()

    @pytest.fixture
    def ready_conflict(self, create_conflict, create_proposal):
        conflict = create_conflict(status=WeatherConflict.Status.PROPOSALS_READY)
        create_proposal(conflict, rank=1, score=90)
        create_proposal(
            conflict,
            rank=2,
            score=75,
            proposed_start=conflict.booking.scheduled_start + timedelta(days=2),
        )
        return conflict

    def test_student_accepts(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=2)

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            result = self.service.respond(proposal.id, 'student', 'accepted')

        assert result.student_response == RescheduleProposal.Response.ACCEPTED
        assert result.student_responded_at is not None
        assert result.accepted_at is not None
        assert result.instructor_response == RescheduleProposal.Response.PENDING

        booking = Booking.objects.get(id=ready_conflict.booking_id)
        assert booking.status == Booking.Status.SCHEDULED
        assert booking.scheduled_start == proposal.proposed_start
        assert booking.scheduled_end == proposal.proposed_end

        ready_conflict.refresh_from_db()
        assert ready_conflict.status == WeatherConflict.Status.RESOLVED
        assert ready_conflict.resolution_method == WeatherConflict.ResolutionMethod.RESCHEDULED
        assert ready_conflict.resolved_at is not None
        mock_dispatch.assert_called_once_with(Stage.NOTIFY_RESOLUTION, ready_conflict.id)

    def test_instructor_accepts(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=1)

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.respond(proposal.id, 'instructor', 'accepted')

        proposal.refresh_from_db()
        assert proposal.instructor_response == RescheduleProposal.Response.ACCEPTED
        ready_conflict.refresh_from_db()
        assert ready_conflict.resolution_method == WeatherConflict.ResolutionMethod.RESCHEDULED

    def test_accept_fails_when_slot_taken(self, ready_conflict, create_booking, instructor_id):
        proposal = ready_conflict.proposals.get(rank=1)
        create_booking(
            student_id=uuid.uuid4(),
            aircraft_id=uuid.uuid4(),
            instructor_id=instructor_id,
            scheduled_start=proposal.proposed_start + timedelta(minutes=30),
            scheduled_end=proposal.proposed_end + timedelta(minutes=30),
        )

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            with pytest.raises(ConflictStateError):
                self.service.respond(proposal.id, 'student', 'accepted')

        mock_dispatch.assert_not_called()
        proposal.refresh_from_db()
        assert proposal.student_response == RescheduleProposal.Response.PENDING
        assert Booking.objects.get(id=ready_conflict.booking_id).status == Booking.Status.WEATHER_HOLD
        ready_conflict.refresh_from_db()
        assert ready_conflict.status == WeatherConflict.Status.PROPOSALS_READY

    def test_accept_allows_adjacent_booking(self, ready_conflict, create_booking, aircraft_id):
        proposal = ready_conflict.proposals.get(rank=1)
        create_booking(
            student_id=uuid.uuid4(),
            instructor_id=uuid.uuid4(),
            aircraft_id=aircraft_id,
            scheduled_start=proposal.proposed_end,
            scheduled_end=proposal.proposed_end + timedelta(hours=2),
        )

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.respond(proposal.id, 'student', 'accepted')

        assert Booking.objects.get(id=ready_conflict.booking_id).scheduled_start == proposal.proposed_start

    def test_rejection_only_records_response(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=1)
        original_start = ready_conflict.booking.scheduled_start

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            result = self.service.respond(proposal.id, 'student', 'rejected')

        assert result.student_response == RescheduleProposal.Response.REJECTED
        assert result.accepted_at is None
        ready_conflict.refresh_from_db()
        assert ready_conflict.status == WeatherConflict.Status.PROPOSALS_READY
        booking = Booking.objects.get(id=ready_conflict.booking_id)
        assert booking.status == Booking.Status.WEATHER_HOLD
        assert booking.scheduled_start == original_start
        mock_dispatch.assert_not_called()

    def test_other_party_can_accept_after_rejection(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=1)

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.respond(proposal.id, 'student', 'rejected')
            self.service.respond(proposal.id, 'instructor', 'accepted')

        ready_conflict.refresh_from_db()
        assert ready_conflict.status == WeatherConflict.Status.RESOLVED

    def test_party_responds_once(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=1)

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.respond(proposal.id, 'student', 'rejected')
            with pytest.raises(ProposalStateError):
                self.service.respond(proposal.id, 'student', 'accepted')

        proposal.refresh_from_db()
        assert proposal.student_response == RescheduleProposal.Response.REJECTED

    def test_no_response_after_resolution(self, ready_conflict):
        first = ready_conflict.proposals.get(rank=1)
        second = ready_conflict.proposals.get(rank=2)

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.respond(first.id, 'student', 'accepted')
            with pytest.raises(ProposalStateError):
                self.service.respond(second.id, 'instructor', 'accepted')

        booking = Booking.objects.get(id=ready_conflict.booking_id)
        assert booking.scheduled_start == first.proposed_start

    def test_conflict_still_processing(self, create_conflict, create_proposal):
        conflict = create_conflict(status=WeatherConflict.Status.AI_PROCESSING)
        proposal = create_proposal(conflict)

        with pytest.raises(ProposalStateError):
            self.service.respond(proposal.id, 'student', 'accepted')

    def test_unknown_party(self, ready_conflict):
        proposal = ready_conflict.proposals.get(rank=1)

        with pytest.raises(ProposalStateError):
            self.service.respond(proposal.id, 'dispatcher', 'accepted')

    def test_proposal_not_found(self):
        with pytest.raises(ProposalNotFoundError):
            self.service.respond(uuid.uuid4(), 'student', 'accepted')

    def test_get_conflict_not_found(self):
        with pytest.raises(ConflictNotFoundError):
            self.service.get_conflict(uuid.uuid4())


@pytest.mark.django_db
class TestCancelHeldBooking:
    """Tests for ProposalService.cancel_held_booking."""

    def setup_method(self):
        self.service = ProposalService()

    def test_cancels_booking_and_resolves(self, create_conflict):
        conflict = create_conflict(status=WeatherConflict.Status.PROPOSALS_READY)
        admin_id = uuid.uuid4()

        with patch.object(stage_dispatcher, 'dispatch') as mock_dispatch:
            result = self.service.cancel_held_booking(conflict.id, cancelled_by=admin_id)

        assert result.status == WeatherConflict.Status.RESOLVED
        assert result.resolution_method == WeatherConflict.ResolutionMethod.CANCELLED
        booking = Booking.objects.get(id=conflict.booking_id)
        assert booking.status == Booking.Status.CANCELLED
        assert booking.cancelled_by == admin_id
        assert booking.cancellation_reason == 'Cancelled due to weather'
        assert booking.cancelled_at is not None
        mock_dispatch.assert_called_once_with(Stage.NOTIFY_RESOLUTION, conflict.id)

    def test_custom_reason(self, create_conflict):
        conflict = create_conflict()

        with patch.object(stage_dispatcher, 'dispatch'):
            self.service.cancel_held_booking(conflict.id, reason='Student unavailable all week')

        booking = Booking.objects.get(id=conflict.booking_id)
        assert booking.cancellation_reason == 'Student unavailable all week'

    def test_resolved_conflict(self, create_conflict):
        conflict = create_conflict(
            status=WeatherConflict.Status.RESOLVED,
            resolution_method=WeatherConflict.ResolutionMethod.NO_SLOTS_AVAILABLE,
        )

        with pytest.raises(ConflictStateError):
            self.service.cancel_held_booking(conflict.id)

        assert Booking.objects.get(id=conflict.booking_id).status == Booking.Status.WEATHER_HOLD

    def test_booking_not_on_hold(self, create_booking, create_conflict):
        booking = create_booking(status=Booking.Status.COMPLETED)
        conflict = create_conflict(booking=booking)

        with pytest.raises(ConflictStateError):
            self.service.cancel_held_booking(conflict.id)

        conflict.refresh_from_db()
        assert conflict.status == WeatherConflict.Status.DETECTED

    def test_conflict_not_found(self):
        with pytest.raises(ConflictNotFoundError):
            self.service.cancel_held_booking(uuid.uuid4())
