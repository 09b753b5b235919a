# services/weather-service/src/apps/core/services/proposal_service.py
"""
Proposal Service

Party responses to reschedule proposals and the resulting booking and
conflict transitions.
"""

import logging
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.core.events import Stage, stage_dispatcher
from apps.core.models import Booking, RescheduleProposal, WeatherConflict
from .slot_service import SlotFinderService

logger = logging.getLogger(__name__)


class ProposalService:
    """
    Service for resolving weather conflicts.

    The first accepting party commits the reschedule. A rejection only
    records that party's response.
    """

    def get_conflict(self, conflict_id: UUID) -> WeatherConflict:
        from . import ConflictNotFoundError

        try:
            return (
                WeatherConflict.objects
                .select_related('booking')
                .prefetch_related('proposals')
                .get(id=conflict_id)
            )
        except WeatherConflict.DoesNotExist:
            raise ConflictNotFoundError(f"Weather conflict {conflict_id} not found")

    def get_proposal(self, proposal_id: UUID) -> RescheduleProposal:
        from . import ProposalNotFoundError

        try:
            return RescheduleProposal.objects.select_related('conflict__booking').get(id=proposal_id)
        except RescheduleProposal.DoesNotExist:
            raise ProposalNotFoundError(f"Reschedule proposal {proposal_id} not found")

    @transaction.atomic
    def respond(
        self,
        proposal_id: UUID,
        party: str,
        decision: str,
        responded_by: UUID = None
    ) -> RescheduleProposal:
        """
        Record a student or instructor response to a proposal.

        Acceptance moves the booking to the proposed time and resolves the
        conflict as rescheduled.
        """
        from . import ProposalNotFoundError, ProposalStateError

        try:
            proposal = (
                RescheduleProposal.objects
                .select_for_update()
                .get(id=proposal_id)
            )
        except RescheduleProposal.DoesNotExist:
            raise ProposalNotFoundError(f"Reschedule proposal {proposal_id} not found")

        conflict = WeatherConflict.objects.select_for_update().get(id=proposal.conflict_id)
        if conflict.status != WeatherConflict.Status.PROPOSALS_READY:
            raise ProposalStateError(
                f"Conflict {conflict.id} is {conflict.status}, proposals can no longer be answered"
            )

        now = timezone.now()
        try:
            proposal.record_response(party, decision, now)
        except ValueError as e:
            raise ProposalStateError(str(e))

        logger.info(
            f"{party.capitalize()} {decision} proposal {proposal.id} for conflict {conflict.id}",
            extra={'conflict_id': str(conflict.id), 'proposal_id': str(proposal.id), 'responded_by': str(responded_by)}
        )

        if decision == RescheduleProposal.Response.ACCEPTED:
            self._apply_reschedule(conflict, proposal, now)

        return proposal

    def _apply_reschedule(self, conflict: WeatherConflict, proposal: RescheduleProposal, now):
        from . import ConflictStateError

        booking = Booking.objects.select_for_update().get(id=conflict.booking_id)
        taken = SlotFinderService.blocking_bookings(
            proposal.proposed_instructor_id,
            proposal.proposed_aircraft_id,
            proposal.proposed_start,
            proposal.proposed_end,
        ).exclude(id=booking.id)
        if taken.exists():
            raise ConflictStateError(
                f"Proposed slot {proposal.proposed_start.isoformat()} is no longer free for the instructor or aircraft"
            )

        try:
            booking.reschedule(
                proposal.proposed_start,
                proposal.proposed_end,
                instructor_id=proposal.proposed_instructor_id,
                aircraft_id=proposal.proposed_aircraft_id,
            )
        except ValueError as e:
            raise ConflictStateError(str(e))

        conflict.resolve(WeatherConflict.ResolutionMethod.RESCHEDULED, now)
        stage_dispatcher.dispatch(Stage.NOTIFY_RESOLUTION, conflict.id)

        logger.info(
            f"Booking {booking.id} rescheduled to {proposal.proposed_start.isoformat()}",
            extra={'conflict_id': str(conflict.id), 'booking_id': str(booking.id)}
        )

    @transaction.atomic
    def cancel_held_booking(
        self,
        conflict_id: UUID,
        cancelled_by: UUID = None,
        reason: str = None
    ) -> WeatherConflict:
        """Cancel the lesson behind an open conflict instead of rescheduling it."""
        from . import ConflictNotFoundError, ConflictStateError

        try:
            conflict = WeatherConflict.objects.select_for_update().get(id=conflict_id)
        except WeatherConflict.DoesNotExist:
            raise ConflictNotFoundError(f"Weather conflict {conflict_id} not found")

        if not conflict.is_open:
            raise ConflictStateError(f"Conflict {conflict_id} is already resolved")

        booking = Booking.objects.select_for_update().get(id=conflict.booking_id)
        try:
            booking.cancel(cancelled_by=cancelled_by, reason=reason or 'Cancelled due to weather')
        except ValueError as e:
            raise ConflictStateError(str(e))

        conflict.resolve(WeatherConflict.ResolutionMethod.CANCELLED)
        stage_dispatcher.dispatch(Stage.NOTIFY_RESOLUTION, conflict.id)

        logger.info(
            f"Booking {booking.id} cancelled for conflict {conflict.id}",
            extra={'conflict_id': str(conflict.id), 'booking_id': str(booking.id)}
        )
        return conflict
