# services/weather-service/src/apps/api/views/conflict_views.py
"""
Conflict API Views

Views for weather conflicts, reschedule proposals and detection passes.
"""

import logging

from rest_framework import viewsets, mixins, status, filters
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import RescheduleProposal, WeatherConflict
from apps.core.services import (
    ConflictDetectionService,
    ProposalService,
    StalenessService,
    ConflictNotFoundError,
    ConflictStateError,
    ProposalNotFoundError,
    ProposalStateError,
)
from apps.core.tasks import run_weather_check
from apps.api.serializers import (
    RescheduleProposalSerializer,
    WeatherConflictListSerializer,
    WeatherConflictDetailSerializer,
    ProposalResponseSerializer,
    CancelHeldBookingSerializer,
    WeatherCheckRequestSerializer,
)
from shared.common.exceptions import (
    NotFoundException,
    ConflictResolvedException,
    ProposalAlreadyAnsweredException,
)
from shared.common.permissions import IsSchoolAdmin
from .filters import WeatherConflictFilter

logger = logging.getLogger(__name__)


class WeatherConflictViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for weather conflicts.

    Conflicts are created by the detection pass; the API only reads them
    and resolves them by cancellation.
    """

    queryset = WeatherConflict.objects.select_related('booking').prefetch_related('proposals')
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = WeatherConflictFilter
    ordering_fields = ['detected_at', 'resolved_at']
    ordering = ['-detected_at']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.proposal_service = ProposalService()

    def get_serializer_class(self):
        if self.action == 'list':
            return WeatherConflictListSerializer
        return WeatherConflictDetailSerializer

    @action(detail=False, methods=['get'], permission_classes=[IsSchoolAdmin])
    def stale(self, request):
        """Conflicts stuck before proposals_ready."""
        conflicts = StalenessService().find_stale_conflicts()
        serializer = WeatherConflictListSerializer(conflicts, many=True)
        return Response({
            'count': len(conflicts),
            'results': serializer.data,
        })

    @action(detail=True, methods=['post'], url_path='cancel-booking')
    def cancel_booking(self, request, pk=None):
        """Cancel the held lesson instead of rescheduling it."""
        serializer = CancelHeldBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            conflict = self.proposal_service.get_conflict(pk)
        except ConflictNotFoundError as e:
            raise NotFoundException(detail=str(e))

        participants = {str(conflict.booking.student_id), str(conflict.booking.instructor_id)}
        if str(request.user.id) not in participants and not request.user.is_staff_member:
            raise PermissionDenied("Only the lesson participants or scheduling staff can cancel it")

        try:
            self.proposal_service.cancel_held_booking(
                conflict_id=pk,
                cancelled_by=request.user.id,
                reason=serializer.validated_data.get('reason') or None
            )
        except ConflictNotFoundError as e:
            raise NotFoundException(detail=str(e))
        except ConflictStateError as e:
            raise ConflictResolvedException(detail=str(e))

        conflict = self.proposal_service.get_conflict(pk)
        return Response(WeatherConflictDetailSerializer(conflict).data)


class RescheduleProposalViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """ViewSet for reschedule proposals."""

    queryset = RescheduleProposal.objects.all()
    serializer_class = RescheduleProposalSerializer
    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.proposal_service = ProposalService()

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        """Accept or reject a proposal as the student or the instructor."""
        serializer = ProposalResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        try:
            booking = self.proposal_service.get_proposal(pk).conflict.booking
        except ProposalNotFoundError as e:
            raise NotFoundException(detail=str(e))

        party_id = booking.student_id if data['party'] == 'student' else booking.instructor_id
        is_party = request.user.has_role(data['party']) and str(request.user.id) == str(party_id)
        if not is_party and not request.user.is_staff_member:
            raise PermissionDenied(f"Only this lesson's {data['party']} can respond for the {data['party']}")

        try:
            proposal = self.proposal_service.respond(
                proposal_id=pk,
                party=data['party'],
                decision=data['decision'],
                responded_by=request.user.id
            )
        except ProposalNotFoundError as e:
            raise NotFoundException(detail=str(e))
        except (ProposalStateError, ConflictStateError) as e:
            raise ProposalAlreadyAnsweredException(detail=str(e))

        return Response(RescheduleProposalSerializer(proposal).data)


class WeatherCheckView(APIView):
    """
    Trigger a detection pass outside the hourly schedule.

    POST /api/v1/weather-checks/
    """

    permission_classes = [IsSchoolAdmin]

    def post(self, request):
        serializer = WeatherCheckRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if serializer.validated_data['run_inline']:
            result = ConflictDetectionService().run_detection_pass()
            return Response(result.to_dict())

        task = run_weather_check.delay()
        logger.info(f"Weather check queued by {request.user.id}: {task.id}")
        return Response(
            {'task_id': str(task.id), 'status': 'queued'},
            status=status.HTTP_202_ACCEPTED
        )
