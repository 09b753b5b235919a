# services/weather-service/src/apps/api/serializers/conflict_serializers.py
"""
Conflict Serializers

Serializers for weather conflicts and reschedule proposals.
"""

from rest_framework import serializers

from apps.core.models import Booking, RescheduleProposal, WeatherConflict


class BookingSummarySerializer(serializers.ModelSerializer):
    """Booking fields shown alongside a conflict."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )

    class Meta:
        model = Booking
        fields = [
            'id', 'student_id', 'instructor_id', 'aircraft_id',
            'scheduled_start', 'scheduled_end',
            'departure_airport', 'destination_airport', 'route_waypoints',
            'flight_type', 'status', 'status_display',
            'last_weather_check',
        ]
        read_only_fields = fields


class RescheduleProposalSerializer(serializers.ModelSerializer):
    """Reschedule proposal with both party responses."""

    class Meta:
        model = RescheduleProposal
        fields = [
            'id', 'conflict', 'rank',
            'proposed_start', 'proposed_end',
            'proposed_instructor_id', 'proposed_aircraft_id',
            'score', 'reasoning',
            'student_response', 'student_responded_at',
            'instructor_response', 'instructor_responded_at',
            'accepted_at', 'created_at',
        ]
        read_only_fields = fields


class WeatherConflictListSerializer(serializers.ModelSerializer):
    """Compact conflict representation for lists."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    departure_airport = serializers.CharField(
        source='booking.departure_airport',
        read_only=True
    )
    scheduled_start = serializers.DateTimeField(
        source='booking.scheduled_start',
        read_only=True
    )

    class Meta:
        model = WeatherConflict
        fields = [
            'id', 'booking', 'departure_airport', 'scheduled_start',
            'status', 'status_display', 'detected_at',
            'conflict_reasons', 'resolution_method', 'resolved_at',
        ]
        read_only_fields = fields


class WeatherConflictDetailSerializer(serializers.ModelSerializer):
    """Full conflict with booking, weather snapshot and proposals."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    booking = BookingSummarySerializer(read_only=True)
    proposals = RescheduleProposalSerializer(many=True, read_only=True)

    class Meta:
        model = WeatherConflict
        fields = [
            'id', 'booking', 'status', 'status_display',
            'detected_at', 'weather_data', 'conflict_reasons',
            'resolution_method', 'resolved_at',
            'ai_processing_started_at', 'ai_processing_completed_at',
            'ai_processing_duration_ms',
            'redrive_count', 'last_redriven_at',
            'proposals',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProposalResponseSerializer(serializers.Serializer):
    """Serializer for a party's response to a proposal."""

    party = serializers.ChoiceField(choices=RescheduleProposal.Party.choices)
    decision = serializers.ChoiceField(choices=[
        RescheduleProposal.Response.ACCEPTED,
        RescheduleProposal.Response.REJECTED,
    ])


class CancelHeldBookingSerializer(serializers.Serializer):
    """Serializer for cancelling the lesson behind a conflict."""

    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=500
    )
