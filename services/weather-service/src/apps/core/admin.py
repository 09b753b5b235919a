from django.contrib import admin
from .models import (
    Aircraft,
    AvailabilityPattern,
    Booking,
    Notification,
    RescheduleProposal,
    UserProfile,
    WeatherConflict,
)


class RescheduleProposalInline(admin.TabularInline):
    model = RescheduleProposal
    extra = 0
    readonly_fields = ['rank', 'proposed_start', 'proposed_end', 'score', 'reasoning']

@admin.register(WeatherConflict)
class WeatherConflictAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'status', 'resolution_method', 'detected_at', 'redrive_count']
    list_filter = ['status', 'resolution_method']
    inlines = [RescheduleProposalInline]

@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'departure_airport', 'flight_type', 'status', 'scheduled_start', 'scheduled_end']
    list_filter = ['status', 'flight_type']

@admin.register(AvailabilityPattern)
class AvailabilityPatternAdmin(admin.ModelAdmin):
    list_display = ['id', 'instructor_id', 'day_of_week', 'start_time', 'end_time', 'is_recurring']

@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['id', 'full_name', 'role', 'training_level', 'email_notifications']

@admin.register(Aircraft)
class AircraftAdmin(admin.ModelAdmin):
    list_display = ['id', 'tail_number', 'make', 'model']

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user_id', 'notification_type', 'channel', 'status', 'created_at']
    list_filter = ['notification_type', 'channel', 'status']
