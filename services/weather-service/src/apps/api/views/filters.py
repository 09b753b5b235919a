# services/weather-service/src/apps/api/views/filters.py
"""
API Filters

Django Filter classes for the weather API.
"""

import django_filters

from apps.core.models import WeatherConflict


class WeatherConflictFilter(django_filters.FilterSet):
    """Filter for weather conflict queries."""

    status = django_filters.ChoiceFilter(
        choices=WeatherConflict.Status.choices
    )
    open = django_filters.BooleanFilter(
        method='filter_open'
    )
    booking = django_filters.UUIDFilter(
        field_name='booking_id'
    )
    student_id = django_filters.UUIDFilter(
        field_name='booking__student_id'
    )
    instructor_id = django_filters.UUIDFilter(
        field_name='booking__instructor_id'
    )
    detected_after = django_filters.DateTimeFilter(
        field_name='detected_at',
        lookup_expr='gte'
    )
    detected_before = django_filters.DateTimeFilter(
        field_name='detected_at',
        lookup_expr='lte'
    )

    class Meta:
        model = WeatherConflict
        fields = ['status', 'resolution_method']

    def filter_open(self, queryset, name, value):
        if value:
            return queryset.exclude(status=WeatherConflict.Status.RESOLVED)
        return queryset.filter(status=WeatherConflict.Status.RESOLVED)
