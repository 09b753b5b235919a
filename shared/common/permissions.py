# shared/common/permissions.py
"""
Role permissions.
"""

from rest_framework import permissions


class IsSchoolAdmin(permissions.BasePermission):
    """Scheduling staff and administrators."""

    message = 'Only scheduling staff can perform this action.'

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'is_staff_member', False))
