"""Custom DRF permissions for staff endpoints."""
from rest_framework.permissions import BasePermission


class IsAdmin(BasePermission):
    """Allow access to users with the admin role."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == 'admin'


class IsComfortProOrAdmin(BasePermission):
    """Allow access to comfort pros and admins."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in ('admin', 'comfort_pro')


class IsAssignedComfortProOrStaff(BasePermission):
    """Object-level: comfort pros may only act on their own estimates."""

    def has_object_permission(self, request, view, obj):
        if request.user.role == 'comfort_pro':
            return obj.assigned_to_id == request.user.pk
        return True
