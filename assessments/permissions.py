from rest_framework import permissions


class IsStudent(permissions.BasePermission):
    """
    Only students take tests. Admins manage and review them.
    """
    message = 'Only students can take tests'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'is_student', False))
