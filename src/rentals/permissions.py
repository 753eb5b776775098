from rest_framework import permissions


def is_admin(user):
    return bool(user and user.is_authenticated and getattr(user, "is_admin", False))


class IsAdminRole(permissions.BasePermission):
    """Only users with the ADMIN role (or staff)."""
    message = "Administrator access required."

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsAdminOrReadOnly(permissions.BasePermission):
    """Read for everyone; write only for administrators."""
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_admin(request.user)


class IsRentalOwnerOrAdmin(permissions.BasePermission):
    """Rental is visible and editable by the renting user or an administrator."""
    message = "You are not allowed to access this rental."

    def has_object_permission(self, request, view, obj):
        return obj.user_id == getattr(request.user, "id", None) or is_admin(request.user)
