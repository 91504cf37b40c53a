from rest_framework import permissions

from core.exceptions import NotAuthorizedError

from .models import Mosque


def is_mosque_admin(user, mosque: Mosque) -> bool:
    """A mosque is administered by its owning user and by platform admins."""
    if not user or not user.is_authenticated:
        return False
    return user.is_platform_admin or mosque.user_id == user.pk


def ensure_mosque_admin(user, mosque: Mosque) -> None:
    if not is_mosque_admin(user, mosque):
        raise NotAuthorizedError("Only administrators of this mosque can perform this action.")


class IsMosqueAdminOrReadOnly(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_mosque_admin(request.user, obj)
