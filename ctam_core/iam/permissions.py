# ctam_core/iam/permissions.py

from __future__ import annotations

from rest_framework.permissions import SAFE_METHODS, BasePermission

from ctam_core.iam.models import Role
from ctam_core.iam.selectors import profile_for_user

ALL_ROLES = frozenset(Role.values)
EDITOR_ROLES = frozenset({Role.HOSPITAL_IT, Role.HEALTH_OFFICE, Role.CENTRAL_ADMIN})


def _user_role(user) -> str | None:
    """
    Resolve the role from the user's active profile.
    Superuser without a profile is treated as central admin.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None

    profile = profile_for_user(user)
    if profile is not None:
        return profile.role

    if getattr(user, "is_superuser", False):
        return Role.CENTRAL_ADMIN
    return None


class BaseRolePermission(BasePermission):
    """
    Coarse role gate per ViewSet action. Scope checks (which unit) are done
    by AccessPolicy in selectors/services.

    - Unknown action on a SAFE method falls back to list/retrieve.
    - Unknown action otherwise is denied.
    """
    message = "You do not have permission to perform this action."

    allowed_roles_per_action: dict[str, frozenset] = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
    }

    def has_permission(self, request, view) -> bool:
        role = _user_role(request.user)
        if role is None:
            return False

        action = getattr(view, "action", None)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            is_detail = "pk" in (getattr(view, "kwargs", {}) or {})
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is None:
            return False
        return role in allowed

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class HasProfile(BaseRolePermission):
    """Any active role, read-only endpoints."""
