# ctam_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ctam_core.iam.access import AccessPolicy, ActorScope
from ctam_core.iam.api.schema_serializers import MeResponseSerializer
from ctam_core.iam.models import Role
from ctam_core.iam.selectors import profile_for_user
from ctam_core.organizations.selectors import load_hierarchy


def _name(obj):
    return getattr(obj, "name", None) if obj is not None else None


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Identity, role and organizational scope of the caller.
        Works for users without a profile too (role=null) so the UI can
        show a "pending activation" screen instead of an error.
        """
        user = request.user
        profile = profile_for_user(user)

        role = profile.role if profile else (Role.CENTRAL_ADMIN if user.is_superuser else None)

        pinned_level = None
        if role:
            hierarchy = load_hierarchy()
            scope = ActorScope.resolve(
                role=role,
                hierarchy=hierarchy,
                unit_id=getattr(profile, "unit_id", None),
                province_id=getattr(profile, "province_id", None),
                region_id=getattr(profile, "health_region_id", None),
            )
            pinned_level = AccessPolicy(scope, hierarchy).pinned_level().value

        return Response(
            {
                "user": {
                    "id": user.id,
                    "username": getattr(user, "username", None),
                    "email": getattr(user, "email", None) or None,
                    "is_superuser": bool(getattr(user, "is_superuser", False)),
                },
                "role": role,
                "full_name": getattr(profile, "full_name", "") or "",
                "scope": {
                    "unit_id": getattr(profile, "unit_id", None),
                    "unit_name": _name(getattr(profile, "unit", None)),
                    "province_id": getattr(profile, "province_id", None),
                    "province_name": _name(getattr(profile, "province", None)),
                    "health_region_id": getattr(profile, "health_region_id", None),
                    "health_region_name": _name(getattr(profile, "health_region", None)),
                },
                "pinned_level": pinned_level,
            },
            status=status.HTTP_200_OK,
        )
