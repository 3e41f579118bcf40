# ctam_core/evidence/api/views.py
from __future__ import annotations

from uuid import UUID

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from ctam_core.evidence.api.serializers import (
    EvidenceFileSerializer,
    EvidenceListingSerializer,
    EvidenceOwnerSerializer,
    EvidenceUploadSerializer,
)
from ctam_core.evidence.models import EvidenceFile
from ctam_core.evidence.services import EvidenceSync
from ctam_core.iam.api.auth import set_auth_cookies
from ctam_core.iam.permissions import ALL_ROLES, EDITOR_ROLES, BaseRolePermission
from ctam_core.iam.selectors import access_policy_for


class EvidencePermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "download": ALL_ROLES,
        "create": EDITOR_ROLES,
        "destroy": EDITOR_ROLES,
    }


class EvidenceFileViewSet(viewsets.GenericViewSet):
    """
    Evidence files:
    - list (by owner; degrades to available=false when the backend is down)
    - create (multipart upload)
    - download
    - destroy
    """
    serializer_class = EvidenceFileSerializer
    queryset = EvidenceFile.objects.none()
    permission_classes = [EvidencePermission]
    parser_classes = [MultiPartParser, FormParser]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def _sync(self) -> EvidenceSync:
        return EvidenceSync()

    @extend_schema(
        tags=["Evidence"],
        responses={200: EvidenceListingSerializer},
        parameters=[
            OpenApiParameter(name="owner_kind", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="owner_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="field_name", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        ser = EvidenceOwnerSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)

        listing = self._sync().list_for_owner(policy=access_policy_for(request.user), owner=ser.to_owner())
        return Response(
            {
                "available": listing.available,
                "results": EvidenceFileSerializer(listing.files, many=True).data,
            }
        )

    @extend_schema(tags=["Evidence"], request=EvidenceUploadSerializer, responses={201: EvidenceFileSerializer})
    def create(self, request):
        ser = EvidenceUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        upload = ser.validated_data["file"]
        EvidenceSync.check_size(upload.size)
        ef = self._sync().upload(
            policy=access_policy_for(request.user),
            actor=request.user,
            owner=ser.to_owner(),
            file_name=upload.name,
            content=upload.read(),
            content_type=getattr(upload, "content_type", "") or "",
        )
        return Response(EvidenceFileSerializer(ef).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Evidence"], responses={(200, "application/octet-stream"): OpenApiTypes.BINARY})
    @action(detail=True, methods=["get"], url_path="download")
    def download(self, request, pk=None):
        result = self._sync().download(
            policy=access_policy_for(request.user),
            file_id=UUID(str(pk)),
            request=request,
        )

        res = HttpResponse(result.content, content_type=result.file.file_type or "application/octet-stream")
        res["Content-Disposition"] = f'attachment; filename="{result.file.file_path.rsplit("/", 1)[-1]}"'
        if result.session.refreshed:
            set_auth_cookies(res, access=result.session.access, refresh=result.session.refresh)
        return res

    @extend_schema(tags=["Evidence"], responses={204: None})
    def destroy(self, request, pk=None):
        self._sync().delete(policy=access_policy_for(request.user), actor=request.user, file_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)
