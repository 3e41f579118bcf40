# ctam_core/organizations/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from ctam_core.common.api.pagination import paginate
from ctam_core.iam.permissions import HasProfile
from ctam_core.iam.selectors import access_policy_for
from ctam_core.organizations.api.serializers import HealthRegionSerializer, ProvinceSerializer, UnitSerializer
from ctam_core.organizations.models import HealthRegion, Province, Unit, UnitKind
from ctam_core.organizations.selectors import units_filtered


def _uuid_param(request, name: str) -> UUID | None:
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise DRFValidationError({name: "Invalid UUID"})


class HealthRegionViewSet(viewsets.GenericViewSet):
    serializer_class = HealthRegionSerializer
    queryset = HealthRegion.objects.none()
    permission_classes = [HasProfile]

    @extend_schema(tags=["Organizations"], responses={200: HealthRegionSerializer(many=True)})
    def list(self, request):
        policy = access_policy_for(request.user)
        regions = [r for r in HealthRegion.objects.order_by("region_number") if policy.can_see_region(r.id)]
        return Response(HealthRegionSerializer(regions, many=True).data)


class ProvinceViewSet(viewsets.GenericViewSet):
    serializer_class = ProvinceSerializer
    queryset = Province.objects.none()
    permission_classes = [HasProfile]

    @extend_schema(
        tags=["Organizations"],
        responses={200: ProvinceSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="region", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        policy = access_policy_for(request.user)
        qs = Province.objects.order_by("name")
        region_id = _uuid_param(request, "region")
        if region_id:
            qs = qs.filter(health_region_id=region_id)
        return Response(ProvinceSerializer([p for p in qs if policy.can_see_province(p.id)], many=True).data)


class UnitViewSet(viewsets.GenericViewSet):
    """
    Units the caller can see (assessment / budget pickers).
    """
    serializer_class = UnitSerializer
    queryset = Unit.objects.none()
    permission_classes = [HasProfile]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(
        tags=["Organizations"],
        responses={200: UnitSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="province", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="region", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="kind", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False, enum=UnitKind.values),
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        policy = access_policy_for(request.user)
        qs = units_filtered(
            province_id=_uuid_param(request, "province"),
            region_id=_uuid_param(request, "region"),
            kind=request.query_params.get("kind") or None,
            search=(request.query_params.get("q") or "").strip() or None,
        ).filter(id__in=policy.visible_unit_ids())
        return paginate(request, qs, UnitSerializer)

    @extend_schema(tags=["Organizations"], responses={200: UnitSerializer})
    def retrieve(self, request, pk=None):
        policy = access_policy_for(request.user)
        unit = units_filtered().filter(id=pk).first()
        if unit is None or not policy.can_see_unit(unit.id):
            raise NotFound("Unit not found.")
        return Response(UnitSerializer(unit).data)
