# ctam_core/budgets/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from ctam_core.budgets.api.serializers import BudgetRecordSerializer, BudgetReplaceSerializer
from ctam_core.budgets.models import BudgetRecord
from ctam_core.budgets.selectors import budgets_filtered
from ctam_core.budgets.services import BudgetService
from ctam_core.common.api.pagination import paginate
from ctam_core.iam.permissions import ALL_ROLES, EDITOR_ROLES, BaseRolePermission
from ctam_core.iam.selectors import access_policy_for


def _uuid_or_none(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise DRFValidationError({field_name: "Invalid UUID"})


def _int_or_none(value: str | None, field_name: str) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise DRFValidationError({field_name: "Invalid integer"})


class BudgetPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "replace": EDITOR_ROLES,
    }


class BudgetRecordViewSet(viewsets.GenericViewSet):
    """
    Budgets:
    - list (scope-filtered)
    - replace: PUT the complete category set of one unit/year
    """
    serializer_class = BudgetRecordSerializer
    queryset = BudgetRecord.objects.none()
    permission_classes = [BudgetPermission]

    @extend_schema(
        tags=["Budgets"],
        responses={200: BudgetRecordSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="fiscal_year", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="unit", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = budgets_filtered(
            policy=access_policy_for(request.user),
            fiscal_year=_int_or_none(request.query_params.get("fiscal_year"), "fiscal_year"),
            unit_id=_uuid_or_none(request.query_params.get("unit"), "unit"),
        )
        return paginate(request, qs, BudgetRecordSerializer)

    @extend_schema(tags=["Budgets"], request=BudgetReplaceSerializer, responses={200: BudgetRecordSerializer(many=True)})
    @action(detail=False, methods=["put"], url_path="replace")
    def replace(self, request):
        ser = BudgetReplaceSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        records = BudgetService.replace_for_unit(
            policy=access_policy_for(request.user),
            actor=request.user,
            unit_id=ser.validated_data["unit"],
            fiscal_year=ser.validated_data["fiscal_year"],
            lines=ser.validated_data["lines"],
        )
        qs = BudgetRecord.objects.select_related("category", "unit").filter(id__in=[r.id for r in records])
        return Response(BudgetRecordSerializer(qs.order_by("category__order_number"), many=True).data, status=status.HTTP_200_OK)
