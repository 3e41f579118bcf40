# ctam_core/reports/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ctam_core.iam.models import ReportType
from ctam_core.iam.permissions import HasProfile
from ctam_core.iam.selectors import access_policy_for
from ctam_core.reports.api.serializers import ReportQuerySerializer, ReportSerializer, StatusOverviewSerializer
from ctam_core.reports.drilldown import navigate
from ctam_core.reports.selectors import budget_report, impact_report, score_report, status_overview

_DRILL_PARAMS = [
    OpenApiParameter(name="fiscal_year", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="region", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="province", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="unit", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
]


class ReportViewSet(viewsets.ViewSet):
    """
    Hierarchy reports. Query params describe the drill path
    (region -> province -> unit); the server replays it against the
    caller's pinned level so a hand-edited URL cannot climb higher.
    """
    permission_classes = [HasProfile]

    def _build(self, request, report_type: str, builder) -> Response:
        q = ReportQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        params = q.validated_data

        policy = access_policy_for(request.user, report_type=report_type)
        state = navigate(
            policy,
            region_id=params.get("region"),
            province_id=params.get("province"),
            unit_id=params.get("unit"),
        )
        report = builder(policy=policy, state=state, fiscal_year=params.get("fiscal_year"))
        return Response(ReportSerializer(report).data)

    @extend_schema(tags=["Reports"], parameters=_DRILL_PARAMS, responses={200: ReportSerializer})
    @action(detail=False, methods=["get"], url_path="budget")
    def budget(self, request):
        return self._build(request, ReportType.BUDGET, budget_report)

    @extend_schema(tags=["Reports"], parameters=_DRILL_PARAMS, responses={200: ReportSerializer})
    @action(detail=False, methods=["get"], url_path="scores")
    def scores(self, request):
        return self._build(request, ReportType.QUANTITATIVE, score_report)

    @extend_schema(tags=["Reports"], parameters=_DRILL_PARAMS, responses={200: ReportSerializer})
    @action(detail=False, methods=["get"], url_path="impact")
    def impact(self, request):
        return self._build(request, ReportType.IMPACT, impact_report)

    @extend_schema(tags=["Reports"], parameters=_DRILL_PARAMS[:1], responses={200: StatusOverviewSerializer})
    @action(detail=False, methods=["get"], url_path="overview")
    def overview(self, request):
        q = ReportQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        policy = access_policy_for(request.user, report_type=ReportType.OVERVIEW)
        data = status_overview(policy=policy, fiscal_year=q.validated_data.get("fiscal_year"))
        return Response(StatusOverviewSerializer(data).data)
