# ctam_core/reports/api/serializers.py
from __future__ import annotations

from rest_framework import serializers


class ReportRowSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    total = serializers.DecimalField(max_digits=16, decimal_places=2)
    unit_count = serializers.IntegerField()
    average = serializers.DecimalField(max_digits=16, decimal_places=2, allow_null=True)
    drillable = serializers.BooleanField()


class ReportTotalsSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=16, decimal_places=2)
    unit_count = serializers.IntegerField()
    average = serializers.DecimalField(max_digits=16, decimal_places=2, allow_null=True)


class ReportSerializer(serializers.Serializer):
    """
    Serializes `ctam_core.reports.selectors.Report`; drill state is
    flattened so the UI can rebuild its breadcrumb from one response.
    """
    report = serializers.CharField(source="report_type")
    fiscal_year = serializers.IntegerField(allow_null=True)
    level = serializers.CharField(source="state.level.value")
    pinned_level = serializers.CharField(source="state.pinned.value")
    region_id = serializers.UUIDField(source="state.region_id", allow_null=True)
    province_id = serializers.UUIDField(source="state.province_id", allow_null=True)
    unit_id = serializers.UUIDField(source="state.unit_id", allow_null=True)
    can_go_back = serializers.BooleanField()
    totals = serializers.SerializerMethodField()
    rows = ReportRowSerializer(many=True)
    extra = serializers.DictField()

    def get_totals(self, obj) -> dict:
        return ReportTotalsSerializer(
            {"total": obj.total, "unit_count": obj.unit_count, "average": obj.average}
        ).data


class ReportQuerySerializer(serializers.Serializer):
    fiscal_year = serializers.IntegerField(required=False, min_value=2000, max_value=2200)
    region = serializers.UUIDField(required=False)
    province = serializers.UUIDField(required=False)
    unit = serializers.UUIDField(required=False)


class StatusOverviewSerializer(serializers.Serializer):
    fiscal_year = serializers.IntegerField(allow_null=True)
    units_total = serializers.IntegerField()
    units_with_assessment = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
