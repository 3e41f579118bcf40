# ctam_core/assessments/filters.py
from __future__ import annotations

import django_filters

from ctam_core.assessments.models import Assessment, AssessmentStatus


class AssessmentFilter(django_filters.FilterSet):
    """
    Query-string narrowing on top of the scope-filtered queryset.
    Never widens visibility: it is always applied after assessments_visible().
    """
    unit = django_filters.UUIDFilter(field_name="unit_id")
    province = django_filters.UUIDFilter(field_name="unit__province_id")
    region = django_filters.UUIDFilter(field_name="unit__province__health_region_id")
    fiscal_year = django_filters.NumberFilter(field_name="fiscal_year")
    status = django_filters.MultipleChoiceFilter(choices=AssessmentStatus.choices)

    class Meta:
        model = Assessment
        fields = ["unit", "province", "region", "fiscal_year", "status"]
