# ctam_core/assessments/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet
from rest_framework.exceptions import NotFound

from ctam_core.assessments.models import ApprovalHistory, Assessment, AssessmentItem, Category
from ctam_core.iam.access import AccessPolicy
from ctam_core.iam.models import Role


def active_categories() -> QuerySet[Category]:
    return Category.objects.filter(is_active=True).order_by("order_number")


def assessments_visible(*, policy: AccessPolicy) -> QuerySet[Assessment]:
    qs = Assessment.objects.select_related("unit", "unit__province")
    if policy.role == Role.CENTRAL_ADMIN:
        return qs
    return qs.filter(unit_id__in=policy.visible_unit_ids())


def get_assessment_scoped(*, policy: AccessPolicy, assessment_id: UUID) -> Assessment:
    """
    Out-of-scope rows are reported as missing, not forbidden.
    """
    a = Assessment.objects.select_related("unit", "unit__province").filter(id=assessment_id).first()
    if a is None or not policy.can_see_unit(a.unit_id):
        raise NotFound("Assessment not found.")
    return a


def items_for_assessment(*, assessment_id: UUID) -> QuerySet[AssessmentItem]:
    return (
        AssessmentItem.objects.select_related("category")
        .filter(assessment_id=assessment_id)
        .order_by("category__order_number")
    )


def history_for_assessment(*, assessment_id: UUID) -> QuerySet[ApprovalHistory]:
    return ApprovalHistory.objects.select_related("performed_by").filter(assessment_id=assessment_id).order_by("created_at")
