# ctam_core/assessments/services.py
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from ctam_core.assessments.models import (
    Assessment,
    AssessmentItem,
    ImpactScore,
    QualitativeScore,
)
from ctam_core.assessments.selectors import active_categories, get_assessment_scoped
from ctam_core.common.api.exceptions import ConflictError
from ctam_core.iam.access import AccessPolicy
from ctam_core.organizations.models import Unit
from ctam_core.scoring import calculator
from ctam_core.scoring.calculator import ImpactInput, ItemInput, QualitativeInput

logger = logging.getLogger(__name__)


class AssessmentService:
    """
    Write-model operations for one assessment cycle.
    - create (bulk items, one per active category)
    - commit_items / commit_impact / commit_qualitative (explicit commits)
    - recalculate (persisted composite score)

    Every commit recomputes and stores the composite score in the same
    transaction, so the persisted total never lags the raw answers.
    """

    # ----------------------------
    # Create
    # ----------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        policy: AccessPolicy,
        actor,
        unit_id: UUID,
        fiscal_year: int,
        assessment_period: str = "1",
    ) -> Assessment:
        if not policy.can_manage_unit(unit_id):
            raise PermissionDenied("You cannot create assessments for this unit.")

        if not Unit.objects.filter(id=unit_id, is_active=True).exists():
            raise ValidationError({"unit": "Unknown or inactive unit."})

        categories = list(active_categories())
        if not categories:
            raise ValidationError({"detail": "No active assessment categories are configured."})

        period = (assessment_period or "1").strip() or "1"

        try:
            with transaction.atomic():
                assessment = Assessment.objects.create(
                    unit_id=unit_id,
                    fiscal_year=int(fiscal_year),
                    assessment_period=period,
                    created_by=actor,
                )
        except IntegrityError:
            raise ConflictError(
                {
                    "detail": "An assessment already exists for this unit, fiscal year and period.",
                    "fiscal_year": fiscal_year,
                    "assessment_period": period,
                }
            )

        AssessmentItem.objects.bulk_create(
            [AssessmentItem(assessment=assessment, category=c) for c in categories]
        )

        logger.info(
            "Assessment created id=%s unit=%s fy=%s period=%s items=%d",
            assessment.id,
            unit_id,
            fiscal_year,
            period,
            len(categories),
        )
        return AssessmentService.recalculate(assessment_id=assessment.id)

    # ----------------------------
    # Helpers
    # ----------------------------
    @staticmethod
    def _lock_editable(*, policy: AccessPolicy, assessment_id: UUID) -> Assessment:
        a = get_assessment_scoped(policy=policy, assessment_id=assessment_id)
        if not policy.can_manage_unit(a.unit_id):
            raise PermissionDenied("You cannot edit assessments of this unit.")

        a = Assessment.objects.select_for_update().get(id=a.id)
        if not a.is_editable:
            raise ConflictError(
                {
                    "detail": f"Assessment is '{a.status}' and can no longer be edited.",
                    "current_status": a.status,
                }
            )
        return a

    # ----------------------------
    # Item answers
    # ----------------------------
    @staticmethod
    @transaction.atomic
    def commit_items(
        *,
        policy: AccessPolicy,
        actor,
        assessment_id: UUID,
        items: Iterable[dict[str, Any]],
    ) -> Assessment:
        """
        `items`: [{"category": <uuid>, "status": <ItemStatus>, "description"?: str}, ...]
        Unlisted categories keep their current answer.
        """
        a = AssessmentService._lock_editable(policy=policy, assessment_id=assessment_id)

        by_category = {i.category_id: i for i in AssessmentItem.objects.filter(assessment_id=a.id)}
        changed: list[AssessmentItem] = []
        now = timezone.now()

        for row in items:
            category_id = row.get("category")
            item = by_category.get(category_id)
            if item is None:
                raise ValidationError({"items": f"Category {category_id} is not part of this assessment."})

            status = row.get("status", item.status)
            try:
                score = calculator.item_score(status)
            except ValueError as e:
                raise ValidationError({"items": str(e)})

            item.status = status
            item.score = score if score is not None else 0
            if "description" in row:
                item.description = row.get("description") or ""
            item.updated_at = now
            changed.append(item)

        if changed:
            AssessmentItem.objects.bulk_update(changed, ["status", "score", "description", "updated_at"])

        logger.info("Assessment items committed id=%s changed=%d by user=%s", a.id, len(changed), actor.id)
        return AssessmentService.recalculate(assessment_id=a.id)

    # ----------------------------
    # Impact
    # ----------------------------
    @staticmethod
    @transaction.atomic
    def commit_impact(
        *,
        policy: AccessPolicy,
        actor,
        assessment_id: UUID,
        data: ImpactInput,
        comment: Optional[str] = None,
    ) -> ImpactScore:
        a = AssessmentService._lock_editable(policy=policy, assessment_id=assessment_id)

        try:
            result = calculator.impact_score(data)
        except ValueError as e:
            raise ValidationError({"impact": str(e)})

        impact, _ = ImpactScore.objects.update_or_create(
            assessment=a,
            defaults={
                "had_incident": data.had_incident,
                "incident_recovery_hours": data.recovery_hours if data.had_incident else None,
                "had_data_breach": data.had_breach,
                "breach_severity": data.breach_severity if data.had_breach else calculator.BreachSeverity.NONE,
                "incident_penalty": result.incident_penalty,
                "breach_penalty": result.breach_penalty,
                "incident_score": result.incident_score,
                "breach_score": result.breach_score,
                "total_score": result.total,
                "scale": calculator.ImpactScale.PERCENT,
                "comment": comment or "",
                "evaluated_by": actor,
                "evaluated_at": timezone.now(),
            },
        )

        AssessmentService.recalculate(assessment_id=a.id)
        return impact

    # ----------------------------
    # Qualitative
    # ----------------------------
    @staticmethod
    @transaction.atomic
    def commit_qualitative(
        *,
        policy: AccessPolicy,
        actor,
        assessment_id: UUID,
        data: QualitativeInput,
        comment: Optional[str] = None,
    ) -> QualitativeScore:
        a = AssessmentService._lock_editable(policy=policy, assessment_id=assessment_id)
        result = calculator.qualitative_score(data)

        qual, _ = QualitativeScore.objects.update_or_create(
            assessment=a,
            defaults={
                "has_ciso": data.has_ciso,
                "has_dpo": data.has_dpo,
                "has_it_security_team": data.has_it_security_team,
                "annual_training_count": data.annual_training_count,
                "uses_freeware": data.uses_freeware,
                "uses_opensource": data.uses_opensource,
                "leadership_score": result.leadership_score,
                "sustainable_score": result.sustainable_score,
                "total_score": result.total,
                "comment": comment or "",
                "evaluated_by": actor,
                "evaluated_at": timezone.now(),
            },
        )

        AssessmentService.recalculate(assessment_id=a.id)
        return qual

    # ----------------------------
    # Derived scores
    # ----------------------------
    @staticmethod
    @transaction.atomic
    def recalculate(*, assessment_id: UUID) -> Assessment:
        items = [
            ItemInput(status=status, weight=weight)
            for status, weight in AssessmentItem.objects.filter(assessment_id=assessment_id).values_list(
                "status", "category__weight"
            )
        ]

        qual_total = (
            QualitativeScore.objects.filter(assessment_id=assessment_id).values_list("total_score", flat=True).first()
        )

        impact_row = ImpactScore.objects.filter(assessment_id=assessment_id).values("total_score", "scale").first()
        impact_percent = (
            calculator.normalize_impact_total(impact_row["total_score"], impact_row["scale"]) if impact_row else None
        )

        score = calculator.composite_score(items=items, qualitative_total=qual_total, impact_percent=impact_percent)

        Assessment.objects.filter(id=assessment_id).update(
            quantitative_score=score.quantitative,
            qualitative_score=score.qualitative,
            impact_score=score.impact,
            total_score=score.total,
            updated_at=timezone.now(),
        )
        return Assessment.objects.select_related("unit").get(id=assessment_id)
