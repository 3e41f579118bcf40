# ctam_core/assessments/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from ctam_core.common.models import UUIDModel
from ctam_core.organizations.models import Unit
from ctam_core.scoring.calculator import BreachSeverity, ImpactScale, ItemStatus


class Category(UUIDModel):
    """
    One of the CTAM+ control categories. Weight is the category's share of
    the quantitative score; see ctam_core.scoring.calculator.
    """
    code = models.CharField(max_length=16, unique=True)
    name_th = models.CharField(max_length=255)
    name_en = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    order_number = models.PositiveSmallIntegerField(db_index=True)
    weight = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("1.00"))
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "assessments_category"
        ordering = ["order_number"]

    def __str__(self) -> str:
        return f"{self.code} {self.name_en}"


class AssessmentStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    RETURNED = "returned", "Returned for revision"
    APPROVED_PROVINCIAL = "approved_provincial", "Approved (provincial)"
    APPROVED_REGIONAL = "approved_regional", "Approved (regional)"
    COMPLETED = "completed", "Completed"


# Editable by the facility while in these states
EDITABLE_STATUSES = (AssessmentStatus.DRAFT, AssessmentStatus.RETURNED)

# Only these count towards official statistics
APPROVED_STATUSES = (
    AssessmentStatus.APPROVED_PROVINCIAL,
    AssessmentStatus.APPROVED_REGIONAL,
    AssessmentStatus.COMPLETED,
)


class Assessment(UUIDModel):
    """
    One assessment cycle for one unit. Never deleted; a new cycle supersedes it.
    Status changes go through ctam_core.assessments.workflow only.
    """
    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, related_name="assessments")

    fiscal_year = models.PositiveIntegerField(db_index=True)  # calendar-based; display offset applied in UI only
    assessment_period = models.CharField(max_length=32, default="1")

    status = models.CharField(
        max_length=32,
        choices=AssessmentStatus.choices,
        default=AssessmentStatus.DRAFT,
        db_index=True,
    )

    # Derived scores (null until first computed)
    quantitative_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    qualitative_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    impact_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    total_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="created_assessments"
    )

    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="submitted_assessments",
        null=True,
        blank=True,
    )
    submitted_at = models.DateTimeField(null=True, blank=True)

    provincial_approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provincial_approved_assessments",
        null=True,
        blank=True,
    )
    provincial_approved_at = models.DateTimeField(null=True, blank=True)
    provincial_comment = models.TextField(blank=True, default="")

    regional_approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="regional_approved_assessments",
        null=True,
        blank=True,
    )
    regional_approved_at = models.DateTimeField(null=True, blank=True)
    regional_comment = models.TextField(blank=True, default="")

    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "assessments_assessment"
        constraints = [
            models.UniqueConstraint(
                fields=["unit", "fiscal_year", "assessment_period"],
                name="uq_assessment_unit_year_period",
            ),
        ]
        indexes = [
            models.Index(fields=["fiscal_year", "status"]),
            models.Index(fields=["unit", "fiscal_year"]),
        ]

    def __str__(self) -> str:
        return f"{self.unit_id} FY{self.fiscal_year}/{self.assessment_period} ({self.status})"

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES


class AssessmentItem(UUIDModel):
    """
    One scored line per category. Frozen once the assessment leaves draft/returned.
    """
    assessment = models.ForeignKey(Assessment, on_delete=models.CASCADE, related_name="items")
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="items")

    status = models.CharField(max_length=24, choices=ItemStatus.choices, default=ItemStatus.FAIL)
    score = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal("0.00"))
    description = models.TextField(blank=True, default="")

    class Meta:
        db_table = "assessments_item"
        constraints = [
            models.UniqueConstraint(fields=["assessment", "category"], name="uq_item_assessment_category"),
        ]

    def __str__(self) -> str:
        return f"{self.assessment_id}:{self.category_id} {self.status}"


class ImpactScore(UUIDModel):
    """
    At most one per assessment. `scale` records which scale `total_score`
    was written in; rows written by this code are always percent_100.
    """
    assessment = models.OneToOneField(Assessment, on_delete=models.CASCADE, related_name="impact")

    had_incident = models.BooleanField(default=False)
    incident_recovery_hours = models.PositiveIntegerField(null=True, blank=True)
    had_data_breach = models.BooleanField(default=False)
    breach_severity = models.CharField(max_length=16, choices=BreachSeverity.choices, default=BreachSeverity.NONE)

    incident_penalty = models.SmallIntegerField(default=0)
    breach_penalty = models.SmallIntegerField(default=0)
    incident_score = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("50.00"))
    breach_score = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("50.00"))
    total_score = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("100.00"))
    scale = models.CharField(max_length=16, choices=ImpactScale.choices, default=ImpactScale.PERCENT)

    comment = models.TextField(blank=True, default="")
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True
    )
    evaluated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "assessments_impact_score"


class QualitativeScore(UUIDModel):
    assessment = models.OneToOneField(Assessment, on_delete=models.CASCADE, related_name="qualitative")

    has_ciso = models.BooleanField(default=False)
    has_dpo = models.BooleanField(default=False)
    has_it_security_team = models.BooleanField(default=False)
    annual_training_count = models.PositiveSmallIntegerField(default=0)
    uses_freeware = models.BooleanField(default=False)
    uses_opensource = models.BooleanField(default=False)

    leadership_score = models.PositiveSmallIntegerField(default=0)
    sustainable_score = models.PositiveSmallIntegerField(default=0)
    total_score = models.PositiveSmallIntegerField(default=0)

    comment = models.TextField(blank=True, default="")
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True
    )
    evaluated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "assessments_qualitative_score"


class ApprovalHistory(UUIDModel):
    """
    Append-only log: one row per status transition. Never updated or deleted.
    """
    assessment = models.ForeignKey(Assessment, on_delete=models.PROTECT, related_name="history")

    action = models.CharField(max_length=32, db_index=True)
    from_status = models.CharField(max_length=32, choices=AssessmentStatus.choices)
    to_status = models.CharField(max_length=32, choices=AssessmentStatus.choices)
    comment = models.TextField(blank=True, default="")

    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")

    class Meta:
        db_table = "assessments_approval_history"
        ordering = ["created_at"]
        indexes = [models.Index(fields=["assessment", "created_at"])]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("ApprovalHistory rows are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("ApprovalHistory rows are immutable.")
