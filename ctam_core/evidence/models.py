# ctam_core/evidence/models.py
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from ctam_core.assessments.models import Assessment, AssessmentItem, ImpactScore, QualitativeScore
from ctam_core.common.models import UUIDModel


class EvidenceOwnerKind(models.TextChoices):
    ITEM = "item", "Assessment item"
    IMPACT = "impact", "Impact score field"
    QUALITATIVE = "qualitative", "Qualitative score field"


class EvidenceFile(UUIDModel):
    """
    Metadata for one stored blob. A row exists only after its blob was
    written successfully; deleting the row happens only after the blob is gone.

    Owner is exactly one of:
      - assessment_item
      - impact_score + field_name
      - qualitative_score + field_name
    `assessment` is denormalized from the owner for path building and scoping.
    """
    assessment = models.ForeignKey(Assessment, on_delete=models.PROTECT, related_name="evidence_files")

    assessment_item = models.ForeignKey(
        AssessmentItem, on_delete=models.PROTECT, related_name="evidence_files", null=True, blank=True
    )
    impact_score = models.ForeignKey(
        ImpactScore, on_delete=models.PROTECT, related_name="evidence_files", null=True, blank=True
    )
    qualitative_score = models.ForeignKey(
        QualitativeScore, on_delete=models.PROTECT, related_name="evidence_files", null=True, blank=True
    )
    field_name = models.CharField(max_length=64, blank=True, default="")

    file_name = models.CharField(max_length=255)  # original, for display
    file_path = models.CharField(max_length=512, unique=True)  # storage key
    file_size = models.PositiveBigIntegerField()
    file_type = models.CharField(max_length=127, blank=True, default="")

    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")

    class Meta:
        db_table = "evidence_file"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["assessment_item", "created_at"]),
            models.Index(fields=["impact_score", "field_name"]),
            models.Index(fields=["qualitative_score", "field_name"]),
        ]
        constraints = [
            models.CheckConstraint(
                name="ck_evidence_exactly_one_owner",
                condition=(
                    Q(
                        assessment_item__isnull=False,
                        impact_score__isnull=True,
                        qualitative_score__isnull=True,
                        field_name="",
                    )
                    | (
                        Q(assessment_item__isnull=True, impact_score__isnull=False, qualitative_score__isnull=True)
                        & ~Q(field_name="")
                    )
                    | (
                        Q(assessment_item__isnull=True, impact_score__isnull=True, qualitative_score__isnull=False)
                        & ~Q(field_name="")
                    )
                ),
            ),
        ]

    def __str__(self) -> str:
        return self.file_name

    @property
    def owner_kind(self) -> str:
        if self.assessment_item_id:
            return EvidenceOwnerKind.ITEM
        if self.impact_score_id:
            return EvidenceOwnerKind.IMPACT
        return EvidenceOwnerKind.QUALITATIVE
