# ctam_core/assessments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ctam_core.assessments.models import (
    ApprovalHistory,
    Assessment,
    AssessmentItem,
    Category,
    ImpactScore,
    QualitativeScore,
)
from ctam_core.assessments.workflow import StatusWorkflow
from ctam_core.common.fiscal import to_display_year
from ctam_core.scoring.calculator import (
    BreachSeverity,
    ImpactInput,
    ItemStatus,
    QualitativeInput,
    impact_level,
    normalize_impact_total,
)


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "code", "name_th", "name_en", "description", "order_number", "weight", "is_active"]
        read_only_fields = fields


class AssessmentItemSerializer(serializers.ModelSerializer):
    category_code = serializers.CharField(source="category.code", read_only=True)
    category_name = serializers.CharField(source="category.name_en", read_only=True)

    class Meta:
        model = AssessmentItem
        fields = ["id", "category", "category_code", "category_name", "status", "score", "description", "updated_at"]
        read_only_fields = fields


class AssessmentSerializer(serializers.ModelSerializer):
    unit_name = serializers.CharField(source="unit.name", read_only=True)
    fiscal_year_display = serializers.SerializerMethodField()
    allowed_actions = serializers.SerializerMethodField()

    class Meta:
        model = Assessment
        fields = [
            "id",
            "unit",
            "unit_name",
            "fiscal_year",
            "fiscal_year_display",
            "assessment_period",
            "status",
            "quantitative_score",
            "qualitative_score",
            "impact_score",
            "total_score",
            "created_by",
            "submitted_by",
            "submitted_at",
            "provincial_approved_by",
            "provincial_approved_at",
            "provincial_comment",
            "regional_approved_by",
            "regional_approved_at",
            "regional_comment",
            "completed_at",
            "allowed_actions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_fiscal_year_display(self, obj) -> int:
        return to_display_year(obj.fiscal_year)

    def get_allowed_actions(self, obj) -> list[str]:
        policy = self.context.get("policy")
        if policy is None:
            return []
        return StatusWorkflow.allowed_actions(assessment=obj, policy=policy)


class AssessmentCreateSerializer(serializers.Serializer):
    unit = serializers.UUIDField()
    fiscal_year = serializers.IntegerField(min_value=2000, max_value=2200, required=False)
    assessment_period = serializers.CharField(max_length=32, required=False, default="1")


class ItemCommitSerializer(serializers.Serializer):
    category = serializers.UUIDField()
    status = serializers.ChoiceField(choices=ItemStatus.choices)
    description = serializers.CharField(required=False, allow_blank=True)


class ItemsCommitSerializer(serializers.Serializer):
    items = ItemCommitSerializer(many=True, allow_empty=False)


class ImpactScoreSerializer(serializers.ModelSerializer):
    level = serializers.SerializerMethodField()

    class Meta:
        model = ImpactScore
        fields = [
            "id",
            "assessment",
            "had_incident",
            "incident_recovery_hours",
            "had_data_breach",
            "breach_severity",
            "incident_penalty",
            "breach_penalty",
            "incident_score",
            "breach_score",
            "total_score",
            "scale",
            "level",
            "comment",
            "evaluated_by",
            "evaluated_at",
        ]
        read_only_fields = fields

    def get_level(self, obj) -> int | None:
        return impact_level(normalize_impact_total(obj.total_score, obj.scale))


class ImpactCommitSerializer(serializers.Serializer):
    had_incident = serializers.BooleanField(default=False)
    recovery_hours = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    had_breach = serializers.BooleanField(default=False)
    breach_severity = serializers.ChoiceField(choices=BreachSeverity.choices, default=BreachSeverity.NONE)
    comment = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs.get("had_incident") and attrs.get("recovery_hours") is None:
            raise serializers.ValidationError({"recovery_hours": "Required when had_incident is true."})
        if attrs.get("had_breach") and attrs.get("breach_severity") == BreachSeverity.NONE:
            raise serializers.ValidationError({"breach_severity": "Pick a severity when had_breach is true."})
        return attrs

    def to_input(self) -> ImpactInput:
        d = self.validated_data
        return ImpactInput(
            had_incident=d["had_incident"],
            recovery_hours=d.get("recovery_hours"),
            had_breach=d["had_breach"],
            breach_severity=d["breach_severity"],
        )


class QualitativeScoreSerializer(serializers.ModelSerializer):
    class Meta:
        model = QualitativeScore
        fields = [
            "id",
            "assessment",
            "has_ciso",
            "has_dpo",
            "has_it_security_team",
            "annual_training_count",
            "uses_freeware",
            "uses_opensource",
            "leadership_score",
            "sustainable_score",
            "total_score",
            "comment",
            "evaluated_by",
            "evaluated_at",
        ]
        read_only_fields = fields


class QualitativeCommitSerializer(serializers.Serializer):
    has_ciso = serializers.BooleanField(default=False)
    has_dpo = serializers.BooleanField(default=False)
    has_it_security_team = serializers.BooleanField(default=False)
    annual_training_count = serializers.IntegerField(min_value=0, max_value=365, default=0)
    uses_freeware = serializers.BooleanField(default=False)
    uses_opensource = serializers.BooleanField(default=False)
    comment = serializers.CharField(required=False, allow_blank=True, default="")

    def to_input(self) -> QualitativeInput:
        d = self.validated_data
        return QualitativeInput(
            has_ciso=d["has_ciso"],
            has_dpo=d["has_dpo"],
            has_it_security_team=d["has_it_security_team"],
            annual_training_count=d["annual_training_count"],
            uses_freeware=d["uses_freeware"],
            uses_opensource=d["uses_opensource"],
        )


class ApprovalHistorySerializer(serializers.ModelSerializer):
    performed_by_username = serializers.CharField(source="performed_by.username", read_only=True)

    class Meta:
        model = ApprovalHistory
        fields = [
            "id",
            "assessment",
            "action",
            "from_status",
            "to_status",
            "comment",
            "performed_by",
            "performed_by_username",
            "created_at",
        ]
        read_only_fields = fields


class TransitionSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default="")
