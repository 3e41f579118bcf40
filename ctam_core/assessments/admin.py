# ctam_core/assessments/admin.py
from __future__ import annotations

from django.contrib import admin

from ctam_core.assessments.models import ApprovalHistory, Assessment, AssessmentItem, Category


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("order_number", "code", "name_en", "weight", "is_active")
    list_filter = ("is_active",)
    search_fields = ("code", "name_th", "name_en")
    ordering = ("order_number",)


class AssessmentItemInline(admin.TabularInline):
    model = AssessmentItem
    extra = 0
    fields = ("category", "status", "score")
    readonly_fields = fields
    can_delete = False


@admin.register(Assessment)
class AssessmentAdmin(admin.ModelAdmin):
    list_display = ("id", "unit", "fiscal_year", "assessment_period", "status", "total_score", "created_at")
    list_filter = ("status", "fiscal_year")
    search_fields = ("id", "unit__name", "unit__code")
    autocomplete_fields = ("unit",)
    # status only changes through the workflow service
    readonly_fields = (
        "status",
        "quantitative_score",
        "qualitative_score",
        "impact_score",
        "total_score",
        "submitted_by",
        "submitted_at",
        "provincial_approved_by",
        "provincial_approved_at",
        "regional_approved_by",
        "regional_approved_at",
        "completed_at",
    )
    inlines = [AssessmentItemInline]
    ordering = ("-created_at",)


@admin.register(ApprovalHistory)
class ApprovalHistoryAdmin(admin.ModelAdmin):
    list_display = ("assessment", "action", "from_status", "to_status", "performed_by", "created_at")
    list_filter = ("action", "to_status")
    search_fields = ("assessment__id", "performed_by__username")
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False
