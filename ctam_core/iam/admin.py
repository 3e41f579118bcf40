# ctam_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from ctam_core.iam.models import Profile, ReportAccessPolicy


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "unit", "province", "health_region", "is_active", "created_at")
    list_filter = ("role", "is_active")
    search_fields = ("user__username", "user__email", "full_name")
    autocomplete_fields = ("user", "unit", "province", "health_region")
    ordering = ("-created_at",)


@admin.register(ReportAccessPolicy)
class ReportAccessPolicyAdmin(admin.ModelAdmin):
    list_display = ("role", "report_type", "view_region", "drill_to_province", "drill_to_unit", "view_same_province_units")
    list_filter = ("role", "report_type")
    ordering = ("role", "report_type")
