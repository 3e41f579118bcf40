# ctam_core/evidence/admin.py
from __future__ import annotations

from django.contrib import admin

from ctam_core.evidence.models import EvidenceFile


@admin.register(EvidenceFile)
class EvidenceFileAdmin(admin.ModelAdmin):
    list_display = ("file_name", "assessment", "field_name", "file_size", "file_type", "uploaded_by", "created_at")
    list_filter = ("file_type", "created_at")
    search_fields = ("file_name", "file_path", "assessment__id")
    # rows must go through EvidenceSync so blob and metadata stay paired
    readonly_fields = ("file_path", "file_size", "file_type", "uploaded_by")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
