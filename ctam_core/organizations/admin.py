# ctam_core/organizations/admin.py
from __future__ import annotations

from django.contrib import admin

from ctam_core.organizations.models import HealthRegion, Province, Unit


@admin.register(HealthRegion)
class HealthRegionAdmin(admin.ModelAdmin):
    list_display = ("region_number", "name")
    search_fields = ("name",)
    ordering = ("region_number",)


@admin.register(Province)
class ProvinceAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "health_region")
    list_filter = ("health_region",)
    search_fields = ("code", "name")
    autocomplete_fields = ("health_region",)


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "kind", "province", "is_active")
    list_filter = ("kind", "is_active", "province__health_region")
    search_fields = ("code", "name")
    autocomplete_fields = ("province",)
