# ctam_core/budgets/admin.py
from __future__ import annotations

from django.contrib import admin

from ctam_core.budgets.models import BudgetRecord


@admin.register(BudgetRecord)
class BudgetRecordAdmin(admin.ModelAdmin):
    list_display = ("unit", "fiscal_year", "category", "amount", "created_at")
    list_filter = ("fiscal_year", "category")
    search_fields = ("unit__name", "unit__code")
    autocomplete_fields = ("unit",)
    ordering = ("-fiscal_year", "unit__name")
