# ctam_core/budgets/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from ctam_core.assessments.models import Category
from ctam_core.common.models import UUIDModel
from ctam_core.organizations.models import Unit


class BudgetRecord(UUIDModel):
    """
    Cybersecurity budget for one (unit, fiscal_year, category).
    A unit's year is always replaced as a whole; see BudgetService.replace_for_unit.
    """
    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, related_name="budget_records")
    fiscal_year = models.PositiveIntegerField(db_index=True)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="budget_records")

    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")

    class Meta:
        db_table = "budgets_record"
        constraints = [
            models.UniqueConstraint(fields=["unit", "fiscal_year", "category"], name="uq_budget_unit_year_category"),
        ]
        indexes = [models.Index(fields=["fiscal_year", "unit"])]

    def __str__(self) -> str:
        return f"{self.unit_id} FY{self.fiscal_year} {self.category_id}: {self.amount}"
