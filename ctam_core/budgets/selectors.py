# ctam_core/budgets/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from ctam_core.budgets.models import BudgetRecord
from ctam_core.iam.access import AccessPolicy
from ctam_core.iam.models import Role


def budgets_visible(*, policy: AccessPolicy) -> QuerySet[BudgetRecord]:
    qs = BudgetRecord.objects.select_related("category", "unit")
    if policy.role == Role.CENTRAL_ADMIN:
        return qs
    return qs.filter(unit_id__in=policy.visible_unit_ids())


def budgets_filtered(
    *,
    policy: AccessPolicy,
    fiscal_year: int | None = None,
    unit_id: UUID | None = None,
) -> QuerySet[BudgetRecord]:
    qs = budgets_visible(policy=policy).order_by("unit__name", "category__order_number")

    if fiscal_year:
        qs = qs.filter(fiscal_year=fiscal_year)

    if unit_id:
        qs = qs.filter(unit_id=unit_id)

    return qs


def budget_facts(*, fiscal_year: int | None = None) -> list[dict]:
    """
    Flat rows for the aggregation fold. Scope filtering happens in the fold.
    """
    qs = BudgetRecord.objects.all()
    if fiscal_year:
        qs = qs.filter(fiscal_year=fiscal_year)
    return list(qs.values("unit_id", "category_id", "fiscal_year", "amount"))
